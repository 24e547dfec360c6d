"""Exceptions raised by Taskwise services."""
from __future__ import annotations


class TaskwiseError(Exception):
    """Base class for application errors."""


class StorageError(TaskwiseError):
    """A read or write against the local database failed.

    The enclosing operation (task save, reconciliation, occurrence update) is
    considered failed as a whole; nothing it attempted should be assumed to
    have taken effect.
    """


__all__ = ["TaskwiseError", "StorageError"]
