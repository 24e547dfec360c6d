"""Logger factory writing to the rotating application log."""
from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from core.settings import LOG_DIR, LOGGING


ROOT_LOGGER = "taskwise"


def get_logger(name: str, *, log_dir: Optional[Path] = None) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        directory = Path(log_dir or LOG_DIR)
        directory.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            directory / LOGGING.filename,
            maxBytes=LOGGING.max_bytes,
            backupCount=LOGGING.backup_count,
            encoding="utf-8",
        )
        handler.setFormatter(logging.Formatter(LOGGING.format))
        logger.addHandler(handler)
    # Levels live on the shared parent so one switch covers every module.
    base = logging.getLogger(ROOT_LOGGER)
    if base.level == logging.NOTSET:
        base.setLevel(LOGGING.level)
    return logger


def set_verbose(enabled: bool = True) -> None:
    logging.getLogger(ROOT_LOGGER).setLevel(logging.DEBUG if enabled else LOGGING.level)


__all__ = ["ROOT_LOGGER", "get_logger", "set_verbose"]
