"""Passcode lock for the application."""
from __future__ import annotations

from typing import Callable, Optional

from passlib.context import CryptContext
from sqlmodel import Session

from core.log import get_logger
from core.settings import PASSCODE
from models.auth_state import AuthState
from storage.db import get_session, transaction
from utils.datetime_utils import local_now


logger = get_logger("taskwise.auth")

pwd_context = CryptContext(schemes=[PASSCODE.hash_scheme], deprecated="auto")

_STATE_ID = "main"


class PasscodeService:
    """Stores a hashed passcode and tracks whether the app is locked.

    The lock flag lives in memory only: every new service instance starts
    locked when a passcode is configured.
    """

    def __init__(self, session_factory: Callable[[], Session] = get_session):
        self._session_factory = session_factory
        self._locked = self.has_passcode()

    def _load(self) -> Optional[AuthState]:
        with self._session_factory() as session:
            return session.get(AuthState, _STATE_ID)

    def has_passcode(self) -> bool:
        state = self._load()
        return bool(state and state.passcode_hash)

    def is_locked(self) -> bool:
        return self._locked and self.has_passcode()

    def setup_passcode(self, passcode: str) -> None:
        self._validate(passcode)
        with transaction(self._session_factory) as session:
            state = session.get(AuthState, _STATE_ID) or AuthState(id=_STATE_ID)
            state.passcode_hash = pwd_context.hash(passcode)
            state.updated_at = local_now()
            session.add(state)
        self._locked = False
        logger.info("Passcode configured")

    def verify(self, passcode: str) -> bool:
        """Check ``passcode``; a match unlocks the app. Without a passcode everything matches."""

        state = self._load()
        if not state or not state.passcode_hash:
            self._locked = False
            return True
        valid = pwd_context.verify(passcode or "", state.passcode_hash)
        if valid:
            self._locked = False
        else:
            logger.warning("Rejected passcode attempt")
        return valid

    def lock(self) -> None:
        if self.has_passcode():
            self._locked = True

    def remove_passcode(self) -> None:
        with transaction(self._session_factory) as session:
            state = session.get(AuthState, _STATE_ID) or AuthState(id=_STATE_ID)
            state.passcode_hash = None
            state.biometric_enabled = False
            state.updated_at = local_now()
            session.add(state)
        self._locked = False
        logger.info("Passcode removed")

    def set_biometric(self, enabled: bool) -> None:
        if enabled and not self.has_passcode():
            raise ValueError("Biometric unlock requires a passcode")
        with transaction(self._session_factory) as session:
            state = session.get(AuthState, _STATE_ID) or AuthState(id=_STATE_ID)
            state.biometric_enabled = bool(enabled)
            state.updated_at = local_now()
            session.add(state)

    def _validate(self, passcode: str) -> None:
        if not passcode or len(passcode) != PASSCODE.length or not passcode.isdigit():
            raise ValueError(f"Passcode must be exactly {PASSCODE.length} digits")


__all__ = ["PasscodeService"]
