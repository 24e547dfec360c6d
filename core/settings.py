"""Centralized application configuration."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
import os
import sys


def get_default_data_dir(
    app_name: str,
    *,
    platform: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> Path:
    """Return an OS-specific user data directory for ``app_name``."""

    platform_id = (platform or sys.platform).lower()
    environ = dict(os.environ if env is None else env)
    home_dir = Path(home or Path.home())
    sanitized = app_name.strip() or "app"
    sanitized = sanitized.replace("/", "-").replace("\\", "-")

    override = environ.get("TASKWISE_DATA_DIR")
    if override:
        return Path(override).expanduser()

    if platform_id.startswith("win"):
        base = Path(environ.get("APPDATA") or home_dir / "AppData" / "Roaming")
    elif platform_id == "darwin":
        base = Path(home_dir / "Library" / "Application Support")
    else:
        base = Path(environ.get("XDG_DATA_HOME") or home_dir / ".local" / "share")

    return base.expanduser() / sanitized


APP_NAME = "Taskwise"


DATA_DIR = get_default_data_dir(APP_NAME)
LOG_DIR = DATA_DIR / "logs"

for _dir in (DATA_DIR, LOG_DIR):
    _dir.mkdir(parents=True, exist_ok=True)


DB_PATH = DATA_DIR / "taskwise.db"
CONFIG_PATH = DATA_DIR / "config.json"


@dataclass(frozen=True)
class OccurrenceWindowSettings:
    # Days materialized around "today" on every reconciliation.
    lookback_days: int = 30
    lookahead_days: int = 60


OCCURRENCES = OccurrenceWindowSettings()


@dataclass(frozen=True)
class SnoozeSettings:
    default_minutes: int = 10
    evening_hour: int = 19
    evening_minute: int = 0
    tomorrow_hour: int = 9
    tomorrow_minute: int = 0


SNOOZE = SnoozeSettings()


@dataclass(frozen=True)
class PasscodeSettings:
    length: int = 4
    hash_scheme: str = "pbkdf2_sha256"


PASSCODE = PasscodeSettings()


@dataclass(frozen=True)
class LoggingSettings:
    filename: str = "taskwise.log"
    level: str = "INFO"
    max_bytes: int = 1_000_000
    backup_count: int = 3
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


LOGGING = LoggingSettings()


@dataclass(frozen=True)
class TaskLimits:
    title_max_length: int = 200
    subtask_title_max_length: int = 200
    max_reminders: int = 5


LIMITS = TaskLimits()


__all__ = [
    "APP_NAME",
    "DATA_DIR",
    "LOG_DIR",
    "DB_PATH",
    "CONFIG_PATH",
    "OCCURRENCES",
    "SNOOZE",
    "PASSCODE",
    "LOGGING",
    "LIMITS",
    "OccurrenceWindowSettings",
    "get_default_data_dir",
]
