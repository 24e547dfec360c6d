"""Simple JSON-backed configuration store."""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from core.settings import CONFIG_PATH, OCCURRENCES, OccurrenceWindowSettings


@dataclass
class AppConfig:
    """User overrides persisted to ``config.json``."""

    lookback_days: Optional[int] = None
    lookahead_days: Optional[int] = None
    default_snooze_minutes: Optional[int] = None


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _load_raw(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def _optional_days(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        days = int(value)
    except (TypeError, ValueError):
        return None
    return days if days >= 0 else None


def load_config(path: Optional[Path] = None) -> AppConfig:
    target = path or CONFIG_PATH
    data = _load_raw(target)
    return AppConfig(
        lookback_days=_optional_days(data.get("lookback_days")),
        lookahead_days=_optional_days(data.get("lookahead_days")),
        default_snooze_minutes=_optional_days(data.get("default_snooze_minutes")),
    )


def save_config(config: AppConfig, path: Optional[Path] = None) -> None:
    target = path or CONFIG_PATH
    _ensure_parent(target)
    payload = json.dumps(asdict(config), ensure_ascii=False, indent=2, sort_keys=True)
    tmp = target.with_suffix(".tmp")
    try:
        tmp.write_text(payload, encoding="utf-8")
        tmp.replace(target)
    finally:
        if tmp.exists():
            tmp.unlink()


def update_config(path: Optional[Path] = None, **changes: Any) -> AppConfig:
    target = path or CONFIG_PATH
    cfg = load_config(target)
    for key, value in changes.items():
        if not hasattr(cfg, key):
            raise ValueError(f"Unknown config option: {key}")
        setattr(cfg, key, value)
    save_config(cfg, target)
    return cfg


def occurrence_window(path: Optional[Path] = None) -> OccurrenceWindowSettings:
    """Return the materialization window with user overrides applied."""

    cfg = load_config(path)
    return OccurrenceWindowSettings(
        lookback_days=OCCURRENCES.lookback_days if cfg.lookback_days is None else cfg.lookback_days,
        lookahead_days=OCCURRENCES.lookahead_days if cfg.lookahead_days is None else cfg.lookahead_days,
    )


__all__ = ["AppConfig", "load_config", "occurrence_window", "save_config", "update_config"]
