"""Utility helpers for task priorities."""
from __future__ import annotations

from typing import Dict

# Levels: 0 none, 1 low, 2 medium, 3 high.
PRIORITY_META: Dict[int, Dict[str, str]] = {
    0: {
        "name": "none",
        "label": "No priority",
        "color": "#64748B",
    },
    1: {
        "name": "low",
        "label": "Low",
        "color": "#0EA5E9",
    },
    2: {
        "name": "medium",
        "label": "Medium",
        "color": "#F59E0B",
    },
    3: {
        "name": "high",
        "label": "High",
        "color": "#EF4444",
    },
}

DEFAULT_PRIORITY = 0

_BY_NAME = {meta["name"]: level for level, meta in PRIORITY_META.items()}


def normalize_priority(value: int | str | None) -> int:
    """Clamp external values (levels or names) to the supported priority range."""
    if value is None:
        return DEFAULT_PRIORITY
    if isinstance(value, str) and value.strip().lower() in _BY_NAME:
        return _BY_NAME[value.strip().lower()]
    try:
        ivalue = int(value)
    except (TypeError, ValueError):
        return DEFAULT_PRIORITY
    floor = min(PRIORITY_META.keys())
    ceil = max(PRIORITY_META.keys())
    return max(floor, min(ceil, ivalue))


def priority_name(value: int) -> str:
    meta = PRIORITY_META.get(value, PRIORITY_META[DEFAULT_PRIORITY])
    return meta["name"]


def priority_label(value: int) -> str:
    meta = PRIORITY_META.get(value, PRIORITY_META[DEFAULT_PRIORITY])
    return meta["label"]


def priority_color(value: int) -> str:
    meta = PRIORITY_META.get(value, PRIORITY_META[DEFAULT_PRIORITY])
    return meta["color"]
