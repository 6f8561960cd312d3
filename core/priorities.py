"""Utility helpers for outbound message priorities."""
from __future__ import annotations

from typing import Dict, Optional

# Only three levels are supported; unknown values are rejected at enqueue time.
PRIORITY_RANK: Dict[str, int] = {
    "high": 3,
    "normal": 2,
    "low": 1,
}

DEFAULT_PRIORITY = "normal"


def normalize_priority(value: Optional[str]) -> Optional[str]:
    """Return the canonical priority name or ``None`` when it is not supported."""
    if value is None:
        return DEFAULT_PRIORITY
    key = str(value).strip().lower()
    if key in PRIORITY_RANK:
        return key
    return None


def priority_rank(value: str) -> int:
    return PRIORITY_RANK.get(value, PRIORITY_RANK[DEFAULT_PRIORITY])


__all__ = ["DEFAULT_PRIORITY", "PRIORITY_RANK", "normalize_priority", "priority_rank"]
