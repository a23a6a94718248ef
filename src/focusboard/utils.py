"""Provide utility helpers for timestamps.

All engine arithmetic happens on naive datetimes in local time, since the
day-boundary rules compare against local midnight.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional


def _now() -> datetime:
    return datetime.now()


def _now_iso() -> str:
    return _now().isoformat()


def to_local(value: datetime) -> datetime:
    """Return *value* as a naive local datetime."""
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def start_of_day(value: datetime) -> datetime:
    return to_local(value).replace(hour=0, minute=0, second=0, microsecond=0)


def _parse_iso(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_local(value)
    try:
        if not isinstance(value, str):
            value = str(value)
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        return to_local(datetime.fromisoformat(value))
    except ValueError:
        return None


def _format_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return to_local(value).isoformat()
