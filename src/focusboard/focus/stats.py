"""Reducers over focus sessions.

All functions are pure and recompute from the sessions they are given.
Window boundaries matter for reproducibility: "today" excludes a session
starting exactly at local midnight, while trailing windows include both
ends.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Sequence

from ..constants import HEATMAP_THRESHOLDS, ROLLING_WINDOWS_DAYS
from ..domain.models import FocusSession
from ..utils import _now, start_of_day, to_local


def _sum_seconds(sessions: Iterable[FocusSession]) -> float:
    return sum(s.duration_seconds for s in sessions)


def today_total(sessions: Iterable[FocusSession], now: Optional[datetime] = None) -> float:
    """Seconds focused in sessions that started after local midnight today."""
    midnight = start_of_day(now or _now())
    return _sum_seconds(s for s in sessions if to_local(s.start_time) > midnight)


def trailing_total(
    sessions: Iterable[FocusSession],
    window: timedelta,
    now: Optional[datetime] = None,
) -> float:
    """Seconds focused in sessions starting within ``[now - window, now]``."""
    end = to_local(now or _now())
    begin = end - window
    return _sum_seconds(s for s in sessions if begin <= to_local(s.start_time) <= end)


def last_7_days_total(sessions: Iterable[FocusSession], now: Optional[datetime] = None) -> float:
    return trailing_total(sessions, timedelta(days=7), now)


def rolling_totals(
    sessions: Iterable[FocusSession],
    now: Optional[datetime] = None,
    windows_days: Sequence[int] = ROLLING_WINDOWS_DAYS,
) -> dict[int, float]:
    """Trailing totals keyed by window length in days (24h / 7d / 30d cards)."""
    sessions = list(sessions)
    now = now or _now()
    return {days: trailing_total(sessions, timedelta(days=days), now) for days in windows_days}


def tag_totals(sessions: Iterable[FocusSession]) -> dict[str, float]:
    """Seconds per tag, largest first."""
    totals: dict[str, float] = {}
    for session in sessions:
        totals[session.tag] = totals.get(session.tag, 0.0) + session.duration_seconds
    return dict(sorted(totals.items(), key=lambda item: item[1], reverse=True))


def daily_totals_by_tag(
    sessions: Iterable[FocusSession],
    days: int = 7,
    now: Optional[datetime] = None,
) -> list[dict[str, float | str]]:
    """Per-day minutes by tag for the last *days* local days, oldest first.

    Each entry carries ``date`` (ISO day), ``total`` and one key per tag.
    Session minutes are rounded to two decimals before summing.
    """
    today = to_local(now or _now()).date()
    rows: dict[date, dict[str, float | str]] = {}
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        rows[day] = {"date": day.isoformat(), "total": 0.0}

    for session in sessions:
        row = rows.get(to_local(session.start_time).date())
        if row is None:
            continue
        minutes = round(session.duration_seconds / 60 * 100) / 100
        row[session.tag] = float(row.get(session.tag, 0.0)) + minutes
        row["total"] = float(row["total"]) + minutes
    return list(rows.values())


@dataclass
class HeatmapDay:
    day: date
    total_seconds: int = 0
    session_count: int = 0
    level: int = 0


def intensity_level(
    seconds: float,
    max_seconds: float,
    thresholds: Sequence[float] = HEATMAP_THRESHOLDS,
) -> int:
    """Map a day's total to 0 (idle) or 1..6 relative to the busiest day."""
    if seconds <= 0 or max_seconds <= 0:
        return 0
    fraction = seconds / max_seconds
    level = 1
    for index, threshold in enumerate(thresholds, start=2):
        if fraction >= threshold:
            level = index
    return level


def year_heatmap(
    sessions: Iterable[FocusSession],
    year: int,
    thresholds: Sequence[float] = HEATMAP_THRESHOLDS,
) -> list[HeatmapDay]:
    """One cell per day of *year*, padded out to whole Sunday-start weeks."""
    first = date(year, 1, 1)
    last = date(year, 12, 31)
    start = first - timedelta(days=(first.weekday() + 1) % 7)
    end = last + timedelta(days=(5 - last.weekday()) % 7)

    cells: dict[date, HeatmapDay] = {}
    current = start
    while current <= end:
        cells[current] = HeatmapDay(day=current)
        current += timedelta(days=1)

    for session in sessions:
        cell = cells.get(to_local(session.start_time).date())
        if cell is None:
            continue
        cell.total_seconds += int(session.duration_seconds)
        cell.session_count += 1

    busiest = max((c.total_seconds for c in cells.values()), default=0)
    for cell in cells.values():
        cell.level = intensity_level(cell.total_seconds, busiest, thresholds)
    return list(cells.values())
