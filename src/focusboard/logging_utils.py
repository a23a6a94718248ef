"""Configure logging and format durations for logs and CLI output."""

from __future__ import annotations

import sys
from typing import Any

from loguru import logger


def configure_logging(level: str = "INFO", sink: Any = None) -> None:
    """Route focusboard logs to *sink* (stderr by default) at *level*.

    Stdout is left alone so CLI output stays parseable JSON.
    """
    logger.remove()
    logger.add(
        sink if sink is not None else sys.stderr,
        level=level.upper(),
        format=(
            "<green>{time:HH:mm:ss.SSS}</green> "
            "<level>{level: <8}</level> "
            "<cyan>{name}</cyan>:<cyan>{line}</cyan> | {message}"
        ),
    )


def split_duration(seconds: float) -> tuple[int, int, int]:
    """Split a duration into `(hours, minutes, seconds)`.

    Negative durations are floored at zero; fractional seconds are dropped.
    """
    total = max(int(seconds), 0)
    return total // 3600, (total % 3600) // 60, total % 60


def format_duration(seconds: float, style: str = "text") -> str:
    """Render a duration for display.

    Args:
        seconds: Duration in seconds.
        style: `"text"` for `1h 2m 3s` or `"digital"` for `01:02:03`.

    Returns:
        The formatted string. Zero renders as `0s` in text style.
    """
    hours, minutes, secs = split_duration(seconds)
    if style == "digital":
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    if style != "text":
        raise ValueError(f"Unknown duration style: {style}")
    parts: list[str] = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs:
        parts.append(f"{secs}s")
    return " ".join(parts) if parts else "0s"
