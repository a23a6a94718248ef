"""Load optional workspace configuration from `.focusboard/config.yaml`."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from .constants import (
    CONFIG_FILE,
    DEFAULT_PRIORITY,
    HEATMAP_THRESHOLDS,
    MAX_PRIORITY,
    MIN_PRIORITY,
    ROLLING_WINDOWS_DAYS,
    STATE_DIR_NAME,
)
from .io_utils import _load_data_with_error

VALID_LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}


def load_config(project_dir: Path) -> tuple[dict[str, Any], str | None]:
    """Load the optional workspace config file.

    Args:
        project_dir: Directory holding the `.focusboard/` state root.

    Returns:
        A tuple of `(config, error_message)`. If the file is missing, returns `({}, None)`.
    """
    path = project_dir.resolve() / STATE_DIR_NAME / CONFIG_FILE
    data, err = _load_data_with_error(path, {})
    if err:
        return {}, err
    return data, None


def _get_nested(config: dict[str, Any], *keys: str) -> Any:
    cur: Any = config
    for key in keys:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


def get_logging_config(config: dict[str, Any]) -> dict[str, Any]:
    """Extract the logging block, normalised to `{"level": ...}`.

    Unknown levels fall back to INFO.
    """
    raw = _get_nested(config, "logging")
    level = "INFO"
    if isinstance(raw, dict):
        candidate = str(raw.get("level") or "").upper()
        if candidate in VALID_LOG_LEVELS:
            level = candidate
    return {"level": level}


def get_task_config(config: dict[str, Any]) -> dict[str, Any]:
    """Extract the tasks block.

    `default_priority` is clamped into the valid priority range.
    """
    raw = _get_nested(config, "tasks")
    raw = raw if isinstance(raw, dict) else {}
    try:
        priority = int(raw.get("default_priority", DEFAULT_PRIORITY))
    except (TypeError, ValueError):
        priority = DEFAULT_PRIORITY
    return {"default_priority": max(MIN_PRIORITY, min(MAX_PRIORITY, priority))}


def get_focus_config(config: dict[str, Any]) -> dict[str, Any]:
    """Extract the focus block with heatmap thresholds and rolling windows."""
    raw = _get_nested(config, "focus")
    raw = raw if isinstance(raw, dict) else {}

    thresholds = raw.get("heatmap_thresholds")
    if (
        isinstance(thresholds, list)
        and len(thresholds) == len(HEATMAP_THRESHOLDS)
        and all(isinstance(v, (int, float)) for v in thresholds)
    ):
        heatmap = tuple(sorted(float(v) for v in thresholds))
    else:
        heatmap = HEATMAP_THRESHOLDS

    windows = raw.get("rolling_windows_days")
    if isinstance(windows, list) and windows and all(isinstance(v, int) and v > 0 for v in windows):
        rolling = tuple(windows)
    else:
        rolling = ROLLING_WINDOWS_DAYS

    return {"heatmap_thresholds": heatmap, "rolling_windows_days": rolling}
