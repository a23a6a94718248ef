from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from loguru import logger

from ..constants import CONFIG_FILE, LEGACY_PREFIX, SCHEMA_VERSION, STATE_DIR_NAME, TABLE_FILES
from ..io_utils import _load_data, _save_data


def _utc_stamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def _schema_version(path: Path) -> int | None:
    raw = _load_data(path, {})
    value = raw.get("schema_version")
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _needs_archive(base: Path) -> bool:
    if not base.exists():
        return False
    config_path = base / CONFIG_FILE
    if not config_path.exists():
        return any(base.iterdir())
    return _schema_version(config_path) != SCHEMA_VERSION


def ensure_state_root(project_dir: Path) -> Path:
    """Create (or upgrade) the `.focusboard/` state root and return it.

    A state root written by an incompatible schema is moved aside to
    `.focusboard_legacy_<stamp>` rather than read.
    """
    base = project_dir / STATE_DIR_NAME

    if _needs_archive(base):
        archive_target = project_dir / f"{LEGACY_PREFIX}{_utc_stamp()}"
        base.rename(archive_target)
        logger.warning("Archived incompatible state root to {}", archive_target)

    base.mkdir(parents=True, exist_ok=True)

    for file_name in TABLE_FILES.values():
        target = base / file_name
        if not target.exists():
            target.write_text("version: 1\n", encoding="utf-8")

    config_path = base / CONFIG_FILE
    config = _load_data(config_path, {})
    config["schema_version"] = SCHEMA_VERSION
    config.setdefault("logging", {"level": "INFO"})
    config.setdefault("tasks", {"default_priority": 1})
    _save_data(config_path, config)

    return base
