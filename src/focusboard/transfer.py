"""Export and import a whole workspace as one JSON document."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

from loguru import logger

from .constants import EXPORT_FORMAT, EXPORT_VERSION, TABLE_FILES
from .io_utils import _atomic_write_json
from .storage.interfaces import TableStore
from .utils import _now_iso
from .workspace import Workspace


async def export_workspace(workspace: Workspace) -> dict[str, Any]:
    """Snapshot every table, straight from the store."""
    tables: dict[str, list[dict[str, Any]]] = {}
    for name, store in workspace.container.tables().items():
        tables[name] = await store.to_array()
    return {
        "format": EXPORT_FORMAT,
        "version": EXPORT_VERSION,
        "exported_at": _now_iso(),
        "tables": tables,
    }


def _validate_ids(name: str, rows: list[dict[str, Any]]) -> None:
    seen: set[int] = set()
    for row in rows:
        record_id = row.get("id")
        if record_id is None:
            continue
        if isinstance(record_id, bool) or not isinstance(record_id, int):
            raise ValueError(f"Table {name!r} has a non-integer id: {record_id!r}")
        if record_id in seen:
            raise ValueError(f"Table {name!r} has duplicate id {record_id}")
        seen.add(record_id)


def _validate_envelope(data: Any) -> dict[str, list[dict[str, Any]]]:
    if not isinstance(data, dict):
        raise ValueError("Export must be a JSON object")
    if data.get("format") != EXPORT_FORMAT:
        raise ValueError(f"Not a {EXPORT_FORMAT} export: format={data.get('format')!r}")
    if data.get("version") != EXPORT_VERSION:
        raise ValueError(f"Unsupported export version {data.get('version')!r}")
    tables = data.get("tables")
    if not isinstance(tables, dict):
        raise ValueError("Export is missing 'tables'")
    out: dict[str, list[dict[str, Any]]] = {}
    for name in TABLE_FILES:
        rows = tables.get(name, [])
        if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
            raise ValueError(f"Table {name!r} must be a list of objects")
        _validate_ids(name, rows)
        out[name] = rows
    return out


async def _replace_tables(
    stores: Mapping[str, TableStore],
    tables: dict[str, list[dict[str, Any]]],
) -> dict[str, int]:
    counts: dict[str, int] = {}
    for name, store in stores.items():
        await store.clear()
        ids = await store.bulk_add(tables[name])
        counts[name] = len(ids)
    return counts


async def import_workspace(workspace: Workspace, data: Any) -> dict[str, int]:
    """Replace every table with the contents of an export, then reload.

    The envelope, including record ids, is validated before anything is
    cleared.  If a store call still fails partway, every table is put back
    from a snapshot taken beforehand and the error is re-raised.

    Returns:
        Number of records imported per table.
    """
    tables = _validate_envelope(data)
    stores = workspace.container.tables()
    snapshot = {name: await store.to_array() for name, store in stores.items()}
    try:
        counts = await _replace_tables(stores, tables)
    except Exception:
        logger.exception("Import failed partway; restoring previous tables")
        await _replace_tables(stores, snapshot)
        await workspace.load()
        raise
    await workspace.load()
    logger.info("Imported workspace: {}", counts)
    return counts


async def write_export(workspace: Workspace, path: Path) -> Path:
    _atomic_write_json(path, await export_workspace(workspace))
    return path


async def read_export(workspace: Workspace, path: Path) -> dict[str, int]:
    data = json.loads(path.read_text(encoding="utf-8"))
    return await import_workspace(workspace, data)
