from __future__ import annotations

import asyncio
import threading
from pathlib import Path
from typing import Callable, Optional, TypeVar

import yaml
from loguru import logger

from ..io_utils import FileLock, _atomic_write_yaml
from .interfaces import Predicate, Record, StorageError, TableStore

T = TypeVar("T")

TABLE_VERSION = 1


class YamlTableStore(TableStore):
    """Table persisted as one YAML file, rewritten atomically on every mutation.

    Blocking file I/O runs on a worker thread so awaiting callers never stall
    the event loop.  Ids are allocated from a persisted ``next_id`` counter and
    are never reused, even after deletes.
    """

    def __init__(self, path: Path, lock_path: Path) -> None:
        self._path = path
        self._lock = FileLock(lock_path)
        self._thread_lock = threading.RLock()

    @property
    def name(self) -> str:
        return self._path.stem

    # -- low-level I/O ------------------------------------------------------

    def _load(self) -> tuple[int, list[Record]]:
        if not self._path.exists():
            return 1, []
        try:
            raw = yaml.safe_load(self._path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            raise StorageError(f"{self._path.name}: {exc.__class__.__name__}: {exc}") from exc
        if raw is None:
            return 1, []
        if not isinstance(raw, dict):
            raise StorageError(f"{self._path.name}: expected mapping, got {type(raw).__name__}")
        items = raw.get("records", [])
        if not isinstance(items, list):
            raise StorageError(f"{self._path.name}: 'records' is not a list")
        records = [dict(item) for item in items if isinstance(item, dict)]
        highest = max((int(r["id"]) for r in records if r.get("id") is not None), default=0)
        try:
            next_id = int(raw.get("next_id") or 1)
        except (TypeError, ValueError):
            next_id = 1
        return max(next_id, highest + 1), records

    def _save(self, next_id: int, records: list[Record]) -> None:
        payload = {"version": TABLE_VERSION, "next_id": next_id, "records": records}
        _atomic_write_yaml(self._path, payload)

    def _locked(self, fn: Callable[[], T]) -> T:
        with self._thread_lock:
            with self._lock:
                return fn()

    async def _run(self, fn: Callable[[], T]) -> T:
        return await asyncio.to_thread(self._locked, fn)

    # -- TableStore ---------------------------------------------------------

    async def add(self, record: Record) -> int:
        def _add() -> int:
            next_id, records = self._load()
            stored = {k: v for k, v in record.items() if k != "id"}
            records.append({"id": next_id, **stored})
            self._save(next_id + 1, records)
            return next_id

        record_id = await self._run(_add)
        logger.debug("{}: added id={}", self.name, record_id)
        return record_id

    async def get(self, record_id: int) -> Optional[Record]:
        def _get() -> Optional[Record]:
            _, records = self._load()
            for item in records:
                if item.get("id") == record_id:
                    return item
            return None

        return await self._run(_get)

    async def update(self, record_id: int, fields: Record) -> bool:
        def _update() -> bool:
            next_id, records = self._load()
            for item in records:
                if item.get("id") == record_id:
                    item.update({k: v for k, v in fields.items() if k != "id"})
                    self._save(next_id, records)
                    return True
            return False

        return await self._run(_update)

    async def delete(self, record_id: int) -> bool:
        def _delete() -> bool:
            next_id, records = self._load()
            keep = [item for item in records if item.get("id") != record_id]
            if len(keep) == len(records):
                return False
            self._save(next_id, keep)
            return True

        return await self._run(_delete)

    async def to_array(self) -> list[Record]:
        def _all() -> list[Record]:
            return self._load()[1]

        return await self._run(_all)

    async def delete_where(self, field: str, predicate: Predicate) -> int:
        def _delete_where() -> int:
            next_id, records = self._load()
            keep = [item for item in records if not predicate(item.get(field))]
            removed = len(records) - len(keep)
            if removed:
                self._save(next_id, keep)
            return removed

        removed = await self._run(_delete_where)
        logger.debug("{}: delete_where {} removed {}", self.name, field, removed)
        return removed

    async def bulk_add(self, records: list[Record]) -> list[int]:
        def _bulk_add() -> list[int]:
            next_id, existing = self._load()
            taken = {item.get("id") for item in existing}
            ids: list[int] = []
            for record in records:
                raw_id = record.get("id")
                if raw_id is None:
                    record_id = next_id
                else:
                    record_id = int(raw_id)
                    if record_id in taken:
                        raise ValueError(f"{self.name}: id {record_id} already exists")
                taken.add(record_id)
                next_id = max(next_id, record_id + 1)
                existing.append({"id": record_id, **{k: v for k, v in record.items() if k != "id"}})
                ids.append(record_id)
            self._save(next_id, existing)
            return ids

        return await self._run(_bulk_add)

    async def clear(self) -> None:
        def _clear() -> None:
            next_id, _ = self._load()
            self._save(next_id, [])

        await self._run(_clear)
