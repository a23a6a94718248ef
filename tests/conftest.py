from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import pytest
from loguru import logger

from focusboard.storage.file_repos import YamlTableStore
from focusboard.storage.interfaces import Predicate, TableStore


def make_store(root: Path, name: str) -> YamlTableStore:
    return YamlTableStore(root / f"{name}.yaml", root / f"{name}.lock")


class FailingStore(TableStore):
    """Delegate to a real store, raising for the operations named in `fail_on`."""

    def __init__(self, inner: TableStore, fail_on: Optional[set[str]] = None) -> None:
        self.inner = inner
        self.fail_on = set(fail_on or ())
        self.calls: list[str] = []

    def _check(self, op: str) -> None:
        self.calls.append(op)
        if op in self.fail_on:
            raise OSError(f"simulated {op} failure")

    async def add(self, record: dict[str, Any]) -> int:
        self._check("add")
        return await self.inner.add(record)

    async def get(self, record_id: int) -> Optional[dict[str, Any]]:
        self._check("get")
        return await self.inner.get(record_id)

    async def update(self, record_id: int, fields: dict[str, Any]) -> bool:
        self._check("update")
        return await self.inner.update(record_id, fields)

    async def delete(self, record_id: int) -> bool:
        self._check("delete")
        return await self.inner.delete(record_id)

    async def to_array(self) -> list[dict[str, Any]]:
        self._check("to_array")
        return await self.inner.to_array()

    async def delete_where(self, field: str, predicate: Predicate) -> int:
        self._check("delete_where")
        return await self.inner.delete_where(field, predicate)

    async def bulk_add(self, records: list[dict[str, Any]]) -> list[int]:
        self._check("bulk_add")
        return await self.inner.bulk_add(records)

    async def clear(self) -> None:
        self._check("clear")
        await self.inner.clear()


@pytest.fixture
def table_dir(tmp_path: Path) -> Path:
    d = tmp_path / "tables"
    d.mkdir()
    return d


@pytest.fixture
def store_factory(table_dir: Path):
    def _make(name: str) -> YamlTableStore:
        return make_store(table_dir, name)

    return _make


@pytest.fixture
def failing_factory(store_factory):
    def _make(name: str, fail_on: Optional[set[str]] = None) -> FailingStore:
        return FailingStore(store_factory(name), fail_on)

    return _make


@pytest.fixture(autouse=True)
def _reset_loguru():
    """Drop sinks bound to a captured stderr once the test ends."""
    yield
    logger.remove()
