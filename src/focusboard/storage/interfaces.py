from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, Optional

Record = dict[str, Any]
Predicate = Callable[[Any], bool]


class StorageError(RuntimeError):
    """A table file exists but cannot be read back."""


def equals(expected: Any) -> Predicate:
    return lambda value: value == expected


def any_of(values: Iterable[Any]) -> Predicate:
    wanted = set(values)
    return lambda value: value in wanted


class TableStore(ABC):
    """Asynchronous key-indexed table of dict records with integer ids."""

    @abstractmethod
    async def add(self, record: Record) -> int:
        raise NotImplementedError

    @abstractmethod
    async def get(self, record_id: int) -> Optional[Record]:
        raise NotImplementedError

    @abstractmethod
    async def update(self, record_id: int, fields: Record) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def delete(self, record_id: int) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def to_array(self) -> list[Record]:
        raise NotImplementedError

    @abstractmethod
    async def delete_where(self, field: str, predicate: Predicate) -> int:
        raise NotImplementedError

    @abstractmethod
    async def bulk_add(self, records: list[Record]) -> list[int]:
        raise NotImplementedError

    @abstractmethod
    async def clear(self) -> None:
        raise NotImplementedError
