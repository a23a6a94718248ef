"""Focus session engine: the canonical session collection, newest first."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from loguru import logger

from ..domain.models import FocusSession
from ..storage.interfaces import TableStore
from . import stats


class SessionNotFoundError(KeyError):
    pass


class FocusEngine:
    def __init__(self, store: TableStore) -> None:
        self.store = store
        self.sessions: list[FocusSession] = []
        self.loading = True

    def get(self, session_id: int) -> Optional[FocusSession]:
        for session in self.sessions:
            if session.id == session_id:
                return session
        return None

    def _require(self, session_id: int) -> FocusSession:
        session = self.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def load(self) -> None:
        """Load every persisted session, reversing storage order so the newest comes first."""
        self.loading = True
        try:
            rows = await self.store.to_array()
            self.sessions = [FocusSession.from_dict(row) for row in reversed(rows)]
            logger.info("Loaded {} focus sessions", len(self.sessions))
        except Exception:
            logger.exception("Failed to load focus sessions")
        finally:
            self.loading = False

    async def add(self, tag: str, start_time: datetime, end_time: datetime) -> FocusSession:
        record = FocusSession(tag=tag, start_time=start_time, end_time=end_time)
        session_id = await self.store.add(record.to_dict())
        created = record.merged({"id": session_id})
        self.sessions = [created, *self.sessions]
        logger.debug("Focus session added id={} tag={} seconds={}", session_id, tag, created.duration_seconds)
        return created

    async def remove(self, session_id: int) -> None:
        self._require(session_id)
        await self.store.delete(session_id)
        self.sessions = [s for s in self.sessions if s.id != session_id]

    async def edit(self, session_id: int, **fields: Any) -> FocusSession:
        current = self._require(session_id)
        encoded = FocusSession.encode_fields(fields)
        await self.store.update(session_id, encoded)
        updated = current.merged(fields)
        self.sessions = [updated if s.id == session_id else s for s in self.sessions]
        return updated

    def today_total(self, now: Optional[datetime] = None) -> float:
        return stats.today_total(self.sessions, now)

    def last_7_days_total(self, now: Optional[datetime] = None) -> float:
        return stats.last_7_days_total(self.sessions, now)
