"""Task engine: the canonical task collection and its mutations.

Every mutation persists first and only touches the in-memory collection
once the store call has returned, so a reader that sees the new state knows
the write was issued.  Store failures propagate to the caller; only the bulk
:meth:`TaskEngine.load` swallows them.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Optional

from loguru import logger

from ..constants import DEFAULT_PRIORITY
from ..domain.models import Task, clamp_priority, missing_task_fields, normalize_tags, resize_flags
from ..storage.interfaces import TableStore
from . import views


class TaskNotFoundError(KeyError):
    pass


class TaskEngine:
    """Own the task collection, the loading flag and the search query.

    Parameters
    ----------
    store:
        Table store holding task records.
    default_priority:
        Priority used by :meth:`add` when none is given.
    """

    def __init__(self, store: TableStore, default_priority: int = DEFAULT_PRIORITY) -> None:
        self.store = store
        self.default_priority = clamp_priority(default_priority)
        self.tasks: list[Task] = []
        self.loading = True
        self._search_query = ""

    # -- lookup -------------------------------------------------------------

    def get(self, task_id: int) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def _require(self, task_id: int) -> Task:
        task = self.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def _replace(self, updated: Task) -> None:
        self.tasks = [updated if t.id == updated.id else t for t in self.tasks]

    # -- loading ------------------------------------------------------------

    async def load(self) -> None:
        """Replace the collection with the persisted tasks.

        Legacy rows missing later fields are repaired with defaults.  A store
        failure is logged and leaves the previous collection in place.
        """
        self.loading = True
        try:
            rows = await self.store.to_array()
            tasks: list[Task] = []
            for row in rows:
                missing = missing_task_fields(row)
                if missing:
                    logger.warning("Repairing legacy task id={} missing {}", row.get("id"), ", ".join(missing))
                tasks.append(Task.from_dict(row))
            self.tasks = tasks
            logger.info("Loaded {} tasks", len(tasks))
        except Exception:
            logger.exception("Failed to load tasks")
        finally:
            self.loading = False

    # -- mutations ----------------------------------------------------------

    async def add(
        self,
        task: str,
        subtasks: Iterable[str],
        duedate: datetime,
        tags: Iterable[str],
        priority: Optional[int] = None,
    ) -> Task:
        subtasks = list(subtasks)
        record = Task(
            task=task,
            subtasks=subtasks,
            duedate=duedate,
            tags=normalize_tags(tags),
            priority=clamp_priority(self.default_priority if priority is None else priority),
            completed=False,
            completed_subtasks=[False] * len(subtasks),
        )
        task_id = await self.store.add(record.to_dict())
        created = record.merged({"id": task_id})
        self.tasks = [*self.tasks, created]
        logger.debug("Task added id={} priority={}", task_id, created.priority)
        return created

    async def remove(self, task_id: int) -> None:
        """Permanently delete a task."""
        self._require(task_id)
        await self.store.delete(task_id)
        self.tasks = [t for t in self.tasks if t.id != task_id]
        logger.debug("Task removed id={}", task_id)

    async def complete(self, task_id: int) -> Task:
        return await self._set_completed(task_id, True)

    async def uncomplete(self, task_id: int) -> Task:
        return await self._set_completed(task_id, False)

    async def _set_completed(self, task_id: int, completed: bool) -> Task:
        current = self._require(task_id)
        await self.store.update(task_id, {"completed": completed})
        updated = current.merged({"completed": completed})
        self._replace(updated)
        return updated

    async def update(self, task_id: int, **fields: Any) -> Task:
        """Merge *fields* into a task.

        Priority is clamped, tags de-duplicated, and ``completed_subtasks`` is
        resized to match the subtasks before anything is written.

        Raises:
            TaskNotFoundError: if the task is not in the collection.
            ValueError: if a field is not a task attribute.
        """
        current = self._require(task_id)
        fields = dict(fields)
        if "priority" in fields:
            fields["priority"] = clamp_priority(fields["priority"])
        if "tags" in fields:
            fields["tags"] = normalize_tags(fields["tags"])
        if "subtasks" in fields:
            fields["subtasks"] = list(fields["subtasks"])

        length = len(fields.get("subtasks", current.subtasks))
        flags = fields.get("completed_subtasks", current.completed_subtasks)
        if "completed_subtasks" in fields or len(flags) != length:
            fields["completed_subtasks"] = resize_flags(flags, length)

        encoded = Task.encode_fields(fields)
        await self.store.update(task_id, encoded)
        updated = current.merged(fields)
        self._replace(updated)
        logger.debug("Task updated id={} fields={}", task_id, sorted(fields))
        return updated

    async def set_subtask_completion(self, task_id: int, index: int, completed: bool) -> Optional[Task]:
        """Flip one subtask flag; an unknown task is ignored."""
        current = self.get(task_id)
        if current is None:
            return None
        flags = list(current.completed_subtasks)
        flags[index] = bool(completed)
        await self.store.update(task_id, {"completedSubtasks": flags})
        updated = current.merged({"completed_subtasks": flags})
        self._replace(updated)
        return updated

    # -- search -------------------------------------------------------------

    @property
    def search_query(self) -> str:
        return self._search_query

    def set_search_query(self, query: str) -> None:
        self._search_query = query or ""

    # -- derived views ------------------------------------------------------

    def filtered(self) -> list[Task]:
        return views.search_tasks(self.tasks, self._search_query)

    def active(self) -> list[Task]:
        return views.active_tasks(self.filtered())

    def completed_tasks(self) -> list[Task]:
        return views.completed_tasks(self.filtered())

    def group_by_time_category(self, now: Optional[datetime] = None) -> dict[str, list[Task]]:
        return views.group_by_time_category(self.active(), now)

    def group_by_tag(self) -> dict[str, list[Task]]:
        return views.group_by_tag(self.active())

    def group_by_priority(self) -> dict[str, list[Task]]:
        return views.group_by_priority(self.active())
