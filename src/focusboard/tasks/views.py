"""Pure derived views over a task collection.

Nothing here caches: every call recomputes from the snapshot it is given,
so the results can never drift from the canonical collection.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Optional

from ..constants import (
    BUCKET_DUE_TODAY,
    BUCKET_DUE_TOMORROW,
    BUCKET_LATER,
    BUCKET_NEXT_7_DAYS,
    BUCKET_OVERDUE,
    MAX_PRIORITY,
    MIN_PRIORITY,
    TIME_BUCKETS,
    UNTAGGED,
)
from ..domain.models import Task
from ..utils import _now, to_local


def search_tasks(tasks: Iterable[Task], query: str) -> list[Task]:
    """Filter *tasks* by a case-insensitive search query.

    ``#foo`` matches tasks carrying a tag that contains ``foo``; any other
    query matches the task text, a subtask, or a tag.  A blank query returns
    every task.
    """
    tasks = list(tasks)
    needle = (query or "").strip().lower()
    if not needle:
        return tasks

    if needle.startswith("#"):
        tag_query = needle[1:]
        return [t for t in tasks if any(tag_query in tag.lower() for tag in t.tags)]

    def _matches(task: Task) -> bool:
        if needle in task.task.lower():
            return True
        if any(needle in sub.lower() for sub in task.subtasks):
            return True
        return any(needle in tag.lower() for tag in task.tags)

    return [t for t in tasks if _matches(t)]


def active_tasks(tasks: Iterable[Task]) -> list[Task]:
    return [t for t in tasks if not t.completed]


def completed_tasks(tasks: Iterable[Task]) -> list[Task]:
    return [t for t in tasks if t.completed]


def _by_priority_then_due(task: Task) -> tuple[int, datetime]:
    return (-task.priority, to_local(task.duedate))


def _by_due(task: Task) -> datetime:
    return to_local(task.duedate)


def time_bucket(duedate: datetime, now: Optional[datetime] = None) -> str:
    """Assign a due date to one of the time buckets relative to local midnight."""
    today = to_local(now or _now()).date()
    due = to_local(duedate).date()
    if due < today:
        return BUCKET_OVERDUE
    if due == today:
        return BUCKET_DUE_TODAY
    if due == today + timedelta(days=1):
        return BUCKET_DUE_TOMORROW
    if due <= today + timedelta(days=7):
        return BUCKET_NEXT_7_DAYS
    return BUCKET_LATER


def group_by_time_category(tasks: Iterable[Task], now: Optional[datetime] = None) -> dict[str, list[Task]]:
    """Partition *tasks* into the time buckets, highest priority first."""
    now = now or _now()
    groups: dict[str, list[Task]] = {bucket: [] for bucket in TIME_BUCKETS}
    for task in tasks:
        groups[time_bucket(task.duedate, now)].append(task)
    for group in groups.values():
        group.sort(key=_by_priority_then_due)
    return groups


def group_by_tag(tasks: Iterable[Task]) -> dict[str, list[Task]]:
    """Bucket *tasks* under each of their tags.

    A task with several tags appears once per tag; untagged tasks share the
    ``Untagged`` bucket.
    """
    groups: dict[str, list[Task]] = {}
    for task in tasks:
        for tag in task.tags or [UNTAGGED]:
            groups.setdefault(tag, []).append(task)
    for group in groups.values():
        group.sort(key=_by_priority_then_due)
    return groups


def group_by_priority(tasks: Iterable[Task]) -> dict[str, list[Task]]:
    groups: dict[str, list[Task]] = {
        str(p): [] for p in range(MAX_PRIORITY, MIN_PRIORITY - 1, -1)
    }
    for task in tasks:
        bucket = groups.get(str(task.priority))
        if bucket is not None:
            bucket.append(task)
    for group in groups.values():
        group.sort(key=_by_due)
    return groups
