"""Canonical records for tasks, focus sessions and the project hierarchy.

Records are persisted as plain dicts whose keys keep the historical storage
names (``duedate``, ``completedSubtasks``, ``startTime`` ...).  Each model
declares the mapping from its snake_case attributes to those keys so partial
updates can be validated and encoded the same way full records are.

``from_dict`` is where legacy rows are repaired: fields added in later
schema revisions are filled with their documented defaults instead of the
row being rejected.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Iterable, Optional, TypeVar

from ..constants import DEFAULT_PRIORITY, ISSUE_LABELS, MAX_PRIORITY, MIN_PRIORITY
from ..utils import _format_iso, _now, _parse_iso, to_local

R = TypeVar("R", bound="Record")


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ProjectStatus(str, Enum):
    """Lifecycle status shared by projects and milestones."""

    SCHEDULED = "Scheduled"
    ACTIVE = "Active"
    CLOSED = "Closed"

    @classmethod
    def parse(cls, raw: Any) -> "ProjectStatus":
        try:
            return cls(raw)
        except ValueError:
            return cls.SCHEDULED


class IssueStatus(str, Enum):
    OPEN = "Open"
    CLOSE = "Close"

    @classmethod
    def parse(cls, raw: Any) -> "IssueStatus":
        try:
            return cls(raw)
        except ValueError:
            return cls.OPEN


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------

def clamp_priority(value: Any) -> int:
    """Clamp *value* into ``[MIN_PRIORITY, MAX_PRIORITY]``; never rejects."""
    try:
        priority = int(value)
    except (TypeError, ValueError):
        return DEFAULT_PRIORITY
    return max(MIN_PRIORITY, min(MAX_PRIORITY, priority))


def resize_flags(flags: Iterable[bool], length: int) -> list[bool]:
    """Pad with ``False`` or truncate so the result has exactly *length* items."""
    out = [bool(f) for f in flags][:length]
    out.extend([False] * (length - len(out)))
    return out


def normalize_tags(tags: Iterable[str]) -> list[str]:
    """De-duplicate tags while keeping their first-seen order."""
    seen: dict[str, None] = {}
    for tag in tags:
        text = str(tag).strip()
        if text:
            seen.setdefault(text, None)
    return list(seen)


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


# ---------------------------------------------------------------------------
# Base record
# ---------------------------------------------------------------------------

@dataclass
class Record:
    id: Optional[int] = None

    STORAGE_KEYS: ClassVar[dict[str, str]] = {}
    DATETIME_FIELDS: ClassVar[frozenset[str]] = frozenset()

    def __post_init__(self) -> None:
        # In-memory timestamps are naive local, the same as a reload yields.
        for attr in self.DATETIME_FIELDS:
            value = getattr(self, attr)
            if isinstance(value, datetime):
                setattr(self, attr, to_local(value))

    @classmethod
    def encode_fields(cls, fields: dict[str, Any]) -> dict[str, Any]:
        """Translate attribute-named *fields* into a storage dict.

        Raises:
            ValueError: if a field is not part of the model.
        """
        unknown = sorted(set(fields) - set(cls.STORAGE_KEYS))
        if unknown:
            raise ValueError(f"Unknown {cls.__name__} field(s): {', '.join(unknown)}")
        out: dict[str, Any] = {}
        for attr, value in fields.items():
            if attr in cls.DATETIME_FIELDS:
                value = _format_iso(value)
            elif isinstance(value, Enum):
                value = value.value
            elif isinstance(value, list):
                value = list(value)
            out[cls.STORAGE_KEYS[attr]] = value
        return out

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.id is not None:
            data["id"] = self.id
        data.update(self.encode_fields({attr: getattr(self, attr) for attr in self.STORAGE_KEYS}))
        return data

    def merged(self: R, fields: dict[str, Any]) -> R:
        return dataclasses.replace(self, **fields)


def _record_id(data: dict[str, Any]) -> Optional[int]:
    raw = data.get("id")
    return int(raw) if raw is not None else None


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

TASK_LEGACY_FIELDS = ("priority", "completed", "completedSubtasks")


def missing_task_fields(data: dict[str, Any]) -> list[str]:
    """Return the later-schema task keys absent from a raw row."""
    return [key for key in TASK_LEGACY_FIELDS if data.get(key) is None]


@dataclass
class Task(Record):
    task: str = ""
    subtasks: list[str] = field(default_factory=list)
    duedate: datetime = field(default_factory=_now)
    tags: list[str] = field(default_factory=list)
    priority: int = DEFAULT_PRIORITY
    completed: bool = False
    completed_subtasks: list[bool] = field(default_factory=list)

    STORAGE_KEYS: ClassVar[dict[str, str]] = {
        "task": "task",
        "subtasks": "subtasks",
        "duedate": "duedate",
        "tags": "tags",
        "priority": "priority",
        "completed": "completed",
        "completed_subtasks": "completedSubtasks",
    }
    DATETIME_FIELDS: ClassVar[frozenset[str]] = frozenset({"duedate"})

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        subtasks = [str(s) for s in _as_list(data.get("subtasks"))]
        raw_flags = data.get("completedSubtasks")
        flags = resize_flags(_as_list(raw_flags) if raw_flags is not None else [], len(subtasks))
        raw_priority = data.get("priority")
        return cls(
            id=_record_id(data),
            task=str(data.get("task") or ""),
            subtasks=subtasks,
            duedate=_parse_iso(data.get("duedate")) or _now(),
            tags=normalize_tags(_as_list(data.get("tags"))),
            priority=clamp_priority(raw_priority) if raw_priority is not None else DEFAULT_PRIORITY,
            completed=bool(data.get("completed") or False),
            completed_subtasks=flags,
        )


# ---------------------------------------------------------------------------
# Focus sessions
# ---------------------------------------------------------------------------

@dataclass
class FocusSession(Record):
    tag: str = ""
    start_time: datetime = field(default_factory=_now)
    end_time: datetime = field(default_factory=_now)

    STORAGE_KEYS: ClassVar[dict[str, str]] = {
        "tag": "tag",
        "start_time": "startTime",
        "end_time": "endTime",
    }
    DATETIME_FIELDS: ClassVar[frozenset[str]] = frozenset({"start_time", "end_time"})

    @property
    def duration_seconds(self) -> float:
        """Derived duration; negative when the end precedes the start."""
        return (self.end_time - self.start_time).total_seconds()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FocusSession":
        start = _parse_iso(data.get("startTime")) or _now()
        return cls(
            id=_record_id(data),
            tag=str(data.get("tag") or ""),
            start_time=start,
            end_time=_parse_iso(data.get("endTime")) or start,
        )


# ---------------------------------------------------------------------------
# Project hierarchy
# ---------------------------------------------------------------------------

@dataclass
class Project(Record):
    title: str = ""
    status: ProjectStatus = ProjectStatus.SCHEDULED
    version: str = ""
    notes: str = ""
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    STORAGE_KEYS: ClassVar[dict[str, str]] = {
        "title": "title",
        "status": "status",
        "version": "version",
        "notes": "notes",
        "created_at": "createdAt",
        "updated_at": "updatedAt",
    }
    DATETIME_FIELDS: ClassVar[frozenset[str]] = frozenset({"created_at", "updated_at"})

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Project":
        created = _parse_iso(data.get("createdAt")) or _now()
        return cls(
            id=_record_id(data),
            title=str(data.get("title") or ""),
            status=ProjectStatus.parse(data.get("status")),
            version=str(data.get("version") or ""),
            notes=str(data.get("notes") or ""),
            created_at=created,
            updated_at=_parse_iso(data.get("updatedAt")) or created,
        )


@dataclass
class Milestone(Record):
    project_id: int = 0
    title: str = ""
    status: ProjectStatus = ProjectStatus.SCHEDULED
    deadline: datetime = field(default_factory=_now)
    budget: float = 0
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    STORAGE_KEYS: ClassVar[dict[str, str]] = {
        "project_id": "projectId",
        "title": "title",
        "status": "status",
        "deadline": "deadline",
        "budget": "budget",
        "created_at": "createdAt",
        "updated_at": "updatedAt",
    }
    DATETIME_FIELDS: ClassVar[frozenset[str]] = frozenset({"deadline", "created_at", "updated_at"})

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Milestone":
        created = _parse_iso(data.get("createdAt")) or _now()
        return cls(
            id=_record_id(data),
            project_id=int(data.get("projectId") or 0),
            title=str(data.get("title") or ""),
            status=ProjectStatus.parse(data.get("status")),
            deadline=_parse_iso(data.get("deadline")) or created,
            budget=data.get("budget") or 0,
            created_at=created,
            updated_at=_parse_iso(data.get("updatedAt")) or created,
        )


@dataclass
class Issue(Record):
    milestone_id: int = 0
    title: str = ""
    label: str = ISSUE_LABELS[0]
    due_date: datetime = field(default_factory=_now)
    status: IssueStatus = IssueStatus.OPEN
    description: str = ""
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    STORAGE_KEYS: ClassVar[dict[str, str]] = {
        "milestone_id": "milestoneId",
        "title": "title",
        "label": "label",
        "due_date": "dueDate",
        "status": "status",
        "description": "description",
        "created_at": "createdAt",
        "updated_at": "updatedAt",
    }
    DATETIME_FIELDS: ClassVar[frozenset[str]] = frozenset({"due_date", "created_at", "updated_at"})

    @property
    def is_closed(self) -> bool:
        return self.status == IssueStatus.CLOSE

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Issue":
        created = _parse_iso(data.get("createdAt")) or _now()
        return cls(
            id=_record_id(data),
            milestone_id=int(data.get("milestoneId") or 0),
            title=str(data.get("title") or ""),
            label=str(data.get("label") or ISSUE_LABELS[0]),
            due_date=_parse_iso(data.get("dueDate")) or created,
            status=IssueStatus.parse(data.get("status")),
            description=str(data.get("description") or ""),
            created_at=created,
            updated_at=_parse_iso(data.get("updatedAt")) or created,
        )


# ---------------------------------------------------------------------------
# Derived views (never persisted)
# ---------------------------------------------------------------------------

@dataclass
class MilestoneWithProgress(Milestone):
    progress: int = 0
    completed_issues: int = 0
    total_issues: int = 0

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            progress=self.progress,
            completedIssues=self.completed_issues,
            totalIssues=self.total_issues,
        )
        return data


@dataclass
class ProjectWithStats(Project):
    milestones: list[MilestoneWithProgress] = field(default_factory=list)
    progress: int = 0
    total_budget: float = 0

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            milestones=[m.to_dict() for m in self.milestones],
            progress=self.progress,
            totalBudget=self.total_budget,
        )
        return data
