"""Project hierarchy engine: projects own milestones, milestones own issues.

Deletes cascade downward in a fixed order (issues, then milestones, then the
parent) as independent store calls.  There is no transaction: if a step
fails the earlier steps stay applied in the store, the in-memory collections
stay untouched, and the error is re-raised.  Every step is delete-if-exists,
so re-running the same delete converges.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Optional, TypeVar

from loguru import logger

from ..constants import ISSUE_LABELS
from ..domain.models import (
    Issue,
    IssueStatus,
    Milestone,
    MilestoneWithProgress,
    Project,
    ProjectStatus,
    ProjectWithStats,
    Record,
)
from ..storage.interfaces import TableStore, any_of, equals
from ..utils import _now
from . import progress

R = TypeVar("R", bound=Record)


class ProjectNotFoundError(KeyError):
    pass


class MilestoneNotFoundError(KeyError):
    pass


class IssueNotFoundError(KeyError):
    pass


def _validate_label(label: str) -> str:
    if label not in ISSUE_LABELS:
        raise ValueError(f"Unknown issue label {label!r}; expected one of {', '.join(ISSUE_LABELS)}")
    return label


def _validate_budget(budget: float) -> float:
    if budget < 0:
        raise ValueError(f"Milestone budget must be >= 0, got {budget}")
    return budget


def _find(items: list[R], record_id: int) -> Optional[R]:
    for item in items:
        if item.id == record_id:
            return item
    return None


def _swap(items: list[R], updated: R) -> list[R]:
    return [updated if item.id == updated.id else item for item in items]


class ProjectEngine:
    def __init__(self, projects: TableStore, milestones: TableStore, issues: TableStore) -> None:
        self.project_store = projects
        self.milestone_store = milestones
        self.issue_store = issues
        self.projects: list[Project] = []
        self.milestones: list[Milestone] = []
        self.issues: list[Issue] = []
        self.loading = True

    # -- lookup -------------------------------------------------------------

    def get_project(self, project_id: int) -> Optional[Project]:
        return _find(self.projects, project_id)

    def get_milestone(self, milestone_id: int) -> Optional[Milestone]:
        return _find(self.milestones, milestone_id)

    def get_issue(self, issue_id: int) -> Optional[Issue]:
        return _find(self.issues, issue_id)

    def _require_project(self, project_id: int) -> Project:
        project = self.get_project(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    def _require_milestone(self, milestone_id: int) -> Milestone:
        milestone = self.get_milestone(milestone_id)
        if milestone is None:
            raise MilestoneNotFoundError(milestone_id)
        return milestone

    def _require_issue(self, issue_id: int) -> Issue:
        issue = self.get_issue(issue_id)
        if issue is None:
            raise IssueNotFoundError(issue_id)
        return issue

    # -- loading ------------------------------------------------------------

    async def load(self) -> None:
        self.loading = True
        try:
            projects, milestones, issues = await asyncio.gather(
                self.project_store.to_array(),
                self.milestone_store.to_array(),
                self.issue_store.to_array(),
            )
            self.projects = [Project.from_dict(row) for row in projects]
            self.milestones = [Milestone.from_dict(row) for row in milestones]
            self.issues = [Issue.from_dict(row) for row in issues]
            logger.info(
                "Loaded {} projects, {} milestones, {} issues",
                len(self.projects),
                len(self.milestones),
                len(self.issues),
            )
        except Exception:
            logger.exception("Failed to load projects")
        finally:
            self.loading = False

    # -- projects -----------------------------------------------------------

    async def add_project(
        self,
        title: str,
        status: ProjectStatus | str = ProjectStatus.SCHEDULED,
        version: str = "",
        notes: str = "",
    ) -> Project:
        now = _now()
        record = Project(
            title=title,
            status=ProjectStatus(status),
            version=version,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        project_id = await self.project_store.add(record.to_dict())
        created = record.merged({"id": project_id})
        self.projects = [*self.projects, created]
        logger.debug("Project added id={} title={!r}", project_id, title)
        return created

    async def update_project(self, project_id: int, **fields: Any) -> Project:
        current = self._require_project(project_id)
        if "status" in fields:
            fields["status"] = ProjectStatus(fields["status"])
        fields["updated_at"] = _now()
        await self.project_store.update(project_id, Project.encode_fields(fields))
        updated = current.merged(fields)
        self.projects = _swap(self.projects, updated)
        return updated

    async def delete_project(self, project_id: int) -> None:
        """Delete a project with all of its milestones and their issues."""
        self._require_project(project_id)
        milestone_ids = [m.id for m in self.milestones if m.project_id == project_id]
        try:
            await self.issue_store.delete_where("milestoneId", any_of(milestone_ids))
            await self.milestone_store.delete_where("projectId", equals(project_id))
            await self.project_store.delete(project_id)
        except Exception:
            logger.exception("Cascade delete of project {} stopped partway", project_id)
            raise
        owned = set(milestone_ids)
        self.issues = [i for i in self.issues if i.milestone_id not in owned]
        self.milestones = [m for m in self.milestones if m.project_id != project_id]
        self.projects = [p for p in self.projects if p.id != project_id]
        logger.debug("Project deleted id={} milestones={}", project_id, len(owned))

    # -- milestones ---------------------------------------------------------

    async def add_milestone(
        self,
        project_id: int,
        title: str,
        status: ProjectStatus | str = ProjectStatus.SCHEDULED,
        deadline: Optional[datetime] = None,
        budget: float = 0,
    ) -> Milestone:
        self._require_project(project_id)
        now = _now()
        record = Milestone(
            project_id=project_id,
            title=title,
            status=ProjectStatus(status),
            deadline=deadline or now,
            budget=_validate_budget(budget),
            created_at=now,
            updated_at=now,
        )
        milestone_id = await self.milestone_store.add(record.to_dict())
        created = record.merged({"id": milestone_id})
        self.milestones = [*self.milestones, created]
        logger.debug("Milestone added id={} project={}", milestone_id, project_id)
        return created

    async def update_milestone(self, milestone_id: int, **fields: Any) -> Milestone:
        current = self._require_milestone(milestone_id)
        if "status" in fields:
            fields["status"] = ProjectStatus(fields["status"])
        if "budget" in fields:
            _validate_budget(fields["budget"])
        if "project_id" in fields:
            self._require_project(fields["project_id"])
        fields["updated_at"] = _now()
        await self.milestone_store.update(milestone_id, Milestone.encode_fields(fields))
        updated = current.merged(fields)
        self.milestones = _swap(self.milestones, updated)
        return updated

    async def delete_milestone(self, milestone_id: int) -> None:
        """Delete a milestone and every issue under it."""
        self._require_milestone(milestone_id)
        try:
            await self.issue_store.delete_where("milestoneId", equals(milestone_id))
            await self.milestone_store.delete(milestone_id)
        except Exception:
            logger.exception("Cascade delete of milestone {} stopped partway", milestone_id)
            raise
        self.issues = [i for i in self.issues if i.milestone_id != milestone_id]
        self.milestones = [m for m in self.milestones if m.id != milestone_id]

    # -- issues -------------------------------------------------------------

    async def add_issue(
        self,
        milestone_id: int,
        title: str,
        label: str = ISSUE_LABELS[0],
        due_date: Optional[datetime] = None,
        description: str = "",
    ) -> Issue:
        self._require_milestone(milestone_id)
        now = _now()
        record = Issue(
            milestone_id=milestone_id,
            title=title,
            label=_validate_label(label),
            due_date=due_date or now,
            status=IssueStatus.OPEN,
            description=description,
            created_at=now,
            updated_at=now,
        )
        issue_id = await self.issue_store.add(record.to_dict())
        created = record.merged({"id": issue_id})
        self.issues = [*self.issues, created]
        logger.debug("Issue added id={} milestone={}", issue_id, milestone_id)
        return created

    async def update_issue(self, issue_id: int, **fields: Any) -> Issue:
        current = self._require_issue(issue_id)
        if "status" in fields:
            fields["status"] = IssueStatus(fields["status"])
        if "label" in fields:
            _validate_label(fields["label"])
        if "milestone_id" in fields:
            self._require_milestone(fields["milestone_id"])
        fields["updated_at"] = _now()
        await self.issue_store.update(issue_id, Issue.encode_fields(fields))
        updated = current.merged(fields)
        self.issues = _swap(self.issues, updated)
        return updated

    async def delete_issue(self, issue_id: int) -> None:
        self._require_issue(issue_id)
        await self.issue_store.delete(issue_id)
        self.issues = [i for i in self.issues if i.id != issue_id]

    # -- derived views ------------------------------------------------------

    def issues_for_milestone(self, milestone_id: int) -> list[Issue]:
        return [i for i in self.issues if i.milestone_id == milestone_id]

    def milestones_for_project(self, project_id: int) -> list[MilestoneWithProgress]:
        return progress.milestones_with_progress(project_id, self.milestones, self.issues)

    def project_with_stats(self, project_id: int) -> Optional[ProjectWithStats]:
        project = self.get_project(project_id)
        if project is None:
            return None
        return progress.project_with_stats(project, self.milestones, self.issues)

    def all_projects_with_stats(self) -> list[ProjectWithStats]:
        return [progress.project_with_stats(p, self.milestones, self.issues) for p in self.projects]
