"""Bottom-up progress for the project hierarchy, recomputed on every read."""

from __future__ import annotations

import math
from dataclasses import asdict
from typing import Iterable, Sequence

from ..domain.models import Issue, Milestone, MilestoneWithProgress, Project, ProjectWithStats


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def issue_progress(issues: Sequence[Issue]) -> int:
    """Percentage of closed issues, 0 when there are none."""
    if not issues:
        return 0
    closed = sum(1 for issue in issues if issue.is_closed)
    return round_half_up(closed / len(issues) * 100)


def milestone_with_progress(milestone: Milestone, issues: Iterable[Issue]) -> MilestoneWithProgress:
    own = [issue for issue in issues if issue.milestone_id == milestone.id]
    return MilestoneWithProgress(
        **asdict(milestone),
        progress=issue_progress(own),
        completed_issues=sum(1 for issue in own if issue.is_closed),
        total_issues=len(own),
    )


def milestones_with_progress(
    project_id: int,
    milestones: Iterable[Milestone],
    issues: Iterable[Issue],
) -> list[MilestoneWithProgress]:
    issues = list(issues)
    return [milestone_with_progress(m, issues) for m in milestones if m.project_id == project_id]


def project_with_stats(
    project: Project,
    milestones: Iterable[Milestone],
    issues: Iterable[Issue],
) -> ProjectWithStats:
    """Average milestone progress and summed budget for *project*."""
    children = milestones_with_progress(project.id, milestones, issues)
    progress = sum(m.progress for m in children) / len(children) if children else 0
    return ProjectWithStats(
        **asdict(project),
        milestones=children,
        progress=round_half_up(progress),
        total_budget=sum(m.budget for m in children),
    )
