from .models import (
    FocusSession,
    Issue,
    IssueStatus,
    Milestone,
    MilestoneWithProgress,
    Project,
    ProjectStatus,
    ProjectWithStats,
    Task,
)

__all__ = [
    "FocusSession",
    "Issue",
    "IssueStatus",
    "Milestone",
    "MilestoneWithProgress",
    "Project",
    "ProjectStatus",
    "ProjectWithStats",
    "Task",
]
