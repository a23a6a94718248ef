"""Provide the public `focusboard` package exports."""

from __future__ import annotations

from .domain.models import FocusSession, Issue, Milestone, Project, Task
from .focus.engine import FocusEngine
from .projects.engine import ProjectEngine
from .tasks.engine import TaskEngine
from .workspace import Workspace

__all__ = [
    "FocusEngine",
    "FocusSession",
    "Issue",
    "Milestone",
    "Project",
    "ProjectEngine",
    "Task",
    "TaskEngine",
    "Workspace",
]
