"""The process-wide service object composing the three engines.

Build one :class:`Workspace` per process (or per CLI invocation) and hand
it to consumers; the engines inside own their collections and are never
re-created behind the caller's back.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from loguru import logger

from .config import get_task_config, load_config
from .focus.engine import FocusEngine
from .projects.engine import ProjectEngine
from .storage.container import Container
from .tasks.engine import TaskEngine


class Workspace:
    def __init__(self, project_dir: Path) -> None:
        self.container = Container(project_dir)
        self.config, config_error = load_config(self.container.project_dir)
        if config_error:
            logger.warning("Ignoring unreadable config: {}", config_error)

        self.tasks = TaskEngine(
            self.container.tasks,
            default_priority=get_task_config(self.config)["default_priority"],
        )
        self.focus = FocusEngine(self.container.focus)
        self.projects = ProjectEngine(
            self.container.projects,
            self.container.milestones,
            self.container.issues,
        )

    @property
    def project_dir(self) -> Path:
        return self.container.project_dir

    @property
    def loading(self) -> bool:
        return self.tasks.loading or self.focus.loading or self.projects.loading

    async def load(self) -> None:
        """Bulk-load every engine; each engine logs and survives its own failures."""
        await asyncio.gather(self.tasks.load(), self.focus.load(), self.projects.load())

    @classmethod
    async def open(cls, project_dir: Path) -> "Workspace":
        workspace = cls(project_dir)
        await workspace.load()
        return workspace
