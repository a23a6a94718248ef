from __future__ import annotations

from pathlib import Path

from ..constants import TABLE_FILES
from .bootstrap import ensure_state_root
from .file_repos import YamlTableStore


class Container:
    """One table store per entity type, rooted at `<project_dir>/.focusboard/`."""

    def __init__(self, project_dir: Path) -> None:
        self.project_dir = project_dir.resolve()
        self.state_root = ensure_state_root(self.project_dir)

        self.tasks = self._table("tasks")
        self.focus = self._table("focus")
        self.projects = self._table("projects")
        self.milestones = self._table("milestones")
        self.issues = self._table("issues")

    def _table(self, name: str) -> YamlTableStore:
        path = self.state_root / TABLE_FILES[name]
        return YamlTableStore(path, path.with_suffix(".lock"))

    def tables(self) -> dict[str, YamlTableStore]:
        return {name: getattr(self, name) for name in TABLE_FILES}
