from .engine import TaskEngine, TaskNotFoundError

__all__ = ["TaskEngine", "TaskNotFoundError"]
