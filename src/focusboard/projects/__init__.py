from .engine import IssueNotFoundError, MilestoneNotFoundError, ProjectEngine, ProjectNotFoundError

__all__ = ["IssueNotFoundError", "MilestoneNotFoundError", "ProjectEngine", "ProjectNotFoundError"]
