from .engine import FocusEngine, SessionNotFoundError

__all__ = ["FocusEngine", "SessionNotFoundError"]
