"""Route editing services."""

from .engine import EditEngine, InsertPosition
from .sessions import EditingSession, SessionRegistry, registry

__all__ = ["EditEngine", "InsertPosition", "EditingSession", "SessionRegistry", "registry"]
