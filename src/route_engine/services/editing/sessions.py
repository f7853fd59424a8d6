"""In-memory registry of open editing sessions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable

from ...errors import RouteValidationError
from ...models.domain import RouteAggregate
from .engine import EditEngine

logger = logging.getLogger(__name__)


@dataclass
class EditingSession:
    route: RouteAggregate
    engine: EditEngine
    persisted: bool = False


class SessionRegistry:
    """Holds one :class:`EditEngine` per open route, keyed by route id."""

    def __init__(self) -> None:
        self._sessions: Dict[str, EditingSession] = {}

    def open(self, route: RouteAggregate, *, persisted: bool = False) -> EditingSession:
        if not route.name or not route.name.strip():
            raise RouteValidationError("Route name is required.")
        session = EditingSession(route=route, engine=EditEngine(route), persisted=persisted)
        self._sessions[route.id] = session
        logger.info(f"Opened editing session for route {route.id} ({route.name})")
        return session

    def get(self, route_id: str) -> EditingSession:
        try:
            return self._sessions[route_id]
        except KeyError:
            raise KeyError(f"No editing session for route '{route_id}'.") from None

    def close(self, route_id: str) -> RouteAggregate:
        """End a session and hand back the final route state."""
        session = self._sessions.pop(route_id, None)
        if session is None:
            raise KeyError(f"No editing session for route '{route_id}'.")
        logger.info(f"Closed editing session for route {route_id}")
        return session.route

    def routes(self) -> Iterable[RouteAggregate]:
        return [session.route for session in self._sessions.values()]

    def __contains__(self, route_id: object) -> bool:
        return route_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)


registry = SessionRegistry()
