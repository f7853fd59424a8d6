"""Load-state machine for route lists, region lists and other remote fetches."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, Optional, TypeVar

from ..errors import RouteStateError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LoadState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


# state -> transition name -> next state
TRANSITIONS: dict[LoadState, dict[str, LoadState]] = {
    LoadState.IDLE: {"start": LoadState.LOADING},
    LoadState.LOADING: {"succeed": LoadState.READY, "fail": LoadState.ERROR},
    LoadState.READY: {"start": LoadState.LOADING, "reset": LoadState.IDLE},
    LoadState.ERROR: {"start": LoadState.LOADING, "reset": LoadState.IDLE},
}


@dataclass
class LoadStateMachine(Generic[T]):
    """Tracks one remote fetch: ``idle -> loading -> ready | error``.

    ``data`` is only replaced on success, so a failed refresh keeps the last
    good value visible alongside the error.
    """

    name: str = "resource"
    state: LoadState = LoadState.IDLE
    data: Optional[T] = None
    error: Optional[str] = None
    history: list[LoadState] = field(default_factory=list)

    def _transition(self, event: str) -> None:
        allowed = TRANSITIONS[self.state]
        if event not in allowed:
            raise RouteStateError(f"Cannot '{event}' {self.name} while {self.state.value}.")
        self.history.append(self.state)
        self.state = allowed[event]
        logger.debug(f"{self.name}: {self.history[-1].value} -> {self.state.value}")

    def start(self) -> None:
        self._transition("start")
        self.error = None

    def succeed(self, data: T) -> None:
        self._transition("succeed")
        self.data = data

    def fail(self, error: str | Exception) -> None:
        self._transition("fail")
        self.error = str(error)

    def reset(self) -> None:
        self._transition("reset")
        self.data = None
        self.error = None

    @property
    def is_loading(self) -> bool:
        return self.state is LoadState.LOADING
