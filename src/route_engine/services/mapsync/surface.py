"""Map rendering surface contract and an in-memory implementation."""

from __future__ import annotations

import itertools
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Hashable, List, Literal, Optional

from ...models.domain import LngLat

MarkerHandle = Hashable


@dataclass(frozen=True, slots=True)
class MarkerStyle:
    color: str = "#2563eb"
    size: int = 12
    border: str = "2px solid white"
    label: str = ""
    draggable: bool = False


@dataclass(frozen=True, slots=True)
class MapEvent:
    """Gesture emitted by the surface.

    ``click`` is a click on empty canvas, ``line_click`` a click on a route
    line (``target`` is the route id) and ``drag_end`` the end of a marker drag
    (``target`` is the point index).
    """

    kind: Literal["click", "line_click", "drag_end"]
    position: LngLat
    target: Optional[Hashable] = None


class MapSurface(ABC):
    """What the sync layer needs from a map widget. Positions are (lng, lat)."""

    @abstractmethod
    def add_marker(self, position: LngLat, style: MarkerStyle) -> MarkerHandle:
        raise NotImplementedError

    @abstractmethod
    def move_marker(self, handle: MarkerHandle, position: LngLat) -> None:
        raise NotImplementedError

    @abstractmethod
    def style_marker(self, handle: MarkerHandle, style: MarkerStyle) -> None:
        raise NotImplementedError

    @abstractmethod
    def remove_marker(self, handle: MarkerHandle) -> None:
        raise NotImplementedError

    @abstractmethod
    def set_line(self, line_id: str, points: List[LngLat], color: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def remove_line(self, line_id: str) -> None:
        raise NotImplementedError


@dataclass
class _MarkerState:
    position: LngLat
    style: MarkerStyle


@dataclass
class _LineState:
    points: List[LngLat]
    color: str


@dataclass
class RecordingMapSurface(MapSurface):
    """Headless surface that keeps the drawn state and an operation log."""

    markers: Dict[int, _MarkerState] = field(default_factory=dict)
    lines: Dict[str, _LineState] = field(default_factory=dict)
    operations: List[tuple[str, Hashable]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._ids = itertools.count(1)

    def add_marker(self, position: LngLat, style: MarkerStyle) -> int:
        handle = next(self._ids)
        self.markers[handle] = _MarkerState(position=position, style=style)
        self.operations.append(("add_marker", handle))
        return handle

    def move_marker(self, handle: int, position: LngLat) -> None:
        self.markers[handle].position = position
        self.operations.append(("move_marker", handle))

    def style_marker(self, handle: int, style: MarkerStyle) -> None:
        self.markers[handle].style = style
        self.operations.append(("style_marker", handle))

    def remove_marker(self, handle: int) -> None:
        del self.markers[handle]
        self.operations.append(("remove_marker", handle))

    def set_line(self, line_id: str, points: List[LngLat], color: str) -> None:
        self.lines[line_id] = _LineState(points=list(points), color=color)
        self.operations.append(("set_line", line_id))

    def remove_line(self, line_id: str) -> None:
        self.lines.pop(line_id, None)
        self.operations.append(("remove_line", line_id))

    def marker_positions(self) -> List[LngLat]:
        return [state.position for state in self.markers.values()]

    def clear_log(self) -> None:
        self.operations.clear()
