"""Keeps a map surface in step with the route being edited."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Iterable, Optional

from ...errors import RouteValidationError
from ...models.domain import LngLat, PointOfInterest, RouteAggregate
from ..editing.engine import EditEngine
from .resources import MarkerTable
from .surface import MapEvent, MapSurface, MarkerStyle

logger = logging.getLogger(__name__)

POI_STYLES: dict[str, MarkerStyle] = {
    "terminal": MarkerStyle(color="#dc2626", size=16, label="T"),
    "stop": MarkerStyle(color="#2563eb", size=12, label="S"),
    "hub": MarkerStyle(color="#7c3aed", size=16, label="H"),
    "landmark": MarkerStyle(color="#059669", size=12, label="L"),
}
DEFAULT_POI_STYLE = MarkerStyle(color="#6b7280", size=12, label="P")
ACTIVE_POINT_COLOR = "#ef4444"


class MapMode(str, Enum):
    IDLE = "idle"
    ADD_POINT = "add_point"
    SELECT_ROUTE = "select_route"


def line_id_for(route_id: str) -> str:
    return f"route-line:{route_id}"


def poi_style(poi_type: str) -> MarkerStyle:
    return POI_STYLES.get(poi_type, DEFAULT_POI_STYLE)


class MapSyncLayer:
    """Diffs route and POI state onto a :class:`MapSurface`.

    Route markers are keyed by point index and follow ``raw_points`` so that a
    dragged marker always maps back to the raw point it came from; the line
    follows the displayed path (snapped when available). Gestures are routed
    to the attached :class:`EditEngine`.
    """

    def __init__(
        self,
        surface: MapSurface,
        engine: EditEngine | None = None,
        on_route_selected: Callable[[str], None] | None = None,
    ) -> None:
        self.surface = surface
        self.mode = MapMode.IDLE
        self.active_point_index: Optional[int] = None
        self.active_route_id: Optional[str] = None
        self.on_route_selected = on_route_selected
        self._route_markers: MarkerTable[int] = MarkerTable(surface)
        self._poi_markers: MarkerTable[str] = MarkerTable(surface)
        self._lines: set[str] = set()
        self._engine: EditEngine | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._closed = False
        if engine is not None:
            self.attach(engine)

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def attach(self, engine: EditEngine) -> None:
        """Follow ``engine``'s route, replacing any previously attached one."""
        self.detach()
        self._engine = engine
        self._unsubscribe = engine.subscribe(self.render)
        self.active_route_id = engine.route.id
        self.render(engine.route)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
        self._unsubscribe = None
        if self._engine is not None:
            self._clear_route(self._engine.route.id)
        self._engine = None
        self.active_point_index = None

    def close(self) -> None:
        if self._closed:
            return
        self.detach()
        self._route_markers.release_all()
        self._poi_markers.release_all()
        for line_id in list(self._lines):
            self.surface.remove_line(line_id)
        self._lines.clear()
        self._closed = True
        logger.debug("Map sync layer closed")

    def __enter__(self) -> "MapSyncLayer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # rendering
    # ------------------------------------------------------------------
    def _point_style(self, route: RouteAggregate, index: int) -> MarkerStyle:
        active = index == self.active_point_index
        return MarkerStyle(
            color=ACTIVE_POINT_COLOR if active else route.color,
            size=16 if active else 12,
            border="3px solid white" if active else "2px solid white",
            label=str(index + 1),
            draggable=True,
        )

    def render(self, route: RouteAggregate) -> None:
        """Bring markers and the route line in line with ``route``."""
        if self._closed:
            return
        points = route.raw_points
        if self.active_point_index is not None and self.active_point_index >= len(points):
            self.active_point_index = None

        for index in self._route_markers.keys():
            if index >= len(points):
                self._route_markers.release(index)
        for index, point in enumerate(points):
            self._route_markers.upsert(index, point, self._point_style(route, index))

        line_id = line_id_for(route.id)
        displayed = route.displayed_points
        if len(displayed) >= 2:
            self.surface.set_line(line_id, list(displayed), route.color)
            self._lines.add(line_id)
        elif line_id in self._lines:
            self.surface.remove_line(line_id)
            self._lines.discard(line_id)

    def _clear_route(self, route_id: str) -> None:
        self._route_markers.release_all()
        line_id = line_id_for(route_id)
        if line_id in self._lines:
            self.surface.remove_line(line_id)
            self._lines.discard(line_id)

    def set_active_point(self, index: Optional[int]) -> None:
        self.active_point_index = index
        if self._engine is not None:
            self.render(self._engine.route)

    def sync_pois(self, pois: Iterable[PointOfInterest]) -> None:
        """Show exactly ``pois``; markers are matched by POI id."""
        wanted = {poi.id: poi for poi in pois}
        for poi_id in self._poi_markers.keys():
            if poi_id not in wanted:
                self._poi_markers.release(poi_id)
        for poi_id, poi in wanted.items():
            base = poi_style(poi.type)
            style = MarkerStyle(color=base.color, size=base.size, border=base.border, label=poi.name or base.label)
            self._poi_markers.upsert(poi_id, poi.location, style)

    @property
    def marker_count(self) -> int:
        return len(self._route_markers)

    @property
    def poi_count(self) -> int:
        return len(self._poi_markers)

    # ------------------------------------------------------------------
    # gestures
    # ------------------------------------------------------------------
    def set_mode(self, mode: MapMode | str) -> None:
        self.mode = MapMode(mode)

    def handle_marker_drag(self, index: int, position: LngLat) -> None:
        if self._engine is None:
            return
        self.active_point_index = index
        self._engine.update_point(index, position)

    def handle_canvas_click(self, position: LngLat) -> Optional[int]:
        if self.mode is not MapMode.ADD_POINT or self._engine is None:
            return None
        index = self._engine.insert_point(position)
        self.set_active_point(index)
        return index

    def handle_line_click(self, route_id: str) -> bool:
        if self.mode is not MapMode.SELECT_ROUTE:
            return False
        self.active_route_id = route_id
        logger.info(f"Route {route_id} selected from map")
        if self.on_route_selected is not None:
            self.on_route_selected(route_id)
        return True

    def dispatch(self, event: MapEvent) -> None:
        """Entry point for surface gesture callbacks."""
        if event.kind in ("drag_end", "line_click") and event.target is None:
            raise RouteValidationError(f"A {event.kind} event needs a target.")
        if event.kind == "drag_end":
            self.handle_marker_drag(int(event.target), event.position)
        elif event.kind == "click":
            self.handle_canvas_click(event.position)
        elif event.kind == "line_click":
            self.handle_line_click(str(event.target))
