"""Point editing with undo/redo over a :class:`RouteAggregate`."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, List, Sequence

from ...config import settings
from ...errors import RouteValidationError
from ...models.domain import Coordinate, LngLat, RouteAggregate, clone_points
from ..geometry.simplifier import simplify_path

logger = logging.getLogger(__name__)

ChangeListener = Callable[[RouteAggregate], None]


class InsertPosition(str, Enum):
    APPEND = "append"
    PREPEND = "prepend"


def _to_lng_lat(coordinate: Coordinate | Sequence[float]) -> LngLat:
    if isinstance(coordinate, Coordinate):
        lng, lat = coordinate.longitude, coordinate.latitude
    else:
        if len(coordinate) < 2:
            raise RouteValidationError("A point needs both longitude and latitude.")
        try:
            lng, lat = float(coordinate[0]), float(coordinate[1])
        except (TypeError, ValueError) as exc:
            raise RouteValidationError(f"Invalid coordinate {coordinate!r}: must be numeric.") from exc
    if not -180 <= lng <= 180:
        raise RouteValidationError("Longitude must be between -180 and 180.")
    if not -90 <= lat <= 90:
        raise RouteValidationError("Latitude must be between -90 and 90.")
    return (lng, lat)


class EditEngine:
    """The only writer of a route's raw path.

    Every direct edit snapshots the current path onto ``history`` and clears
    ``future``; undo and redo move snapshots between the two stacks. Any
    change to the raw path drops ``snapped_points``. Rejected edits raise
    :class:`RouteValidationError` before touching the route.
    """

    def __init__(self, route: RouteAggregate, insert_position: InsertPosition | str | None = None) -> None:
        self.route = route
        self.insert_position = InsertPosition(insert_position or settings.default_insert_position)
        self._listeners: list[ChangeListener] = []

    # ------------------------------------------------------------------
    # listeners
    # ------------------------------------------------------------------
    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Call ``listener`` after every mutation. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self.route)

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------
    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self.route.raw_points):
            raise RouteValidationError(
                f"Point index {index} is out of range for a route with {len(self.route.raw_points)} points."
            )

    def _commit(self, new_points: List[LngLat]) -> None:
        route = self.route
        route.history.append(clone_points(route.raw_points))
        route.future.clear()
        route.raw_points = new_points
        route.snapped_points = None
        self._notify()

    # ------------------------------------------------------------------
    # direct edits
    # ------------------------------------------------------------------
    @property
    def can_undo(self) -> bool:
        return bool(self.route.history)

    @property
    def can_redo(self) -> bool:
        return bool(self.route.future)

    def insert_point(self, coordinate: Coordinate | Sequence[float], position: int | None = None) -> int:
        """Insert a point and return the index it landed at."""
        point = _to_lng_lat(coordinate)
        count = len(self.route.raw_points)
        if position is None:
            position = 0 if self.insert_position is InsertPosition.PREPEND else count
        elif not 0 <= position <= count:
            raise RouteValidationError(f"Insert position {position} is out of range (0..{count}).")

        points = clone_points(self.route.raw_points)
        points.insert(position, point)
        self._commit(points)
        return position

    def update_point(self, index: int, coordinate: Coordinate | Sequence[float]) -> None:
        self._check_index(index)
        point = _to_lng_lat(coordinate)
        points = clone_points(self.route.raw_points)
        points[index] = point
        self._commit(points)

    def delete_point(self, index: int) -> None:
        self._check_index(index)
        points = clone_points(self.route.raw_points)
        del points[index]
        self._commit(points)

    def clear_points(self) -> None:
        self._commit([])

    def replace_points(self, points: Sequence[Coordinate | Sequence[float]]) -> None:
        """Replace the whole path as one undoable edit."""
        self._commit([_to_lng_lat(point) for point in points])

    def set_snapped(self, points: Sequence[Coordinate | Sequence[float]] | None) -> None:
        """Install a road-following path for display. History is not touched."""
        self.route.snapped_points = None if points is None else [_to_lng_lat(point) for point in points]
        self._notify()

    def simplify(self, tolerance: float | None = None) -> int:
        """Simplify the raw path in place and return how many points were removed."""
        if len(self.route.raw_points) < 2:
            raise RouteValidationError("At least two points are required to simplify a route.")
        before = len(self.route.raw_points)
        simplified = simplify_path(clone_points(self.route.raw_points), tolerance)
        removed = before - len(simplified)
        if removed == 0:
            logger.info(f"Route {self.route.id}: simplification removed no points")
            return 0
        self.replace_points(simplified)
        logger.info(f"Route {self.route.id}: simplified {before} -> {len(simplified)} points")
        return removed

    def reorder(self, permutation: Sequence[int]) -> None:
        """Apply an optimized visiting order to the leading ``len(permutation)`` points.

        Points beyond the permutation (e.g. those dropped by waypoint
        truncation) keep their position after the reordered head.
        """
        count = len(permutation)
        if count > len(self.route.raw_points):
            raise RouteValidationError("Permutation is longer than the route.")
        if sorted(permutation) != list(range(count)):
            raise RouteValidationError(f"Invalid permutation {list(permutation)!r}.")
        if list(permutation) == list(range(count)):
            return
        current = clone_points(self.route.raw_points)
        head = [current[i] for i in permutation]
        self.replace_points(head + current[count:])

    # ------------------------------------------------------------------
    # history
    # ------------------------------------------------------------------
    def undo(self) -> bool:
        route = self.route
        if not route.history:
            return False
        previous = route.history.pop()
        route.future.append(clone_points(route.raw_points))
        route.raw_points = clone_points(previous)
        route.snapped_points = None
        self._notify()
        return True

    def redo(self) -> bool:
        route = self.route
        if not route.future:
            return False
        following = route.future.pop()
        route.history.append(clone_points(route.raw_points))
        route.raw_points = clone_points(following)
        route.snapped_points = None
        self._notify()
        return True
