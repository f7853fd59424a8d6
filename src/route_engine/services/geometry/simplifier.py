"""Douglas-Peucker point reduction for drawn and snapped paths."""

from __future__ import annotations

import math
from typing import Sequence, TypeVar

from ...config import settings
from ...errors import RouteValidationError

PointT = TypeVar("PointT", bound=Sequence[float])


def perpendicular_distance(point: Sequence[float], line_start: Sequence[float], line_end: Sequence[float]) -> float:
    """Distance from ``point`` to the infinite line through the two endpoints, in coordinate units."""
    x, y = point[0], point[1]
    x1, y1 = line_start[0], line_start[1]
    x2, y2 = line_end[0], line_end[1]
    dx, dy = x2 - x1, y2 - y1
    length = math.hypot(dx, dy)
    if length == 0:
        # Closed loop: fall back to the distance to the shared endpoint.
        return math.hypot(x - x1, y - y1)
    return abs(dy * x - dx * y + x2 * y1 - y2 * x1) / length


def _douglas_peucker(points: Sequence[PointT], start: int, end: int, tolerance: float, keep: list[bool]) -> None:
    # Explicit stack instead of recursion; dense traces can run to thousands of points.
    stack = [(start, end)]
    while stack:
        first, last = stack.pop()
        if last - first < 2:
            continue
        max_distance = -1.0
        index = first
        for i in range(first + 1, last):
            distance = perpendicular_distance(points[i], points[first], points[last])
            if distance > max_distance:
                max_distance = distance
                index = i
        if max_distance > tolerance:
            keep[index] = True
            stack.append((first, index))
            stack.append((index, last))


def simplify_path(points: Sequence[PointT], tolerance: float | None = None) -> list[PointT]:
    """Reduce ``points`` while keeping every dropped point within ``tolerance`` of the result.

    The first and last points are always kept and the result is never longer
    than the input. Paths of two points or fewer are returned unchanged.
    """
    tolerance = settings.simplify_tolerance if tolerance is None else tolerance
    if tolerance < 0:
        raise RouteValidationError("Simplification tolerance must be zero or positive.")
    if len(points) <= 2:
        return list(points)

    keep = [False] * len(points)
    keep[0] = keep[-1] = True
    _douglas_peucker(points, 0, len(points) - 1, tolerance, keep)
    return [point for point, kept in zip(points, keep) if kept]
