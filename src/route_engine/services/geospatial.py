"""Geospatial helper functions."""

from __future__ import annotations

import math
from typing import Sequence

from shapely.geometry import LineString, Point

EARTH_RADIUS_M = 6_371_000.0


def haversine_m(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
    """Great-circle distance in meters between two (lon, lat) positions."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def bearing_degrees(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
    """Calculate the initial bearing from (lon1, lat1) to (lon2, lat2)."""

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_lambda = math.radians(lon2 - lon1)
    y = math.sin(delta_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda)
    bearing = math.degrees(math.atan2(y, x))
    return (bearing + 360) % 360


def polyline_length_m(points: Sequence[tuple[float, float]]) -> float:
    """Sum of haversine distances between consecutive (lon, lat) points."""
    total = 0.0
    for i in range(1, len(points)):
        lon1, lat1 = points[i - 1][0], points[i - 1][1]
        lon2, lat2 = points[i][0], points[i][1]
        total += haversine_m(lon1, lat1, lon2, lat2)
    return total


def project_onto_polyline(
    points: Sequence[tuple[float, float]], position: tuple[float, float]
) -> tuple[tuple[float, float], float, float]:
    """Project ``position`` onto the (lon, lat) polyline.

    Returns ``(projected_point, distance_along_m, offset_m)``: the nearest
    point on the line, how far along the line it lies, and how far the
    position is from the line. Projection is planar in degrees, distances
    are haversine meters.
    """
    if len(points) < 2:
        raise ValueError("At least two points are required to project onto a polyline.")

    line = LineString([(lon, lat) for lon, lat in points])
    target = Point(position[0], position[1])
    along = line.project(target)
    projected = line.interpolate(along)
    projected_point = (projected.x, projected.y)

    # Walk the segments up to the projection to convert the planar offset into meters.
    distance_along = 0.0
    travelled = 0.0
    for i in range(1, len(points)):
        segment = LineString([points[i - 1], points[i]])
        if travelled + segment.length >= along:
            distance_along += haversine_m(points[i - 1][0], points[i - 1][1], projected.x, projected.y)
            break
        travelled += segment.length
        distance_along += haversine_m(points[i - 1][0], points[i - 1][1], points[i][0], points[i][1])

    offset = haversine_m(position[0], position[1], projected.x, projected.y)
    return projected_point, distance_along, offset
