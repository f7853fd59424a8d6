"""Derived route figures: length, map framing, fare and travel-time estimates."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional, Sequence

from ..config import settings
from ..models.domain import Coordinate, LngLat, RouteAggregate
from .geospatial import bearing_degrees, haversine_m, polyline_length_m

TURN_THRESHOLD_DEGREES = 30.0


@dataclass(slots=True)
class MapRegion:
    latitude: float
    longitude: float
    latitude_delta: float
    longitude_delta: float

    @property
    def min_latitude(self) -> float:
        return self.latitude - self.latitude_delta / 2

    @property
    def max_latitude(self) -> float:
        return self.latitude + self.latitude_delta / 2

    @property
    def min_longitude(self) -> float:
        return self.longitude - self.longitude_delta / 2

    @property
    def max_longitude(self) -> float:
        return self.longitude + self.longitude_delta / 2

    def contains(self, coordinate: Coordinate) -> bool:
        return (
            self.min_latitude <= coordinate.latitude <= self.max_latitude
            and self.min_longitude <= coordinate.longitude <= self.max_longitude
        )


@dataclass(slots=True)
class Turn:
    index: int
    angle: float
    point: LngLat


@dataclass(slots=True)
class RouteStatistics:
    distance_km: float
    estimated_minutes: int
    point_count: int
    straight_line_km: float
    efficiency_pct: float
    turns: list[Turn] = field(default_factory=list)


@dataclass(slots=True)
class RouteMetrics:
    length_m: float
    point_count: int
    snapped: bool
    region: MapRegion
    fare_range: tuple[int, int]
    travel_time_range: tuple[int, int]
    statistics: RouteStatistics


def route_length_m(points: Sequence[LngLat]) -> float:
    if len(points) < 2:
        return 0.0
    return polyline_length_m(points)


def displayed_points(route: RouteAggregate) -> list[LngLat]:
    return list(route.displayed_points)


def bounding_region(
    coordinates: Sequence[Coordinate],
    user_location: Optional[Coordinate] = None,
    padding: float | None = None,
    min_span: float | None = None,
) -> MapRegion:
    """Smallest padded region framing every coordinate (and the user, when given)."""
    padding = settings.region_padding if padding is None else padding
    min_span = settings.region_min_span if min_span is None else min_span

    all_coords = list(coordinates)
    if user_location is not None:
        all_coords.append(user_location)
    if not all_coords:
        center_lat, center_lng = settings.default_center
        return MapRegion(center_lat, center_lng, settings.default_span, settings.default_span)

    min_lat = min(c.latitude for c in all_coords)
    max_lat = max(c.latitude for c in all_coords)
    min_lng = min(c.longitude for c in all_coords)
    max_lng = max(c.longitude for c in all_coords)

    return MapRegion(
        latitude=(min_lat + max_lat) / 2,
        longitude=(min_lng + max_lng) / 2,
        latitude_delta=max((max_lat - min_lat) * (1 + padding), min_span),
        longitude_delta=max((max_lng - min_lng) * (1 + padding), min_span),
    )


def estimate_fare(length_m: float | None) -> tuple[int, int]:
    """Illustrative fare band: base fee plus a per-km charge beyond the free distance."""
    if not length_m:
        return (settings.fare_base, settings.fare_base + settings.fare_band)
    length_km = length_m / 1000
    fare = settings.fare_base
    if length_km > settings.fare_free_km:
        fare += math.ceil((length_km - settings.fare_free_km) * settings.fare_per_km)
    return (max(settings.fare_base, fare - settings.fare_band), fare + settings.fare_band)


def estimate_travel_time(length_m: float | None) -> tuple[int, int]:
    """Illustrative travel-time band in minutes at the assumed average speed."""
    band = settings.travel_time_band_minutes
    if not length_m:
        return (45, 60)
    minutes = round(length_m / 1000 / settings.travel_speed_kmh * 60)
    return (max(band, minutes - band), minutes + band)


def route_statistics(points: Sequence[LngLat], average_speed_kmh: float = 30.0) -> RouteStatistics:
    if len(points) < 2:
        return RouteStatistics(0.0, 0, len(points), 0.0, 0.0)

    distance_km = route_length_m(points) / 1000
    straight_km = haversine_m(points[0][0], points[0][1], points[-1][0], points[-1][1]) / 1000
    turns: list[Turn] = []
    for i in range(len(points) - 2):
        first = bearing_degrees(points[i][0], points[i][1], points[i + 1][0], points[i + 1][1])
        second = bearing_degrees(points[i + 1][0], points[i + 1][1], points[i + 2][0], points[i + 2][1])
        change = abs(second - first)
        change = min(change, 360 - change)
        if change > TURN_THRESHOLD_DEGREES:
            turns.append(Turn(index=i + 1, angle=change, point=points[i + 1]))

    efficiency = (straight_km / distance_km) * 100 if distance_km > 0 else 0.0
    return RouteStatistics(
        distance_km=round(distance_km, 2),
        estimated_minutes=round(distance_km / average_speed_kmh * 60),
        point_count=len(points),
        straight_line_km=round(straight_km, 2),
        efficiency_pct=round(efficiency, 1),
        turns=turns,
    )


def compute_metrics(route: RouteAggregate, user_location: Optional[Coordinate] = None) -> RouteMetrics:
    points = displayed_points(route)
    length = route_length_m(points)
    coordinates = [Coordinate.from_lng_lat(point) for point in points]
    return RouteMetrics(
        length_m=length,
        point_count=len(route.raw_points),
        snapped=route.is_snapped,
        region=bounding_region(coordinates, user_location),
        fare_range=estimate_fare(length),
        travel_time_range=estimate_travel_time(length),
        statistics=route_statistics(points),
    )
