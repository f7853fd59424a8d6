"""Domain models for routes, regions and points of interest."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

# (longitude, latitude), the order used by map surfaces and the routing service.
LngLat = Tuple[float, float]


def clone_points(points: List[LngLat] | None) -> List[LngLat]:
    """Deep copy a point sequence so snapshots never share state with the live path."""
    return [(float(lng), float(lat)) for lng, lat in (points or [])]


@dataclass(slots=True, frozen=True)
class Coordinate:
    """A coordinate with explicit axes."""

    latitude: float
    longitude: float

    def as_lng_lat(self) -> LngLat:
        return (self.longitude, self.latitude)

    @classmethod
    def from_lng_lat(cls, point: LngLat) -> "Coordinate":
        lng, lat = point
        return cls(latitude=float(lat), longitude=float(lng))


@dataclass(slots=True)
class RouteAggregate:
    """A transit route being edited: the drawn path, its snapped derivative and edit history."""

    id: str
    name: str = ""
    code: str = ""
    color: str = "#2563eb"
    raw_points: List[LngLat] = field(default_factory=list)
    snapped_points: Optional[List[LngLat]] = None
    history: List[List[LngLat]] = field(default_factory=list)
    future: List[List[LngLat]] = field(default_factory=list)
    region_id: Optional[str] = None
    status: str = "draft"
    length_meters: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def create(
        cls,
        *,
        name: str = "New Route",
        code: str = "",
        color: str = "#2563eb",
        points: List[LngLat] | None = None,
        region_id: str | None = None,
    ) -> "RouteAggregate":
        return cls(
            id=str(uuid.uuid4()),
            name=name,
            code=code,
            color=color,
            raw_points=clone_points(points),
            region_id=region_id,
        )

    @property
    def displayed_points(self) -> List[LngLat]:
        """Points drawn on the map: the snapped path when present, else the raw path."""
        if self.snapped_points is not None:
            return self.snapped_points
        return self.raw_points

    @property
    def is_snapped(self) -> bool:
        return self.snapped_points is not None


@dataclass(slots=True)
class PointOfInterest:
    """Labeled map pin (terminal, stop, hub, landmark) owned by the persistence service."""

    id: str
    type: str
    name: str
    location: LngLat
    metadata: dict = field(default_factory=dict)
    region_id: Optional[str] = None


@dataclass(slots=True)
class Region:
    """Service region a route can be assigned to."""

    id: str
    name: str
    code: Optional[str] = None
    is_active: bool = True
