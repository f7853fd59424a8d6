"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Optional

from ...models.domain import LngLat


@dataclass(slots=True)
class RoadGeometry:
    """Road-following line returned by the snap endpoint."""

    points: List[LngLat]
    distance_m: float
    duration_s: float


@dataclass(slots=True)
class TripGeometry:
    """Optimized trip returned by the optimization endpoint."""

    order: List[int]
    points: List[LngLat]
    distance_m: float
    duration_s: float


@dataclass(slots=True)
class OptimizeOptions:
    roundtrip: bool = True
    source: Literal["first", "any"] = "first"
    destination: Literal["last", "any"] = "last"


@dataclass(slots=True)
class SnapResult:
    route_id: str
    points: List[LngLat]
    source: Literal["service", "fallback"]
    distance_m: Optional[float] = None
    duration_s: Optional[float] = None
    warnings: List[str] = field(default_factory=list)
    stale: bool = False

    @property
    def applied(self) -> bool:
        return self.source == "service" and not self.stale


@dataclass(slots=True)
class OptimizeResult:
    route_id: str
    order: List[int]
    points: List[LngLat]
    geometry: List[LngLat]
    reordered: bool
    truncated: bool = False
    considered: int = 0
    distance_m: Optional[float] = None
    duration_s: Optional[float] = None
    source: Literal["service", "fallback", "unchanged"] = "service"
    warnings: List[str] = field(default_factory=list)
    stale: bool = False
