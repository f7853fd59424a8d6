"""Route editing request/response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, Field


class CreateRouteRequest(BaseModel):
    name: str
    code: str = ""
    color: str = "#2563eb"
    points: List[Tuple[float, float]] = Field(default_factory=list, description="Initial (lng, lat) points.")
    region_id: Optional[str] = None


class PointRequest(BaseModel):
    longitude: float
    latitude: float
    position: Optional[int] = Field(
        default=None,
        ge=0,
        description="Insert index. Defaults to the configured insert position (append or prepend).",
    )


class ReplacePointsRequest(BaseModel):
    points: List[Tuple[float, float]] = Field(description="New (lng, lat) path, applied as one undoable edit.")


class SimplifyRouteRequest(BaseModel):
    tolerance: Optional[float] = Field(default=None, ge=0.0)


class OptimizeRouteRequest(BaseModel):
    roundtrip: bool = True
    source: Literal["first", "any"] = "first"
    destination: Literal["last", "any"] = "last"
    apply: bool = Field(default=True, description="Reorder the route with the returned permutation.")


class RouteModel(BaseModel):
    id: str
    name: str
    code: str
    color: str
    raw_points: List[Tuple[float, float]]
    snapped_points: Optional[List[Tuple[float, float]]] = None
    region_id: Optional[str] = None
    status: str
    length_meters: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    can_undo: bool
    can_redo: bool


class EditResponse(BaseModel):
    route: RouteModel
    index: Optional[int] = None
    changed: bool = True


class SimplifyRouteResponse(BaseModel):
    route: RouteModel
    removed: int


class SnapResponse(BaseModel):
    route: RouteModel
    points: List[Tuple[float, float]]
    source: Literal["service", "fallback"]
    applied: bool
    distance_m: Optional[float] = None
    duration_s: Optional[float] = None
    warnings: List[str] = Field(default_factory=list)


class OptimizeResponse(BaseModel):
    route: RouteModel
    order: List[int]
    points: List[Tuple[float, float]]
    geometry: List[Tuple[float, float]]
    reordered: bool
    truncated: bool
    considered: int
    source: Literal["service", "fallback", "unchanged"]
    distance_m: Optional[float] = None
    duration_s: Optional[float] = None
    warnings: List[str] = Field(default_factory=list)


class MapRegionModel(BaseModel):
    latitude: float
    longitude: float
    latitude_delta: float
    longitude_delta: float


class TurnModel(BaseModel):
    index: int
    angle: float
    point: Tuple[float, float]


class RouteStatisticsModel(BaseModel):
    distance_km: float
    estimated_minutes: int
    point_count: int
    straight_line_km: float
    efficiency_pct: float
    turns: List[TurnModel]


class MetricsResponse(BaseModel):
    length_m: float
    point_count: int
    snapped: bool
    region: MapRegionModel
    fare_range: Tuple[int, int]
    travel_time_range: Tuple[int, int]
    statistics: RouteStatisticsModel


class CatalogResponse(BaseModel):
    state: Literal["idle", "loading", "ready", "error"]
    error: Optional[str] = None
    routes: List[RouteModel]


class SaveRouteResponse(BaseModel):
    saved: bool
    route: RouteModel
    graph_nodes_linked: int = 0
