"""Geometry request/response schemas."""

from __future__ import annotations

from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field


class CoordinateModel(BaseModel):
    latitude: float
    longitude: float


class NormalizeRequest(BaseModel):
    coordinates: List[Any] = Field(..., description="Raw coordinate pairs in either axis order.")
    axis_order: Optional[Literal["lng_lat", "lat_lng"]] = Field(
        default=None,
        description="Declared axis order. When omitted, each pair is classified heuristically.",
    )


class NormalizeResponse(BaseModel):
    coordinates: List[CoordinateModel]
    dropped: int = Field(..., description="Entries that were not numeric pairs.")


class ExtractRequest(BaseModel):
    geometry: Any = Field(..., description="Point list, LineString, MultiLineString, Feature or a JSON string of one.")


class ExtractResponse(BaseModel):
    coordinates: List[List[Any]]


class SimplifyRequest(BaseModel):
    points: List[List[float]] = Field(..., description="(lng, lat) pairs.")
    tolerance: Optional[float] = Field(default=None, ge=0.0)


class SimplifyResponse(BaseModel):
    points: List[List[float]]
    removed: int
