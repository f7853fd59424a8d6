"""Stateless geometry endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from ...errors import RouteValidationError
from ...schemas.geometry import (
    CoordinateModel,
    ExtractRequest,
    ExtractResponse,
    NormalizeRequest,
    NormalizeResponse,
    SimplifyRequest,
    SimplifyResponse,
)
from ...services.geometry import AxisOrder, extract_coordinates, normalize_coordinates, simplify_path

router = APIRouter(prefix="/geometry", tags=["geometry"])


@router.post("/normalize", response_model=NormalizeResponse)
def normalize(payload: NormalizeRequest) -> NormalizeResponse:
    axis_order = AxisOrder(payload.axis_order) if payload.axis_order else None
    coordinates = normalize_coordinates(payload.coordinates, axis_order=axis_order)
    return NormalizeResponse(
        coordinates=[CoordinateModel(latitude=c.latitude, longitude=c.longitude) for c in coordinates],
        dropped=len(payload.coordinates) - len(coordinates),
    )


@router.post("/extract", response_model=ExtractResponse)
def extract(payload: ExtractRequest) -> ExtractResponse:
    return ExtractResponse(coordinates=extract_coordinates(payload.geometry))


@router.post("/simplify", response_model=SimplifyResponse)
def simplify(payload: SimplifyRequest) -> SimplifyResponse:
    try:
        points = simplify_path([tuple(point[:2]) for point in payload.points], payload.tolerance)
    except RouteValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return SimplifyResponse(points=[list(point) for point in points], removed=len(payload.points) - len(points))
