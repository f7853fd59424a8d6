"""Route editing endpoints."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import asdict
from typing import Iterator, Literal, Optional

from fastapi import APIRouter, HTTPException, Query, Response, status

from ...errors import NoFeasibleTripError, RouteValidationError, RoutingServiceError
from ...models.domain import RouteAggregate
from ...persistence.database import RouteCatalog, delete_route, fetch_route, save_route, sync_route_graph_nodes
from ...schemas.routes import (
    CatalogResponse,
    CreateRouteRequest,
    EditResponse,
    MetricsResponse,
    OptimizeResponse,
    OptimizeRouteRequest,
    PointRequest,
    ReplacePointsRequest,
    RouteModel,
    SaveRouteResponse,
    SimplifyRouteRequest,
    SimplifyRouteResponse,
    SnapResponse,
)
from ...services.editing import EditingSession, registry
from ...services.export import export_filename, export_route
from ...services.export.geojson import MEDIA_TYPES
from ...services.metrics import compute_metrics
from ...services.routing import OptimizeOptions, RoadConformanceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/routes", tags=["routes"])

conformance = RoadConformanceService()


def route_model(session: EditingSession | None = None, *, route: RouteAggregate | None = None) -> RouteModel:
    route = session.route if session is not None else route
    return RouteModel(
        id=route.id,
        name=route.name,
        code=route.code,
        color=route.color,
        raw_points=route.raw_points,
        snapped_points=route.snapped_points,
        region_id=route.region_id,
        status=route.status,
        length_meters=route.length_meters,
        created_at=route.created_at,
        updated_at=route.updated_at,
        can_undo=session.engine.can_undo if session else False,
        can_redo=session.engine.can_redo if session else False,
    )


def _session(route_id: str) -> EditingSession:
    try:
        return registry.get(route_id)
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Route {route_id} is not open for editing") from exc


@contextmanager
def _bad_request() -> Iterator[None]:
    try:
        yield
    except RouteValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.post("", response_model=RouteModel, status_code=status.HTTP_201_CREATED)
def create_route(payload: CreateRouteRequest) -> RouteModel:
    with _bad_request():
        route = RouteAggregate.create(
            name=payload.name,
            code=payload.code,
            color=payload.color,
            points=[tuple(point) for point in payload.points],
            region_id=payload.region_id,
        )
        session = registry.open(route)
    return route_model(session)


@router.get("/catalog", response_model=CatalogResponse)
def list_persisted_routes(region: Optional[str] = Query(default=None, description="Region id or 'unassigned'.")) -> CatalogResponse:
    catalog = RouteCatalog(region_filter=region)
    catalog.refresh()
    return CatalogResponse(
        state=catalog.state.state.value,
        error=catalog.state.error,
        routes=[route_model(route=route) for route in catalog.routes],
    )


@router.post("/load/{record_id}", response_model=RouteModel, status_code=status.HTTP_201_CREATED)
def load_route(record_id: str) -> RouteModel:
    """Open a persisted route for editing."""
    if record_id in registry:
        return route_model(registry.get(record_id))
    route = fetch_route(record_id)
    if route is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Route {record_id} not found")
    with _bad_request():
        session = registry.open(route, persisted=True)
    return route_model(session)


@router.get("/{route_id}", response_model=RouteModel)
def get_route(route_id: str) -> RouteModel:
    return route_model(_session(route_id))


@router.delete("/{route_id}", response_model=RouteModel)
def close_route(route_id: str, deprecate: bool = Query(default=False, description="Also mark the stored route deprecated.")) -> RouteModel:
    session = _session(route_id)
    if deprecate and session.persisted:
        delete_route(route_id)
        session.route.status = "deprecated"
    registry.close(route_id)
    return route_model(session)


@router.post("/{route_id}/points", response_model=EditResponse, status_code=status.HTTP_201_CREATED)
def add_point(route_id: str, payload: PointRequest) -> EditResponse:
    session = _session(route_id)
    with _bad_request():
        index = session.engine.insert_point((payload.longitude, payload.latitude), payload.position)
    return EditResponse(route=route_model(session), index=index)


@router.put("/{route_id}/points/{index}", response_model=EditResponse)
def move_point(route_id: str, index: int, payload: PointRequest) -> EditResponse:
    session = _session(route_id)
    with _bad_request():
        session.engine.update_point(index, (payload.longitude, payload.latitude))
    return EditResponse(route=route_model(session), index=index)


@router.delete("/{route_id}/points/{index}", response_model=EditResponse)
def remove_point(route_id: str, index: int) -> EditResponse:
    session = _session(route_id)
    with _bad_request():
        session.engine.delete_point(index)
    return EditResponse(route=route_model(session), index=index)


@router.put("/{route_id}/points", response_model=EditResponse)
def replace_points(route_id: str, payload: ReplacePointsRequest) -> EditResponse:
    session = _session(route_id)
    with _bad_request():
        session.engine.replace_points(payload.points)
    return EditResponse(route=route_model(session))


@router.delete("/{route_id}/points", response_model=EditResponse)
def clear_points(route_id: str) -> EditResponse:
    session = _session(route_id)
    session.engine.clear_points()
    return EditResponse(route=route_model(session))


@router.post("/{route_id}/undo", response_model=EditResponse)
def undo(route_id: str) -> EditResponse:
    session = _session(route_id)
    changed = session.engine.undo()
    return EditResponse(route=route_model(session), changed=changed)


@router.post("/{route_id}/redo", response_model=EditResponse)
def redo(route_id: str) -> EditResponse:
    session = _session(route_id)
    changed = session.engine.redo()
    return EditResponse(route=route_model(session), changed=changed)


@router.post("/{route_id}/simplify", response_model=SimplifyRouteResponse)
def simplify(route_id: str, payload: SimplifyRouteRequest | None = None) -> SimplifyRouteResponse:
    session = _session(route_id)
    with _bad_request():
        removed = session.engine.simplify(payload.tolerance if payload else None)
    return SimplifyRouteResponse(route=route_model(session), removed=removed)


@router.post("/{route_id}/snap", response_model=SnapResponse)
async def snap(route_id: str) -> SnapResponse:
    session = _session(route_id)
    with _bad_request():
        result = await conformance.snap_to_road(session.route, session.engine)
    return SnapResponse(
        route=route_model(session),
        points=result.points,
        source=result.source,
        applied=result.applied,
        distance_m=result.distance_m,
        duration_s=result.duration_s,
        warnings=result.warnings,
    )


@router.post("/{route_id}/optimize", response_model=OptimizeResponse)
async def optimize(route_id: str, payload: OptimizeRouteRequest | None = None) -> OptimizeResponse:
    session = _session(route_id)
    payload = payload or OptimizeRouteRequest()
    options = OptimizeOptions(roundtrip=payload.roundtrip, source=payload.source, destination=payload.destination)
    snapshot = list(session.route.raw_points)
    try:
        result = await conformance.optimize_order(route_id, snapshot, options)
    except NoFeasibleTripError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except RoutingServiceError as exc:
        logger.exception(f"Error optimizing route {route_id}: {exc}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    if payload.apply and result.reordered and not result.stale:
        if session.route.raw_points == snapshot:
            with _bad_request():
                session.engine.reorder(result.order)
        else:
            result.warnings.append("Route changed while optimizing; order not applied.")

    return OptimizeResponse(
        route=route_model(session),
        order=result.order,
        points=result.points,
        geometry=result.geometry,
        reordered=result.reordered,
        truncated=result.truncated,
        considered=result.considered,
        source=result.source,
        distance_m=result.distance_m,
        duration_s=result.duration_s,
        warnings=result.warnings,
    )


@router.get("/{route_id}/metrics", response_model=MetricsResponse)
def metrics(route_id: str) -> MetricsResponse:
    session = _session(route_id)
    return MetricsResponse.model_validate(asdict(compute_metrics(session.route)))


@router.get("/{route_id}/export")
def export(route_id: str, format: Literal["geojson", "gpx", "wkt"] = Query(default="geojson")) -> Response:
    session = _session(route_id)
    try:
        content = export_route(session.route, format)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    filename = export_filename(session.route, format)
    return Response(
        content=content,
        media_type=MEDIA_TYPES[format],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/{route_id}/save", response_model=SaveRouteResponse)
def save(route_id: str, link_graph_nodes: bool = Query(default=False)) -> SaveRouteResponse:
    """Persist the route. Newly inserted routes continue editing under their database id."""
    session = _session(route_id)
    try:
        stored = save_route(session.route, persisted=session.persisted)
    except Exception as exc:
        logger.exception(f"Error saving route {route_id}: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to save route: {str(exc)}",
        ) from exc

    if stored is None:
        return SaveRouteResponse(saved=False, route=route_model(session))

    registry.close(route_id)
    new_session = registry.open(stored, persisted=True)
    linked = sync_route_graph_nodes(stored) if link_graph_nodes else 0
    return SaveRouteResponse(saved=True, route=route_model(new_session), graph_nodes_linked=linked)
