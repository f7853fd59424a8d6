"""Supabase persistence for routes, regions, points of interest and graph-node links."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Sequence

from ..config import settings
from ..db.supabase import get_supabase_client
from ..models.domain import LngLat, PointOfInterest, Region, RouteAggregate, clone_points
from ..services.geometry import AxisOrder, extract_coordinates, normalize_coordinates
from ..services.geospatial import project_onto_polyline
from ..services.metrics import route_length_m
from ..services.state import LoadStateMachine

logger = logging.getLogger(__name__)

UNASSIGNED_REGION = "unassigned"
DEFAULT_LINE_COLOR = "#0066CC"


@dataclass(slots=True)
class GraphNodeLink:
    route_id: str
    graph_node_id: str
    order_index: int
    distance_along_m: float
    offset_m: float

    def to_record(self) -> dict[str, Any]:
        return {
            "route_id": self.route_id,
            "graph_node_id": self.graph_node_id,
            "order_index": self.order_index,
        }


def _parse_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Ignoring unparseable timestamp {value!r}")
        return None


def _points_from_geometry(geometry: Any) -> list[LngLat]:
    """Stored geometries are GeoJSON, so pairs are always (lng, lat)."""
    if isinstance(geometry, dict) and geometry.get("type") == "Point":
        raw_pairs: list[Any] = [geometry.get("coordinates")]
    else:
        raw_pairs = extract_coordinates(geometry)
    return [coordinate.as_lng_lat() for coordinate in normalize_coordinates(raw_pairs, axis_order=AxisOrder.LNG_LAT)]


def route_from_record(record: dict[str, Any]) -> RouteAggregate:
    """Build an editable aggregate from a ``routes`` row.

    ``geometry`` holds the raw path, ``stops_snapshot`` the last snapped path.
    History always starts empty.
    """
    geometry = record.get("geometry") or {}
    properties = (geometry.get("properties") or {}) if isinstance(geometry, dict) else {}
    snapshot = record.get("stops_snapshot")
    snapped = _points_from_geometry(snapshot) if snapshot else None

    return RouteAggregate(
        id=str(record["id"]),
        name=properties.get("name") or record.get("route_code") or "",
        code=record.get("route_code") or "",
        color=properties.get("color") or DEFAULT_LINE_COLOR,
        raw_points=_points_from_geometry(geometry) if geometry else [],
        snapped_points=snapped or None,
        region_id=record.get("region_id"),
        status=record.get("status") or "draft",
        length_meters=record.get("length_meters"),
        created_at=_parse_timestamp(record.get("created_at")),
        updated_at=_parse_timestamp(record.get("updated_at")),
    )


def route_to_record(route: RouteAggregate, *, now: datetime | None = None) -> dict[str, Any]:
    """Serialize the aggregate into a ``routes`` row (without ``id``)."""
    timestamp = (now or datetime.now(timezone.utc)).isoformat()
    return {
        "route_code": route.code or f"ROUTE_{int(datetime.now(timezone.utc).timestamp() * 1000)}",
        "status": route.status or "draft",
        "geometry": {
            "type": "LineString",
            "coordinates": [list(point) for point in route.raw_points],
            "properties": {"color": route.color, "name": route.name or route.code},
        },
        "stops_snapshot": (
            {"type": "LineString", "coordinates": [list(point) for point in route.snapped_points]}
            if route.snapped_points
            else None
        ),
        "length_meters": round(route_length_m(route.raw_points)),
        "last_geometry_update_at": timestamp,
        "region_id": route.region_id or None,
        "updated_at": timestamp,
    }


def fetch_routes(region_filter: str | None = None) -> list[RouteAggregate]:
    """Active routes, newest first.

    ``region_filter`` is a region id, ``"unassigned"`` for routes without a
    region, or ``None`` for everything. Query errors propagate.
    """
    supabase = get_supabase_client()
    if not supabase:
        logger.info("Supabase not configured - no persisted routes to load")
        return []

    query = (
        supabase.table("routes")
        .select("*")
        .is_("deleted_at", "null")
        .neq("status", "deprecated")
        .order("created_at", desc=True)
    )
    if region_filter == UNASSIGNED_REGION:
        query = query.is_("region_id", "null")
    elif region_filter:
        query = query.eq("region_id", region_filter)

    response = query.execute()
    routes = [route_from_record(record) for record in (response.data or [])]
    logger.info(f"Loaded {len(routes)} routes (filter={region_filter or 'all'})")
    return routes


def fetch_route(route_id: str) -> RouteAggregate | None:
    supabase = get_supabase_client()
    if not supabase:
        return None
    response = supabase.table("routes").select("*").eq("id", route_id).limit(1).execute()
    rows = response.data or []
    return route_from_record(rows[0]) if rows else None


def save_route(route: RouteAggregate, *, persisted: bool = False) -> RouteAggregate | None:
    """Insert or update ``route`` and return the stored version.

    ``persisted`` marks routes that already exist in the table (loaded from
    it or saved before); others are inserted and receive a database id.
    Returns ``None`` when Supabase is not configured.
    """
    supabase = get_supabase_client()
    if not supabase:
        logger.info("Supabase not configured - route kept in memory only")
        return None

    record = route_to_record(route)
    if persisted:
        response = supabase.table("routes").update(record).eq("id", route.id).execute()
    else:
        response = supabase.table("routes").insert([record]).execute()

    rows = response.data or []
    if not rows:
        logger.warning(f"Saving route {route.id} returned no rows")
        return None

    stored = route_from_record(rows[0])
    # The editing session keeps its undo stacks across saves.
    stored.history = [clone_points(snapshot) for snapshot in route.history]
    stored.future = [clone_points(snapshot) for snapshot in route.future]
    logger.info(f"Saved route {stored.id} ({len(stored.raw_points)} points, {stored.length_meters} m)")
    return stored


def delete_route(route_id: str) -> bool:
    """Soft delete: the row is kept and marked deprecated."""
    supabase = get_supabase_client()
    if not supabase:
        return False
    timestamp = datetime.now(timezone.utc).isoformat()
    supabase.table("routes").update({"deleted_at": timestamp, "status": "deprecated"}).eq("id", route_id).execute()
    logger.info(f"Route {route_id} marked deprecated")
    return True


def fetch_regions(active_only: bool = True) -> list[Region]:
    supabase = get_supabase_client()
    if not supabase:
        return []

    try:
        query = supabase.table("regions").select("region_id, name, code, is_active")
        if active_only:
            query = query.eq("is_active", True)
        response = query.order("name").execute()
    except Exception as e:
        logger.warning(f"Failed to fetch regions: {e}")
        return []

    return [
        Region(
            id=str(row["region_id"]),
            name=row.get("name") or "",
            code=row.get("code"),
            is_active=bool(row.get("is_active", True)),
        )
        for row in (response.data or [])
    ]


def _poi_from_record(row: dict[str, Any]) -> PointOfInterest | None:
    points = _points_from_geometry(row.get("geometry"))
    if not points:
        logger.warning(f"POI {row.get('id')} has no usable geometry, skipping")
        return None
    return PointOfInterest(
        id=str(row["id"]),
        type=row.get("type") or "other",
        name=row.get("name") or "",
        location=points[0],
        metadata=row.get("metadata") or {},
        region_id=row.get("region_id"),
    )


def fetch_pois(region_id: str | None = None) -> list[PointOfInterest]:
    supabase = get_supabase_client()
    if not supabase:
        return []

    try:
        query = supabase.table("points_of_interest").select("id, name, type, geometry, region_id, metadata")
        if region_id:
            query = query.eq("region_id", region_id)
        response = query.order("name").execute()
    except Exception as e:
        logger.warning(f"Failed to fetch points of interest: {e}")
        return []

    pois = (_poi_from_record(row) for row in (response.data or []))
    return [poi for poi in pois if poi is not None]


def link_route_graph_nodes(
    route_id: str,
    coordinates: Sequence[LngLat],
    nodes: Iterable[dict[str, Any]],
    threshold_m: float | None = None,
) -> list[GraphNodeLink]:
    """Graph nodes lying on the route, in travel order.

    ``nodes`` are ``graph_nodes`` rows (``id``, ``lat``, ``lng``). A node is
    linked when it is within ``threshold_m`` of the polyline; links are
    ordered by distance along the route and numbered from 1.
    """
    threshold = settings.graph_node_threshold_m if threshold_m is None else threshold_m
    if len(coordinates) < 2:
        return []

    candidates: list[tuple[float, float, str]] = []
    seen: set[str] = set()
    for node in nodes:
        node_id = str(node["id"])
        if node_id in seen:
            continue
        position = (float(node["lng"]), float(node["lat"]))
        _, along, offset = project_onto_polyline(coordinates, position)
        if offset <= threshold:
            candidates.append((along, offset, node_id))
            seen.add(node_id)

    candidates.sort(key=lambda candidate: (candidate[0], candidate[1]))
    return [
        GraphNodeLink(route_id=route_id, graph_node_id=node_id, order_index=index, distance_along_m=along, offset_m=offset)
        for index, (along, offset, node_id) in enumerate(candidates, start=1)
    ]


def sync_route_graph_nodes(route: RouteAggregate, threshold_m: float | None = None) -> int:
    """Recompute and store ``route_graph_nodes`` rows for ``route``. Returns the link count."""
    supabase = get_supabase_client()
    if not supabase:
        logger.info("Supabase not configured - graph node links not updated")
        return 0

    coordinates = route.displayed_points
    if len(coordinates) < 2:
        logger.warning(f"Route {route.id} has fewer than two points, skipping graph node linking")
        return 0

    nodes = supabase.table("graph_nodes").select("id, lat, lng").execute().data or []
    links = link_route_graph_nodes(route.id, coordinates, nodes, threshold_m)

    supabase.table("route_graph_nodes").delete().eq("route_id", route.id).execute()
    if links:
        supabase.table("route_graph_nodes").insert([link.to_record() for link in links]).execute()
    logger.info(f"Route {route.id}: {len(links)} graph nodes linked")
    return len(links)


class RouteCatalog:
    """Route list for one region filter, tracked through a load-state machine."""

    def __init__(self, region_filter: str | None = None) -> None:
        self.region_filter = region_filter
        self.state: LoadStateMachine[list[RouteAggregate]] = LoadStateMachine(name="routes")

    def refresh(self) -> list[RouteAggregate]:
        self.state.start()
        try:
            routes = fetch_routes(self.region_filter)
        except Exception as e:
            logger.error(f"Failed to load routes: {e}")
            self.state.fail(e)
            return list(self.state.data or [])
        self.state.succeed(routes)
        return routes

    @property
    def routes(self) -> list[RouteAggregate]:
        return list(self.state.data or [])
