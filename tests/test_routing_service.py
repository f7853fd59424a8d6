import asyncio
import json

import httpx
import pytest

from route_engine.errors import NoFeasibleTripError, RouteValidationError, RoutingServiceError
from route_engine.models.domain import RouteAggregate
from route_engine.services.routing import OptimizeOptions, RoadConformanceService, RoutingClient, check_health
from route_engine.services.routing.client import decode_polyline, format_waypoints, parse_geometry

BASE_URL = "http://routing.test"


def _client_factory(handler, **kwargs):
    transport = httpx.MockTransport(handler)

    def factory() -> RoutingClient:
        return RoutingClient(base_url=BASE_URL, transport=transport, max_retries=0, backoff_seconds=0, **kwargs)

    return factory


def _waypoints_from(request: httpx.Request) -> list[tuple[float, float]]:
    segment = request.url.path.rsplit("/", 1)[-1]
    return [tuple(float(value) for value in pair.split(",")) for pair in segment.split(";")]


def _route(points) -> RouteAggregate:
    return RouteAggregate.create(name="Jeepney 1", points=points)


def _route_ok(request: httpx.Request) -> httpx.Response:
    waypoints = _waypoints_from(request)
    middle = ((waypoints[0][0] + waypoints[-1][0]) / 2, waypoints[0][1])
    coordinates = [list(waypoints[0]), list(middle), list(waypoints[-1])]
    return httpx.Response(
        200,
        json={
            "code": "Ok",
            "routes": [{"geometry": {"type": "LineString", "coordinates": coordinates}, "distance": 1500.0, "duration": 300.0}],
        },
    )


def _unreachable(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


def test_format_waypoints_uses_lng_lat_order() -> None:
    assert format_waypoints([(120.98, 14.59), (121.0, 14.6)]) == "120.98,14.59;121.0,14.6"


def test_route_request_wire_format() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        return _route_ok(request)

    client = _client_factory(handler, access_token="secret")()
    geometry = asyncio.run(client.route([(120.98, 14.59), (121.0, 14.6)]))

    assert seen["url"].path == "/route/v1/driving/120.98,14.59;121.0,14.6"
    assert seen["url"].params["geometries"] == "geojson"
    assert seen["url"].params["overview"] == "full"
    assert seen["url"].params["access_token"] == "secret"
    assert geometry.distance_m == 1500.0
    assert len(geometry.points) == 3


def test_snap_sets_snapped_points_without_touching_history() -> None:
    route = _route([(120.98, 14.59), (121.0, 14.6)])
    service = RoadConformanceService(client_factory=_client_factory(_route_ok))

    result = asyncio.run(service.snap_to_road(route))

    assert result.source == "service"
    assert result.applied
    assert route.snapped_points == result.points
    assert route.raw_points == [(120.98, 14.59), (121.0, 14.6)]
    assert route.history == [] and route.future == []


def test_snap_against_unreachable_service_falls_back_to_raw_points() -> None:
    route = _route([(120.98, 14.59), (121.0, 14.6), (121.02, 14.61)])
    service = RoadConformanceService(client_factory=_client_factory(_unreachable))

    result = asyncio.run(service.snap_to_road(route))

    assert result.source == "fallback"
    assert result.points == route.raw_points
    assert result.warnings
    assert route.snapped_points is None
    assert route.displayed_points == route.raw_points
    assert route.history == []


def test_snap_with_no_road_found_falls_back() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"code": "NoRoute", "message": "Impossible route"})

    route = _route([(120.98, 14.59), (121.0, 14.6)])
    result = asyncio.run(RoadConformanceService(client_factory=_client_factory(handler)).snap_to_road(route))

    assert result.source == "fallback"
    assert route.snapped_points is None


def test_snap_requires_two_points() -> None:
    service = RoadConformanceService(client_factory=_client_factory(_route_ok))

    with pytest.raises(RouteValidationError):
        asyncio.run(service.snap_to_road(_route([(120.98, 14.59)])))


def test_snap_without_configured_service_falls_back(monkeypatch) -> None:
    from route_engine.config import settings

    monkeypatch.setattr(settings, "routing_base_url", None)
    route = _route([(120.98, 14.59), (121.0, 14.6)])

    result = asyncio.run(RoadConformanceService().snap_to_road(route))

    assert result.source == "fallback"
    assert route.snapped_points is None


def test_overlapping_snaps_apply_only_latest() -> None:
    async def scenario():
        first_started = asyncio.Event()
        release_first = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            if not first_started.is_set():
                first_started.set()
                await release_first.wait()
                return httpx.Response(
                    200,
                    json={"code": "Ok", "routes": [{"geometry": {"type": "LineString", "coordinates": [[0, 0], [9, 9]]}}]},
                )
            return _route_ok(request)

        route = _route([(120.98, 14.59), (121.0, 14.6)])
        service = RoadConformanceService(client_factory=_client_factory(handler))
        first = asyncio.create_task(service.snap_to_road(route))
        await first_started.wait()
        second = await service.snap_to_road(route)
        release_first.set()
        return route, await first, second

    route, first, second = asyncio.run(scenario())

    assert second.applied
    assert first.stale and not first.applied
    assert route.snapped_points == second.points


def test_optimize_truncates_to_twelve_waypoints() -> None:
    sent = {}

    def handler(request: httpx.Request) -> httpx.Response:
        waypoints = _waypoints_from(request)
        sent["count"] = len(waypoints)
        sent["params"] = dict(request.url.params)
        return httpx.Response(
            200,
            json={
                "code": "Ok",
                "trips": [{"geometry": {"type": "LineString", "coordinates": [list(p) for p in waypoints]}}],
                "waypoints": [{"waypoint_index": i} for i in range(len(waypoints))],
            },
        )

    points = [(120.9 + i * 0.001, 14.5 + i * 0.001) for i in range(15)]
    service = RoadConformanceService(client_factory=_client_factory(handler))

    result = asyncio.run(service.optimize_order("route-1", points, OptimizeOptions(roundtrip=False)))

    assert sent["count"] == 12
    assert sent["params"]["roundtrip"] == "false"
    assert sent["params"]["source"] == "first"
    assert result.truncated
    assert result.considered == 12
    assert any("12" in warning for warning in result.warnings)
    assert result.order == list(range(12))
    assert not result.reordered


def test_optimize_returns_permutation_from_waypoint_indexes() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        # inputs 0..3 visited as 0, 2, 1, 3
        return httpx.Response(
            200,
            json={
                "code": "Ok",
                "trips": [{"geometry": {"type": "LineString", "coordinates": [[0, 0], [2, 2], [1, 1], [3, 3]]}, "distance": 10.0}],
                "waypoints": [{"waypoint_index": 0}, {"waypoint_index": 2}, {"waypoint_index": 1}, {"waypoint_index": 3}],
            },
        )

    points = [(0.0, 0.0), (1.0, 1.0), (2.0, 2.0), (3.0, 3.0)]
    result = asyncio.run(RoadConformanceService(client_factory=_client_factory(handler)).optimize_order("r", points))

    assert result.order == [0, 2, 1, 3]
    assert result.points == [(0.0, 0.0), (2.0, 2.0), (1.0, 1.0), (3.0, 3.0)]
    assert result.reordered
    assert result.source == "service"


def test_optimize_short_paths_are_unchanged() -> None:
    service = RoadConformanceService(client_factory=_client_factory(_unreachable))

    result = asyncio.run(service.optimize_order("r", [(0.0, 0.0), (1.0, 1.0)]))

    assert result.source == "unchanged"
    assert result.order == [0, 1]
    assert not result.reordered


def test_optimize_falls_back_to_identity_when_unreachable() -> None:
    service = RoadConformanceService(client_factory=_client_factory(_unreachable))
    points = [(0.0, 0.0), (1.0, 1.0), (2.0, 2.0)]

    result = asyncio.run(service.optimize_order("r", points))

    assert result.source == "fallback"
    assert result.order == [0, 1, 2]
    assert result.warnings


def test_optimize_raises_when_no_trip_exists() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"code": "NoTrips", "message": "No trip visiting all destinations possible."})

    service = RoadConformanceService(client_factory=_client_factory(handler))

    with pytest.raises(NoFeasibleTripError):
        asyncio.run(service.optimize_order("r", [(0.0, 0.0), (1.0, 1.0), (2.0, 2.0)]))


def test_client_retries_server_errors_then_succeeds() -> None:
    attempts = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["count"] += 1
        if attempts["count"] < 3:
            return httpx.Response(503, text="busy")
        return _route_ok(request)

    client = RoutingClient(base_url=BASE_URL, transport=httpx.MockTransport(handler), max_retries=2, backoff_seconds=0)
    geometry = asyncio.run(client.route([(120.98, 14.59), (121.0, 14.6)]))

    assert attempts["count"] == 3
    assert geometry is not None


def test_client_does_not_retry_client_errors() -> None:
    attempts = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["count"] += 1
        return httpx.Response(401, json={"message": "Not Authorized"})

    client = RoutingClient(base_url=BASE_URL, transport=httpx.MockTransport(handler), max_retries=3, backoff_seconds=0)

    with pytest.raises(RoutingServiceError):
        asyncio.run(client.route([(120.98, 14.59), (121.0, 14.6)]))
    assert attempts["count"] == 1


def test_client_requires_base_url(monkeypatch) -> None:
    from route_engine.config import settings

    monkeypatch.setattr(settings, "routing_base_url", None)
    with pytest.raises(ValueError):
        RoutingClient()


def test_parse_geometry_reads_geojson_and_polyline() -> None:
    assert parse_geometry({"type": "LineString", "coordinates": [[1, 2], [3, 4]]}) == [(1.0, 2.0), (3.0, 4.0)]
    # Reference example from the polyline algorithm documentation.
    decoded = decode_polyline("_p~iF~ps|U_ulLnnqC_mqNvxq`@")
    assert decoded[0] == pytest.approx((38.5, -120.2))
    assert parse_geometry("_p~iF~ps|U_ulLnnqC_mqNvxq`@")[0] == pytest.approx((-120.2, 38.5))
    assert parse_geometry(None) == []


def test_check_health_reports_reachability() -> None:
    assert asyncio.run(check_health(BASE_URL, transport=httpx.MockTransport(_route_ok))) is True
    assert asyncio.run(check_health(BASE_URL, transport=httpx.MockTransport(_unreachable))) is False


def test_optimize_does_not_supersede_an_in_flight_snap() -> None:
    async def scenario():
        snap_started = asyncio.Event()
        release_snap = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.startswith("/trip/"):
                return httpx.Response(
                    200,
                    json={
                        "code": "Ok",
                        "trips": [{"geometry": {"type": "LineString", "coordinates": [[0, 0], [1, 1], [2, 2]]}}],
                        "waypoints": [{"waypoint_index": 0}, {"waypoint_index": 1}, {"waypoint_index": 2}],
                    },
                )
            snap_started.set()
            await release_snap.wait()
            return _route_ok(request)

        route = _route([(120.98, 14.59), (120.99, 14.595), (121.0, 14.6)])
        service = RoadConformanceService(client_factory=_client_factory(handler))
        snap = asyncio.create_task(service.snap_to_road(route))
        await snap_started.wait()
        optimized = await service.optimize_order(route.id, route.raw_points)
        release_snap.set()
        return route, await snap, optimized

    route, snap, optimized = asyncio.run(scenario())

    assert not optimized.stale
    assert snap.applied and not snap.stale
    assert route.snapped_points == snap.points
