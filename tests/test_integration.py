import httpx
import pytest
from fastapi.testclient import TestClient

from route_engine.api.routes import routes as routes_api
from route_engine.main import create_app
from route_engine.persistence import database
from route_engine.services.editing import SessionRegistry
from route_engine.services.routing import RoadConformanceService, RoutingClient


def _service(handler) -> RoadConformanceService:
    transport = httpx.MockTransport(handler)
    return RoadConformanceService(
        client_factory=lambda: RoutingClient(
            base_url="http://routing.test", transport=transport, max_retries=0, backoff_seconds=0
        )
    )


def _unreachable(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


@pytest.fixture
def api_client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    monkeypatch.setattr(routes_api, "registry", SessionRegistry())
    monkeypatch.setattr(routes_api, "conformance", _service(_unreachable))
    monkeypatch.setattr(database, "get_supabase_client", lambda: None)
    return TestClient(create_app())


def _create(client: TestClient, points=None) -> dict:
    response = client.post(
        "/api/routes",
        json={"name": "Jeepney 12", "code": "J12", "points": points or []},
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_health(api_client: TestClient) -> None:
    assert api_client.get("/api/health").json() == {"status": "ok"}


def test_geometry_endpoints(api_client: TestClient) -> None:
    normalized = api_client.post("/api/geometry/normalize", json={"coordinates": [[14.5995, 120.9842], "bad"]}).json()
    assert normalized["coordinates"] == [{"latitude": 14.5995, "longitude": 120.9842}]
    assert normalized["dropped"] == 1

    extracted = api_client.post(
        "/api/geometry/extract",
        json={"geometry": {"type": "MultiLineString", "coordinates": [[[1, 2], [3, 4]], [[5, 6]]]}},
    ).json()
    assert extracted["coordinates"] == [[1, 2], [3, 4], [5, 6]]

    simplified = api_client.post(
        "/api/geometry/simplify",
        json={"points": [[0, 0], [1, 0.00001], [2, 0]], "tolerance": 0.0001},
    ).json()
    assert simplified == {"points": [[0.0, 0.0], [2.0, 0.0]], "removed": 1}


def test_create_route_requires_name(api_client: TestClient) -> None:
    response = api_client.post("/api/routes", json={"name": " "})
    assert response.status_code == 400


def test_edit_undo_redo_flow(api_client: TestClient) -> None:
    route_id = _create(api_client)["id"]

    first = api_client.post(f"/api/routes/{route_id}/points", json={"longitude": 120.98, "latitude": 14.59})
    second = api_client.post(f"/api/routes/{route_id}/points", json={"longitude": 120.99, "latitude": 14.60})
    assert first.json()["index"] == 0
    assert second.json()["index"] == 1

    moved = api_client.put(f"/api/routes/{route_id}/points/1", json={"longitude": 121.0, "latitude": 14.61})
    assert moved.json()["route"]["raw_points"][1] == [121.0, 14.61]

    undone = api_client.post(f"/api/routes/{route_id}/undo").json()
    assert undone["changed"] is True
    assert undone["route"]["raw_points"][1] == [120.99, 14.60]
    assert undone["route"]["can_redo"] is True

    api_client.delete(f"/api/routes/{route_id}/points/0")
    state = api_client.get(f"/api/routes/{route_id}").json()
    assert state["raw_points"] == [[120.99, 14.60]]
    assert state["can_redo"] is False


def test_invalid_edits_return_400_and_unknown_routes_404(api_client: TestClient) -> None:
    route_id = _create(api_client, [[120.98, 14.59]])["id"]

    assert api_client.put(f"/api/routes/{route_id}/points/5", json={"longitude": 1, "latitude": 1}).status_code == 400
    assert api_client.post(f"/api/routes/{route_id}/points", json={"longitude": 200, "latitude": 1}).status_code == 400
    assert api_client.post(f"/api/routes/{route_id}/simplify").status_code == 400
    assert api_client.get("/api/routes/missing").status_code == 404


def test_snap_falls_back_when_routing_unreachable(api_client: TestClient) -> None:
    route_id = _create(api_client, [[120.98, 14.59], [120.99, 14.60]])["id"]

    body = api_client.post(f"/api/routes/{route_id}/snap").json()

    assert body["source"] == "fallback"
    assert body["applied"] is False
    assert body["warnings"]
    assert body["route"]["snapped_points"] is None
    assert body["route"]["can_undo"] is False


def test_optimize_applies_returned_order(api_client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "code": "Ok",
                "trips": [{"geometry": {"type": "LineString", "coordinates": [[0, 0], [2, 2], [1, 1]]}}],
                "waypoints": [{"waypoint_index": 0}, {"waypoint_index": 2}, {"waypoint_index": 1}],
            },
        )

    monkeypatch.setattr(routes_api, "conformance", _service(handler))
    route_id = _create(api_client, [[0, 0], [1, 1], [2, 2]])["id"]

    body = api_client.post(f"/api/routes/{route_id}/optimize", json={"roundtrip": False}).json()

    assert body["order"] == [0, 2, 1]
    assert body["route"]["raw_points"] == [[0.0, 0.0], [2.0, 2.0], [1.0, 1.0]]
    assert body["route"]["can_undo"] is True


def test_optimize_without_feasible_trip_returns_422(api_client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        routes_api,
        "conformance",
        _service(lambda request: httpx.Response(200, json={"code": "NoTrips", "message": "no trip"})),
    )
    route_id = _create(api_client, [[0, 0], [1, 1], [2, 2]])["id"]

    assert api_client.post(f"/api/routes/{route_id}/optimize").status_code == 422


def test_metrics_and_export(api_client: TestClient) -> None:
    route_id = _create(api_client, [[120.98, 14.59], [120.99, 14.59], [120.99, 14.60]])["id"]

    metrics = api_client.get(f"/api/routes/{route_id}/metrics").json()
    assert metrics["length_m"] > 0
    assert metrics["fare_range"] == [12, 15]
    assert metrics["statistics"]["turns"][0]["index"] == 1

    geojson = api_client.get(f"/api/routes/{route_id}/export", params={"format": "geojson"})
    assert geojson.headers["content-type"].startswith("application/geo+json")
    assert geojson.json()["geometry"]["type"] == "LineString"

    wkt = api_client.get(f"/api/routes/{route_id}/export", params={"format": "wkt"})
    assert wkt.text.startswith("LINESTRING(")
    assert 'filename="J12.wkt"' in wkt.headers["content-disposition"]


def test_save_without_database_keeps_session(api_client: TestClient) -> None:
    route_id = _create(api_client, [[120.98, 14.59], [120.99, 14.60]])["id"]

    body = api_client.post(f"/api/routes/{route_id}/save").json()

    assert body["saved"] is False
    assert api_client.get(f"/api/routes/{route_id}").status_code == 200


def test_catalog_reports_ready_state(api_client: TestClient) -> None:
    body = api_client.get("/api/routes/catalog").json()

    assert body == {"state": "ready", "error": None, "routes": []}


def test_close_route_ends_session(api_client: TestClient) -> None:
    route_id = _create(api_client)["id"]

    assert api_client.delete(f"/api/routes/{route_id}").status_code == 200
    assert api_client.get(f"/api/routes/{route_id}").status_code == 404


def test_load_save_and_deprecate_persisted_route(api_client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    from test_persistence import FakeSupabase, _record

    fake = FakeSupabase(routes=[_record(id="stored-1")], graph_nodes=[], route_graph_nodes=[])
    monkeypatch.setattr(database, "get_supabase_client", lambda: fake)

    loaded = api_client.post("/api/routes/load/stored-1")
    assert loaded.status_code == 201
    assert loaded.json()["code"] == "R-101"

    api_client.post("/api/routes/stored-1/points", json={"longitude": 121.0, "latitude": 14.61})
    saved = api_client.post("/api/routes/stored-1/save").json()
    assert saved["saved"] is True
    assert len(fake.tables["routes"][0]["geometry"]["coordinates"]) == 3
    assert saved["route"]["can_undo"] is True

    closed = api_client.delete("/api/routes/stored-1", params={"deprecate": True})
    assert closed.json()["status"] == "deprecated"
    assert fake.tables["routes"][0]["status"] == "deprecated"
    assert api_client.post("/api/routes/load/missing").status_code == 404


def test_replace_points_endpoint_is_undoable(api_client: TestClient) -> None:
    route_id = _create(api_client, [[120.98, 14.59]])["id"]

    replaced = api_client.put(
        f"/api/routes/{route_id}/points", json={"points": [[121.0, 14.6], [121.01, 14.61]]}
    ).json()
    assert replaced["route"]["raw_points"] == [[121.0, 14.6], [121.01, 14.61]]
    assert api_client.put(f"/api/routes/{route_id}/points", json={"points": [[0, 95]]}).status_code == 400

    undone = api_client.post(f"/api/routes/{route_id}/undo").json()
    assert undone["route"]["raw_points"] == [[120.98, 14.59]]


def test_snap_endpoint_notifies_session_listeners(api_client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    road = [[120.98, 14.59], [120.985, 14.592], [120.99, 14.60]]

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, json={"code": "Ok", "routes": [{"geometry": {"type": "LineString", "coordinates": road}}]}
        )

    monkeypatch.setattr(routes_api, "conformance", _service(handler))
    route_id = _create(api_client, [[120.98, 14.59], [120.99, 14.60]])["id"]
    drawn = []
    routes_api.registry.get(route_id).engine.subscribe(lambda route: drawn.append(route.displayed_points))

    body = api_client.post(f"/api/routes/{route_id}/snap").json()

    assert body["applied"] is True
    assert body["route"]["snapped_points"] == road
    assert drawn == [[tuple(point) for point in road]]
    assert body["route"]["can_undo"] is False
