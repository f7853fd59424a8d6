"""Async HTTP client for the external routing service (OSRM or Mapbox compatible)."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

import httpx

from ...config import settings
from ...errors import RoutingServiceError
from ...models.domain import LngLat
from .models import OptimizeOptions, RoadGeometry, TripGeometry

logger = logging.getLogger(__name__)

# Response codes meaning "the service worked but found nothing", as opposed to a transport failure.
NO_RESULT_CODES = frozenset({"NoRoute", "NoTrips", "NoSegment", "NoMatch"})


def format_waypoints(points: Sequence[LngLat]) -> str:
    """Render (lng, lat) points as the service's ``lng,lat;lng,lat`` path segment."""
    return ";".join(f"{lng},{lat}" for lng, lat in points)


class RoutingClient:
    def __init__(
        self,
        base_url: str | None = None,
        profile: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        access_token: str | None = None,
        snap_endpoint: str | None = None,
        optimize_endpoint: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.routing_base_url or "").rstrip("/")
        if not self.base_url:
            raise ValueError("Routing service base URL is not configured.")
        self.profile = profile or settings.routing_profile
        self.timeout = timeout if timeout is not None else settings.routing_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.routing_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.routing_backoff_seconds
        self.access_token = access_token if access_token is not None else settings.routing_access_token
        self.snap_endpoint = (snap_endpoint or settings.routing_snap_endpoint).strip("/")
        self.optimize_endpoint = (optimize_endpoint or settings.routing_optimize_endpoint).strip("/")
        self._transport = transport

    def _get_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 10.0)),
            transport=self._transport,
        )

    def _url(self, endpoint: str, points: Sequence[LngLat]) -> str:
        return f"{self.base_url}/{endpoint}/{self.profile}/{format_waypoints(points)}"

    def _params(self, params: dict[str, str]) -> dict[str, str]:
        if self.access_token:
            return {**params, "access_token": self.access_token}
        return params

    async def _get_json(self, url: str, params: dict[str, str]) -> dict[str, Any]:
        """GET with retries. Answers carrying a routing ``code`` are returned even on 4xx."""
        async with self._get_client() as client:
            attempt = 0
            while True:
                try:
                    response = await client.get(url, params=self._params(params))
                    if response.status_code >= 400:
                        data = _json_or_none(response)
                        if response.status_code < 500 and data and "code" in data:
                            return data
                        response.raise_for_status()
                    data = response.json()
                    if not isinstance(data, dict):
                        raise ValueError("Routing service returned a non-object JSON payload.")
                    return data
                except httpx.HTTPStatusError as exc:
                    attempt += 1
                    if exc.response.status_code < 500 or attempt > self.max_retries:
                        raise RoutingServiceError(
                            f"Routing service returned HTTP {exc.response.status_code} for {self.base_url}"
                        ) from exc
                    await asyncio.sleep(self.backoff_seconds * attempt)
                except httpx.TimeoutException as exc:
                    attempt += 1
                    if attempt > self.max_retries:
                        logger.warning(f"Routing request timed out after {self.max_retries} retries: {exc}")
                        raise RoutingServiceError(f"Routing service at {self.base_url} timed out") from exc
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"Routing timeout, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})")
                    await asyncio.sleep(wait_time)
                except (httpx.TransportError, OSError) as exc:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise RoutingServiceError(
                            f"Failed to connect to routing service at {self.base_url}: {exc}"
                        ) from exc
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(
                        f"Routing network error, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries}): {exc}"
                    )
                    await asyncio.sleep(wait_time)
                except ValueError as exc:
                    raise RoutingServiceError(f"Unreadable routing response: {exc}") from exc

    async def route(self, points: Sequence[LngLat]) -> RoadGeometry | None:
        """Road-following geometry through ``points`` in order, or ``None`` when no route exists."""
        if len(points) < 2:
            raise ValueError("At least two coordinates are required for a route request.")

        data = await self._get_json(
            self._url(self.snap_endpoint, points),
            {"geometries": "geojson", "overview": "full", "steps": "false"},
        )
        code = data.get("code")
        routes = data.get("routes") or []
        if code in NO_RESULT_CODES or (code == "Ok" and not routes):
            logger.info(f"Routing service found no route ({code}): {data.get('message', '')}")
            return None
        if code != "Ok":
            raise RoutingServiceError(f"Route request failed: {code}: {data.get('message', 'Unknown error')}")

        best = routes[0]
        geometry = parse_geometry(best.get("geometry"))
        if len(geometry) < 2:
            return None
        return RoadGeometry(
            points=geometry,
            distance_m=float(best.get("distance") or 0.0),
            duration_s=float(best.get("duration") or 0.0),
        )

    async def trip(self, points: Sequence[LngLat], options: OptimizeOptions | None = None) -> TripGeometry | None:
        """Shortest visiting order for ``points``, or ``None`` when the service finds no trip."""
        if len(points) < 2:
            raise ValueError("At least two coordinates are required for a trip request.")
        options = options or OptimizeOptions()

        data = await self._get_json(
            self._url(self.optimize_endpoint, points),
            {
                "roundtrip": str(options.roundtrip).lower(),
                "source": options.source,
                "destination": options.destination,
                "geometries": "geojson",
                "overview": "full",
            },
        )
        code = data.get("code")
        trips = data.get("trips") or []
        if code in NO_RESULT_CODES or (code == "Ok" and not trips):
            logger.info(f"Routing service found no trip ({code}): {data.get('message', '')}")
            return None
        if code != "Ok":
            raise RoutingServiceError(f"Trip request failed: {code}: {data.get('message', 'Unknown error')}")

        waypoints = data.get("waypoints") or []
        if len(waypoints) != len(points):
            raise RoutingServiceError(
                f"Trip response has {len(waypoints)} waypoints for {len(points)} input points."
            )
        # waypoints come back in input order; waypoint_index is each input's slot in the trip
        order = sorted(range(len(waypoints)), key=lambda i: waypoints[i].get("waypoint_index", i))
        trip = trips[0]
        return TripGeometry(
            order=order,
            points=parse_geometry(trip.get("geometry")),
            distance_m=float(trip.get("distance") or 0.0),
            duration_s=float(trip.get("duration") or 0.0),
        )


def _json_or_none(response: httpx.Response) -> dict[str, Any] | None:
    try:
        data = response.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def parse_geometry(geometry: Any) -> list[LngLat]:
    """Read a GeoJSON LineString or an encoded polyline into (lng, lat) points."""
    if isinstance(geometry, dict):
        return [(float(pair[0]), float(pair[1])) for pair in geometry.get("coordinates") or [] if len(pair) >= 2]
    if isinstance(geometry, str) and geometry:
        return [(lon, lat) for lat, lon in decode_polyline(geometry)]
    return []


def decode_polyline(polyline: str, precision: int = 5) -> list[tuple[float, float]]:
    """Decode Google polyline string to list of (lat, lon) coordinates.

    OSRM answers with this encoding unless ``geometries=geojson`` is requested.
    """
    coordinates = []
    index = 0
    lat = 0
    lon = 0
    factor = 10 ** precision

    while index < len(polyline):
        # Decode latitude
        shift = 0
        result = 0
        while True:
            b = ord(polyline[index]) - 63
            index += 1
            result |= (b & 0x1f) << shift
            shift += 5
            if b < 0x20:
                break
        dlat = ~(result >> 1) if (result & 1) else (result >> 1)
        lat += dlat

        # Decode longitude
        shift = 0
        result = 0
        while True:
            b = ord(polyline[index]) - 63
            index += 1
            result |= (b & 0x1f) << shift
            shift += 5
            if b < 0x20:
                break
        dlon = ~(result >> 1) if (result & 1) else (result >> 1)
        lon += dlon

        coordinates.append((lat / factor, lon / factor))

    return coordinates


async def check_health(base_url: str | None = None, transport: httpx.AsyncBaseTransport | None = None) -> bool:
    """Check routing service health with a minimal two-point route request.

    Public OSRM endpoints have no /health route, so a short route in Manila
    is requested instead.
    """
    try:
        client = RoutingClient(base_url=base_url, max_retries=0, timeout=5.0, transport=transport)
    except ValueError:
        return False
    try:
        result = await client.route([(120.9842, 14.5995), (120.9900, 14.6042)])
    except RoutingServiceError:
        return False
    return result is not None
