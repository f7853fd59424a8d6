"""Road snapping and waypoint-order optimization with fallback and truncation policy."""

from __future__ import annotations

import logging
from typing import Callable, Dict, Literal, Sequence, Tuple

from ...config import settings
from ...errors import NoFeasibleTripError, RouteValidationError, RoutingServiceError
from ...models.domain import LngLat, RouteAggregate, clone_points
from ..editing.engine import EditEngine
from .client import RoutingClient
from .models import OptimizeOptions, OptimizeResult, SnapResult

logger = logging.getLogger(__name__)

Operation = Literal["snap", "optimize"]


class RoadConformanceService:
    """Calls the routing service on behalf of editing sessions.

    Neither operation touches ``raw_points``, ``history`` or ``future``.
    Transport failures are turned into deterministic fallbacks with a
    warning. When two requests of the same kind overlap on a route, only the
    most recent one is applied; earlier responses come back marked ``stale``.
    Snap and optimize requests do not supersede each other.
    """

    def __init__(
        self,
        client_factory: Callable[[], RoutingClient] | None = None,
        max_waypoints: int | None = None,
    ) -> None:
        self._client_factory = client_factory or RoutingClient
        self.max_waypoints = max_waypoints if max_waypoints is not None else settings.optimize_max_waypoints
        self._tokens: Dict[Tuple[str, Operation], int] = {}

    def _next_token(self, route_id: str, operation: Operation) -> int:
        key = (route_id, operation)
        token = self._tokens.get(key, 0) + 1
        self._tokens[key] = token
        return token

    def _is_current(self, route_id: str, operation: Operation, token: int) -> bool:
        return self._tokens.get((route_id, operation)) == token

    def _client(self) -> RoutingClient:
        try:
            return self._client_factory()
        except ValueError as exc:
            raise RoutingServiceError(f"Routing service is not configured: {exc}") from exc

    async def snap_to_road(self, route: RouteAggregate, engine: EditEngine | None = None) -> SnapResult:
        """Replace ``route.snapped_points`` with a road-following path.

        When ``engine`` is given the path is installed through it so that its
        listeners (the map layer) redraw.

        On failure the raw points are returned as a straight-line path and
        ``snapped_points`` is left unset.
        """
        if len(route.raw_points) < 2:
            raise RouteValidationError("At least two points are required to snap a route to roads.")

        waypoints = clone_points(route.raw_points)
        token = self._next_token(route.id, "snap")
        warnings: list[str] = []
        geometry = None
        try:
            geometry = await self._client().route(waypoints)
            if geometry is None:
                warnings.append("Routing service found no road path; showing straight-line path.")
        except RoutingServiceError as exc:
            logger.warning(f"Snap request for route {route.id} failed: {exc}. Using straight-line path.")
            warnings.append(f"Road snapping unavailable ({exc}); showing straight-line path.")

        stale = not self._is_current(route.id, "snap", token)
        if geometry is None:
            return SnapResult(route_id=route.id, points=waypoints, source="fallback", warnings=warnings, stale=stale)

        result = SnapResult(
            route_id=route.id,
            points=geometry.points,
            source="service",
            distance_m=geometry.distance_m,
            duration_s=geometry.duration_s,
            warnings=warnings,
            stale=stale,
        )
        if stale:
            logger.info(f"Discarding superseded snap response for route {route.id} (token {token})")
            result.warnings.append("A newer snap request superseded this one; result not applied.")
            return result
        if route.raw_points != waypoints:
            # The path was edited while the request was in flight.
            result.stale = True
            result.warnings.append("Route changed while snapping; result not applied.")
            return result

        if engine is not None:
            engine.set_snapped(geometry.points)
        else:
            route.snapped_points = clone_points(geometry.points)
        logger.info(f"Route {route.id}: snapped {len(waypoints)} waypoints to {len(geometry.points)} road points")
        return result

    async def optimize_order(
        self,
        route_id: str,
        points: Sequence[LngLat],
        options: OptimizeOptions | None = None,
    ) -> OptimizeResult:
        """Compute a shorter visiting order for ``points``.

        Only the first ``max_waypoints`` points are sent; the truncation is
        recorded on the result. Transport failures fall back to the original
        order. A service answer of "no trip" raises :class:`NoFeasibleTripError`.
        """
        points = clone_points(list(points))
        if len(points) < 3:
            return OptimizeResult(
                route_id=route_id,
                order=list(range(len(points))),
                points=points,
                geometry=points,
                reordered=False,
                considered=len(points),
                source="unchanged",
            )

        warnings: list[str] = []
        truncated = len(points) > self.max_waypoints
        if truncated:
            logger.warning(
                f"Optimization limited to {self.max_waypoints} waypoints; using first {self.max_waypoints} of {len(points)}"
            )
            warnings.append(
                f"Only the first {self.max_waypoints} of {len(points)} points were considered for optimization."
            )
            points = points[: self.max_waypoints]

        token = self._next_token(route_id, "optimize")
        identity = list(range(len(points)))
        try:
            trip = await self._client().trip(points, options)
        except RoutingServiceError as exc:
            logger.warning(f"Optimize request for route {route_id} failed: {exc}. Keeping original order.")
            warnings.append(f"Order optimization unavailable ({exc}); original order kept.")
            return OptimizeResult(
                route_id=route_id,
                order=identity,
                points=points,
                geometry=points,
                reordered=False,
                truncated=truncated,
                considered=len(points),
                source="fallback",
                warnings=warnings,
                stale=not self._is_current(route_id, "optimize", token),
            )

        if trip is None:
            raise NoFeasibleTripError(
                "No optimized route found for these points. Try moving points closer to roads."
            )

        stale = not self._is_current(route_id, "optimize", token)
        if stale:
            warnings.append("A newer optimization request superseded this one.")
        return OptimizeResult(
            route_id=route_id,
            order=trip.order,
            points=[points[i] for i in trip.order],
            geometry=trip.points,
            reordered=trip.order != identity,
            truncated=truncated,
            considered=len(points),
            distance_m=trip.distance_m,
            duration_s=trip.duration_s,
            source="service",
            warnings=warnings,
            stale=stale,
        )
