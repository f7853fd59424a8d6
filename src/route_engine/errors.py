"""Exceptions raised by the route engine."""


class RouteValidationError(ValueError):
    """Raised when an edit or request is rejected before any state changes (bad index, too few points, ...)."""


class RouteStateError(Exception):
    """Raised when an invalid load-state transition is attempted."""


class RoutingServiceError(Exception):
    """Raised when the routing service cannot be reached or answers with an error."""


class NoFeasibleTripError(RoutingServiceError):
    """Raised when the routing service reports that no trip connects the waypoints."""
