"""Road conformance: snapping and waypoint-order optimization."""

from .client import RoutingClient, check_health
from .models import OptimizeOptions, OptimizeResult, SnapResult
from .service import RoadConformanceService

__all__ = [
    "RoutingClient",
    "check_health",
    "OptimizeOptions",
    "OptimizeResult",
    "SnapResult",
    "RoadConformanceService",
]
