"""Export services."""

from .geojson import (
    export_filename,
    export_route,
    linestring_to_wkt,
    points_to_geojson,
    points_to_gpx,
    save_route_export,
)

__all__ = [
    "export_filename",
    "export_route",
    "linestring_to_wkt",
    "points_to_geojson",
    "points_to_gpx",
    "save_route_export",
]
