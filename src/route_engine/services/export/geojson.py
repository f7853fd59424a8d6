"""GeoJSON, GPX and WKT export for route paths."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Sequence

import gpxpy.gpx

from ...models.domain import LngLat, RouteAggregate
from ...persistence.filesystem import FileStorage

ExportFormat = Literal["geojson", "gpx", "wkt"]

MEDIA_TYPES: Dict[str, str] = {
    "geojson": "application/geo+json",
    "gpx": "application/gpx+xml",
    "wkt": "text/plain",
}


def points_to_geojson(points: Sequence[LngLat], properties: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Wrap (lng, lat) points in a GeoJSON ``Feature`` with a ``LineString`` geometry."""
    return {
        "type": "Feature",
        "geometry": {
            "type": "LineString",
            "coordinates": [[lng, lat] for lng, lat in points],
        },
        "properties": dict(properties or {}),
    }


def points_to_gpx(points: Sequence[LngLat], name: str = "Route") -> str:
    """Render (lng, lat) points as a GPX track with a single segment."""
    gpx = gpxpy.gpx.GPX()
    gpx.creator = "transit-route-engine"
    track = gpxpy.gpx.GPXTrack(name=name)
    segment = gpxpy.gpx.GPXTrackSegment()
    for lng, lat in points:
        segment.points.append(gpxpy.gpx.GPXTrackPoint(latitude=lat, longitude=lng))
    track.segments.append(segment)
    gpx.tracks.append(track)
    return gpx.to_xml(version="1.1")


def linestring_to_wkt(coordinates: Sequence[LngLat]) -> str:
    """Convert linestring coordinates to WKT format.

    Args:
        coordinates: List of (lng, lat) pairs

    Returns:
        WKT LINESTRING string
    """
    if not coordinates or len(coordinates) < 2:
        raise ValueError("LineString must have at least 2 coordinates")

    coord_pairs = [f"{lng} {lat}" for lng, lat in coordinates]
    return f"LINESTRING({','.join(coord_pairs)})"


def export_route(route: RouteAggregate, fmt: ExportFormat = "geojson") -> str:
    """Serialize the displayed path of ``route`` in ``fmt``."""
    points = route.displayed_points
    if fmt == "geojson":
        feature = points_to_geojson(
            points,
            {"id": route.id, "name": route.name, "code": route.code, "color": route.color, "snapped": route.is_snapped},
        )
        return json.dumps(feature, ensure_ascii=False)
    if fmt == "gpx":
        return points_to_gpx(points, route.name or route.code or route.id)
    if fmt == "wkt":
        return linestring_to_wkt(points)
    raise ValueError(f"Unsupported export format: {fmt}")


def export_filename(route: RouteAggregate, fmt: ExportFormat) -> str:
    stem = re.sub(r"[^A-Za-z0-9_-]+", "_", route.code or route.name or route.id).strip("_") or "route"
    return f"{stem}.{fmt}"


def save_route_export(
    route: RouteAggregate,
    fmt: ExportFormat = "geojson",
    storage: FileStorage | None = None,
) -> Path:
    """Write an export of ``route`` into a fresh run directory and return its path."""
    storage = storage or FileStorage()
    directory = storage.make_run_directory(prefix="route")
    path = directory / export_filename(route, fmt)
    storage.write_text(path, export_route(route, fmt))
    return path
