"""Flatten heterogeneous geometry encodings into one ordered point list."""

from __future__ import annotations

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)


def _is_point_list(value: Any) -> bool:
    return isinstance(value, list) and len(value) > 0 and all(isinstance(item, (list, tuple)) for item in value)


def extract_coordinates(geometry: Any) -> list[list[Any]]:
    """Return the coordinate pairs carried by ``geometry``.

    Accepts a bare list of pairs, a ``LineString``, a ``MultiLineString``
    (parts are concatenated in order), a ``Feature`` wrapping either, or any
    of those serialized as JSON. Each call unwraps one layer and recurses.

    Malformed or unrecognized input yields ``[]``; the failure is logged
    rather than raised so callers can fall back to their defaults. Pairs are
    returned as given: axis order is settled by the normalizer.
    """
    if geometry is None or geometry == "" or geometry == []:
        return []

    if isinstance(geometry, (str, bytes)):
        try:
            parsed = json.loads(geometry)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.warning(f"Failed to parse geometry: {exc}")
            return []
        return extract_coordinates(parsed)

    if isinstance(geometry, tuple):
        geometry = list(geometry)

    if isinstance(geometry, dict):
        geometry_type = geometry.get("type")
        if geometry_type == "Feature" and geometry.get("geometry") is not None:
            return extract_coordinates(geometry["geometry"])
        coordinates = geometry.get("coordinates")
        if geometry_type == "MultiLineString" and isinstance(coordinates, list):
            flattened: list[list[Any]] = []
            for part in coordinates:
                if not _is_point_list(part):
                    logger.warning(f"Skipping malformed MultiLineString part: {part!r}")
                    continue
                flattened.extend(list(pair) for pair in part)
            return flattened
        if isinstance(coordinates, list):
            return extract_coordinates(coordinates)
        logger.warning(f"Unrecognized geometry format: {str(geometry)[:200]}")
        return []

    if _is_point_list(geometry):
        return [list(pair) for pair in geometry]

    logger.warning(f"Unrecognized geometry format: {str(geometry)[:200]}")
    return []
