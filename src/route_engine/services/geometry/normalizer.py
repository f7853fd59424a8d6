"""Axis-order disambiguation for raw coordinate pairs.

Upstream producers hand us pairs without saying whether they are
``[lng, lat]`` (GeoJSON) or ``[lat, lng]`` (most mobile SDKs). The decision
table below is applied top to bottom and the first matching rule decides:

==  =====================  =================================================  ============
#   rule                   condition on ``(first, second)``                   first is
==  =====================  =================================================  ============
1   ``regional_lat_lng``   first in region latitudes, second in longitudes    latitude
2   ``regional_lng_lat``   first in region longitudes, second in latitudes    longitude
3   ``magnitude_lat_lng``  ``first < 100`` and ``second > 100``               latitude
4   ``magnitude_lng_lat``  ``first > 100`` and ``second < 100``               longitude
5   ``default``            anything else                                      longitude
==  =====================  =================================================  ============

The table is a heuristic. Pairs outside the service region whose longitude
is below 100 degrees fall through to the default rule and are read
longitude-first. Pass an explicit :class:`AxisOrder` whenever the producer
knows its order.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from numbers import Real
from typing import Any, Callable, Iterable, Optional, Sequence

from ...config import settings
from ...models.domain import Coordinate


class AxisOrder(str, Enum):
    LNG_LAT = "lng_lat"
    LAT_LNG = "lat_lng"


@dataclass(frozen=True)
class RegionBounds:
    lat_range: tuple[float, float]
    lng_range: tuple[float, float]

    def lat_contains(self, value: float) -> bool:
        return self.lat_range[0] <= value <= self.lat_range[1]

    def lng_contains(self, value: float) -> bool:
        return self.lng_range[0] <= value <= self.lng_range[1]


@dataclass(frozen=True)
class AxisRule:
    name: str
    order: AxisOrder
    matches: Callable[[float, float, RegionBounds], bool]


DECISION_TABLE: tuple[AxisRule, ...] = (
    AxisRule(
        "regional_lat_lng",
        AxisOrder.LAT_LNG,
        lambda first, second, bounds: bounds.lat_contains(first) and bounds.lng_contains(second),
    ),
    AxisRule(
        "regional_lng_lat",
        AxisOrder.LNG_LAT,
        lambda first, second, bounds: bounds.lng_contains(first) and bounds.lat_contains(second),
    ),
    AxisRule("magnitude_lat_lng", AxisOrder.LAT_LNG, lambda first, second, _: first < 100 and second > 100),
    AxisRule("magnitude_lng_lat", AxisOrder.LNG_LAT, lambda first, second, _: first > 100 and second < 100),
    AxisRule("default", AxisOrder.LNG_LAT, lambda first, second, _: True),
)


def default_bounds() -> RegionBounds:
    return RegionBounds(lat_range=settings.region_lat_range, lng_range=settings.region_lng_range)


def _numeric_pair(raw: Any) -> Optional[tuple[float, float]]:
    if not isinstance(raw, Sequence) or isinstance(raw, (str, bytes)) or len(raw) < 2:
        return None
    first, second = raw[0], raw[1]
    # bool is an int subclass and never a coordinate
    if isinstance(first, bool) or isinstance(second, bool):
        return None
    if not isinstance(first, Real) or not isinstance(second, Real):
        return None
    first, second = float(first), float(second)
    if not (math.isfinite(first) and math.isfinite(second)):
        return None
    return first, second


def classify_pair(first: float, second: float, bounds: RegionBounds | None = None) -> AxisRule:
    """Return the first decision-table rule matching the pair."""
    bounds = bounds or default_bounds()
    for rule in DECISION_TABLE:
        if rule.matches(first, second, bounds):
            return rule
    return DECISION_TABLE[-1]


def normalize_pair(
    raw: Any,
    *,
    axis_order: AxisOrder | None = None,
    bounds: RegionBounds | None = None,
) -> Optional[Coordinate]:
    """Turn a raw pair into a :class:`Coordinate`, or ``None`` when it is not a numeric pair."""
    pair = _numeric_pair(raw)
    if pair is None:
        return None
    first, second = pair
    order = axis_order or classify_pair(first, second, bounds).order
    if order is AxisOrder.LAT_LNG:
        return Coordinate(latitude=first, longitude=second)
    return Coordinate(latitude=second, longitude=first)


def normalize_coordinates(
    coords: Iterable[Any] | None,
    *,
    axis_order: AxisOrder | None = None,
    bounds: RegionBounds | None = None,
) -> list[Coordinate]:
    """Normalize every pair, silently dropping entries that are not numeric pairs."""
    if not coords or isinstance(coords, (str, bytes)):
        return []
    bounds = bounds or default_bounds()
    normalized: list[Coordinate] = []
    for raw in coords:
        coordinate = normalize_pair(raw, axis_order=axis_order, bounds=bounds)
        if coordinate is not None:
            normalized.append(coordinate)
    return normalized
