"""Coordinate parsing, axis normalization and path simplification."""

from .extractor import extract_coordinates
from .normalizer import AxisOrder, classify_pair, normalize_coordinates, normalize_pair
from .simplifier import simplify_path

__all__ = [
    "AxisOrder",
    "classify_pair",
    "extract_coordinates",
    "normalize_coordinates",
    "normalize_pair",
    "simplify_path",
]
