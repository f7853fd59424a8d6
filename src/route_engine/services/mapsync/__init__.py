from .layer import MapMode, MapSyncLayer, line_id_for, poi_style
from .resources import MarkerTable
from .surface import MapEvent, MapSurface, MarkerStyle, RecordingMapSurface

__all__ = [
    "MapEvent",
    "MapMode",
    "MapSurface",
    "MapSyncLayer",
    "MarkerStyle",
    "MarkerTable",
    "RecordingMapSurface",
    "line_id_for",
    "poi_style",
]
