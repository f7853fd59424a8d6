"""Owned table of marker handles with explicit create/update/release."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Generic, Hashable, Iterator, TypeVar

from ...models.domain import LngLat
from .surface import MapSurface, MarkerHandle, MarkerStyle

K = TypeVar("K", bound=Hashable)


@dataclass
class MarkerEntry:
    handle: MarkerHandle
    position: LngLat
    style: MarkerStyle


class MarkerTable(Generic[K]):
    """Markers created on ``surface``, keyed by point index or POI id.

    The table is the only place markers are created or destroyed, so
    releasing it releases everything it ever acquired.
    """

    def __init__(self, surface: MapSurface) -> None:
        self.surface = surface
        self._entries: Dict[K, MarkerEntry] = {}

    def acquire(self, key: K, position: LngLat, style: MarkerStyle) -> MarkerEntry:
        if key in self._entries:
            raise KeyError(f"Marker {key!r} already exists.")
        entry = MarkerEntry(self.surface.add_marker(position, style), position, style)
        self._entries[key] = entry
        return entry

    def update(self, key: K, position: LngLat, style: MarkerStyle) -> bool:
        """Move/restyle only what changed. Returns whether the surface was touched."""
        entry = self._entries[key]
        changed = False
        if entry.position != position:
            self.surface.move_marker(entry.handle, position)
            entry.position = position
            changed = True
        if entry.style != style:
            self.surface.style_marker(entry.handle, style)
            entry.style = style
            changed = True
        return changed

    def upsert(self, key: K, position: LngLat, style: MarkerStyle) -> bool:
        if key in self._entries:
            return self.update(key, position, style)
        self.acquire(key, position, style)
        return True

    def release(self, key: K) -> None:
        entry = self._entries.pop(key)
        self.surface.remove_marker(entry.handle)

    def release_all(self) -> None:
        for key in list(self._entries):
            self.release(key)

    def get(self, key: K) -> MarkerEntry | None:
        return self._entries.get(key)

    def keys(self) -> list[K]:
        return list(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[K]:
        return iter(list(self._entries))
