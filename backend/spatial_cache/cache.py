from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from typing import Callable

from geo.bounds import GeoBounds
from geo.ops import CACHE_OVERLAP_THRESHOLD, have_significant_overlap
from places.types import Place

Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheEntry:
    bounds: GeoBounds
    places: tuple[Place, ...]
    timestamp: float


@dataclass(frozen=True)
class SpatialCache:
    """
    Bounded, overlap-matched cache of region fetch results.

    Immutable: `store` and `sweep_expired` return a new cache. Entries are kept in a flat
    tuple and scanned linearly, so lookup is O(entries); at max_entries ~20 that is cheaper
    than maintaining a spatial index.

    Eviction is by fetch recency (entry timestamp), not by access recency.

    A lookup hits an entry that significantly overlaps the query (both ratios >= threshold)
    or that encloses the query entirely. A small entry sitting inside a large query never hits.
    """

    entries: tuple[CacheEntry, ...] = ()
    max_entries: int = 20
    expiration_s: float = 300.0
    overlap_threshold: float = CACHE_OVERLAP_THRESHOLD
    clock: Clock = field(default=time.monotonic, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        if self.expiration_s <= 0:
            raise ValueError("expiration_s must be > 0")

    def __len__(self) -> int:
        return len(self.entries)

    def lookup(self, bounds: GeoBounds) -> list[Place] | None:
        """
        Places of the first live entry significantly overlapping `bounds`, else None.

        Re-checks age itself, so it is correct even if `sweep_expired` never runs.
        """
        entry = self.lookup_entry(bounds)
        if entry is None:
            return None
        return list(entry.places)

    def lookup_entry(self, bounds: GeoBounds) -> CacheEntry | None:
        now = self.clock()
        for e in self.entries:
            if now - e.timestamp >= self.expiration_s:
                continue
            if have_significant_overlap(e.bounds, bounds, self.overlap_threshold):
                return e
            # An entry enclosing the whole query already holds every place inside it.
            if _encloses(e.bounds, bounds):
                return e
        return None

    def store(self, bounds: GeoBounds, places: list[Place]) -> "SpatialCache":
        now = self.clock()
        fresh = CacheEntry(bounds=bounds, places=tuple(places), timestamp=now)

        entries = list(self.entries)
        for i, e in enumerate(entries):
            if have_significant_overlap(e.bounds, bounds, self.overlap_threshold):
                # Same area fetched again: replace rather than grow.
                entries[i] = fresh
                return replace(self, entries=tuple(entries))

        entries.append(fresh)
        if len(entries) > self.max_entries:
            # Ties on timestamp go to the later insert.
            ranked = sorted(
                enumerate(entries), key=lambda t: (t[1].timestamp, t[0]), reverse=True
            )
            entries = [e for _i, e in ranked[: self.max_entries]]
        return replace(self, entries=tuple(entries))

    def sweep_expired(self) -> "SpatialCache":
        now = self.clock()
        live = tuple(e for e in self.entries if now - e.timestamp < self.expiration_s)
        if len(live) == len(self.entries):
            return self
        return replace(self, entries=live)

    def clear(self) -> "SpatialCache":
        return replace(self, entries=())


def _encloses(outer: GeoBounds, inner: GeoBounds) -> bool:
    return (
        outer.north >= inner.north
        and outer.south <= inner.south
        and outer.east >= inner.east
        and outer.west <= inner.west
    )
