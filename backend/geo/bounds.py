from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class GeoBounds:
    """
    Axis-aligned WGS84 viewport rectangle in degrees.

    Convention used throughout this repo:
    - north, south, east, west
    - a fresh instance is built on every viewport read; never mutated
    """

    north: float
    south: float
    east: float
    west: float

    @property
    def center(self) -> tuple[float, float]:
        """(lat, lng) of the rectangle center."""
        return ((self.north + self.south) / 2.0, (self.east + self.west) / 2.0)

    @property
    def width(self) -> float:
        return self.east - self.west

    @property
    def height(self) -> float:
        return self.north - self.south

    @property
    def area(self) -> float:
        # Degenerate or inverted rectangles have no area.
        w = self.width
        h = self.height
        if w <= 0.0 or h <= 0.0:
            return 0.0
        return w * h

    def contains(self, lat: float, lng: float) -> bool:
        # Edges count as inside.
        return self.south <= lat <= self.north and self.west <= lng <= self.east

    def rounded_key(self, decimals: int = 4) -> tuple[float, float, float, float]:
        """
        A stable, hashable key for logging and session bookkeeping.

        decimals=4 is ~11m-ish in latitude.
        """
        return (
            round(self.north, decimals),
            round(self.south, decimals),
            round(self.east, decimals),
            round(self.west, decimals),
        )

    def as_dict(self) -> dict[str, float]:
        return {
            "north": self.north,
            "south": self.south,
            "east": self.east,
            "west": self.west,
        }


def is_valid(b: GeoBounds | None) -> bool:
    if b is None:
        return False
    vals = (b.north, b.south, b.east, b.west)
    try:
        if not all(math.isfinite(float(v)) for v in vals):
            return False
    except (TypeError, ValueError):
        return False
    if b.north < b.south or b.east < b.west:
        return False
    if not (-90.0 <= b.south <= 90.0 and -90.0 <= b.north <= 90.0):
        return False
    if not (-180.0 <= b.west <= 180.0 and -180.0 <= b.east <= 180.0):
        return False
    return True
