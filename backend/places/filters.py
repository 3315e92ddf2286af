from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from geo.ops import haversine_m
from places.types import Place

ALL_CATEGORIES = "all"


@dataclass(frozen=True)
class PlaceFilter:
    """
    Attribute filter applied to the candidate set of a viewport.

    All parts are ANDed. An empty part (or category "all") is no constraint.
    - age_groups / price_ranges: the place must match at least one listed value
    - amenities: the place must have every listed flag set
    """

    category: str = ALL_CATEGORIES
    age_groups: tuple[str, ...] = ()
    price_ranges: tuple[str, ...] = ()
    amenities: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return (
            self.category in ("", ALL_CATEGORIES)
            and not self.age_groups
            and not self.price_ranges
            and not self.amenities
        )

    def matches(self, place: Place) -> bool:
        if self.category not in ("", ALL_CATEGORIES) and place.category != self.category:
            return False
        if self.age_groups and not set(self.age_groups).intersection(place.age_groups):
            return False
        if self.price_ranges and place.price_range not in self.price_ranges:
            return False
        for flag in self.amenities:
            if not place.has_amenity(flag):
                return False
        return True

    @classmethod
    def from_flags(
        cls,
        *,
        category: str | None = None,
        age_groups: Iterable[str] | None = None,
        price_ranges: Iterable[str] | None = None,
        amenities: dict[str, bool] | None = None,
    ) -> "PlaceFilter":
        # Amenities arrive as a {flag: checked} map from the filter panel.
        required = tuple(sorted(k for k, v in (amenities or {}).items() if v))
        return cls(
            category=(category or ALL_CATEGORIES).strip() or ALL_CATEGORIES,
            age_groups=tuple(age_groups or ()),
            price_ranges=tuple(price_ranges or ()),
            amenities=required,
        )


NO_FILTER = PlaceFilter()


def apply_filter(places: Iterable[Place], flt: PlaceFilter | None) -> list[Place]:
    if flt is None or flt.is_empty:
        return list(places)
    return [p for p in places if flt.matches(p)]


def nearby_places(
    center: tuple[float, float],
    places: Iterable[Place],
    *,
    max_distance_m: float = 5000.0,
) -> list[Place]:
    """
    Places within `max_distance_m` of `center` (lat, lng), nearest first.
    """
    lat, lng = center
    scored: list[tuple[float, Place]] = []
    for p in places:
        d = haversine_m(lat, lng, p.lat, p.lng)
        if d <= max_distance_m:
            scored.append((d, p))
    scored.sort(key=lambda t: (t[0], t[1].id))
    return [p for _d, p in scored]
