from __future__ import annotations

import math

from shapely.geometry import Point
from shapely.geometry import box as shapely_box

from geo.bounds import GeoBounds

EARTH_RADIUS_M = 6_371_000.0

CACHE_OVERLAP_THRESHOLD = 0.7
CHANGE_THRESHOLD = 0.3


def overlap_ratio(a: GeoBounds, b: GeoBounds) -> tuple[float, float]:
    """
    Fraction of each rectangle's own area covered by the intersection.

    Returns (ratio_of_a, ratio_of_b). Disjoint or edge-touching rectangles yield (0, 0);
    a zero-area rectangle always has ratio 0 on its side.
    """
    overlap_north = min(a.north, b.north)
    overlap_south = max(a.south, b.south)
    overlap_east = min(a.east, b.east)
    overlap_west = max(a.west, b.west)
    if overlap_north <= overlap_south or overlap_east <= overlap_west:
        return 0.0, 0.0

    area_a = a.area
    area_b = b.area
    inter = _bounds_box(a).intersection(_bounds_box(b)).area

    ratio_a = inter / area_a if area_a > 0.0 else 0.0
    ratio_b = inter / area_b if area_b > 0.0 else 0.0
    return float(ratio_a), float(ratio_b)


def have_significant_overlap(
    a: GeoBounds, b: GeoBounds, threshold: float = CACHE_OVERLAP_THRESHOLD
) -> bool:
    """
    Both rectangles must be covered by at least `threshold` of the intersection.

    Symmetric on purpose: a small cached tile fully inside a large viewport is not a match.
    """
    ratio_a, ratio_b = overlap_ratio(a, b)
    return ratio_a >= threshold and ratio_b >= threshold


def is_change_significant(
    old: GeoBounds | None, new: GeoBounds, threshold: float = CHANGE_THRESHOLD
) -> bool:
    if old is None:
        return True
    ratio_old, ratio_new = overlap_ratio(old, new)
    if ratio_old == 0.0 and ratio_new == 0.0:
        return True
    return ratio_old < threshold or ratio_new < threshold


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    h = (
        math.sin(d_phi / 2.0) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    )
    # Clamp against float drift just above 1.0 for antipodal points.
    h = min(1.0, max(0.0, h))
    return 2.0 * EARTH_RADIUS_M * math.asin(math.sqrt(h))


def center_distance_m(a: GeoBounds | None, b: GeoBounds | None) -> float:
    """
    Haversine distance in meters between rectangle centers.

    `inf` when either side is missing, meaning "maximally different".
    """
    if a is None or b is None:
        return float("inf")
    lat_a, lng_a = a.center
    lat_b, lng_b = b.center
    return haversine_m(lat_a, lng_a, lat_b, lng_b)


def point_in_bounds(b: GeoBounds, lat: float, lng: float) -> bool:
    if b.area == 0.0:
        # shapely boxes collapse to lines or points here
        return b.contains(lat, lng)
    # covers() keeps places sitting exactly on the viewport edge.
    return bool(_bounds_box(b).covers(Point(lng, lat)))


def _bounds_box(b: GeoBounds):
    return shapely_box(b.west, b.south, b.east, b.north)
