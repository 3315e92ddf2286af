from __future__ import annotations

import math
from typing import Any, Iterable

from fetch.errors import RecordMalformed
from places.types import Place


def decode_place(record: dict[str, Any]) -> Place:
    """
    Map one raw document into a `Place`.

    Raises `RecordMalformed` when the record has no usable id or geographic point.
    Everything else is optional and falls back to an empty value.
    """
    if not isinstance(record, dict):
        raise RecordMalformed(None, f"record is {type(record).__name__}, not a mapping")

    rid = record.get("id")
    if rid is None or str(rid).strip() == "":
        raise RecordMalformed(None, "missing id")
    pid = str(rid)

    lat, lng = _decode_point(pid, record.get("location"))

    return Place(
        id=pid,
        name=str(record.get("name") or ""),
        lat=lat,
        lng=lng,
        category=str(record.get("category") or ""),
        age_groups=_str_tuple(record.get("ageGroups")),
        price_range=str(record.get("priceRange") or ""),
        amenities=_decode_amenities(record.get("amenities")),
        verifications=_int_or_zero(record.get("verifications")),
        description=str(record.get("description") or ""),
        address=str(record.get("address") or ""),
        place_id=str(record.get("place_id") or ""),
        activity_type=str(record.get("activityType") or ""),
    )


def decode_places(
    records: Iterable[dict[str, Any]],
) -> tuple[list[Place], list[RecordMalformed]]:
    """
    Decode every record independently; malformed ones are returned, not raised.
    """
    places: list[Place] = []
    errors: list[RecordMalformed] = []
    for rec in records:
        try:
            places.append(decode_place(rec))
        except RecordMalformed as e:
            errors.append(e)
    return places, errors


def _decode_point(pid: str, loc: Any) -> tuple[float, float]:
    if not isinstance(loc, dict):
        raise RecordMalformed(pid, "missing location")

    # Firestore GeoPoints serialize either as latitude/longitude or _latitude/_longitude.
    lat = _first(loc, "latitude", "_latitude", "lat")
    lng = _first(loc, "longitude", "_longitude", "lng", "lon")
    try:
        lat_f = float(lat)  # type: ignore[arg-type]
        lng_f = float(lng)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise RecordMalformed(pid, f"location is not numeric: {loc!r}") from None

    if not (math.isfinite(lat_f) and math.isfinite(lng_f)):
        raise RecordMalformed(pid, "location is not finite")
    if not (-90.0 <= lat_f <= 90.0 and -180.0 <= lng_f <= 180.0):
        raise RecordMalformed(pid, f"location out of range: ({lat_f}, {lng_f})")
    return lat_f, lng_f


def _first(d: dict[str, Any], *keys: str) -> Any:
    for k in keys:
        if d.get(k) is not None:
            return d[k]
    return None


def _str_tuple(raw: Any) -> tuple[str, ...]:
    if not isinstance(raw, (list, tuple)):
        return ()
    return tuple(str(a) for a in raw if a)


def _decode_amenities(raw: Any) -> dict[str, bool]:
    if not isinstance(raw, dict):
        return {}
    return {str(k): bool(v) for k, v in raw.items()}


def _int_or_zero(v: Any) -> int:
    try:
        return max(0, int(v))
    except (TypeError, ValueError):
        return 0
