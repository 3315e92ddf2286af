from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from places.types import Place


@dataclass(frozen=True)
class Marker:
    """Render instruction handed to the map widget."""

    id: str
    lat: float
    lng: float
    category: str

    def as_dict(self) -> dict:
        return {"id": self.id, "lat": self.lat, "lng": self.lng, "category": self.category}


def markers_for(places: Iterable[Place]) -> list[Marker]:
    return [Marker(id=p.id, lat=p.lat, lng=p.lng, category=p.category) for p in places]
