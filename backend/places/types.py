from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

PriceRange = Literal["$", "$$", "$$$", "$$$$"]

AGE_GROUPS = ("0-1", "1-3", "3-5", "5+")

# Amenity flags a place document may carry. Unknown flags are kept but never filtered on.
AMENITY_FLAGS = (
    "accessibility",
    "changingTables",
    "parking",
    "publicTransport",
    "drinkingWater",
    "foodNearby",
    "publicRestrooms",
    "petFriendly",
    "picnicArea",
    "shadedAreas",
    "tablesAndBenches",
    "nightLighting",
    "specialNeeds",
    "waitingArea",
    "supervisedActivities",
    "accessibleTrails",
    "fencedArea",
    "playAreas",
    "highChairs",
    "kidsMenu",
)


@dataclass(frozen=True)
class Place:
    """
    A family-friendly place as stored in the document store.

    The cache and reconciler treat this as an opaque payload keyed by `id`.
    """

    id: str
    name: str
    lat: float
    lng: float
    category: str
    age_groups: tuple[str, ...] = ()
    price_range: str = ""
    amenities: dict[str, bool] = field(default_factory=dict)
    verifications: int = 0
    description: str = ""
    address: str = ""
    place_id: str = ""
    activity_type: str = ""

    def has_amenity(self, flag: str) -> bool:
        return bool(self.amenities.get(flag, False))

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "location": {"latitude": self.lat, "longitude": self.lng},
            "category": self.category,
            "ageGroups": list(self.age_groups),
            "priceRange": self.price_range,
            "amenities": dict(self.amenities),
            "verifications": self.verifications,
            "description": self.description,
            "address": self.address,
            "place_id": self.place_id,
            "activityType": self.activity_type,
        }
