from __future__ import annotations

from pydantic import BaseModel, Field


class ViewportSettings(BaseModel):
    """
    Tunables for the viewport cache and reconciler.

    The two overlap thresholds are independent knobs: cache reuse wants near-identical
    coverage (0.7), reacting to a pan at all only needs loose similarity (0.3).
    """

    debounce_ms: int = Field(default=300, gt=0)
    fetch_timeout_s: float = Field(default=15.0, gt=0.0)

    cache_max_entries: int = Field(default=20, ge=1)
    cache_expiration_s: float = Field(default=300.0, gt=0.0)
    cache_overlap_threshold: float = Field(default=0.7, gt=0.0, le=1.0)

    change_threshold: float = Field(default=0.3, gt=0.0, le=1.0)
    # Above this many visible places the status is "many".
    many_threshold: int = Field(default=20, ge=0)
    nearby_max_distance_m: float = Field(default=5000.0, gt=0.0)

    @property
    def debounce_s(self) -> float:
        return self.debounce_ms / 1000.0
