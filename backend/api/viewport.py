from __future__ import annotations

import logging
import os
import threading
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field

from fetch.region import RegionFetcher
from geo.bounds import GeoBounds
from places.filters import PlaceFilter, nearby_places
from reconcile.reconciler import ViewportReconciler
from settings.loader import load_settings
from sources.duckdb import DuckDBPlaceSource
from sources.in_memory import InMemorySource, load_records
from sources.types import PlaceSource
from telemetry.diagnostics import TelemetryDiagnostics
from telemetry.singleton import get_store

logger = logging.getLogger(__name__)

MAX_SESSIONS = 64


class ApiBounds(BaseModel):
    north: float
    south: float
    east: float
    west: float

    def to_bounds(self) -> GeoBounds:
        return GeoBounds(north=self.north, south=self.south, east=self.east, west=self.west)


class ApiFilters(BaseModel):
    category: str = "all"
    ageGroups: list[str] = Field(default_factory=list)
    priceRange: list[str] = Field(default_factory=list)
    amenities: dict[str, bool] = Field(default_factory=dict)

    def to_filter(self) -> PlaceFilter:
        return PlaceFilter.from_flags(
            category=self.category,
            age_groups=self.ageGroups,
            price_ranges=self.priceRange,
            amenities=self.amenities,
        )


class ApiPoint(BaseModel):
    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)


class ApiViewportRequest(BaseModel):
    sessionId: str = Field(min_length=1)
    bounds: ApiBounds
    filters: ApiFilters | None = None
    force: bool = False
    # User location; when set the response also lists visible places near it.
    near: ApiPoint | None = None


class ApiRetryRequest(BaseModel):
    sessionId: str = Field(min_length=1)


def _normalize_source(name: str | None) -> str:
    n = (name or "in_memory").strip().lower()
    if n in {"duckdb", "in_memory"}:
        return n
    return "in_memory"


def default_source_name() -> str:
    return _normalize_source(os.getenv("PLACEMAP_SOURCE"))


def _places_path() -> Path:
    raw = (os.getenv("PLACEMAP_PLACES_PATH") or "").strip()
    if raw:
        return Path(raw)
    return Path(__file__).resolve().parents[2] / "data" / "places" / "sample.json"


@lru_cache(maxsize=2)
def _source(name: str) -> PlaceSource:
    path = _places_path()
    records = load_records(path) if path.exists() else []
    logger.info("loaded %d place records from %s into %s", len(records), path, name)
    if name == "duckdb":
        src = DuckDBPlaceSource()
        if records:
            src.seed(records)
        return src
    return InMemorySource(records)


class SessionRegistry:
    """
    One reconciler (and therefore one spatial cache) per map session.

    Bounded: the oldest session is dropped once MAX_SESSIONS is exceeded.
    """

    def __init__(self, *, max_sessions: int = MAX_SESSIONS):
        self.max_sessions = max_sessions
        self._sessions: dict[str, ViewportReconciler] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, session_id: str) -> ViewportReconciler | None:
        return self._sessions.get(session_id)

    def get_or_create(self, session_id: str) -> ViewportReconciler:
        with self._lock:
            rec = self._sessions.get(session_id)
            if rec is not None:
                return rec
            rec = _new_reconciler()
            self._sessions[session_id] = rec
            if len(self._sessions) > self.max_sessions:
                oldest = next(iter(self._sessions.keys()))
                if oldest != session_id:
                    self._sessions.pop(oldest).close()
            return rec

    def clear(self) -> None:
        with self._lock:
            for rec in self._sessions.values():
                rec.close()
            self._sessions.clear()


def _new_reconciler() -> ViewportReconciler:
    settings = load_settings()
    diagnostics = TelemetryDiagnostics(get_store())
    fetcher = RegionFetcher(
        _source(default_source_name()),
        timeout_s=settings.fetch_timeout_s,
        diagnostics=diagnostics,
    )
    return ViewportReconciler(fetcher, settings=settings, diagnostics=diagnostics)


async def handle_viewport(registry: SessionRegistry, body: ApiViewportRequest) -> dict:
    rec = registry.get_or_create(body.sessionId)
    if body.filters is not None:
        rec.set_filter(body.filters.to_filter())
    snap = await rec.resolve(body.bounds.to_bounds(), force=body.force)
    payload = snap.as_dict()
    if body.near is not None:
        near = nearby_places(
            (body.near.lat, body.near.lng),
            snap.places,
            max_distance_m=rec.settings.nearby_max_distance_m,
        )
        payload["nearby"] = [p.as_dict() for p in near]
    return payload


async def handle_retry(registry: SessionRegistry, body: ApiRetryRequest) -> dict:
    rec = registry.get_or_create(body.sessionId)
    snap = await rec.retry()
    return snap.as_dict()
