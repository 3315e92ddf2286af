import asyncio
import sys
from pathlib import Path

import pytest


# Ensure `backend/` is on sys.path so tests can import local modules
# like `geo.*`, `spatial_cache.*`, and `main`.
BACKEND_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_ROOT))


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path, monkeypatch):
    # Tests opt back into telemetry explicitly.
    monkeypatch.setenv("PLACEMAP_TELEMETRY", "0")
    monkeypatch.setenv("PLACEMAP_TELEMETRY_PATH", str(tmp_path / "telemetry.duckdb"))
    for name in (
        "PLACEMAP_CONFIG",
        "PLACEMAP_SOURCE",
        "PLACEMAP_PLACES_PATH",
        "PLACEMAP_DEBOUNCE_MS",
        "PLACEMAP_FETCH_TIMEOUT_S",
        "PLACEMAP_CACHE_MAX_ENTRIES",
        "PLACEMAP_CACHE_EXPIRATION_S",
        "PLACEMAP_CACHE_OVERLAP_THRESHOLD",
        "PLACEMAP_CHANGE_THRESHOLD",
        "PLACEMAP_NEARBY_MAX_DISTANCE_M",
    ):
        monkeypatch.delenv(name, raising=False)

    from settings.loader import clear_settings_cache

    clear_settings_cache()
    yield
    clear_settings_cache()


def make_record(pid, lat, lng, **kw):
    rec = {
        "id": pid,
        "name": kw.pop("name", f"Place {pid}"),
        "location": {"latitude": lat, "longitude": lng},
        "category": kw.pop("category", "parks"),
        "ageGroups": kw.pop("ageGroups", ["1-3"]),
        "priceRange": kw.pop("priceRange", "$"),
        "amenities": kw.pop("amenities", {}),
        "verifications": kw.pop("verifications", 0),
    }
    rec.update(kw)
    return rec


class RecordingDiagnostics:
    def __init__(self):
        self.errors = []
        self.events = []

    def log_error(self, error, context):
        self.errors.append((error, context))

    def log_event(self, name, params=None):
        self.events.append((name, dict(params or {})))

    def event_names(self):
        return [n for n, _p in self.events]


class ScriptedSource:
    """
    In-process source whose calls can be held open until released.

    `hold` lists the 0-based call numbers that block until `release(i)`.
    """

    name = "scripted"

    def __init__(self, records=None, *, hold=(), fail=None):
        self.records = records if callable(records) else list(records or [])
        self.hold = set(hold)
        self.fail = fail
        self.calls = 0
        self._gates = {}

    def gate(self, i):
        ev = self._gates.get(i)
        if ev is None:
            ev = asyncio.Event()
            self._gates[i] = ev
        return ev

    def release(self, i):
        self.gate(i).set()

    async def fetch_all(self):
        i = self.calls
        self.calls += 1
        if i in self.hold:
            await self.gate(i).wait()
        if self.fail is not None:
            raise self.fail
        records = self.records(i) if callable(self.records) else self.records
        return [dict(r) for r in records]


@pytest.fixture
def diagnostics():
    return RecordingDiagnostics()
