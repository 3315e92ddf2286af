from __future__ import annotations

import os
import threading
from pathlib import Path

from telemetry.store import TelemetryStore

_STORE: TelemetryStore | None = None
_STORE_LOCK = threading.RLock()

_OFF_VALUES = {"0", "false", "no", "off"}


def telemetry_enabled() -> bool:
    return (os.getenv("PLACEMAP_TELEMETRY") or "1").strip().lower() not in _OFF_VALUES


def telemetry_path() -> Path:
    """PLACEMAP_TELEMETRY_PATH, else `data/telemetry/viewport_events.duckdb` in the repo."""
    raw = (os.getenv("PLACEMAP_TELEMETRY_PATH") or "").strip()
    if raw:
        return Path(raw)
    return Path(__file__).resolve().parents[2] / "data" / "telemetry" / "viewport_events.duckdb"


def get_store() -> TelemetryStore | None:
    """
    Process-wide store, or None when telemetry is switched off.

    Reopened when PLACEMAP_TELEMETRY_PATH points somewhere else (tests, dev sessions).
    """
    global _STORE
    if not telemetry_enabled():
        return None
    path = telemetry_path()
    with _STORE_LOCK:
        if _STORE is not None and _STORE.path.resolve() == path.resolve():
            return _STORE
        if _STORE is not None:
            _STORE.close()
        _STORE = TelemetryStore.open(path)
        return _STORE


def reset_store() -> None:
    global _STORE
    with _STORE_LOCK:
        if _STORE is None:
            telemetry_path().unlink(missing_ok=True)
            return
        _STORE.reset()
        _STORE = None
