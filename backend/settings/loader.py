from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable

import yaml
from pydantic import ValidationError

from settings.types import ViewportSettings

logger = logging.getLogger(__name__)

# env var -> (settings field, parser)
_ENV_OVERRIDES: dict[str, tuple[str, Callable[[str], Any]]] = {
    "PLACEMAP_DEBOUNCE_MS": ("debounce_ms", int),
    "PLACEMAP_FETCH_TIMEOUT_S": ("fetch_timeout_s", float),
    "PLACEMAP_CACHE_MAX_ENTRIES": ("cache_max_entries", int),
    "PLACEMAP_CACHE_EXPIRATION_S": ("cache_expiration_s", float),
    "PLACEMAP_CACHE_OVERLAP_THRESHOLD": ("cache_overlap_threshold", float),
    "PLACEMAP_CHANGE_THRESHOLD": ("change_threshold", float),
    "PLACEMAP_NEARBY_MAX_DISTANCE_M": ("nearby_max_distance_m", float),
}


def _load_yaml(path: Path) -> dict:
    raw = path.read_text(encoding="utf-8")
    data = yaml.safe_load(raw) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid settings yaml root: {path}")
    return data


def _env_overrides() -> dict[str, Any]:
    out: dict[str, Any] = {}
    for env, (key, parse) in _ENV_OVERRIDES.items():
        raw = (os.getenv(env) or "").strip()
        if not raw:
            continue
        try:
            out[key] = parse(raw)
        except ValueError:
            logger.warning("ignoring %s=%r: not a number", env, raw)
    return out


@lru_cache(maxsize=1)
def load_settings() -> ViewportSettings:
    data: dict[str, Any] = {}
    cfg_path = (os.getenv("PLACEMAP_CONFIG") or "").strip()
    if cfg_path:
        data.update(_load_yaml(Path(cfg_path)))
    base = ViewportSettings.model_validate(data)

    # Each override is checked on its own; an out-of-range one leaves the file/default value.
    for key, value in _env_overrides().items():
        try:
            base = ViewportSettings.model_validate({**base.model_dump(), key: value})
        except ValidationError as e:
            logger.warning("ignoring override %s=%r: %s", key, value, e.errors()[0].get("msg"))
    return base


def clear_settings_cache() -> None:
    """
    Forget the memoized settings so env/file changes are picked up (tests, dev reloads).
    """
    load_settings.cache_clear()
