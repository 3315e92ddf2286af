from __future__ import annotations

import pytest
from pydantic import ValidationError

from settings.loader import clear_settings_cache, load_settings
from settings.types import ViewportSettings


def test_defaults():
    s = load_settings()
    assert s.debounce_ms == 300
    assert s.debounce_s == pytest.approx(0.3)
    assert s.fetch_timeout_s == 15.0
    assert s.cache_max_entries == 20
    assert s.cache_overlap_threshold == 0.7
    assert s.change_threshold == 0.3
    assert s.many_threshold == 20


def test_yaml_file_then_env_overrides(tmp_path, monkeypatch):
    cfg = tmp_path / "placemap.yaml"
    cfg.write_text("debounce_ms: 150\ncache_max_entries: 5\nchange_threshold: 0.4\n", encoding="utf-8")
    monkeypatch.setenv("PLACEMAP_CONFIG", str(cfg))
    monkeypatch.setenv("PLACEMAP_CACHE_MAX_ENTRIES", "8")
    monkeypatch.setenv("PLACEMAP_FETCH_TIMEOUT_S", "not-a-number")
    clear_settings_cache()

    s = load_settings()
    assert s.debounce_ms == 150
    assert s.cache_max_entries == 8
    assert s.change_threshold == 0.4
    assert s.fetch_timeout_s == 15.0


def test_yaml_root_must_be_mapping(tmp_path, monkeypatch):
    cfg = tmp_path / "bad.yaml"
    cfg.write_text("- 1\n- 2\n", encoding="utf-8")
    monkeypatch.setenv("PLACEMAP_CONFIG", str(cfg))
    clear_settings_cache()
    with pytest.raises(ValueError):
        load_settings()


def test_out_of_range_values_rejected():
    with pytest.raises(ValidationError):
        ViewportSettings(cache_overlap_threshold=1.5)
    with pytest.raises(ValidationError):
        ViewportSettings(debounce_ms=0)


def test_out_of_range_env_override_keeps_previous_value(tmp_path, monkeypatch):
    cfg = tmp_path / "placemap.yaml"
    cfg.write_text("change_threshold: 0.4\n", encoding="utf-8")
    monkeypatch.setenv("PLACEMAP_CONFIG", str(cfg))
    monkeypatch.setenv("PLACEMAP_CHANGE_THRESHOLD", "1.5")
    monkeypatch.setenv("PLACEMAP_DEBOUNCE_MS", "-10")
    monkeypatch.setenv("PLACEMAP_NEARBY_MAX_DISTANCE_M", "2500")
    clear_settings_cache()

    s = load_settings()
    assert s.change_threshold == 0.4
    assert s.debounce_ms == 300
    assert s.nearby_max_distance_m == 2500.0
