from __future__ import annotations

import asyncio
import json

from conftest import make_record
from fetch.region import RegionFetcher
from geo.bounds import GeoBounds
from sources.duckdb import DuckDBPlaceSource
from sources.in_memory import InMemorySource


def test_in_memory_source_from_json_file(tmp_path):
    path = tmp_path / "places.json"
    path.write_text(json.dumps({"places": [make_record("a", 1, 1)]}), encoding="utf-8")
    src = InMemorySource.from_json_file(path)
    records = asyncio.run(src.fetch_all())
    assert [r["id"] for r in records] == ["a"]
    # callers get copies
    records[0]["id"] = "mutated"
    assert asyncio.run(src.fetch_all())[0]["id"] == "a"


def test_duckdb_source_round_trips_documents(tmp_path):
    src = DuckDBPlaceSource(path=str(tmp_path / "places.duckdb"), threads=1)
    try:
        written = src.seed(
            [
                make_record("b", 5, 5, category="cafes"),
                make_record("a", 1, 1),
                make_record("out", 50, 50),
            ]
        )
        assert written == 3
        # re-seeding the same id replaces it
        src.seed([make_record("a", 2, 2)])

        records = asyncio.run(src.fetch_all())
        assert [r["id"] for r in records] == ["a", "b", "out"]
        assert records[0]["location"]["latitude"] == 2

        places = asyncio.run(
            RegionFetcher(src).fetch(GeoBounds(north=10, south=0, east=10, west=0))
        )
        assert sorted(p.id for p in places) == ["a", "b"]
    finally:
        src.close()
