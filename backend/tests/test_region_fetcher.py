from __future__ import annotations

import asyncio

import pytest

from conftest import ScriptedSource, make_record
from fetch.errors import (
    DataFetchError,
    ErrorKind,
    FetchTimeout,
    FirebaseError,
    InvalidBounds,
    NetworkError,
)
from fetch.region import RegionFetcher
from geo.bounds import GeoBounds

VIEW = GeoBounds(north=10, south=0, east=10, west=0)


def test_malformed_record_is_dropped_with_one_diagnostic(diagnostics):
    records = [make_record(f"p{i}", 1 + i * 0.5, 1 + i * 0.5) for i in range(10)]
    records.insert(4, {"id": "corrupt", "name": "no location"})
    fetcher = RegionFetcher(ScriptedSource(records), diagnostics=diagnostics)

    result = asyncio.run(fetcher.fetch_region(VIEW))

    assert result.ok
    assert len(result.places) == 10
    assert result.dropped == 1
    assert len(diagnostics.errors) == 1
    err, context = diagnostics.errors[0]
    assert err.kind is ErrorKind.places_processing
    assert context == "places_processing"


def test_results_are_post_filtered_by_bounds():
    source = ScriptedSource(
        [
            make_record("inside", 5, 5),
            make_record("edge", 10, 0),
            make_record("outside", 20, 20),
        ]
    )
    places = asyncio.run(RegionFetcher(source).fetch(VIEW))
    assert sorted(p.id for p in places) == ["edge", "inside"]


def test_invalid_bounds_never_reach_the_source(diagnostics):
    source = ScriptedSource([make_record("a", 1, 1)])
    fetcher = RegionFetcher(source, diagnostics=diagnostics)
    bad = GeoBounds(north=0, south=10, east=10, west=0)

    with pytest.raises(InvalidBounds):
        asyncio.run(fetcher.fetch(bad))
    result = asyncio.run(fetcher.fetch_region(bad))

    assert source.calls == 0
    assert result.places == []
    assert result.error_kind is ErrorKind.bounds_calculation


def test_timeout_abandons_request(diagnostics):
    source = ScriptedSource([make_record("a", 1, 1)], hold={0})
    fetcher = RegionFetcher(source, timeout_s=0.05, diagnostics=diagnostics)

    result = asyncio.run(fetcher.fetch_region(VIEW))

    assert result.places == []
    assert isinstance(result.error, FetchTimeout)
    assert result.error_kind is ErrorKind.network_error
    assert diagnostics.errors[0][1] == "region_fetch_network_error"


def test_strict_fetch_raises_timeout():
    source = ScriptedSource([], hold={0})
    with pytest.raises(FetchTimeout):
        asyncio.run(RegionFetcher(source, timeout_s=0.02).fetch(VIEW))


@pytest.mark.parametrize(
    "exc, expected_type, kind",
    [
        (ConnectionError("reset"), NetworkError, ErrorKind.network_error),
        (FirebaseError("permission-denied"), FirebaseError, ErrorKind.firebase_error),
        (RuntimeError("boom"), DataFetchError, ErrorKind.data_fetch),
    ],
)
def test_source_failures_degrade_to_empty_result(exc, expected_type, kind, diagnostics):
    fetcher = RegionFetcher(ScriptedSource(fail=exc), diagnostics=diagnostics)
    result = asyncio.run(fetcher.fetch_region(VIEW))
    assert result.places == []
    assert isinstance(result.error, expected_type)
    assert result.error_kind is kind
    assert len(diagnostics.errors) == 1


def test_strict_fetch_wraps_unexpected_errors():
    fetcher = RegionFetcher(ScriptedSource(fail=KeyError("x")))
    with pytest.raises(DataFetchError):
        asyncio.run(fetcher.fetch(VIEW))
