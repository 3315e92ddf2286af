from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass

from fetch.errors import (
    DataFetchError,
    ErrorKind,
    FetchTimeout,
    InvalidBounds,
    NetworkError,
    PlaceMapError,
)
from geo.bounds import GeoBounds, is_valid
from geo.ops import point_in_bounds
from places.decode import decode_places
from places.types import Place
from sources.types import PlaceSource
from telemetry.diagnostics import DiagnosticsSink, NullDiagnostics

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 15.0


@dataclass(frozen=True)
class FetchResult:
    places: list[Place]
    error: PlaceMapError | None = None
    # Records skipped as malformed.
    dropped: int = 0
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def error_kind(self) -> ErrorKind | None:
        return self.error.kind if self.error is not None else None


class RegionFetcher:
    """
    Retrieves the places inside a viewport from the external data source.

    - invalid bounds never reach the source
    - the source call is bounded by `timeout_s`; a timed-out request is abandoned
    - records are validated one by one; a corrupt one is dropped and logged
    - results are post-filtered by bounds, since the source returns an unbounded superset
    - no automatic retries here; callers decide
    """

    def __init__(
        self,
        source: PlaceSource,
        *,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        diagnostics: DiagnosticsSink | None = None,
    ):
        self.source = source
        self.timeout_s = float(timeout_s)
        self.diagnostics = diagnostics or NullDiagnostics()

    async def fetch(self, bounds: GeoBounds) -> list[Place]:
        """
        Strict variant: raises `InvalidBounds`, `FetchTimeout`, `NetworkError`,
        `FirebaseError` or `DataFetchError`.
        """
        places, _dropped = await self._fetch(bounds)
        return places

    async def fetch_region(self, bounds: GeoBounds) -> FetchResult:
        """
        Safe variant for UI callers: never raises, failures degrade to an empty result.
        """
        t0 = time.perf_counter()
        try:
            places, dropped = await self._fetch(bounds)
        except PlaceMapError as e:
            self.diagnostics.log_error(e, f"region_fetch_{e.kind.value}")
            return FetchResult(places=[], error=e, elapsed_ms=_ms_since(t0))
        except Exception as e:
            err = DataFetchError(f"{type(e).__name__}: {e}")
            err.__cause__ = e
            self.diagnostics.log_error(err, "region_fetch_data_fetch")
            return FetchResult(places=[], error=err, elapsed_ms=_ms_since(t0))
        return FetchResult(places=places, dropped=dropped, elapsed_ms=_ms_since(t0))

    async def _fetch(self, bounds: GeoBounds) -> tuple[list[Place], int]:
        if not is_valid(bounds):
            raise InvalidBounds(bounds)

        try:
            records = await asyncio.wait_for(self.source.fetch_all(), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            raise FetchTimeout(self.timeout_s) from None
        except PlaceMapError:
            raise
        except OSError as e:
            raise NetworkError(str(e) or type(e).__name__) from e
        except Exception as e:
            raise DataFetchError(f"{type(e).__name__}: {e}") from e

        places, malformed = decode_places(records or [])
        for err in malformed:
            self.diagnostics.log_error(err, "places_processing")

        inside = [p for p in places if point_in_bounds(bounds, p.lat, p.lng)]
        logger.debug(
            "region fetch: %d records, %d malformed, %d inside %s",
            len(records or []),
            len(malformed),
            len(inside),
            bounds.rounded_key(),
        )
        return inside, len(malformed)


def _ms_since(t0: float) -> float:
    return round((time.perf_counter() - t0) * 1000.0, 3)
