from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Callable

from fetch.errors import ErrorKind, InvalidBounds, classify_error
from fetch.region import RegionFetcher
from geo.bounds import GeoBounds, is_valid
from geo.ops import center_distance_m, is_change_significant, point_in_bounds
from places.filters import NO_FILTER, PlaceFilter, apply_filter
from places.types import Place
from reconcile.markers import Marker, markers_for
from reconcile.notices import Notice, notice_for
from reconcile.status import ViewportStatus, classify_status
from settings.types import ViewportSettings
from spatial_cache.cache import SpatialCache
from telemetry.diagnostics import DiagnosticsSink, NullDiagnostics

logger = logging.getLogger(__name__)

Listener = Callable[["ViewportSnapshot"], None]
Notifier = Callable[[Notice], None]


@dataclass(frozen=True)
class ViewportSnapshot:
    """
    What the reconciler publishes: the visible set for the active viewport + filter.
    """

    places: tuple[Place, ...]
    status: ViewportStatus
    bounds: GeoBounds | None
    generation: int
    cache_hit: bool = False
    error: ErrorKind | None = None
    notice: Notice | None = None

    @property
    def markers(self) -> list[Marker]:
        return markers_for(self.places)

    def as_dict(self) -> dict:
        return {
            "places": [p.as_dict() for p in self.places],
            "markers": [m.as_dict() for m in self.markers],
            "status": self.status.value,
            "bounds": self.bounds.as_dict() if self.bounds is not None else None,
            "generation": self.generation,
            "cacheHit": self.cache_hit,
            "error": self.error.value if self.error is not None else None,
            "notice": self.notice.as_dict() if self.notice is not None else None,
        }


@dataclass
class ReconcilerStats:
    evaluations: int = 0
    ignored_changes: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    fetches: int = 0
    fetch_errors: int = 0
    stale_discards: int = 0
    invalid_bounds: int = 0


class ViewportReconciler:
    """
    Turns a stream of viewport changes into a published, filtered visible set.

    Per change: debounce -> significance check -> cache lookup -> fetch on miss -> filter ->
    publish. Single-threaded; the debounce timer and the region fetch are the only suspension
    points.

    Every significant evaluation mints a new generation. A fetch captures its generation and
    only publishes if it is still current, so a slow response for an old viewport never
    overwrites a newer one (last viewport wins, not last response). A superseded fetch is not
    cancelled, its result is simply dropped.

    Must be driven from inside a running asyncio loop.
    """

    def __init__(
        self,
        fetcher: RegionFetcher,
        *,
        settings: ViewportSettings | None = None,
        cache: SpatialCache | None = None,
        diagnostics: DiagnosticsSink | None = None,
        notify: Notifier | None = None,
    ):
        self.settings = settings or ViewportSettings()
        self.fetcher = fetcher
        self.cache = cache or SpatialCache(
            max_entries=self.settings.cache_max_entries,
            expiration_s=self.settings.cache_expiration_s,
            overlap_threshold=self.settings.cache_overlap_threshold,
        )
        self.diagnostics = diagnostics or NullDiagnostics()
        self.stats = ReconcilerStats()
        self._notify = notify

        self._filter: PlaceFilter = NO_FILTER
        self._last_bounds: GeoBounds | None = None
        self._candidates: list[Place] = []
        self._cache_hit = False
        self._error: ErrorKind | None = None
        self._notice: Notice | None = None

        self._generation = 0
        self._loading = False

        self._timer: asyncio.TimerHandle | None = None
        self._pending_bounds: GeoBounds | None = None
        self._tasks: set[asyncio.Task] = set()

        self._listeners: list[Listener] = []
        self._snapshot = self._build_snapshot()

    # -- public surface -------------------------------------------------------------------

    @property
    def snapshot(self) -> ViewportSnapshot:
        return self._snapshot

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def last_bounds(self) -> GeoBounds | None:
        return self._last_bounds

    @property
    def active_filter(self) -> PlaceFilter:
        return self._filter

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def on_viewport_change(self, bounds: GeoBounds) -> None:
        """
        Map signalled `bounds_changed`. (Re)starts the debounce timer.
        """
        if not is_valid(bounds):
            self._report_invalid_bounds(bounds)
            return

        loop = asyncio.get_running_loop()
        if self._timer is not None:
            self._timer.cancel()
        self._pending_bounds = bounds
        self._timer = loop.call_later(self.settings.debounce_s, self._on_debounce_fired)
        self._publish_if_changed()

    def set_filter(self, flt: PlaceFilter | None) -> ViewportSnapshot:
        """
        Re-run filtering over the current candidates. Never triggers a fetch; an in-flight
        fetch keeps going and its result is filtered with the new filter when it lands.
        """
        self._filter = flt or NO_FILTER
        return self._publish()

    async def resolve(self, bounds: GeoBounds, *, force: bool = False) -> ViewportSnapshot:
        """
        Evaluate `bounds` right away, skipping (and cancelling) any pending debounce.
        """
        self._cancel_timer()
        if not is_valid(bounds):
            return self._report_invalid_bounds(bounds)
        return await self._evaluate_safely(bounds, force=force)

    async def retry(self) -> ViewportSnapshot:
        """
        Manual retry: re-evaluate the current viewport even though it did not change.

        A viewport still waiting out its debounce is newer than the last evaluated one, so
        that is what gets retried.
        """
        bounds = self._pending_bounds or self._last_bounds
        if bounds is None:
            return self._snapshot
        return await self.resolve(bounds, force=True)

    async def wait_idle(self) -> None:
        """Wait until no debounce is pending and no evaluation is running."""
        while self._timer is not None or self._tasks:
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
            else:
                await asyncio.sleep(self.settings.debounce_s / 4.0)

    def close(self) -> None:
        self._cancel_timer()
        self._listeners.clear()

    # -- state machine --------------------------------------------------------------------

    def _on_debounce_fired(self) -> None:
        self._timer = None
        bounds = self._pending_bounds
        self._pending_bounds = None
        if bounds is None:
            return
        task = asyncio.get_running_loop().create_task(
            self._evaluate_safely(bounds, force=False)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _evaluate_safely(self, bounds: GeoBounds, *, force: bool) -> ViewportSnapshot:
        try:
            return await self._evaluate(bounds, force=force)
        except Exception as e:
            kind = classify_error(e)
            logger.exception("viewport evaluation failed")
            self.diagnostics.log_error(e, f"viewport_{kind.value}")
            self._loading = False
            return self._fail(kind)

    async def _evaluate(self, bounds: GeoBounds, *, force: bool) -> ViewportSnapshot:
        self.stats.evaluations += 1
        previous = self._last_bounds

        # After a failed evaluation nothing is shown for `previous`; any move re-evaluates.
        recovering = self._error is not None
        if not force and not recovering and not is_change_significant(
            previous, bounds, self.settings.change_threshold
        ):
            self.stats.ignored_changes += 1
            self.diagnostics.log_event(
                "viewport_change_ignored", {"bounds": bounds.as_dict()}
            )
            return self._publish()

        self._generation += 1
        gen = self._generation
        self._last_bounds = bounds
        self._error = None
        self._notice = None

        params: dict = {"bounds": bounds.as_dict(), "generation": gen}
        pan_m = center_distance_m(previous, bounds)
        if math.isfinite(pan_m):
            params["panDistanceM"] = round(pan_m, 1)

        self.cache = self.cache.sweep_expired()
        cached = self.cache.lookup(bounds)
        if cached is not None:
            self.stats.cache_hits += 1
            # A cache hit also supersedes any fetch still in flight.
            self._loading = False
            self._candidates = cached
            self._cache_hit = True
            self.diagnostics.log_event("viewport_resolved", {**params, "cacheHit": True})
            return self._publish()

        self.stats.cache_misses += 1
        self.stats.fetches += 1
        self._loading = True
        self._cache_hit = False
        self._publish()

        result = await self.fetcher.fetch_region(bounds)

        if gen != self._generation:
            self.stats.stale_discards += 1
            self.diagnostics.log_event(
                "stale_fetch_discarded",
                {"bounds": bounds.as_dict(), "generation": gen, "current": self._generation},
            )
            return self._snapshot

        self._loading = False
        if result.error is not None:
            self.stats.fetch_errors += 1
            return self._fail(result.error.kind)

        self.cache = self.cache.store(bounds, result.places)
        self._candidates = list(result.places)
        self.diagnostics.log_event(
            "viewport_resolved",
            {
                **params,
                "cacheHit": False,
                "elapsedMs": result.elapsed_ms,
                "fetched": len(result.places),
                "dropped": result.dropped,
            },
        )
        return self._publish()

    # -- helpers --------------------------------------------------------------------------

    def _fail(self, kind: ErrorKind) -> ViewportSnapshot:
        self._candidates = []
        self._cache_hit = False
        self._error = kind
        self._notice = notice_for(kind)
        self._send_notice(self._notice)
        return self._publish()

    def _report_invalid_bounds(self, bounds: object) -> ViewportSnapshot:
        self.stats.invalid_bounds += 1
        err = InvalidBounds(bounds)
        self.diagnostics.log_error(err, "bounds_calculation")
        # Keep showing whatever was visible; only surface the notice.
        self._error = err.kind
        self._notice = notice_for(err.kind)
        self._send_notice(self._notice)
        return self._publish()

    def _send_notice(self, notice: Notice) -> None:
        if self._notify is None:
            return
        try:
            self._notify(notice)
        except Exception:
            logger.exception("notify callback failed")

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending_bounds = None

    def _build_snapshot(self) -> ViewportSnapshot:
        b = self._last_bounds
        # Cached candidates may extend past the active viewport.
        in_view = (
            [p for p in self._candidates if point_in_bounds(b, p.lat, p.lng)]
            if b is not None
            else list(self._candidates)
        )
        visible = apply_filter(in_view, self._filter)
        status = classify_status(
            count=len(visible),
            loading=self._loading,
            panning=self._timer is not None,
            resolved=self._last_bounds is not None,
            many_threshold=self.settings.many_threshold,
        )
        return ViewportSnapshot(
            places=tuple(visible),
            status=status,
            bounds=self._last_bounds,
            generation=self._generation,
            cache_hit=self._cache_hit,
            error=self._error,
            notice=self._notice,
        )

    def _publish(self) -> ViewportSnapshot:
        self._snapshot = self._build_snapshot()
        for listener in list(self._listeners):
            try:
                listener(self._snapshot)
            except Exception as e:
                logger.exception("viewport listener failed")
                self.diagnostics.log_error(e, "viewport_listener")
        return self._snapshot

    def _publish_if_changed(self) -> None:
        nxt = self._build_snapshot()
        if nxt != self._snapshot:
            self._publish()
