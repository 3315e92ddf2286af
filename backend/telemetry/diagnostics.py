from __future__ import annotations

import logging
from typing import Any, Protocol

from telemetry.store import TelemetryStore

logger = logging.getLogger(__name__)


class DiagnosticsSink(Protocol):
    """
    Fire-and-forget diagnostics. Implementations must never raise into the caller.
    """

    def log_error(self, error: BaseException, context: str) -> None: ...

    def log_event(self, name: str, params: dict[str, Any] | None = None) -> None: ...


class NullDiagnostics(DiagnosticsSink):
    """Logging only."""

    def log_error(self, error: BaseException, context: str) -> None:
        logger.warning("%s: %s: %s", context, type(error).__name__, error)

    def log_event(self, name: str, params: dict[str, Any] | None = None) -> None:
        logger.debug("event %s %s", name, params or {})


class TelemetryDiagnostics(DiagnosticsSink):
    """
    Logs, then enqueues a row into the DuckDB telemetry store (if one is configured).
    """

    def __init__(self, store: TelemetryStore | None):
        self.store = store

    def log_error(self, error: BaseException, context: str) -> None:
        logger.warning("%s: %s: %s", context, type(error).__name__, error)
        if self.store is None:
            return
        try:
            self.store.record(
                kind="error",
                name="error",
                context=context,
                error_code=type(error).__name__,
                error_message=str(error),
            )
        except Exception:
            logger.exception("telemetry record failed")

    def log_event(self, name: str, params: dict[str, Any] | None = None) -> None:
        logger.debug("event %s %s", name, params or {})
        if self.store is None:
            return
        p = dict(params or {})
        bounds = p.pop("bounds", None)
        try:
            self.store.record(
                kind="event",
                name=name,
                bounds=bounds if isinstance(bounds, dict) else None,
                params=p,
            )
        except Exception:
            logger.exception("telemetry record failed")
