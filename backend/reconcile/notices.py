from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from fetch.errors import ErrorKind

Severity = Literal["error", "warning", "info"]


@dataclass(frozen=True)
class Notice:
    """
    A dismissible, non-blocking message for the notification layer.
    """

    kind: ErrorKind
    severity: Severity
    message: str
    user_message: str
    # Auto-dismiss after this many seconds; None keeps it until dismissed.
    timeout_s: float | None = None

    def as_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "severity": self.severity,
            "message": self.message,
            "userMessage": self.user_message,
            "timeoutS": self.timeout_s,
        }


NOTICES: dict[ErrorKind, Notice] = {
    ErrorKind.data_fetch: Notice(
        kind=ErrorKind.data_fetch,
        severity="warning",
        message="Failed to fetch places",
        user_message="Could not load places in this area. Try another region or reload the page.",
    ),
    ErrorKind.bounds_calculation: Notice(
        kind=ErrorKind.bounds_calculation,
        severity="warning",
        message="Failed to compute map bounds",
        user_message="There was a problem computing the visible map area. Try zooming or moving the map.",
    ),
    ErrorKind.places_processing: Notice(
        kind=ErrorKind.places_processing,
        severity="info",
        message="Some places could not be processed",
        user_message="Some places in this area could not be shown.",
        timeout_s=3.0,
    ),
    ErrorKind.firebase_error: Notice(
        kind=ErrorKind.firebase_error,
        severity="error",
        message="Data store request failed",
        user_message="Could not reach the server. Try again in a moment.",
    ),
    ErrorKind.network_error: Notice(
        kind=ErrorKind.network_error,
        severity="error",
        message="Connection error",
        user_message="You seem to be offline or on an unstable connection. Check your internet and try again.",
    ),
    ErrorKind.unknown: Notice(
        kind=ErrorKind.unknown,
        severity="error",
        message="Unexpected error",
        user_message="Something went wrong. The map is still usable; try again.",
        timeout_s=7.0,
    ),
}


def notice_for(kind: ErrorKind) -> Notice:
    return NOTICES.get(kind) or NOTICES[ErrorKind.unknown]
