from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """
    Error classifications surfaced to the notification layer.
    """

    data_fetch = "data_fetch"
    bounds_calculation = "bounds_calculation"
    places_processing = "places_processing"
    firebase_error = "firebase_error"
    network_error = "network_error"
    unknown = "unknown"


class PlaceMapError(Exception):
    kind: ErrorKind = ErrorKind.unknown


class InvalidBounds(PlaceMapError):
    """Malformed viewport; never sent to the data source."""

    kind = ErrorKind.bounds_calculation

    def __init__(self, bounds: object):
        super().__init__(f"invalid bounds: {bounds!r}")
        self.bounds = bounds


class FetchTimeout(PlaceMapError):
    kind = ErrorKind.network_error

    def __init__(self, timeout_s: float):
        super().__init__(f"region fetch exceeded {timeout_s:g}s")
        self.timeout_s = timeout_s


class RecordMalformed(PlaceMapError):
    """A single document failed validation. Skipped, never fatal."""

    kind = ErrorKind.places_processing

    def __init__(self, record_id: str | None, reason: str):
        super().__init__(f"record {record_id or '<no id>'}: {reason}")
        self.record_id = record_id
        self.reason = reason


class NetworkError(PlaceMapError):
    kind = ErrorKind.network_error


class FirebaseError(PlaceMapError):
    """The document store answered with an error of its own."""

    kind = ErrorKind.firebase_error


class DataFetchError(PlaceMapError):
    """Unexpected failure while reading from the data source."""

    kind = ErrorKind.data_fetch


def classify_error(exc: BaseException) -> ErrorKind:
    if isinstance(exc, PlaceMapError):
        return exc.kind
    # TimeoutError and ConnectionError are both OSError subclasses.
    if isinstance(exc, OSError):
        return ErrorKind.network_error
    return ErrorKind.unknown
