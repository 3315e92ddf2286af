from __future__ import annotations

import json
import logging

from fetch.errors import (
    DataFetchError,
    ErrorKind,
    FetchTimeout,
    InvalidBounds,
    classify_error,
)
from reconcile.notices import NOTICES, notice_for
from telemetry.logs import JsonFormatter


def test_every_error_kind_has_a_notice():
    assert set(NOTICES) == set(ErrorKind)
    for kind in ErrorKind:
        n = notice_for(kind)
        assert n.kind is kind
        assert n.severity in {"error", "warning", "info"}
        assert n.user_message


def test_classify_error():
    assert classify_error(InvalidBounds(None)) is ErrorKind.bounds_calculation
    assert classify_error(FetchTimeout(15)) is ErrorKind.network_error
    assert classify_error(DataFetchError("boom")) is ErrorKind.data_fetch
    assert classify_error(ConnectionResetError()) is ErrorKind.network_error
    assert classify_error(TimeoutError()) is ErrorKind.network_error
    assert classify_error(KeyError("x")) is ErrorKind.unknown


def test_notice_payload_is_camel_case():
    payload = notice_for(ErrorKind.places_processing).as_dict()
    assert payload["kind"] == "places_processing"
    assert payload["timeoutS"] == 3.0
    assert "userMessage" in payload


def test_json_formatter():
    record = logging.LogRecord("placemap", logging.WARNING, __file__, 1, "hello %s", ("map",), None)
    out = json.loads(JsonFormatter().format(record))
    assert out == {"level": "WARNING", "message": "hello map", "logger": "placemap"}
