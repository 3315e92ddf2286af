from __future__ import annotations

import json
import logging
import queue
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import duckdb

from telemetry.sql import (
    CREATE_EVENTS_TABLE_SQL,
    INSERT_EVENTS_SQL,
    RECENT_ERRORS_SQL,
    SUMMARY_SQL_TEMPLATE,
)

logger = logging.getLogger(__name__)

BATCH_ROWS = 250
BATCH_AGE_S = 0.5
QUEUE_LIMIT = 10_000


def _safe_float(v) -> float | None:
    try:
        if v is None:
            return None
        return float(v)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class TelemetryRow:
    ts_ms: int
    kind: str
    name: str
    context: str | None
    error_code: str | None
    error_message: str | None
    bounds: dict[str, Any]
    params_json: str

    def as_params(self) -> tuple:
        b = self.bounds
        return (
            self.ts_ms,
            self.kind,
            self.name,
            self.context,
            self.error_code,
            self.error_message,
            _safe_float(b.get("north")),
            _safe_float(b.get("south")),
            _safe_float(b.get("east")),
            _safe_float(b.get("west")),
            self.params_json,
        )


class TelemetryStore:
    """
    Append-only event log in a local DuckDB file.

    `record` only enqueues; a single writer thread owns all inserts and writes rows in
    batches (every BATCH_ROWS rows, or BATCH_AGE_S after the oldest unwritten row).
    Reads go through the same connection, since DuckDB file locks keep other processes out
    while the backend is writing.
    """

    def __init__(self, path: Path, conn: duckdb.DuckDBPyConnection):
        self.path = path
        self.conn = conn
        self._lock = threading.RLock()
        self._q: queue.Queue[TelemetryRow] = queue.Queue(maxsize=QUEUE_LIMIT)
        self._stop = threading.Event()
        self._flush_now = threading.Event()
        self._worker: threading.Thread | None = None

    @classmethod
    def open(cls, path: Path) -> "TelemetryStore":
        path.parent.mkdir(parents=True, exist_ok=True)
        store = cls(path=path, conn=duckdb.connect(str(path)))
        store.ensure_schema()
        store.start()
        return store

    def ensure_schema(self) -> None:
        with self._lock:
            self.conn.execute(CREATE_EVENTS_TABLE_SQL)

    def start(self) -> None:
        if self._worker is not None:
            return
        self._stop.clear()
        self._worker = threading.Thread(
            target=self._writer_loop, name="telemetry-writer", daemon=True
        )
        self._worker.start()

    def stop(self, *, timeout_s: float = 2.0) -> None:
        """Ask the writer to drain what is queued, then exit."""
        self._stop.set()
        w = self._worker
        if w is not None and w.is_alive():
            w.join(timeout=timeout_s)
        self._worker = None

    def record(
        self,
        *,
        kind: str,
        name: str,
        context: str | None = None,
        error_code: str | None = None,
        error_message: str | None = None,
        bounds: dict[str, float] | None = None,
        params: dict[str, Any] | None = None,
    ) -> None:
        self.start()
        row = TelemetryRow(
            ts_ms=int(time.time() * 1000),
            kind=str(kind),
            name=str(name),
            context=context,
            error_code=error_code,
            error_message=error_message,
            bounds=dict(bounds or {}),
            params_json=json.dumps(params or {}, ensure_ascii=False, default=str),
        )
        try:
            self._q.put_nowait(row)
        except queue.Full:
            logger.warning("telemetry queue full; dropping %s/%s", kind, name)

    def flush(self, *, timeout_s: float = 2.0) -> bool:
        """
        Write everything queued so far. Returns False if the writer did not catch up in time.
        """
        if self._worker is None:
            return True
        self._flush_now.set()
        deadline = time.monotonic() + timeout_s
        while self._q.unfinished_tasks:
            if time.monotonic() >= deadline:
                return False
            time.sleep(0.01)
        return True

    def query(self, sql: str, params: list[Any] | None = None) -> list[tuple]:
        with self._lock:
            if params:
                return self.conn.execute(sql, params).fetchall()
            return self.conn.execute(sql).fetchall()

    def summary(
        self,
        *,
        kind: str | None = None,
        name: str | None = None,
        since_ms: int | None = None,
    ) -> list[dict[str, Any]]:
        """Per (kind, name) counts, fetch latency and cache hit rate."""
        filters = {"kind = ?": kind, "name = ?": name}
        where = [clause for clause, v in filters.items() if v]
        params: list[Any] = [v for v in filters.values() if v]
        if since_ms is not None:
            where.append("ts_ms >= ?")
            params.append(int(since_ms))

        where_sql = f"WHERE {' AND '.join(where)}" if where else ""
        rows = self.query(SUMMARY_SQL_TEMPLATE.format(where_sql=where_sql), params)
        return [
            {
                "kind": kind_v,
                "name": name_v,
                "n": int(n),
                "avgElapsedMs": _safe_float(avg_ms),
                "p95ElapsedMs": _safe_float(p95),
                "cacheHitRate": _safe_float(hit_rate),
            }
            for kind_v, name_v, n, avg_ms, p95, hit_rate in rows
        ]

    def recent_errors(self, *, limit: int = 25) -> list[dict[str, Any]]:
        rows = self.query(RECENT_ERRORS_SQL, [int(max(1, min(200, limit)))])
        return [
            {
                "tsMs": int(ts_ms),
                "context": context,
                "errorCode": code,
                "errorMessage": message,
            }
            for ts_ms, context, code, message in rows
        ]

    def close(self) -> None:
        self.stop(timeout_s=2.0)
        with self._lock:
            self.conn.close()

    def reset(self) -> None:
        """Close the store and delete its file."""
        self.close()
        self.path.unlink(missing_ok=True)

    def _writer_loop(self) -> None:
        batch: list[TelemetryRow] = []
        oldest: float | None = None

        while True:
            try:
                batch.append(self._q.get(timeout=0.05))
                if oldest is None:
                    oldest = time.monotonic()
            except queue.Empty:
                pass

            stopping = self._stop.is_set()
            if batch and (
                stopping
                or self._flush_now.is_set()
                or len(batch) >= BATCH_ROWS
                or time.monotonic() - (oldest or 0.0) >= BATCH_AGE_S
            ):
                self._write(batch)
                batch, oldest = [], None

            if not batch and self._q.empty():
                self._flush_now.clear()
                if stopping:
                    return

    def _write(self, batch: list[TelemetryRow]) -> None:
        try:
            with self._lock:
                self.conn.executemany(INSERT_EVENTS_SQL, [r.as_params() for r in batch])
                # Make rows visible to readers right away.
                self.conn.execute("CHECKPOINT;")
        except duckdb.Error:
            logger.exception("telemetry batch of %d rows dropped", len(batch))
        finally:
            for _ in batch:
                self._q.task_done()
