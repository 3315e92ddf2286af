from __future__ import annotations

import asyncio
import json
import os
import threading
from pathlib import Path
from typing import Any

import duckdb

from sources.types import PlaceSource

CREATE_PLACES_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS places (
  id TEXT PRIMARY KEY,
  doc_json TEXT
);
"""

SELECT_ALL_SQL = "SELECT id, doc_json FROM places ORDER BY id"


class DuckDBPlaceSource(PlaceSource):
    """
    Place documents stored as JSON text in a DuckDB table.

    Reads are a plain full scan: the real document store offers no bbox query either,
    and bounding stays client-side. Queries run in a worker thread so the event loop
    never blocks on DuckDB.
    """

    name = "duckdb"

    def __init__(self, *, path: str | None = None, threads: int | None = None):
        self.path = path or (os.getenv("PLACEMAP_DUCKDB_PATH") or "data/duckdb/places.duckdb")
        self.threads = threads or _duckdb_threads()
        self._lock = threading.RLock()
        self._conn: duckdb.DuckDBPyConnection | None = None

    def _connection(self) -> duckdb.DuckDBPyConnection:
        with self._lock:
            if self._conn is None:
                self._conn = _connect(self.path, threads=self.threads)
                self._conn.execute(CREATE_PLACES_TABLE_SQL)
            return self._conn

    def seed(self, records: list[dict[str, Any]]) -> int:
        """
        Insert records keyed by their `id`; records without one get a positional id.

        Returns the number of rows written.
        """
        rows = []
        for i, rec in enumerate(records):
            rid = rec.get("id") if isinstance(rec, dict) else None
            key = str(rid) if rid is not None else f"__row{i}"
            rows.append((key, json.dumps(rec, ensure_ascii=False, default=str)))
        if not rows:
            return 0
        with self._lock:
            conn = self._connection()
            conn.executemany("INSERT OR REPLACE INTO places VALUES (?, ?)", rows)
        return len(rows)

    def _read_all(self) -> list[dict[str, Any]]:
        with self._lock:
            rows = self._connection().execute(SELECT_ALL_SQL).fetchall()
        out: list[dict[str, Any]] = []
        for _rid, doc in rows:
            try:
                out.append(json.loads(doc))
            except (TypeError, ValueError):
                # Let the decoder reject it as a malformed record.
                out.append({"id": _rid})
        return out

    async def fetch_all(self) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._read_all)

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                try:
                    self._conn.close()
                finally:
                    self._conn = None


def _duckdb_threads() -> int:
    raw = (os.getenv("PLACEMAP_DUCKDB_THREADS") or "").strip()
    if raw:
        try:
            return max(1, int(raw))
        except ValueError:
            pass
    return max(1, int(os.cpu_count() or 1))


def _connect(path: str, *, threads: int) -> duckdb.DuckDBPyConnection:
    p = Path(path)
    if p.parent and str(p.parent) not in {".", ""}:
        p.parent.mkdir(parents=True, exist_ok=True)
    return duckdb.connect(database=str(p), read_only=False, config={"threads": int(threads)})
