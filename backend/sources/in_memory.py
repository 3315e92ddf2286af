from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from sources.types import PlaceSource


class InMemorySource(PlaceSource):
    """
    Raw place documents held in memory.

    Records are returned as-is (no validation); that is the fetcher's job.
    """

    name = "in_memory"

    def __init__(self, records: list[dict[str, Any]] | None = None):
        self._records: list[dict[str, Any]] = list(records or [])

    @classmethod
    def from_json_file(cls, path: str | Path) -> "InMemorySource":
        return cls(load_records(path))

    def add(self, record: dict[str, Any]) -> None:
        self._records.append(record)

    async def fetch_all(self) -> list[dict[str, Any]]:
        # Shallow copies so callers can't mutate our store.
        return [dict(r) if isinstance(r, dict) else r for r in self._records]


def load_records(path: str | Path) -> list[dict[str, Any]]:
    p = Path(path)
    data = json.loads(p.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        # Accept {"places": [...]} as well as a bare list.
        data = data.get("places") or []
    if not isinstance(data, list):
        raise ValueError(f"Invalid places file root: {p}")
    return data
