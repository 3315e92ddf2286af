from __future__ import annotations

from typing import Any, Protocol


class PlaceSource(Protocol):
    """
    External document store, as seen by the Region Fetcher.

    The store only exposes "get all place-like records"; there is no server-side bounding box
    query, so every caller must post-filter by bounds itself.

    - InMemorySource: records held in process (tests, demo data)
    - DuckDBPlaceSource: records stored as JSON documents in a DuckDB table
    """

    name: str

    async def fetch_all(self) -> list[dict[str, Any]]: ...
