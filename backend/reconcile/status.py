from __future__ import annotations

from enum import Enum


class ViewportStatus(str, Enum):
    loading = "loading"
    panning = "panning"
    empty = "empty"
    many = "many"
    some = "some"
    needs_search = "needs_search"


def classify_status(
    *,
    count: int,
    loading: bool = False,
    panning: bool = False,
    resolved: bool = True,
    many_threshold: int = 20,
) -> ViewportStatus:
    """
    Map reconciler state to the status shown next to the map.

    Precedence: loading, needs_search (nothing resolved yet), panning (a viewport change is
    pending while places are shown), then empty / many / some by count.
    """
    if loading:
        return ViewportStatus.loading
    if not resolved and count == 0:
        return ViewportStatus.needs_search
    if panning and count > 0:
        return ViewportStatus.panning
    if count == 0:
        return ViewportStatus.empty
    if count > many_threshold:
        return ViewportStatus.many
    return ViewportStatus.some
