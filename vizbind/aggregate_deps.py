"""Keep summary datasets registered against the data they are computed from."""

from __future__ import annotations

from typing import Any, Callable, Dict

from .actions import register_aggregate
from .parse_data import SUMMARY, groupby_key
from .parsed import ParsedResult
from .store import VisState

Dispatch = Callable[[Dict[str, Any]], Dict[str, Any]]


def update_aggregate_dependencies(dispatch: Dispatch, state: VisState, parsed: ParsedResult) -> None:
    """
    Register the binding's summary dataset under its current groupby key so
    other marks grouping the same way share it, and record it as a dependent
    of its upstream dataset so upstream changes invalidate its rows.
    """
    summary_id = parsed.map.data.get(SUMMARY)
    ds = state.datasets.get(summary_id) if summary_id is not None else None
    if ds is None:
        return

    agg = next((tx for tx in ds.transforms if tx.get("type") == "aggregate"), None)
    if agg is None:
        return

    key = groupby_key(agg.get("groupby"))
    pipeline = state.pipelines[parsed.pl_id]
    upstream = state.datasets.get(ds.source) if ds.source is not None else None
    registered = pipeline.aggregates.get(key) == summary_id
    stale = any(v == summary_id and k != key for k, v in pipeline.aggregates.items())
    tracked = upstream is None or summary_id in upstream.dependents

    if not registered or stale or not tracked:
        dispatch(register_aggregate(parsed.pl_id, key, summary_id))
