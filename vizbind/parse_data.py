"""
Derive the datasets a compiled unit spec reads from.

The compiled data entry holding inline values stands for the pipeline's
source dataset. An entry that aggregates becomes a summary dataset in the
same pipeline, shared by every mark grouping by the same fields. Bin
transforms are stored on whichever dataset they run over; Vega-Lite's
extent/filter/formula helpers only matter when rendering and are dropped.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from .actions import add_dataset, add_transform, update_transform
from .parsed import ParsedResult
from .store import Dataset, VisState

logger = logging.getLogger(__name__)

SOURCE = "source"
SUMMARY = "summary"

Dispatch = Callable[[Dict[str, Any]], Dict[str, Any]]


def groupby_key(groupby: Optional[List[str]]) -> str:
    return "|".join(sorted(groupby or []))


def _aggregate_index(ds: Dataset) -> Optional[int]:
    for i, tx in enumerate(ds.transforms):
        if tx.get("type") == "aggregate":
            return i
    return None


def _measures(tx: Dict[str, Any]) -> List[tuple]:
    ops = list(tx.get("ops") or [])
    fields = list(tx.get("fields") or [None] * len(ops))
    names = list(tx.get("as") or [f"{op}_{f}" if f else op for op, f in zip(ops, fields)])
    return list(zip(ops, fields, names))


def merge_aggregate(compiled: Dict[str, Any], existing: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Compiled aggregate plus any measures other bindings already asked for."""
    measures = _measures(compiled)
    seen = {name for _, _, name in measures}
    if existing is not None:
        for op, f, name in _measures(existing):
            if name not in seen:
                measures.append((op, f, name))
                seen.add(name)
    return {
        "type": "aggregate",
        "groupby": list(compiled.get("groupby") or []),
        "ops": [m[0] for m in measures],
        "fields": [m[1] for m in measures],
        "as": [m[2] for m in measures],
    }


def bin_transform(tx: Dict[str, Any]) -> Dict[str, Any]:
    field = tx["field"]
    return {
        "type": "bin",
        "field": field,
        "as": list(tx.get("as") or [f"bin_{field}_start", f"bin_{field}_end"]),
        "maxbins": int(tx.get("maxbins") or 10),
    }


def _used_by_other_marks(state: VisState, ds_id: int, mark_id: int) -> bool:
    return any(m.from_data == ds_id and m.id != mark_id for m in state.marks.values())


def _summary(dispatch: Dispatch, state: VisState, parsed: ParsedResult, upstream: int, tx: Dict[str, Any]) -> int:
    pipeline = state.pipelines[parsed.pl_id]
    key = groupby_key(tx.get("groupby"))

    ds_id = pipeline.aggregates.get(key)
    if ds_id not in state.datasets:
        ds_id = None
        mapped = parsed.map.data.get(SUMMARY)
        ds = state.datasets.get(mapped) if mapped is not None else None
        if ds is not None and ds.parent == parsed.pl_id and ds.source == upstream \
                and not _used_by_other_marks(state, ds.id, parsed.mark_id):
            ds_id = ds.id

    if ds_id is None:
        up = state.datasets[upstream]
        groupby = list(tx.get("groupby") or [])
        name = f"{up.name}_groupby_{'_'.join(groupby)}" if groupby else f"{up.name}_summary"
        agg = merge_aggregate(tx, None)
        ds_id = dispatch(add_dataset(name, parsed.pl_id, source=upstream, transforms=[agg]))["id"]
        logger.debug("Created summary dataset %s", ds_id, extra={"ds_id": ds_id, "mark_id": parsed.mark_id})
        return ds_id

    ds = state.datasets[ds_id]
    idx = _aggregate_index(ds)
    existing = ds.transforms[idx] if idx is not None else None
    agg = merge_aggregate(tx, existing)
    if idx is None:
        dispatch(add_transform(ds_id, agg))
    elif agg != existing:
        dispatch(update_transform(ds_id, idx, agg))
    return ds_id


def _add_bin(dispatch: Dispatch, state: VisState, ds_id: int, tx: Dict[str, Any]) -> None:
    binned = bin_transform(tx)
    if binned not in state.datasets[ds_id].transforms:
        dispatch(add_transform(ds_id, binned))


def parse_data(dispatch: Dispatch, state: VisState, parsed: ParsedResult) -> None:
    data_map = parsed.map.data
    source_id = state.pipelines[parsed.pl_id].source
    names: Dict[str, int] = {}
    summary_id: Optional[int] = None

    for entry in parsed.output.get("data") or []:
        name = entry.get("name")
        if "values" in entry or "url" in entry:
            names[name] = source_id
            data_map[SOURCE] = source_id
            data_map[name] = source_id
            continue

        target = names.get(entry.get("source"), source_id)
        for tx in entry.get("transform") or []:
            kind = tx.get("type")
            if kind == "aggregate":
                target = summary_id = _summary(dispatch, state, parsed, target, tx)
            elif kind == "bin":
                _add_bin(dispatch, state, target, tx)
        names[name] = target
        data_map[name] = target

    if summary_id is None:
        data_map.pop(SUMMARY, None)
    else:
        data_map[SUMMARY] = summary_id
