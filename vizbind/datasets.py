"""
Dataset output accessor.

Source datasets hold a DataFrame. Derived datasets (summaries, binned views)
hold Vega-style transforms that are evaluated here with pandas over their
upstream dataset's rows. Results are cached on the state and invalidated by
the store whenever a dataset, or anything upstream of it, changes.
"""

from __future__ import annotations

import json
import logging
import math
from typing import Any, Callable, Dict, List, Optional

import numpy as np
import pandas as pd

from .fields import FieldSchema, field_schemas
from .store import VisState

logger = logging.getLogger(__name__)

Records = List[Dict[str, Any]]


def _q(p: float) -> Callable[[pd.Series], Any]:
    return lambda s: s.quantile(p)


AGG_FUNCS: Dict[str, Callable[[pd.Series], Any]] = {
    "count": lambda s: len(s),
    "valid": lambda s: int(s.notna().sum()),
    "missing": lambda s: int(s.isna().sum()),
    "distinct": lambda s: int(s.nunique(dropna=False)),
    "sum": lambda s: s.sum(),
    "mean": lambda s: s.mean(),
    "average": lambda s: s.mean(),
    "median": lambda s: s.median(),
    "min": lambda s: s.min(),
    "max": lambda s: s.max(),
    "variance": lambda s: s.var(),
    "variancep": lambda s: s.var(ddof=0),
    "stdev": lambda s: s.std(),
    "stdevp": lambda s: s.std(ddof=0),
    "q1": _q(0.25),
    "q3": _q(0.75),
}


def nice_step(span: float, maxbins: int = 10) -> float:
    """Smallest 1/2/5 x 10^k step that splits ``span`` into at most ``maxbins`` bins."""
    if not span or span <= 0 or not math.isfinite(span):
        return 1.0
    raw = span / max(1, maxbins)
    mag = 10 ** math.floor(math.log10(raw))
    for m in (1, 2, 5, 10):
        if mag * m >= raw:
            return float(mag * m)
    return float(mag * 10)


def aggregate_frame(df: pd.DataFrame, tx: Dict[str, Any]) -> pd.DataFrame:
    groupby = [g for g in (tx.get("groupby") or []) if g in df.columns]
    ops = list(tx.get("ops") or ["count"])
    fields = list(tx.get("fields") or [None] * len(ops))
    names = list(tx.get("as") or [f"{op}_{f}" if f else op for op, f in zip(ops, fields)])

    def measure(op: str, f: Optional[str], frame_or_group):
        fn = AGG_FUNCS.get(op)
        if fn is None:
            logger.warning("Unsupported aggregate op %r, emitting nulls", op)
            return None
        if op == "count" or not f:
            return frame_or_group.size() if groupby else len(frame_or_group)
        if groupby:
            return frame_or_group[f].agg(fn)
        return fn(frame_or_group[f])

    if not groupby:
        return pd.DataFrame([{name: measure(op, f, df) for op, f, name in zip(ops, fields, names)}])

    grouped = df.groupby(groupby, dropna=False, sort=True)
    out = pd.DataFrame(index=grouped.size().index)
    for op, f, name in zip(ops, fields, names):
        out[name] = measure(op, f, grouped)
    return out.reset_index()


def bin_frame(df: pd.DataFrame, tx: Dict[str, Any]) -> pd.DataFrame:
    f = tx["field"]
    names = list(tx.get("as") or [f"bin_{f}_start", f"bin_{f}_end"])
    start_name, end_name = names[0], names[1] if len(names) > 1 else f"{names[0]}_end"
    out = df.copy()

    vals = pd.to_numeric(out[f], errors="coerce").to_numpy(dtype=float)
    if not np.isfinite(vals).any():
        out[start_name] = np.nan
        out[end_name] = np.nan
        return out

    lo, hi = float(np.nanmin(vals)), float(np.nanmax(vals))
    step = nice_step(hi - lo, int(tx.get("maxbins") or 10))
    first = math.floor(lo / step) * step
    stop = max(math.ceil(hi / step) * step, first + step)
    starts = first + np.floor((vals - first) / step) * step
    starts = np.where(starts >= stop, stop - step, starts)
    out[start_name] = starts
    out[end_name] = starts + step
    return out


TRANSFORMS: Dict[str, Callable[[pd.DataFrame, Dict[str, Any]], pd.DataFrame]] = {
    "aggregate": aggregate_frame,
    "bin": bin_frame,
}


def frame(state: VisState, ds_id: int) -> pd.DataFrame:
    """Materialized rows of a dataset as a DataFrame."""
    ds = state.datasets[ds_id]
    if ds.source is not None:
        df = frame(state, ds.source)
    elif ds.values is not None:
        df = ds.values
    else:
        df = pd.DataFrame()

    for tx in ds.transforms:
        fn = TRANSFORMS.get(tx.get("type"))
        if fn is None:
            logger.warning("Skipping unsupported transform %r", tx.get("type"), extra={"ds_id": ds_id})
            continue
        df = fn(df, tx)
    return df


def to_records(df: pd.DataFrame) -> Records:
    # JSON round trip: NaN -> null, timestamps -> ISO strings
    return json.loads(df.to_json(orient="records", date_format="iso"))


def output(state: VisState, ds_id: int) -> Records:
    cached = state.output_cache.get(ds_id)
    if cached is None:
        cached = state.output_cache[ds_id] = to_records(frame(state, ds_id))
    return cached


def schema(state: VisState, ds_id: int) -> List[FieldSchema]:
    return field_schemas(frame(state, ds_id))
