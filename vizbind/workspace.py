"""Helpers behind the Streamlit inspector."""

from __future__ import annotations

import io
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from .actions import add_mark, add_pipeline
from .config import get_settings
from .store import Store, VisState
from .unit_spec import MAP_KEY, public_spec


def read_csv_bytes(content: bytes) -> pd.DataFrame:
    try:
        return pd.read_csv(io.BytesIO(content))
    except UnicodeDecodeError:
        return pd.read_csv(io.BytesIO(content), encoding="latin-1")


def import_frame(store: Store, name: str, df: pd.DataFrame) -> Tuple[int, int]:
    """New pipeline sourced by ``df``; returns (pipeline id, source dataset id)."""
    action = store.dispatch(add_pipeline(name, df))
    return action["id"], action["ds_id"]


def new_mark(store: Store, mark_type: str, name: Optional[str] = None) -> int:
    return store.dispatch(add_mark(mark_type, name))["id"]


def store_summary(state: VisState) -> Dict[str, List[Dict[str, Any]]]:
    """Flat rows per primitive kind, for tables."""
    return {
        "pipelines": [
            {"id": p.id, "name": p.name, "source": p.source, "aggregates": dict(p.aggregates)}
            for p in state.pipelines.values()
        ],
        "datasets": [
            {
                "id": d.id, "name": d.name, "pipeline": d.parent, "source": d.source,
                "transforms": [t.get("type") for t in d.transforms],
            }
            for d in state.datasets.values()
        ],
        "scales": [
            {"id": s.id, "name": s.name, "type": s.type, "domain": str(s.domain), "range": str(s.range)}
            for s in state.scales.values()
        ],
        "marks": [
            {"id": m.id, "name": m.name, "type": m.type, "from": m.from_data, "properties": sorted(m.properties)}
            for m in state.marks.values()
        ],
        "guides": [
            {"id": g.id, "kind": g.kind, "scale": g.scale, "orient": g.orient, "property": g.property, "title": g.title}
            for g in state.guides.values()
        ],
    }


def identifier_map(spec: Optional[Dict[str, Any]]) -> Dict[str, Dict[str, int]]:
    if not spec or spec.get(MAP_KEY) is None:
        return {}
    return spec[MAP_KEY].to_dict()


def renderable_unit(
    spec: Dict[str, Any],
    rows: List[Dict[str, Any]],
    max_rows: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Unit spec with inline rows, for previewing through altair.
    Large datasets are sampled (``max_embedded_rows`` by default) to keep the UI fast.
    """
    settings = get_settings()
    limit = max_rows or settings.max_embedded_rows
    out = public_spec(spec)
    if len(rows) > limit:
        rows = pd.DataFrame(rows).sample(n=limit, random_state=settings.sample_seed).to_dict(orient="records")
    out["data"] = {"values": rows}
    out.get("config", {}).pop("cell", None)
    return out
