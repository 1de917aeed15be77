"""Remove scales and derived datasets nothing references any more."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Set

from .actions import delete_dataset, delete_guide, delete_scale
from .parse_scales import domain_datasets
from .store import VisState

logger = logging.getLogger(__name__)

Dispatch = Callable[[Dict[str, Any]], Dict[str, Any]]


def used_scales(state: VisState) -> Set[int]:
    out: Set[int] = set()
    for mark in state.marks.values():
        for ref in mark.properties.values():
            if isinstance(ref, dict) and ref.get("scale") is not None:
                out.add(ref["scale"])
    return out


def used_datasets(state: VisState) -> Set[int]:
    live: Set[int] = {p.source for p in state.pipelines.values() if p.source is not None}
    live |= {m.from_data for m in state.marks.values() if m.from_data is not None}
    for scale in state.scales.values():
        live |= domain_datasets(scale.domain)

    # Anything upstream of a live dataset stays too.
    stack = list(live)
    while stack:
        ds = state.datasets.get(stack.pop())
        if ds is not None and ds.source is not None and ds.source not in live:
            live.add(ds.source)
            stack.append(ds.source)
    return live


def cleanup_unused(dispatch: Dispatch, state: VisState) -> None:
    scales = used_scales(state)
    for scale_id in [s for s in state.scales if s not in scales]:
        for guide_id in [g.id for g in state.guides.values() if g.scale == scale_id]:
            dispatch(delete_guide(guide_id))
        dispatch(delete_scale(scale_id))
        logger.debug("Removed unused scale %s", scale_id)

    datasets = used_datasets(state)
    for ds_id in [d.id for d in state.datasets.values() if d.derived and d.id not in datasets]:
        dispatch(delete_dataset(ds_id))
        logger.debug("Removed unused dataset %s", ds_id, extra={"ds_id": ds_id})
