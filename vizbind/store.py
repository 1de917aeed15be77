"""
Document store: the live primitives a chart is made of.

All mutation goes through ``Store.dispatch`` with an action dict built in
``vizbind.actions``. The store also keeps the undo history; a batch groups
any number of dispatched actions into one undo entry.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set

import pandas as pd

from .errors import HistoryError

logger = logging.getLogger(__name__)


@dataclass
class Pipeline:
    id: int
    name: str
    source: Optional[int] = None
    aggregates: Dict[str, int] = field(default_factory=dict)  # groupby key -> dataset id


@dataclass
class Dataset:
    id: int
    name: str
    parent: Optional[int]            # pipeline id
    values: Optional[pd.DataFrame] = None
    source: Optional[int] = None     # upstream dataset, derived datasets only
    transforms: List[Dict[str, Any]] = field(default_factory=list)
    dependents: Set[int] = field(default_factory=set)

    @property
    def derived(self) -> bool:
        return self.source is not None


@dataclass
class Scale:
    id: int
    name: str
    type: str
    domain: Any = None
    range: Any = None
    props: Dict[str, Any] = field(default_factory=dict)

    def definition(self) -> Dict[str, Any]:
        return {"type": self.type, "domain": self.domain, "range": self.range, "props": self.props}


@dataclass
class Mark:
    id: int
    type: str
    name: str
    from_data: Optional[int] = None
    properties: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    vl_unit: Optional[Dict[str, Any]] = None


@dataclass
class Guide:
    id: int
    kind: str                        # axis / legend
    scale: int
    orient: Optional[str] = None
    property: Optional[str] = None   # legends: fill, stroke, size, shape, opacity
    title: Optional[str] = None
    grid: bool = False


@dataclass
class VisState:
    pipelines: Dict[int, Pipeline] = field(default_factory=dict)
    datasets: Dict[int, Dataset] = field(default_factory=dict)
    scales: Dict[int, Scale] = field(default_factory=dict)
    marks: Dict[int, Mark] = field(default_factory=dict)
    guides: Dict[int, Guide] = field(default_factory=dict)
    counter: int = 0
    output_cache: Dict[int, List[Dict[str, Any]]] = field(default_factory=dict, repr=False)

    def next_id(self) -> int:
        self.counter += 1
        return self.counter


def get_in(state: VisState, path: str, default: Any = None) -> Any:
    """Dotted lookup, e.g. ``get_in(state, "datasets.3.parent")``."""
    obj: Any = state
    for part in path.split("."):
        if obj is None:
            return default
        if isinstance(obj, dict):
            key: Any = part
            if part.lstrip("-").isdigit() and int(part) in obj:
                key = int(part)
            obj = obj.get(key)
        else:
            obj = getattr(obj, part, None)
    return default if obj is None else obj


# ---------------------------
# Reducers
# ---------------------------
def _invalidate(state: VisState, ds_id: int) -> None:
    stack = [ds_id]
    seen: Set[int] = set()
    while stack:
        cur = stack.pop()
        if cur in seen:
            continue
        seen.add(cur)
        state.output_cache.pop(cur, None)
        ds = state.datasets.get(cur)
        if ds is not None:
            stack.extend(ds.dependents)


def _add_pipeline(state: VisState, action: Dict[str, Any]) -> None:
    pl_id = action["id"] = state.next_id()
    ds_id = action["ds_id"] = state.next_id()
    state.pipelines[pl_id] = Pipeline(id=pl_id, name=action["name"], source=ds_id)
    state.datasets[ds_id] = Dataset(id=ds_id, name=action["name"], parent=pl_id, values=action["values"])


def _add_dataset(state: VisState, action: Dict[str, Any]) -> None:
    ds_id = action["id"] = state.next_id()
    state.datasets[ds_id] = Dataset(
        id=ds_id,
        name=action["name"],
        parent=action["parent"],
        values=action.get("values"),
        source=action.get("source"),
        transforms=list(action.get("transforms") or []),
    )


def _update_dataset_values(state: VisState, action: Dict[str, Any]) -> None:
    state.datasets[action["id"]].values = action["values"]
    _invalidate(state, action["id"])


def _add_transform(state: VisState, action: Dict[str, Any]) -> None:
    state.datasets[action["id"]].transforms.append(action["transform"])
    _invalidate(state, action["id"])


def _update_transform(state: VisState, action: Dict[str, Any]) -> None:
    state.datasets[action["id"]].transforms[action["index"]] = action["transform"]
    _invalidate(state, action["id"])


def _delete_dataset(state: VisState, action: Dict[str, Any]) -> None:
    ds_id = action["id"]
    _invalidate(state, ds_id)
    ds = state.datasets.pop(ds_id)
    pipeline = state.pipelines.get(ds.parent) if ds.parent is not None else None
    if pipeline is not None:
        for key in [k for k, v in pipeline.aggregates.items() if v == ds_id]:
            del pipeline.aggregates[key]
    upstream = state.datasets.get(ds.source) if ds.source is not None else None
    if upstream is not None:
        upstream.dependents.discard(ds_id)


def _add_scale(state: VisState, action: Dict[str, Any]) -> None:
    sc_id = action["id"] = state.next_id()
    props = action["props"]
    state.scales[sc_id] = Scale(
        id=sc_id,
        name=props["name"],
        type=props["type"],
        domain=props.get("domain"),
        range=props.get("range"),
        props=dict(props.get("props") or {}),
    )


def _update_scale(state: VisState, action: Dict[str, Any]) -> None:
    scale = state.scales[action["id"]]
    for key, val in action["props"].items():
        setattr(scale, key, val)


def _delete_scale(state: VisState, action: Dict[str, Any]) -> None:
    del state.scales[action["id"]]


def _add_mark(state: VisState, action: Dict[str, Any]) -> None:
    mark_id = action["id"] = state.next_id()
    name = action.get("name") or f"{action['mark_type']}_{mark_id}"
    state.marks[mark_id] = Mark(id=mark_id, type=action["mark_type"], name=name, from_data=action.get("from_data"))


def _set_mark_visual(state: VisState, action: Dict[str, Any]) -> None:
    state.marks[action["id"]].properties[action["property"]] = dict(action["ref"])


def _unset_mark_visual(state: VisState, action: Dict[str, Any]) -> None:
    state.marks[action["id"]].properties.pop(action["property"], None)


def _set_mark_from(state: VisState, action: Dict[str, Any]) -> None:
    state.marks[action["id"]].from_data = action["ds_id"]


def _set_vl_unit(state: VisState, action: Dict[str, Any]) -> None:
    state.marks[action["id"]].vl_unit = action["spec"]


def _add_guide(state: VisState, action: Dict[str, Any]) -> None:
    guide_id = action["id"] = state.next_id()
    state.guides[guide_id] = Guide(id=guide_id, **action["props"])


def _update_guide(state: VisState, action: Dict[str, Any]) -> None:
    guide = state.guides[action["id"]]
    for key, val in action["props"].items():
        setattr(guide, key, val)


def _delete_guide(state: VisState, action: Dict[str, Any]) -> None:
    del state.guides[action["id"]]


def _register_aggregate(state: VisState, action: Dict[str, Any]) -> None:
    pipeline = state.pipelines[action["pipeline"]]
    ds_id = action["id"]
    for key in [k for k, v in pipeline.aggregates.items() if v == ds_id and k != action["key"]]:
        del pipeline.aggregates[key]
    pipeline.aggregates[action["key"]] = ds_id

    ds = state.datasets[ds_id]
    upstream = state.datasets.get(ds.source) if ds.source is not None else None
    if upstream is not None:
        upstream.dependents.add(ds_id)


_REDUCERS: Dict[str, Callable[[VisState, Dict[str, Any]], None]] = {
    "ADD_PIPELINE": _add_pipeline,
    "ADD_DATASET": _add_dataset,
    "UPDATE_DATASET_VALUES": _update_dataset_values,
    "ADD_TRANSFORM": _add_transform,
    "UPDATE_TRANSFORM": _update_transform,
    "DELETE_DATASET": _delete_dataset,
    "ADD_SCALE": _add_scale,
    "UPDATE_SCALE": _update_scale,
    "DELETE_SCALE": _delete_scale,
    "ADD_MARK": _add_mark,
    "SET_MARK_VISUAL": _set_mark_visual,
    "UNSET_MARK_VISUAL": _unset_mark_visual,
    "SET_MARK_FROM": _set_mark_from,
    "SET_VL_UNIT": _set_vl_unit,
    "ADD_GUIDE": _add_guide,
    "UPDATE_GUIDE": _update_guide,
    "DELETE_GUIDE": _delete_guide,
    "REGISTER_AGGREGATE": _register_aggregate,
}


class Store:
    """Holds the live state, applies actions and records undo history."""

    def __init__(self, state: Optional[VisState] = None):
        self.state = state or VisState()
        self.past: List[VisState] = []
        self.log: List[str] = []
        self.batches_started = 0
        self.batches_ended = 0
        self.batches_rolled_back = 0
        self._batch: Optional[VisState] = None

    def get_state(self) -> VisState:
        return self.state

    @property
    def in_batch(self) -> bool:
        return self._batch is not None

    @property
    def mutations(self) -> int:
        return sum(1 for kind in self.log if kind in _REDUCERS)

    def dispatch(self, action: Dict[str, Any]) -> Dict[str, Any]:
        kind = action["type"]
        if kind == "START_BATCH":
            self._start_batch()
        elif kind == "END_BATCH":
            self._end_batch()
        elif kind == "ROLLBACK_BATCH":
            self._rollback_batch()
        else:
            reducer = _REDUCERS[kind]
            if self._batch is None:
                self.past.append(copy.deepcopy(self.state))
            reducer(self.state, action)
        self.log.append(kind)
        return action

    def undo(self) -> bool:
        if self._batch is not None:
            raise HistoryError("Cannot undo while a batch is open.")
        if not self.past:
            return False
        self.state = self.past.pop()
        return True

    # ---------------------------
    # Batches
    # ---------------------------
    def _start_batch(self) -> None:
        if self._batch is not None:
            raise HistoryError("A history batch is already open.")
        self._batch = copy.deepcopy(self.state)
        self.batches_started += 1

    def _end_batch(self) -> None:
        if self._batch is None:
            raise HistoryError("No history batch is open.")
        self.past.append(self._batch)
        self._batch = None
        self.batches_ended += 1

    def _rollback_batch(self) -> None:
        if self._batch is None:
            raise HistoryError("No history batch is open.")
        self.state = self._batch
        self._batch = None
        self.batches_rolled_back += 1
        logger.warning("History batch rolled back", extra={"action": "ROLLBACK_BATCH"})
