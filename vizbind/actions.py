"""Action creators for ``Store.dispatch``."""

from typing import Any, Dict, List, Optional

import pandas as pd

Action = Dict[str, Any]


# ---------------------------
# Pipelines / datasets
# ---------------------------
def add_pipeline(name: str, values: pd.DataFrame) -> Action:
    """Creates the pipeline and its source dataset; dispatch fills ``id`` and ``ds_id``."""
    return {"type": "ADD_PIPELINE", "name": name, "values": values}


def add_dataset(
    name: str,
    parent: Optional[int],
    values: Optional[pd.DataFrame] = None,
    source: Optional[int] = None,
    transforms: Optional[List[Dict[str, Any]]] = None,
) -> Action:
    return {
        "type": "ADD_DATASET",
        "name": name,
        "parent": parent,
        "values": values,
        "source": source,
        "transforms": transforms or [],
    }


def update_dataset_values(ds_id: int, values: pd.DataFrame) -> Action:
    return {"type": "UPDATE_DATASET_VALUES", "id": ds_id, "values": values}


def add_transform(ds_id: int, transform: Dict[str, Any]) -> Action:
    return {"type": "ADD_TRANSFORM", "id": ds_id, "transform": transform}


def update_transform(ds_id: int, index: int, transform: Dict[str, Any]) -> Action:
    return {"type": "UPDATE_TRANSFORM", "id": ds_id, "index": index, "transform": transform}


def delete_dataset(ds_id: int) -> Action:
    return {"type": "DELETE_DATASET", "id": ds_id}


def register_aggregate(pl_id: int, key: str, ds_id: int) -> Action:
    return {"type": "REGISTER_AGGREGATE", "pipeline": pl_id, "key": key, "id": ds_id}


# ---------------------------
# Scales
# ---------------------------
def add_scale(props: Dict[str, Any]) -> Action:
    return {"type": "ADD_SCALE", "props": props}


def update_scale(scale_id: int, props: Dict[str, Any]) -> Action:
    return {"type": "UPDATE_SCALE", "id": scale_id, "props": props}


def delete_scale(scale_id: int) -> Action:
    return {"type": "DELETE_SCALE", "id": scale_id}


# ---------------------------
# Marks
# ---------------------------
def add_mark(mark_type: str, name: Optional[str] = None, from_data: Optional[int] = None) -> Action:
    return {"type": "ADD_MARK", "mark_type": mark_type, "name": name, "from_data": from_data}


def set_mark_visual(mark_id: int, prop: str, ref: Dict[str, Any]) -> Action:
    return {"type": "SET_MARK_VISUAL", "id": mark_id, "property": prop, "ref": ref}


def unset_mark_visual(mark_id: int, prop: str) -> Action:
    return {"type": "UNSET_MARK_VISUAL", "id": mark_id, "property": prop}


def set_mark_from(mark_id: int, ds_id: Optional[int]) -> Action:
    return {"type": "SET_MARK_FROM", "id": mark_id, "ds_id": ds_id}


def set_vl_unit(spec: Dict[str, Any], mark_id: int) -> Action:
    return {"type": "SET_VL_UNIT", "id": mark_id, "spec": spec}


# ---------------------------
# Guides
# ---------------------------
def add_guide(props: Dict[str, Any]) -> Action:
    return {"type": "ADD_GUIDE", "props": props}


def update_guide(guide_id: int, props: Dict[str, Any]) -> Action:
    return {"type": "UPDATE_GUIDE", "id": guide_id, "props": props}


def delete_guide(guide_id: int) -> Action:
    return {"type": "DELETE_GUIDE", "id": guide_id}


# ---------------------------
# History
# ---------------------------
def start_batch() -> Action:
    return {"type": "START_BATCH"}


def end_batch() -> Action:
    return {"type": "END_BATCH"}


def rollback_batch() -> Action:
    return {"type": "ROLLBACK_BATCH"}
