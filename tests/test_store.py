"""Document store reducers and history.

Tests cover:
    - add_pipeline creates a pipeline with its source dataset
    - get_in dotted lookups
    - actions outside a batch record one undo entry each
    - a batch records exactly one entry, rollback restores and records none
    - nested / unopened batches raise HistoryError
    - deleting a dataset unregisters it from its pipeline and upstream
"""

import pandas as pd
import pytest

from vizbind import actions
from vizbind.errors import HistoryError
from vizbind.store import Store, get_in


# ─── reducers ────────────────────────────────────────────────────

def test_add_pipeline_creates_source(store, weather_df):
    action = store.dispatch(actions.add_pipeline("weather", weather_df))
    pl_id, ds_id = action["id"], action["ds_id"]
    assert store.state.pipelines[pl_id].source == ds_id
    assert store.state.datasets[ds_id].parent == pl_id
    assert not store.state.datasets[ds_id].derived


def test_ids_share_one_counter(store, weather):
    pl_id, ds_id = weather
    scale_id = store.dispatch(actions.add_scale({"name": "x", "type": "linear"}))["id"]
    mark_id = store.dispatch(actions.add_mark("symbol"))["id"]
    assert len({pl_id, ds_id, scale_id, mark_id}) == 4


def test_get_in(store, weather):
    pl_id, ds_id = weather
    assert get_in(store.state, f"datasets.{ds_id}.parent") == pl_id
    assert get_in(store.state, "marks.999.type") is None
    assert get_in(store.state, "marks.999.type", "none") == "none"


def test_mark_default_name(store):
    mark_id = store.dispatch(actions.add_mark("rect"))["id"]
    assert store.state.marks[mark_id].name == f"rect_{mark_id}"


def test_unset_mark_visual(store):
    mark_id = store.dispatch(actions.add_mark("rect"))["id"]
    store.dispatch(actions.set_mark_visual(mark_id, "x2", {"scale": 1, "value": 0}))
    store.dispatch(actions.unset_mark_visual(mark_id, "x2"))
    store.dispatch(actions.unset_mark_visual(mark_id, "y2"))
    assert store.state.marks[mark_id].properties == {}


def test_delete_dataset_unregisters(store, weather):
    pl_id, src = weather
    agg = {"type": "aggregate", "groupby": ["cat"], "ops": ["count"], "fields": [None], "as": ["count"]}
    ds_id = store.dispatch(actions.add_dataset("summary", pl_id, source=src, transforms=[agg]))["id"]
    store.dispatch(actions.register_aggregate(pl_id, "cat", ds_id))
    assert store.state.pipelines[pl_id].aggregates == {"cat": ds_id}
    assert ds_id in store.state.datasets[src].dependents

    store.dispatch(actions.delete_dataset(ds_id))
    assert store.state.pipelines[pl_id].aggregates == {}
    assert ds_id not in store.state.datasets[src].dependents


def test_register_aggregate_moves_key(store, weather):
    pl_id, src = weather
    ds_id = store.dispatch(actions.add_dataset("summary", pl_id, source=src))["id"]
    store.dispatch(actions.register_aggregate(pl_id, "cat", ds_id))
    store.dispatch(actions.register_aggregate(pl_id, "cat|region", ds_id))
    assert store.state.pipelines[pl_id].aggregates == {"cat|region": ds_id}


# ─── history ─────────────────────────────────────────────────────

def test_each_unbatched_action_is_one_undo_step():
    store = Store()
    store.dispatch(actions.add_mark("symbol"))
    store.dispatch(actions.add_mark("rect"))
    assert len(store.past) == 2
    assert store.undo()
    assert len(store.state.marks) == 1


def test_batch_is_one_undo_step():
    store = Store()
    store.dispatch(actions.start_batch())
    for _ in range(3):
        store.dispatch(actions.add_mark("symbol"))
    store.dispatch(actions.end_batch())

    assert len(store.past) == 1
    assert store.batches_started == store.batches_ended == 1
    store.undo()
    assert store.state.marks == {}


def test_rollback_restores_state():
    store = Store()
    mark_id = store.dispatch(actions.add_mark("symbol"))["id"]
    store.dispatch(actions.start_batch())
    store.dispatch(actions.set_mark_visual(mark_id, "x", {"value": 1}))
    store.dispatch(actions.rollback_batch())

    assert store.state.marks[mark_id].properties == {}
    assert len(store.past) == 1
    assert store.batches_rolled_back == 1
    assert not store.in_batch


def test_nested_batch_rejected():
    store = Store()
    store.dispatch(actions.start_batch())
    with pytest.raises(HistoryError):
        store.dispatch(actions.start_batch())


def test_end_without_start_rejected():
    with pytest.raises(HistoryError) as exc:
        Store().dispatch(actions.end_batch())
    assert exc.value.code == "HISTORY_BATCH_CONFLICT"


def test_undo_inside_batch_rejected():
    store = Store()
    store.dispatch(actions.start_batch())
    with pytest.raises(HistoryError):
        store.undo()


def test_undo_with_empty_history():
    assert Store().undo() is False


def test_mutations_counts_reducer_actions_only():
    store = Store()
    store.dispatch(actions.start_batch())
    store.dispatch(actions.add_mark("symbol"))
    store.dispatch(actions.end_batch())
    assert store.mutations == 1
    assert store.log == ["START_BATCH", "ADD_MARK", "END_BATCH"]


def test_update_values_replaces_frame(store, weather):
    _, ds_id = weather
    new = pd.DataFrame({"cat": ["z"]})
    store.dispatch(actions.update_dataset_values(ds_id, new))
    assert store.state.datasets[ds_id].values is new
