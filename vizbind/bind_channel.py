"""
Bind a dataset field to a visual property of a mark.

A Vega-Lite unit spec is built (or extended) for the mark, compiled to Vega,
and the compiled output is parsed to bring the whole store in line: data
transforms, scales, the mark's own encoding and guides. However many actions
that takes, the user sees one undoable step.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Mapping, Optional, Union

from .actions import end_batch, rollback_batch, set_vl_unit, start_batch
from .aggregate_deps import update_aggregate_dependencies
from .channels import channel_name
from .cleanup import cleanup_unused
from .compiler import Compiler, compile_spec
from .errors import CrossPipelineError, ErrorContext, ResourceNotFoundError
from .fields import FieldSchema, channel_def
from .parse_data import SUMMARY, parse_data
from .parse_guides import parse_guides
from .parse_marks import parse_marks
from .parse_scales import parse_scales
from .parsed import ParsedResult
from .store import Store, get_in
from .unit_spec import id_map, set_channel, vl_spec

logger = logging.getLogger(__name__)

Dispatch = Callable[[Dict[str, Any]], Dict[str, Any]]


@contextmanager
def history_transaction(dispatch: Dispatch) -> Iterator[None]:
    """One undo entry for everything dispatched inside; rolled back on error."""
    dispatch(start_batch())
    try:
        yield
    except Exception:
        dispatch(rollback_batch())
        raise
    dispatch(end_batch())


def finalize_scales(store: Store, parsed: ParsedResult) -> None:
    """
    Phase one of guide derivation: sweep unused scales and datasets, then fix
    the scale set guides are allowed to use.
    """
    cleanup_unused(store.dispatch, store.get_state())
    parsed.scale_set = frozenset(store.get_state().scales)


def bind_channel(
    store: Store,
    ds_id: int,
    field: Union[FieldSchema, Mapping[str, Any]],
    mark_id: int,
    prop: str,
    compiler: Optional[Compiler] = None,
) -> None:
    """
    Bind ``field`` (from dataset ``ds_id``) to mark ``mark_id``'s ``prop``.

    Raises ``ResourceNotFoundError`` / ``CrossPipelineError`` before touching
    the store. Compiler and sub-parser errors propagate after the history
    batch has been rolled back.
    """
    if not isinstance(field, FieldSchema):
        field = FieldSchema.from_dict(field)

    state = store.get_state()
    ctx = ErrorContext(mark_id=mark_id, ds_id=ds_id, property=prop)

    mark = get_in(state, f"marks.{mark_id}")
    if mark is None:
        raise ResourceNotFoundError("Mark", mark_id, ctx)
    if ds_id not in state.datasets:
        raise ResourceNotFoundError("Dataset", ds_id, ctx)

    pl_id = get_in(state, f"datasets.{ds_id}.parent")
    if pl_id not in state.pipelines:
        raise ResourceNotFoundError("Pipeline", pl_id, ctx)

    channel = ctx.channel = channel_name(prop)
    spec = vl_spec(mark, ctx)
    mapping = id_map(spec)

    source = mark.from_data
    if source is not None:
        mark_pl = get_in(state, f"datasets.{source}.parent")
        if mark_pl != pl_id:
            raise CrossPipelineError(mark_pl, pl_id, ctx)

    logger.info(
        "Binding %s to %s.%s", field.name, mark.name, prop,
        extra={"mark_id": mark_id, "ds_id": ds_id, "channel": channel, "property": prop},
    )

    with history_transaction(store.dispatch):
        set_channel(spec, channel, channel_def(field))

        compiled = compile_spec(spec, prop, state, ds_id, compiler)
        parsed = ParsedResult(
            input=compiled.input,
            output=compiled.output,
            map=mapping,
            mark=mark,
            mark_id=mark_id,
            mark_type=mark.type,
            property=prop,
            channel=channel,
            ds_id=ds_id,
            pl_id=pl_id,
        )

        parse_data(store.dispatch, store.get_state(), parsed)
        parse_scales(store.dispatch, store.get_state(), parsed)
        parse_marks(store.dispatch, store.get_state(), parsed)

        if parsed.map.data.get(SUMMARY) is not None:
            update_aggregate_dependencies(store.dispatch, store.get_state(), parsed)

        # Cleanup before guides: removing primitives any earlier would leave
        # dangling references, and guide orientation depends on the final scales.
        finalize_scales(store, parsed)
        parse_guides(store.dispatch, store.get_state(), parsed)

        store.dispatch(set_vl_unit(spec, mark_id))
