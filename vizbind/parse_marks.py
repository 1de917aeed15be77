"""Copy the bound channel's compiled encoding onto the store mark."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from .actions import set_mark_from, set_mark_visual, unset_mark_visual
from .channels import channel_properties
from .parsed import ParsedResult
from .store import VisState

logger = logging.getLogger(__name__)

Dispatch = Callable[[Dict[str, Any]], Dict[str, Any]]


def find_leaf_mark(marks: List[Dict[str, Any]], facets: Dict[str, str]) -> Optional[Dict[str, Any]]:
    """First non-group mark; facet names met on the way are recorded."""
    for mark in marks:
        if mark.get("type") == "group":
            facet = (mark.get("from") or {}).get("facet")
            if isinstance(facet, dict) and facet.get("name"):
                facets[facet["name"]] = facet.get("data")
            leaf = find_leaf_mark(mark.get("marks") or [], facets)
            if leaf is not None:
                return leaf
        else:
            return mark
    return None


def _bound_ref(ref: Any) -> Optional[Dict[str, Any]]:
    # Conditional encodings are lists; the scale-driven rule comes last.
    if isinstance(ref, list):
        for rule in reversed(ref):
            if isinstance(rule, dict) and ("scale" in rule or "field" in rule):
                return rule
        return None
    if isinstance(ref, dict) and ("scale" in ref or "field" in ref):
        return ref
    return None


def _translate(ref: Dict[str, Any], scales: Dict[str, int]) -> Optional[Dict[str, Any]]:
    out = {k: v for k, v in ref.items() if k != "test"}
    if "scale" in out:
        scale_id = scales.get(out["scale"])
        if scale_id is None:
            return None
        out["scale"] = scale_id
    return out


def leaf_and_data(parsed: ParsedResult) -> Tuple[Optional[Dict[str, Any]], Optional[int]]:
    facets: Dict[str, str] = {}
    leaf = find_leaf_mark(parsed.output.get("marks") or [], facets)
    if leaf is None:
        return None, None
    data_name = (leaf.get("from") or {}).get("data")
    while data_name in facets:
        data_name = facets[data_name]
    return leaf, parsed.map.data.get(data_name) if data_name else None


def parse_marks(dispatch: Dispatch, state: VisState, parsed: ParsedResult) -> None:
    leaf, ds_id = leaf_and_data(parsed)
    if leaf is None:
        logger.warning("Compiled spec has no marks", extra={"mark_id": parsed.mark_id})
        return

    mark = state.marks[parsed.mark_id]
    parsed.map.marks[leaf.get("name") or "marks"] = parsed.mark_id

    if ds_id is not None and mark.from_data != ds_id:
        dispatch(set_mark_from(parsed.mark_id, ds_id))

    update = (leaf.get("encode") or {}).get("update") or {}
    for prop in channel_properties(parsed.channel):
        ref = _bound_ref(update.get(prop))
        if ref is None:
            # no longer driven by this channel, e.g. x2 after x turns nominal
            if prop in mark.properties:
                dispatch(unset_mark_visual(parsed.mark_id, prop))
            continue
        translated = _translate(ref, parsed.map.scales)
        if translated is None:
            logger.warning("Unmapped scale %r on %s", ref.get("scale"), prop, extra={"mark_id": parsed.mark_id})
            continue
        if mark.properties.get(prop) != translated:
            dispatch(set_mark_visual(parsed.mark_id, prop, translated))
