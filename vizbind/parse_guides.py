"""
Derive axes and legends from the compiled output.

Runs only after unused scales have been cleaned up: whether a guide exists,
and which scale it sits on, depends on the final scale set.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterator, Optional

from .actions import add_guide, update_guide
from .errors import ErrorContext, PhaseOrderError
from .parse_scales import used_by_other_marks
from .parsed import ParsedResult
from .store import Guide, VisState

logger = logging.getLogger(__name__)

Dispatch = Callable[[Dict[str, Any]], Dict[str, Any]]

LEGEND_PROPERTIES = ("fill", "stroke", "size", "shape", "opacity", "strokeDash", "strokeWidth")


def _title(title: Any) -> Optional[str]:
    if isinstance(title, str):
        return title
    if isinstance(title, list):
        return " ".join(str(t) for t in title)
    return None


def _is_grid_only(axis: Dict[str, Any]) -> bool:
    return bool(axis.get("grid")) and axis.get("labels") is False


def compiled_guides(output: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
    """Guide definitions keyed by compiled scale name, grid axes folded in."""
    axes = output.get("axes") or []
    grid_scales = {a.get("scale") for a in axes if _is_grid_only(a)}
    for axis in axes:
        if _is_grid_only(axis):
            continue
        yield {
            "key": axis.get("scale"),
            "kind": "axis",
            "scale": axis.get("scale"),
            "orient": axis.get("orient"),
            "property": None,
            "title": _title(axis.get("title")),
            "grid": axis.get("scale") in grid_scales or bool(axis.get("grid")),
        }

    for legend in output.get("legends") or []:
        prop = next((p for p in LEGEND_PROPERTIES if p in legend), None)
        if prop is None:
            continue
        yield {
            "key": legend[prop],
            "kind": "legend",
            "scale": legend[prop],
            "orient": legend.get("orient"),
            "property": prop,
            "title": _title(legend.get("title")),
            "grid": False,
        }


def _props(guide: Guide) -> Dict[str, Any]:
    return {
        "kind": guide.kind, "scale": guide.scale, "orient": guide.orient,
        "property": guide.property, "title": guide.title, "grid": guide.grid,
    }


def _reusable(state: VisState, parsed: ParsedResult, key: str, kind: str, scale_id: int) -> Optional[int]:
    mapped = parsed.map.guides.get(key)
    guide = state.guides.get(mapped) if mapped is not None else None
    if guide is not None and guide.kind == kind:
        # A guide whose scale another mark still reads stays with that scale.
        if guide.scale == scale_id or not used_by_other_marks(state, guide.scale, parsed.mark_id):
            return mapped
    for other in state.guides.values():
        if other.kind == kind and other.scale == scale_id:
            return other.id
    return None


def parse_guides(dispatch: Dispatch, state: VisState, parsed: ParsedResult) -> None:
    if parsed.scale_set is None:
        raise PhaseOrderError(ErrorContext(mark_id=parsed.mark_id, channel=parsed.channel))

    for compiled in compiled_guides(parsed.output):
        scale_id = parsed.map.scales.get(compiled["scale"])
        if scale_id not in parsed.scale_set:
            continue

        key = compiled.pop("key")
        props = dict(compiled, scale=scale_id)
        guide_id = _reusable(state, parsed, key, props["kind"], scale_id)
        if guide_id is None:
            guide_id = dispatch(add_guide(props))["id"]
            logger.debug("Created %s %s", props["kind"], guide_id, extra={"mark_id": parsed.mark_id})
        elif _props(state.guides[guide_id]) != props:
            dispatch(update_guide(guide_id, props))

        parsed.map.guides[key] = guide_id
