"""Derive store scales from the compiled Vega scales."""

from __future__ import annotations

import copy
import logging
from typing import Any, Callable, Dict, Optional, Set

from .actions import add_scale, update_scale
from .compiler import CELLH, CELLW
from .parsed import ParsedResult
from .store import Scale, VisState

logger = logging.getLogger(__name__)

Dispatch = Callable[[Dict[str, Any]], Dict[str, Any]]

SCALE_KEYS = (
    "nice", "zero", "padding", "paddingInner", "paddingOuter", "round",
    "reverse", "clamp", "bins", "interpolate", "align", "exponent", "base",
)


def _domain(domain: Any, data_map: Dict[str, int]) -> Any:
    if isinstance(domain, dict):
        out = copy.deepcopy(domain)
        if "data" in out:
            out["data"] = data_map.get(out["data"], out["data"])
        if isinstance(out.get("fields"), list):
            out["fields"] = [_domain(f, data_map) for f in out["fields"]]
        return out
    return copy.deepcopy(domain)


def normalize_range(rng: Any) -> Any:
    """Cell-derived ranges become "width"/"height"; anything else is kept."""
    if isinstance(rng, list) and len(rng) == 2:
        for item in rng:
            if item == CELLW or item == {"signal": "width"}:
                return "width"
            if item == CELLH or item == {"signal": "height"}:
                return "height"
    return copy.deepcopy(rng)


def scale_props(scale: Dict[str, Any], data_map: Dict[str, int]) -> Dict[str, Any]:
    return {
        "name": scale["name"],
        "type": scale.get("type", "linear"),
        "domain": _domain(scale.get("domain"), data_map),
        "range": normalize_range(scale.get("range")),
        "props": {k: copy.deepcopy(scale[k]) for k in SCALE_KEYS if k in scale},
    }


def domain_datasets(domain: Any) -> Set[int]:
    out: Set[int] = set()
    if isinstance(domain, dict):
        if isinstance(domain.get("data"), int):
            out.add(domain["data"])
        for f in domain.get("fields") or []:
            out |= domain_datasets(f)
    return out


def same_definition(scale: Scale, props: Dict[str, Any]) -> bool:
    return (
        scale.type == props["type"]
        and scale.domain == props["domain"]
        and scale.range == props["range"]
        and scale.props == props["props"]
    )


def used_by_other_marks(state: VisState, scale_id: int, mark_id: int) -> bool:
    for mark in state.marks.values():
        if mark.id == mark_id:
            continue
        if any(isinstance(ref, dict) and ref.get("scale") == scale_id for ref in mark.properties.values()):
            return True
    return False


def _reusable(state: VisState, parsed: ParsedResult, name: str, props: Dict[str, Any]) -> Optional[int]:
    mapped = parsed.map.scales.get(name)
    if mapped in state.scales:
        scale = state.scales[mapped]
        if same_definition(scale, props) or not used_by_other_marks(state, mapped, parsed.mark_id):
            return mapped

    for scale in state.scales.values():
        if same_definition(scale, props):
            return scale.id
    return None


def parse_scales(dispatch: Dispatch, state: VisState, parsed: ParsedResult) -> None:
    for compiled in parsed.output.get("scales") or []:
        name = compiled["name"]
        props = scale_props(compiled, parsed.map.data)
        scale_id = _reusable(state, parsed, name, props)

        if scale_id is None:
            scale_id = dispatch(add_scale(props))["id"]
            logger.debug("Created scale %s (%s)", scale_id, name, extra={"mark_id": parsed.mark_id})
        elif not same_definition(state.scales[scale_id], props):
            dispatch(update_scale(scale_id, {k: v for k, v in props.items() if k != "name"}))

        parsed.map.scales[name] = scale_id
