"""
Per-mark Vega-Lite unit specs and the identifier map cached on them.

A mark's unit spec is absent until its first successful binding and is
replaced wholesale after every later one. The identifier map rides along in
a private key of the spec and links names in the compiled output (data,
scales, guides, marks) to the IDs of the store primitives created for them.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .channels import MARK_TYPES
from .errors import ErrorContext, UnsupportedMarkError
from .store import Mark

MAP_KEY = "_idmap"


@dataclass
class IdentifierMap:
    data: Dict[str, int] = field(default_factory=dict)
    scales: Dict[str, int] = field(default_factory=dict)
    guides: Dict[str, int] = field(default_factory=dict)
    marks: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Dict[str, int]]:
        return {
            "data": dict(self.data),
            "scales": dict(self.scales),
            "guides": dict(self.guides),
            "marks": dict(self.marks),
        }


def vl_spec(mark: Mark, context: Optional[ErrorContext] = None) -> Dict[str, Any]:
    """
    The mark's cached unit spec, deep-copied, or a fresh minimal one.
    The copy shares the cached identifier map instance, so repeated bindings
    on one mark keep extending the same map.

    Raises ``UnsupportedMarkError`` for mark types Vega-Lite has no mark for.
    """
    cached = mark.vl_unit
    if cached:
        memo: Dict[int, Any] = {}
        idmap = cached.get(MAP_KEY)
        if idmap is not None:
            memo[id(idmap)] = idmap
        return copy.deepcopy(cached, memo)

    if mark.type not in MARK_TYPES:
        raise UnsupportedMarkError(mark.type, context or ErrorContext(mark_id=mark.id))

    return {
        "mark": MARK_TYPES[mark.type],
        "data": {},
        "encoding": {},
        "config": {},
    }


def id_map(spec: Dict[str, Any]) -> IdentifierMap:
    idmap = spec.get(MAP_KEY)
    if idmap is None:
        idmap = spec[MAP_KEY] = IdentifierMap()
    return idmap


def set_channel(spec: Dict[str, Any], channel: str, definition: Dict[str, Any]) -> Dict[str, Any]:
    enc = spec.get("encoding")
    if not isinstance(enc, dict):
        enc = spec["encoding"] = {}
    enc[channel] = definition
    return spec


def public_spec(spec: Dict[str, Any]) -> Dict[str, Any]:
    """Deep copy without private (underscore) keys."""
    return {k: copy.deepcopy(v) for k, v in spec.items() if not str(k).startswith("_")}
