"""The compiled result of one binding, threaded through the sub-parsers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Optional

from .store import Mark
from .unit_spec import IdentifierMap


@dataclass
class ParsedResult:
    input: Dict[str, Any]        # Vega-Lite handed to the compiler
    output: Dict[str, Any]       # compiled Vega
    map: IdentifierMap
    mark: Mark
    mark_id: int
    mark_type: str
    property: str
    channel: str
    ds_id: int
    pl_id: int
    # Set once unused scales are cleaned up; guides are derived from it.
    scale_set: Optional[FrozenSet[int]] = None
