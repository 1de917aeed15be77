"""
Vega-Lite -> Vega compilation for one mark's unit spec.

The unit spec is always driven by the field's dataset rows; the compiled Vega
output is then analysed to work out which datasets, scales, marks and guides
the store should hold.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import altair as alt
import pandas as pd

from .config import get_settings
from .datasets import Records, output
from .store import VisState
from .unit_spec import public_spec

logger = logging.getLogger(__name__)

# Custom cell size so ranges Vega-Lite hardcodes from the cell can be told
# apart from ranges a user set.
CELLW = 517
CELLH = 392

Compiler = Callable[[Dict[str, Any]], Dict[str, Any]]


@dataclass
class CompiledSpec:
    input: Dict[str, Any]    # Vega-Lite, as handed to the compiler
    output: Dict[str, Any]   # Vega


def vegalite_to_vega(spec: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate a Vega-Lite spec with altair and compile it to Vega through
    altair's compiler plugin (vl-convert). Schema violations raise
    ``jsonschema.ValidationError``.
    """
    vl = public_spec(spec)
    config = vl.setdefault("config", {})
    cell = config.pop("cell", None)
    if isinstance(cell, dict):
        # Vega-Lite 5 renamed config.cell to config.view
        view = config.setdefault("view", {})
        view.setdefault("continuousWidth", cell.get("width"))
        view.setdefault("continuousHeight", cell.get("height"))

    chart = alt.Chart.from_dict(vl)
    return chart.to_dict(format="vega")


def embedded_values(state: VisState, ds_id: int) -> Records:
    settings = get_settings()
    rows = output(state, ds_id)
    if len(rows) <= settings.max_embedded_rows:
        return copy.deepcopy(rows)
    sample = pd.DataFrame(rows).sample(n=settings.max_embedded_rows, random_state=settings.sample_seed)
    logger.debug("Sampled %d of %d rows for compilation", len(sample), len(rows), extra={"ds_id": ds_id})
    return sample.to_dict(orient="records")


def compile_spec(
    spec: Dict[str, Any],
    prop: str,
    state: VisState,
    ds_id: int,
    compiler: Optional[Compiler] = None,
) -> CompiledSpec:
    """
    Compile a copy of ``spec``; the original may still be the mark's cached
    unit spec. Compiler errors propagate untouched.
    """
    spec = public_spec(spec)

    # Always drive the unit spec by the field's dataset; the compiled output
    # tells us what the mark's backing dataset should be (source, summary...).
    spec.setdefault("data", {})["values"] = embedded_values(state, ds_id)

    config = spec.setdefault("config", {})
    config["cell"] = {"width": CELLW, "height": CELLH}

    # Filled marks only when the fill color itself is being bound.
    config["mark"] = {"filled": prop == "fill"}

    compile_fn = compiler or vegalite_to_vega
    return CompiledSpec(input=spec, output=compile_fn(spec))
