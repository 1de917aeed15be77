"""Field schemas and the field-name classifier.

Datasets produced by an aggregate or bin transform name their columns after
the transform (``sum_revenue``, ``bin_age_start``). Before such a field goes
into a Vega-Lite channel definition the decoration is stripped and turned
back into the ``aggregate`` / ``bin`` keywords, so the compiler only ever sees
raw field names.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Mapping, Optional, Union

import pandas as pd


MType = Literal["quantitative", "temporal", "ordinal", "nominal"]

AGGREGATE_OPS: List[str] = [
    "values", "count", "valid", "missing", "distinct",
    "sum", "mean", "average", "variance", "variancep",
    "stdev", "stdevp", "median", "q1", "q3", "modeskew",
    "min", "max", "argmin", "argmax",
]

_AGG_RE = re.compile("^(" + "|".join(AGGREGATE_OPS) + ")_(.*?)$")
_BIN_RE = re.compile(r"^(bin)_(.*?)(_start|_mid|_end)$")


@dataclass
class FieldSchema:
    name: str
    mtype: str
    aggregate: Optional[str] = None
    bin: bool = False

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "FieldSchema":
        return FieldSchema(
            name=str(data["name"]),
            mtype=str(data.get("mtype", "nominal")),
            aggregate=data.get("aggregate") or None,
            bin=bool(data.get("bin", False)),
        )


# ---------------------------
# Classifier variants
# ---------------------------
@dataclass(frozen=True)
class RawField:
    field: str
    kind: str = "raw"


@dataclass(frozen=True)
class AggregateField:
    op: str
    field: str
    kind: str = "aggregate"


@dataclass(frozen=True)
class BinField:
    field: str
    position: str  # start / mid / end
    kind: str = "bin"


Classified = Union[RawField, AggregateField, BinField]


def classify_field(name: str) -> Classified:
    m = _AGG_RE.match(name)
    if m:
        return AggregateField(op=m.group(1), field=m.group(2))
    m = _BIN_RE.match(name)
    if m:
        return BinField(field=m.group(2), position=m.group(3)[1:])
    return RawField(field=name)


def channel_def(field: FieldSchema) -> Dict[str, Any]:
    """
    Build a Vega-Lite channel definition for a field schema.
    A transform encoded in the field's name wins over the schema's explicit
    ``aggregate``/``bin`` attributes; either way ``field`` is the raw name.
    """
    parsed = classify_field(field.name)
    ref: Dict[str, Any] = {"type": field.mtype}

    if isinstance(parsed, AggregateField):
        ref["aggregate"] = parsed.op
    elif isinstance(parsed, BinField):
        ref["bin"] = True
    elif field.aggregate:
        ref["aggregate"] = field.aggregate
    elif field.bin:
        ref["bin"] = True

    ref["field"] = parsed.field
    return ref


# ---------------------------
# Schema inference
# ---------------------------
def infer_mtype(series: pd.Series) -> str:
    if pd.api.types.is_datetime64_any_dtype(series):
        return "temporal"
    if pd.api.types.is_bool_dtype(series):
        return "nominal"
    if pd.api.types.is_numeric_dtype(series):
        return "quantitative"

    if pd.api.types.is_object_dtype(series) or pd.api.types.is_string_dtype(series):
        sample = series.dropna().astype(str).head(80)
        if len(sample) > 0:
            parsed = pd.to_datetime(sample, errors="coerce", format="mixed")
            if parsed.notna().mean() > 0.8:
                return "temporal"
    return "nominal"


def field_schemas(df: pd.DataFrame) -> List[FieldSchema]:
    return [FieldSchema(name=str(c), mtype=infer_mtype(df[c])) for c in df.columns]
