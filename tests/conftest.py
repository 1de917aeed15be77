"""Shared fixtures: a populated store and a stand-in Vega-Lite compiler."""

import copy
from typing import Any, Dict, List

import pandas as pd
import pytest

from vizbind.config import get_settings
from vizbind.store import Store
from vizbind.workspace import import_frame, new_mark


VEGA_MARKS = {"bar": "rect", "point": "symbol", "text": "text", "line": "line", "area": "area"}
CHANNELS = ("x", "y", "color", "size", "shape", "opacity", "text")


def _title(d: Dict[str, Any]) -> str:
    if d.get("aggregate"):
        return f"{d['aggregate'].title()} of {d['field']}"
    if d.get("bin"):
        return f"{d['field']} (binned)"
    return d["field"]


def compile_unit(spec: Dict[str, Any]) -> Dict[str, Any]:
    """Vega output shaped like Vega-Lite 5 produces for a unit spec."""
    enc = spec.get("encoding") or {}
    for ch in enc:
        if ch not in CHANNELS:
            raise ValueError(f"Invalid channel {ch!r} for Vega-Lite")

    mark = spec["mark"]
    filled = bool(((spec.get("config") or {}).get("mark") or {}).get("filled"))

    transforms: List[Dict[str, Any]] = []
    groupby: List[str] = []
    measures = []
    fields: Dict[str, str] = {}
    for ch, d in enc.items():
        f = d["field"]
        if d.get("bin"):
            start = f"bin_maxbins_10_{f}"
            transforms.append({"type": "extent", "field": f, "signal": f"{start}_extent"})
            transforms.append({
                "type": "bin", "field": f, "as": [start, f"{start}_end"],
                "signal": f"{start}_bins", "extent": {"signal": f"{start}_extent"}, "maxbins": 10,
            })
            groupby += [start, f"{start}_end"]
            fields[ch] = start
        elif d.get("aggregate"):
            name = f"{d['aggregate']}_{f}"
            measures.append((d["aggregate"], f, name))
            fields[ch] = name
        else:
            groupby.append(f)
            fields[ch] = f
    if measures:
        transforms.append({
            "type": "aggregate",
            "groupby": groupby,
            "ops": [m[0] for m in measures],
            "fields": [m[1] for m in measures],
            "as": [m[2] for m in measures],
        })

    data = [
        {"name": "source_0", "values": spec["data"]["values"]},
        {"name": "data_0", "source": "source_0", "transform": transforms},
    ]
    scales: List[Dict[str, Any]] = []
    update: Dict[str, Any] = {}
    axes: List[Dict[str, Any]] = []
    legends: List[Dict[str, Any]] = []

    for ch in ("x", "y"):
        d = enc.get(ch)
        if not d:
            continue
        f = fields[ch]
        rng = [0, {"signal": "width"}] if ch == "x" else [{"signal": "height"}, 0]
        orient = "bottom" if ch == "x" else "left"
        quantitative = d["type"] == "quantitative"
        if d.get("bin"):
            scales.append({
                "name": ch, "type": "linear",
                "domain": {"signal": f"[{f}_bins.start, {f}_bins.stop]"},
                "range": rng, "bins": {"signal": f"{f}_bins"}, "zero": False,
            })
            update[ch] = {"scale": ch, "field": f}
            update[ch + "2"] = {"scale": ch, "field": f"{f}_end"}
        elif not quantitative:
            scales.append({
                "name": ch, "type": "band", "domain": {"data": "data_0", "field": f, "sort": True},
                "range": rng, "paddingInner": 0.1, "paddingOuter": 0.05,
            })
            update[ch] = {"scale": ch, "field": f}
            if mark == "bar":
                size = "width" if ch == "x" else "height"
                update[size] = {"signal": f"max(0.25, bandwidth('{ch}'))"}
        else:
            scales.append({
                "name": ch, "type": "linear", "domain": {"data": "data_0", "field": f},
                "range": rng, "nice": True, "zero": True,
            })
            update[ch] = {"scale": ch, "field": f}
            if mark == "bar":
                update[ch + "2"] = {"scale": ch, "value": 0}
        if quantitative:
            axes.append({
                "scale": ch, "orient": orient, "grid": True, "labels": False,
                "domain": False, "ticks": False, "aria": False, "zindex": 0,
            })
        axes.append({"scale": ch, "orient": orient, "grid": False, "title": _title(d), "zindex": 0})

    d = enc.get("color")
    if d:
        f = fields["color"]
        quantitative = d["type"] == "quantitative"
        if quantitative:
            scales.append({
                "name": "color", "type": "linear", "domain": {"data": "data_0", "field": f},
                "range": "heatmap", "interpolate": "hcl", "zero": False,
            })
        else:
            scales.append({
                "name": "color", "type": "ordinal",
                "domain": {"data": "data_0", "field": f, "sort": True}, "range": "category",
            })
        prop = "fill" if filled else "stroke"
        update[prop] = {"scale": "color", "field": f}
        if not filled:
            update["fill"] = {"value": "transparent"}
        legend = {prop: "color", "title": _title(d)}
        legend.update({"type": "gradient"} if quantitative else {"symbolType": "circle"})
        legends.append(legend)

    d = enc.get("size")
    if d:
        f = fields["size"]
        scales.append({
            "name": "size", "type": "linear", "domain": {"data": "data_0", "field": f},
            "range": [0, 361], "zero": True,
        })
        update["size"] = {"scale": "size", "field": f}
        legends.append({"size": "size", "title": _title(d)})

    d = enc.get("text")
    if d:
        update["text"] = {"field": fields["text"]}

    leaf = {
        "name": "marks", "type": VEGA_MARKS[mark], "style": [mark],
        "from": {"data": "data_0"}, "encode": {"update": update},
    }
    color = enc.get("color")
    if mark in ("line", "area") and color and color["type"] in ("nominal", "ordinal"):
        leaf["from"] = {"data": "faceted_path_marks"}
        marks = [{
            "name": "pathgroup", "type": "group",
            "from": {"facet": {"name": "faceted_path_marks", "data": "data_0", "groupby": [fields["color"]]}},
            "marks": [leaf],
        }]
    else:
        marks = [leaf]

    return {
        "$schema": "https://vega.github.io/schema/vega/v5.json",
        "width": 517,
        "height": 392,
        "data": data,
        "marks": marks,
        "scales": scales,
        "axes": axes,
        "legends": legends,
    }


class FakeCompiler:
    """Records every spec it is handed."""

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []

    def __call__(self, spec: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append(copy.deepcopy(spec))
        return compile_unit(spec)


@pytest.fixture
def compiler():
    return FakeCompiler()


@pytest.fixture
def weather_df():
    return pd.DataFrame({
        "cat": ["a", "b", "a", "c"],
        "temp": [10.5, 20.0, 30.0, 15.0],
        "revenue": [100, 200, 300, 50],
        "age": [23, 35, 47, 51],
    })


@pytest.fixture
def store():
    return Store()


@pytest.fixture
def weather(store, weather_df):
    """(pipeline id, source dataset id) for the weather frame."""
    return import_frame(store, "weather", weather_df)


@pytest.fixture
def symbol_mark(store, weather):
    return new_mark(store, "symbol")


@pytest.fixture
def rect_mark(store, weather):
    return new_mark(store, "rect")


@pytest.fixture
def settings_env(monkeypatch):
    """Set VIZBIND_* variables and rebuild the cached settings around a test."""
    def _set(**values):
        for key, val in values.items():
            monkeypatch.setenv(f"VIZBIND_{key.upper()}", str(val))
        get_settings.cache_clear()
        return get_settings()

    get_settings.cache_clear()
    yield _set
    get_settings.cache_clear()
