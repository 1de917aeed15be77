"""Mark properties, Vega-Lite channels and mark types."""

from typing import Dict, Tuple

# Vega mark types to Vega-Lite mark types.
MARK_TYPES: Dict[str, str] = {
    "rect": "bar",
    "symbol": "point",
    "text": "text",
    "line": "line",
    "area": "area",
}

# Vega encode properties a compiled channel may write to.
CHANNEL_PROPERTIES: Dict[str, Tuple[str, ...]] = {
    "x": ("x", "x2", "xc", "width"),
    "y": ("y", "y2", "yc", "height"),
    "color": ("fill", "stroke"),
}

_CHANNELS: Dict[str, str] = {
    "x": "x", "x+": "x", "x2": "x", "width": "x",
    "y": "y", "y+": "y", "y2": "y", "height": "y",
    "fill": "color", "stroke": "color",
}


def channel_name(prop: str) -> str:
    """
    Vega-Lite channel for a Vega mark property.
    x2/y2 collapse onto x/y: users may bind a secondary channel first, which
    Vega-Lite does not expect.
    """
    return _CHANNELS.get(prop, prop)


def channel_properties(channel: str) -> Tuple[str, ...]:
    return CHANNEL_PROPERTIES.get(channel, (channel,))
