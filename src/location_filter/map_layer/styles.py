from __future__ import annotations

from typing import Any, Dict, List


THEMES = ("light", "dark")

KINDS = ("draw-preview", "draw-polygons", "isochrone", "radius", "boundaries")

SOURCE_IDS: Dict[str, str] = {
    "draw-preview": "drawing-polygon",
    "draw-polygons": "completed-polygons",
    "isochrone": "isochrone",
    "radius": "radius",
    "boundaries": "boundaries",
}

PROFILE_COLORS: Dict[str, str] = {
    "walking": "#28A745",
    "cycling": "#FFC107",
    "driving": "#198BFF",
    "driving-traffic": "#DC3545",
}

PROFILE_LABELS: Dict[str, str] = {
    "walking": "Walking",
    "cycling": "Cycling",
    "driving": "Driving",
    "driving-traffic": "Driving (Traffic)",
}

DEFAULT_COLOR = "#198BFF"
RADIUS_COLOR = "#3B82F6"
DRAW_COLOR = "#3b82f6"
VERTEX_ANCHOR_COLOR = "#28A745"

# Boundary and committed-polygon paint per theme.
LAYER_COLORS: Dict[str, Dict[str, Any]] = {
    "light": {
        "fill_default": "#9ca3af",
        "fill_selected": "#3b82f6",
        "fill_hover": "#60a5fa",
        "fill_opacity_default": 0.2,
        "fill_opacity_selected": 0.4,
        "fill_opacity_hover": 0.5,
        "line_default": "#60a5fa",
        "line_selected": "#3b82f6",
        "line_hover": "#3b82f6",
        "line_width_default": 1,
        "line_width_selected": 2,
        "line_width_hover": 2.5,
        "line_opacity_default": 1,
        "line_opacity_selected": 1,
        "line_opacity_hover": 1,
        "text_color": "#1e293b",
        "text_halo": "#ffffff",
        "text_opacity": 1,
    },
    "dark": {
        "fill_default": "#1A1A1A",
        "fill_selected": "#198BFF",
        "fill_hover": "#3DA1FF",
        "fill_opacity_default": 0.9,
        "fill_opacity_selected": 0.95,
        "fill_opacity_hover": 0.95,
        "line_default": "#3DA1FF",
        "line_selected": "#198BFF",
        "line_hover": "#198BFF",
        "line_width_default": 1.5,
        "line_width_selected": 2,
        "line_width_hover": 2.5,
        "line_opacity_default": 0.8,
        "line_opacity_selected": 1,
        "line_opacity_hover": 1,
        "text_color": "#F8F9FA",
        "text_halo": "#0F0F0F",
        "text_opacity": 0.9,
    },
}


def profile_color(profile: str) -> str:
    return PROFILE_COLORS.get(profile, DEFAULT_COLOR)


def profile_label(profile: str) -> str:
    return PROFILE_LABELS.get(profile, profile)


def theme_colors(theme: str) -> Dict[str, Any]:
    return LAYER_COLORS.get(theme) or LAYER_COLORS["dark"]


def state_case(colors: Dict[str, Any], prefix: str) -> List[Any]:
    """Mapbox `case` expression: selected, then hover, then default."""

    return [
        "case",
        ["boolean", ["feature-state", "selected"], False],
        colors[f"{prefix}_selected"],
        ["boolean", ["feature-state", "hover"], False],
        colors[f"{prefix}_hover"],
        colors[f"{prefix}_default"],
    ]


def _state_layers(kind: str, colors: Dict[str, Any], *, source_layer: bool) -> List[Dict[str, Any]]:
    source = SOURCE_IDS[kind]
    extra: Dict[str, Any] = {"source-layer": source} if source_layer else {}
    return [
        {
            "id": f"{source}-fill",
            "type": "fill",
            "source": source,
            **extra,
            "paint": {
                "fill-color": state_case(colors, "fill"),
                "fill-opacity": state_case(colors, "fill_opacity"),
            },
        },
        {
            "id": f"{source}-outline" if kind == "boundaries" else f"{source}-line",
            "type": "line",
            "source": source,
            **extra,
            "paint": {
                "line-color": state_case(colors, "line"),
                "line-width": state_case(colors, "line_width"),
                "line-opacity": state_case(colors, "line_opacity"),
            },
        },
    ]


def layer_specs(kind: str, theme: str = "dark") -> List[Dict[str, Any]]:
    """Layer definitions for a kind, in paint order."""

    if kind not in SOURCE_IDS:
        raise KeyError(kind)
    colors = theme_colors(theme)
    source = SOURCE_IDS[kind]

    if kind == "draw-preview":
        return [
            {
                "id": f"{source}-fill",
                "type": "fill",
                "source": source,
                "filter": ["==", ["geometry-type"], "Polygon"],
                "paint": {"fill-color": DRAW_COLOR, "fill-opacity": 0.4},
            },
            {
                "id": f"{source}-line",
                "type": "line",
                "source": source,
                "filter": ["==", ["geometry-type"], "LineString"],
                "paint": {"line-color": DRAW_COLOR, "line-width": 2, "line-opacity": 1},
            },
            {
                "id": f"{source}-points",
                "type": "circle",
                "source": source,
                "filter": ["==", ["geometry-type"], "Point"],
                "paint": {
                    "circle-radius": 6,
                    "circle-color": ["case", ["get", "anchor"], VERTEX_ANCHOR_COLOR, DEFAULT_COLOR],
                    "circle-stroke-width": 2,
                    "circle-stroke-color": "#ffffff",
                },
            },
        ]

    if kind == "draw-polygons":
        return _state_layers(kind, colors, source_layer=False)

    if kind == "boundaries":
        layers = _state_layers(kind, colors, source_layer=True)
        layers.append(
            {
                "id": f"{source}-labels",
                "type": "symbol",
                "source": source,
                "source-layer": source,
                "layout": {
                    "text-field": ["get", "name"],
                    "text-size": 12,
                    "text-anchor": "center",
                    "text-max-width": 8,
                },
                "paint": {
                    "text-color": colors["text_color"],
                    "text-halo-color": colors["text_halo"],
                    "text-halo-width": 1.5,
                    "text-opacity": colors["text_opacity"],
                },
            }
        )
        return layers

    # isochrone and radius: a single filled area.
    if kind == "isochrone":
        color: Any = ["coalesce", ["get", "color"], DEFAULT_COLOR]
        fill_opacity = 0.3
    else:
        color = RADIUS_COLOR
        fill_opacity = 0.2
    return [
        {
            "id": f"{source}-fill",
            "type": "fill",
            "source": source,
            "paint": {"fill-color": color, "fill-opacity": fill_opacity},
        },
        {
            "id": f"{source}-line",
            "type": "line",
            "source": source,
            "paint": {"line-color": color, "line-width": 2},
        },
    ]
