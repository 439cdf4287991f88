from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from location_filter.geometry.primitives import Point, Polygon


BBox = Tuple[float, float, float, float]


def feature_collection(features: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    return {"type": "FeatureCollection", "features": list(features)}


def is_empty(data: Optional[Dict[str, Any]]) -> bool:
    if not data:
        return True
    if data.get("type") == "FeatureCollection":
        return not data.get("features")
    return False


def polygon_geometry(polygon: Polygon) -> Dict[str, Any]:
    return {"type": "Polygon", "coordinates": [polygon.ring()]}


def polygon_feature(polygon: Polygon, **properties: Any) -> Dict[str, Any]:
    props: Dict[str, Any] = {"id": polygon.id}
    if polygon.name:
        props["name"] = polygon.name
    props.update(properties)
    return {
        "type": "Feature",
        "id": polygon.id,
        "geometry": polygon_geometry(polygon),
        "properties": props,
    }


def drawing_features(points: Sequence[Point]) -> Dict[str, Any]:
    """In-progress outline: always the line, plus the fill once it is closable."""

    coords = [p.to_position() for p in points]
    features: List[Dict[str, Any]] = []
    if coords:
        features.append(
            {
                "type": "Feature",
                "properties": {"role": "line"},
                "geometry": {"type": "LineString", "coordinates": coords},
            }
        )
    if len(coords) >= 3:
        features.append(
            {
                "type": "Feature",
                "properties": {"role": "fill"},
                "geometry": {"type": "Polygon", "coordinates": [coords + [list(coords[0])]]},
            }
        )
    return feature_collection(features)


def vertex_features(points: Sequence[Point]) -> Dict[str, Any]:
    # The first vertex anchors the editor popup.
    return feature_collection(
        {
            "type": "Feature",
            "properties": {"index": index, "anchor": index == 0},
            "geometry": {"type": "Point", "coordinates": point.to_position()},
        }
        for index, point in enumerate(points)
    )


def _walk_coords(obj: Any) -> Iterable[Tuple[float, float]]:
    if isinstance(obj, (list, tuple)) and len(obj) == 2 and all(
        isinstance(x, (int, float)) for x in obj
    ):
        yield float(obj[0]), float(obj[1])
        return
    if isinstance(obj, (list, tuple)):
        for it in obj:
            yield from _walk_coords(it)


def geometry_bbox(geometry: Dict[str, Any]) -> Optional[BBox]:
    coords = (geometry or {}).get("coordinates")
    if coords is None:
        return None
    xs: List[float] = []
    ys: List[float] = []
    for x, y in _walk_coords(coords):
        xs.append(x)
        ys.append(y)
    if not xs or not ys:
        return None
    return (min(xs), min(ys), max(xs), max(ys))


def outer_ring(geometry: Any) -> Optional[List[Any]]:
    """Return the outer ring of a GeoJSON Polygon, Feature or bare {coordinates}."""

    if not isinstance(geometry, dict):
        return None
    if geometry.get("type") == "Feature":
        return outer_ring(geometry.get("geometry"))
    gtype = geometry.get("type")
    if gtype not in (None, "Polygon"):
        return None
    coords = geometry.get("coordinates")
    if not isinstance(coords, list) or not coords:
        return None
    ring = coords[0]
    if not isinstance(ring, list):
        return None
    return ring
