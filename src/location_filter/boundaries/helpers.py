from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from location_filter.geometry.primitives import BoundaryItem


logger = logging.getLogger("lf.boundaries")

# Levels as they appear in the vector tiles.
TILE_ADMIN_LEVEL_TYPES: Dict[int, str] = {
    2: "country",
    4: "region",
    6: "province",
    7: "comarca",
    8: "city",
    9: "district",
    10: "neighborhood",
}
TILE_DEFAULT_TYPE = "neighborhood"

# Levels as returned by the boundary search service.
SEARCH_ADMIN_LEVEL_TYPES: Dict[int, str] = {
    2: "country",
    4: "province",
    6: "city",
    8: "district",
    10: "neighborhood",
}
SEARCH_DEFAULT_TYPE = "city"

NAME_LANGUAGES = ("en", "fr", "ru", "es", "ca")


def _as_int(v: Any) -> Optional[int]:
    if v is None or isinstance(v, bool):
        return None
    try:
        return int(v)
    except (TypeError, ValueError):
        return None


def _as_float(v: Any) -> Optional[float]:
    if v is None or isinstance(v, bool):
        return None
    try:
        return float(v)
    except (TypeError, ValueError):
        return None


def tile_location_type(admin_level: Any) -> str:
    return TILE_ADMIN_LEVEL_TYPES.get(_as_int(admin_level) or 0, TILE_DEFAULT_TYPE)


def search_location_type(admin_level: Any) -> str:
    return SEARCH_ADMIN_LEVEL_TYPES.get(_as_int(admin_level) or 0, SEARCH_DEFAULT_TYPE)


def has_valid_stable_key(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def display_name(properties: Mapping[str, Any], lang: str = "en") -> str:
    """Localized name with fallback to the base `name` property."""

    lang = (lang or "en").split("-")[0].lower()
    if lang in NAME_LANGUAGES:
        localized = properties.get(f"name_{lang}")
        if localized:
            return str(localized)
    return str(properties.get("name") or "")


def feature_to_item(feature: Mapping[str, Any], lang: str = "en") -> Optional[BoundaryItem]:
    """Convert a clicked boundary tile feature into a BoundaryItem.

    Returns None when the feature has no osm_id. Features without a
    wikidata id convert, but carry no stable key.
    """

    if not isinstance(feature, Mapping):
        return None
    props = feature.get("properties")
    if not isinstance(props, Mapping):
        props = {}
    osm_id = _as_int(props.get("osm_id"))
    if osm_id is None:
        osm_id = _as_int(feature.get("id"))
    if osm_id is None:
        return None
    admin_level = _as_int(props.get("admin_level"))
    wikidata = props.get("wikidata")
    return BoundaryItem(
        id=osm_id,
        name=display_name(props, lang),
        type=tile_location_type(admin_level),
        admin_level=admin_level,
        stable_key=wikidata.strip() if has_valid_stable_key(wikidata) else None,
        external_geometry_id=osm_id,
    )


def search_result_to_item(row: Mapping[str, Any]) -> Optional[BoundaryItem]:
    item_id = _as_int(row.get("id"))
    name = row.get("name")
    if item_id is None or not name:
        logger.debug("skipping malformed boundary search row: %r", row)
        return None
    admin_level = _as_int(row.get("admin_level"))
    wikidata = row.get("wikidata")
    return BoundaryItem(
        id=item_id,
        name=str(name),
        type=search_location_type(admin_level),
        admin_level=admin_level,
        center_lat=_as_float(row.get("center_lat")),
        center_lon=_as_float(row.get("center_lon")),
        area_sq_km=_as_float(row.get("area_sq_km")),
        stable_key=wikidata.strip() if has_valid_stable_key(wikidata) else None,
    )


def stable_keys(items: Iterable[BoundaryItem]) -> List[str]:
    return [i.stable_key for i in items if i.stable_key]
