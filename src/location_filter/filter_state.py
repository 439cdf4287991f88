from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from location_filter.boundaries.helpers import has_valid_stable_key, tile_location_type
from location_filter.draw.engine import DEFAULT_MAX_POLYGONS
from location_filter.errors import PolygonLimitError
from location_filter.geometry.primitives import (
    BoundaryItem,
    IsochroneSettings,
    Polygon,
    RadiusSettings,
)


logger = logging.getLogger("lf.controller")

GEOMETRY_KINDS = ("draw", "isochrone", "radius")


@dataclass
class AppliedLocationFilter:
    """The committed location filter shared with the search collaborator.

    Slots are independent: a polygon list, one isochrone, one radius and one
    boundary selection may all be set at the same time.
    """

    max_polygons: int = DEFAULT_MAX_POLYGONS
    polygons: List[Polygon] = field(default_factory=list)
    isochrone: Optional[IsochroneSettings] = None
    isochrone_polygon: Optional[Polygon] = None
    radius: Optional[RadiusSettings] = None
    radius_polygon: Optional[Polygon] = None
    locations: List[BoundaryItem] = field(default_factory=list)
    geometry_ids: Dict[str, List[int]] = field(default_factory=dict)
    # Draft polygon id -> stored geometry id.
    stored_polygon_ids: Dict[str, int] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (
            self.polygons or self.isochrone_polygon or self.radius_polygon or self.locations
        )

    def synced_polygons(self, polygons: Iterable[Polygon]) -> List[Polygon]:
        """The draft list as the new applied list; ids missing from it are dropped."""

        synced = list(polygons)
        if len(synced) > self.max_polygons:
            raise PolygonLimitError(self.max_polygons)
        return synced

    def commit_polygons(self, polygons: Iterable[Polygon]) -> None:
        self.polygons = self.synced_polygons(polygons)

    def commit_isochrone(self, settings: IsochroneSettings, polygon: Polygon) -> None:
        self.isochrone = settings
        self.isochrone_polygon = polygon

    def commit_radius(self, settings: RadiusSettings, polygon: Polygon) -> None:
        self.radius = settings
        self.radius_polygon = polygon

    def commit_locations(self, items: Iterable[BoundaryItem]) -> None:
        self.locations = [i for i in items if has_valid_stable_key(i.stable_key)]

    def set_geometry_ids(self, kind: str, ids: Iterable[int]) -> None:
        ids = [int(i) for i in ids]
        if ids:
            self.geometry_ids[kind] = ids
        else:
            self.geometry_ids.pop(kind, None)

    def clear(self, kind: Optional[str] = None) -> None:
        if kind in (None, "draw"):
            self.polygons = []
            self.stored_polygon_ids = {}
        if kind in (None, "isochrone"):
            self.isochrone = None
            self.isochrone_polygon = None
        if kind in (None, "radius"):
            self.radius = None
            self.radius_polygon = None
        if kind in (None, "search"):
            self.locations = []
        if kind is None:
            self.geometry_ids = {}
        elif kind in GEOMETRY_KINDS:
            self.geometry_ids.pop(kind, None)

    def selected_stable_keys(self) -> Set[str]:
        return {i.stable_key for i in self.locations if i.stable_key}

    def snapshot(self) -> "AppliedLocationFilter":
        return copy.deepcopy(self)

    def restore(self, snap: "AppliedLocationFilter") -> None:
        self.__dict__.update(copy.deepcopy(snap).__dict__)

    def all_geometry_ids(self) -> List[int]:
        out: List[int] = []
        for ids in self.geometry_ids.values():
            out.extend(i for i in ids if i not in out)
        return out

    def to_search_params(self) -> Dict[str, Any]:
        admin_levels: Dict[str, List[str]] = {}
        meta: List[Dict[str, Any]] = []
        for item in self.locations:
            if item.admin_level is not None and item.stable_key:
                admin_levels.setdefault(str(item.admin_level), []).append(item.stable_key)
            meta.append(
                {"id": item.id, "wikidata": item.stable_key, "adminLevel": item.admin_level}
            )
        return {
            "adminLevels": admin_levels,
            "locationsMeta": meta,
            "geometryIds": self.all_geometry_ids(),
            "polygons": [p.to_dict() for p in self.polygons],
            "isochrone": self.isochrone.to_dict() if self.isochrone else None,
            "radius": self.radius.to_dict() if self.radius else None,
        }

    @classmethod
    def from_search_params(
        cls, params: Mapping[str, Any], *, max_polygons: int = DEFAULT_MAX_POLYGONS
    ) -> "AppliedLocationFilter":
        """Restore the boundary selection and stored ids from saved query params.

        Names are not part of the params; restored items carry an empty name
        until the boundary layer resolves them.
        """

        applied = cls(max_polygons=max_polygons)
        items: List[BoundaryItem] = []
        for meta in params.get("locationsMeta") or []:
            key = meta.get("wikidata")
            if not has_valid_stable_key(key):
                logger.warning("saved location %s has no wikidata, skipped", meta.get("id"))
                continue
            level = meta.get("adminLevel")
            items.append(
                BoundaryItem(
                    id=int(meta.get("id") or 0),
                    name="",
                    type=tile_location_type(level),
                    admin_level=level,
                    stable_key=key,
                )
            )
        applied.locations = items
        ids = params.get("geometryIds") or []
        if ids:
            applied.geometry_ids["stored"] = [int(i) for i in ids]
        return applied
