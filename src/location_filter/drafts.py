from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from location_filter.draw.engine import DrawSessionState
from location_filter.geometry.primitives import (
    BoundaryItem,
    IsochroneSettings,
    Polygon,
    RadiusSettings,
)


MODES = ("search", "draw", "isochrone", "radius")


@dataclass
class SearchDraft:
    selected_locations: List[BoundaryItem] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.selected_locations

    def reset(self) -> None:
        self.selected_locations = []


@dataclass
class IsochroneDraft:
    isochrone: Optional[IsochroneSettings] = None
    polygon: Optional[Polygon] = None

    @property
    def is_empty(self) -> bool:
        return self.polygon is None

    def reset(self) -> None:
        self.isochrone = None
        self.polygon = None


@dataclass
class RadiusDraft:
    radius: Optional[RadiusSettings] = None
    polygon: Optional[Polygon] = None

    @property
    def is_empty(self) -> bool:
        return self.polygon is None

    def reset(self) -> None:
        self.radius = None
        self.polygon = None


@dataclass
class LocalLocationStates:
    """One independent draft bucket per authoring mode.

    Buckets are reset in place so engines holding a reference keep seeing
    the live bucket.
    """

    search: SearchDraft = field(default_factory=SearchDraft)
    draw: DrawSessionState = field(default_factory=DrawSessionState)
    isochrone: IsochroneDraft = field(default_factory=IsochroneDraft)
    radius: RadiusDraft = field(default_factory=RadiusDraft)

    def bucket(self, mode: str) -> Any:
        if mode not in MODES:
            raise KeyError(mode)
        return getattr(self, mode)

    def reset(self, mode: Optional[str] = None) -> None:
        for name in (mode,) if mode else MODES:
            self.bucket(name).reset()

    def snapshot(self) -> "LocalLocationStates":
        return copy.deepcopy(self)

    def summary(self) -> Dict[str, Any]:
        return {
            "search": len(self.search.selected_locations),
            "draw": {
                "mode": self.draw.mode,
                "points": len(self.draw.current_points),
                "polygons": len(self.draw.polygons),
            },
            "isochrone": self.isochrone.isochrone.to_dict() if self.isochrone.isochrone else None,
            "radius": self.radius.radius.to_dict() if self.radius.radius else None,
        }
