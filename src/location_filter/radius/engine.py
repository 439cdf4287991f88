from __future__ import annotations

import logging
import math
from typing import Any, Callable, Dict, List, Optional, Sequence

from location_filter.drafts import RadiusDraft
from location_filter.errors import GeometryValidationError
from location_filter.geometry.geojson import feature_collection, polygon_feature
from location_filter.geometry.primitives import (
    MAX_RADIUS_KM,
    MIN_RADIUS_KM,
    Point,
    Polygon,
    RadiusSettings,
    coerce_point,
    is_valid_radius_km,
    step_preset,
    validate_radius,
)
from location_filter.map_layer.styles import RADIUS_COLOR


logger = logging.getLogger("lf.radius")

EARTH_RADIUS_KM = 6371.0088
CIRCLE_STEPS = 64
RADIUS_STEPS: Sequence[float] = (1, 3, 5, 10, 15, 20)
DEFAULT_RADIUS_KM = 5.0


def _wrap_lng(lng: float) -> float:
    if -180.0 <= lng <= 180.0:
        return lng
    return ((lng + 180.0) % 360.0) - 180.0


def destination(center: Point, distance_km: float, bearing_deg: float) -> Point:
    """Point reached from `center` along a great circle."""

    lat1 = math.radians(center.lat)
    lng1 = math.radians(center.lng)
    d = distance_km / EARTH_RADIUS_KM
    brng = math.radians(bearing_deg)
    lat2 = math.asin(math.sin(lat1) * math.cos(d) + math.cos(lat1) * math.sin(d) * math.cos(brng))
    lng2 = lng1 + math.atan2(
        math.sin(brng) * math.sin(d) * math.cos(lat1),
        math.cos(d) - math.sin(lat1) * math.sin(lat2),
    )
    return Point(lng=_wrap_lng(math.degrees(lng2)), lat=math.degrees(lat2))


def circle_points(center: Point, radius_km: float, *, steps: int = CIRCLE_STEPS) -> List[Point]:
    # Counter-clockwise from north, ring left open.
    return [destination(center, radius_km, -360.0 * i / steps) for i in range(steps)]


def compute(center: Any, radius_km: float) -> Polygon:
    """64-vertex geodesic circle. Out-of-range input is rejected, never clamped."""

    settings = validate_radius(RadiusSettings(center=coerce_point(center), radius_km=radius_km))
    return Polygon.from_points(
        circle_points(settings.center, float(settings.radius_km)),
        name=f"{float(settings.radius_km):g} km",
    )


class RadiusEngine:
    def __init__(
        self,
        draft: Optional[RadiusDraft] = None,
        *,
        on_change: Optional[Callable[[RadiusDraft], None]] = None,
    ) -> None:
        self.draft = draft if draft is not None else RadiusDraft()
        self.on_change = on_change
        current = self.draft.radius
        self.center: Optional[Point] = current.center if current else None
        self.radius_km: float = float(current.radius_km) if current else DEFAULT_RADIUS_KM

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self.draft)

    def compute(self, center: Any = None, radius_km: Optional[float] = None) -> Polygon:
        raw_center = center if center is not None else self.center
        if raw_center is None:
            raise GeometryValidationError("center is required", field="center")
        km = self.radius_km if radius_km is None else radius_km
        polygon = compute(raw_center, km)
        settings = RadiusSettings(center=coerce_point(raw_center), radius_km=float(km))
        self.center, self.radius_km = settings.center, settings.radius_km
        self.draft.radius = settings
        self.draft.polygon = polygon
        logger.debug("radius %.3f km around %s,%s", settings.radius_km, settings.center.lng, settings.center.lat)
        self._notify()
        return polygon

    def set_center(self, center: Any) -> Polygon:
        return self.compute(center=center)

    def set_radius(self, radius_km: float) -> Optional[Polygon]:
        if self.center is None:
            if not is_valid_radius_km(radius_km):
                raise GeometryValidationError(
                    f"radiusKm must be between {MIN_RADIUS_KM} and {MAX_RADIUS_KM:g}", field="radiusKm"
                )
            self.radius_km = float(radius_km)
            return None
        return self.compute(radius_km=radius_km)

    def step_up(self) -> Optional[Polygon]:
        return self.set_radius(float(step_preset(RADIUS_STEPS, self.radius_km, up=True)))

    def step_down(self) -> Optional[Polygon]:
        return self.set_radius(float(step_preset(RADIUS_STEPS, self.radius_km, up=False)))

    def clear(self) -> None:
        self.draft.reset()
        self.center = None
        self._notify()

    def preview_features(self) -> Dict[str, Any]:
        if self.draft.polygon is None or self.draft.radius is None:
            return feature_collection([])
        return feature_collection(
            [
                polygon_feature(
                    self.draft.polygon,
                    radiusKm=self.draft.radius.radius_km,
                    color=RADIUS_COLOR,
                )
            ]
        )
