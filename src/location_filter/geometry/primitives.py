from __future__ import annotations

import math
import random
import string
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Literal, Optional, Sequence, Tuple

from location_filter.errors import GeometryValidationError


Profile = Literal["walking", "cycling", "driving", "driving-traffic"]
LocationType = Literal[
    "country",
    "region",
    "province",
    "comarca",
    "city",
    "district",
    "neighborhood",
]

PROFILES: Tuple[str, ...] = ("walking", "cycling", "driving", "driving-traffic")
LOCATION_TYPES: Tuple[str, ...] = (
    "country",
    "region",
    "province",
    "comarca",
    "city",
    "district",
    "neighborhood",
)

MIN_MINUTES = 1
MAX_MINUTES = 60
MIN_RADIUS_KM = 0.1
MAX_RADIUS_KM = 100.0
MIN_POLYGON_POINTS = 3


def _is_number(v: object) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)


@dataclass(frozen=True)
class Point:
    lng: float
    lat: float

    def to_dict(self) -> Dict[str, float]:
        return {"lng": float(self.lng), "lat": float(self.lat)}

    def to_position(self) -> List[float]:
        return [float(self.lng), float(self.lat)]


def is_valid_point(point: object) -> bool:
    if not isinstance(point, Point):
        return False
    if not (_is_number(point.lng) and _is_number(point.lat)):
        return False
    return -180.0 <= point.lng <= 180.0 and -90.0 <= point.lat <= 90.0


def coerce_point(raw: Any, *, field_name: str = "center") -> Point:
    """Accept a Point, a {lng, lat} mapping or a [lng, lat] pair."""

    if isinstance(raw, Point):
        point = raw
    elif isinstance(raw, dict):
        lng = raw.get("lng", raw.get("lon"))
        lat = raw.get("lat")
        if not (_is_number(lng) and _is_number(lat)):
            raise GeometryValidationError(f"{field_name} must have numeric lng/lat", field=field_name)
        point = Point(lng=float(lng), lat=float(lat))
    elif isinstance(raw, (list, tuple)) and len(raw) == 2 and all(_is_number(x) for x in raw):
        point = Point(lng=float(raw[0]), lat=float(raw[1]))
    else:
        raise GeometryValidationError(f"{field_name} is not a point", field=field_name)
    if not is_valid_point(point):
        raise GeometryValidationError(f"{field_name} is out of coordinate range", field=field_name)
    return point


def step_preset(presets: Sequence[float], current: float, *, up: bool) -> float:
    """Next preset strictly above (or below) `current`; stays put at either end."""

    if up:
        larger = [p for p in presets if p > current]
        return min(larger) if larger else current
    smaller = [p for p in presets if p < current]
    return max(smaller) if smaller else current


def generate_polygon_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"polygon-{int(time.time() * 1000)}-{suffix}"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Polygon:
    """A drawn (or computed) area.

    The ring is implicitly closed: `points` never repeats the first vertex.
    """

    id: str
    points: Tuple[Point, ...]
    name: Optional[str] = None
    created_at: datetime = field(default_factory=_utc_now)

    @classmethod
    def from_points(
        cls,
        points: Iterable[Point],
        *,
        polygon_id: Optional[str] = None,
        name: Optional[str] = None,
    ) -> "Polygon":
        return cls(id=polygon_id or generate_polygon_id(), points=tuple(points), name=name)

    @property
    def is_complete(self) -> bool:
        return len(self.points) >= MIN_POLYGON_POINTS

    def with_points(self, points: Iterable[Point]) -> "Polygon":
        return replace(self, points=tuple(points))

    def ring(self) -> List[List[float]]:
        coords = [p.to_position() for p in self.points]
        if coords:
            coords.append(list(coords[0]))
        return coords

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "points": [p.to_dict() for p in self.points],
            "createdAt": self.created_at.isoformat(),
        }
        if self.name:
            out["name"] = self.name
        return out

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Polygon":
        points = [coerce_point(p, field_name="points") for p in raw.get("points") or []]
        created_raw = raw.get("createdAt")
        created_at = datetime.fromisoformat(created_raw) if created_raw else _utc_now()
        return cls(
            id=str(raw.get("id") or generate_polygon_id()),
            points=tuple(points),
            name=raw.get("name"),
            created_at=created_at,
        )


def is_complete_polygon(polygon: object) -> bool:
    if not isinstance(polygon, Polygon):
        return False
    return polygon.is_complete and all(is_valid_point(p) for p in polygon.points)


def validate_polygon(polygon: Optional[Polygon]) -> Polygon:
    if polygon is None:
        raise GeometryValidationError("polygon is required", field="polygon")
    if len(polygon.points) < MIN_POLYGON_POINTS:
        raise GeometryValidationError(
            f"polygon needs at least {MIN_POLYGON_POINTS} points, got {len(polygon.points)}",
            field="points",
        )
    for p in polygon.points:
        if not is_valid_point(p):
            raise GeometryValidationError("polygon has an invalid point", field="points")
    return polygon


def polygon_from_ring(ring: Sequence[Sequence[float]], *, name: Optional[str] = None) -> Polygon:
    """Build a Polygon from a GeoJSON ring, dropping the closing vertex."""

    if not isinstance(ring, (list, tuple)):
        raise GeometryValidationError("ring must be a list of positions", field="coordinates")
    points: List[Point] = []
    for pos in ring:
        if not isinstance(pos, (list, tuple)) or len(pos) < 2:
            raise GeometryValidationError("ring has a malformed position", field="coordinates")
        points.append(coerce_point(list(pos[:2]), field_name="coordinates"))
    if len(points) > 1 and points[0] == points[-1]:
        points = points[:-1]
    return Polygon.from_points(points, name=name)


@dataclass(frozen=True)
class IsochroneSettings:
    center: Point
    profile: str = "walking"
    minutes: int = 15

    def to_dict(self) -> Dict[str, Any]:
        return {"center": self.center.to_dict(), "profile": self.profile, "minutes": self.minutes}


def is_valid_isochrone(settings: object) -> bool:
    try:
        validate_isochrone(settings)  # type: ignore[arg-type]
    except GeometryValidationError:
        return False
    return True


def validate_profile(profile: object) -> str:
    if profile not in PROFILES:
        raise GeometryValidationError(f"unknown profile: {profile}", field="profile")
    return str(profile)


def validate_minutes(minutes: object) -> int:
    if isinstance(minutes, bool) or not isinstance(minutes, int):
        raise GeometryValidationError("minutes must be an integer", field="minutes")
    if not MIN_MINUTES <= minutes <= MAX_MINUTES:
        raise GeometryValidationError(
            f"minutes must be between {MIN_MINUTES} and {MAX_MINUTES}", field="minutes"
        )
    return minutes


def validate_isochrone(settings: Optional[IsochroneSettings]) -> IsochroneSettings:
    if not isinstance(settings, IsochroneSettings):
        raise GeometryValidationError("isochrone settings are required", field="isochrone")
    validate_profile(settings.profile)
    validate_minutes(settings.minutes)
    if not is_valid_point(settings.center):
        raise GeometryValidationError("center is not a valid point", field="center")
    return settings


@dataclass(frozen=True)
class RadiusSettings:
    center: Point
    radius_km: float

    def to_dict(self) -> Dict[str, Any]:
        return {"center": self.center.to_dict(), "radiusKm": self.radius_km}


def is_valid_radius_km(radius_km: object) -> bool:
    return _is_number(radius_km) and MIN_RADIUS_KM <= float(radius_km) <= MAX_RADIUS_KM  # type: ignore[arg-type]


def validate_radius(settings: Optional[RadiusSettings]) -> RadiusSettings:
    if not isinstance(settings, RadiusSettings):
        raise GeometryValidationError("radius settings are required", field="radius")
    if not is_valid_radius_km(settings.radius_km):
        raise GeometryValidationError(
            f"radiusKm must be between {MIN_RADIUS_KM} and {MAX_RADIUS_KM:g}", field="radiusKm"
        )
    if not is_valid_point(settings.center):
        raise GeometryValidationError("center is not a valid point", field="center")
    return settings


@dataclass(frozen=True)
class BoundaryItem:
    """An administrative region as shown in the selection list.

    `stable_key` is the cross-source identifier (a Wikidata id such as
    "Q1492"); `id` is the local/legacy numeric id.
    """

    id: int
    name: str
    type: str = "city"
    admin_level: Optional[int] = None
    center_lat: Optional[float] = None
    center_lon: Optional[float] = None
    area_sq_km: Optional[float] = None
    stable_key: Optional[str] = None
    external_geometry_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"id": self.id, "name": self.name, "type": self.type}
        optional = {
            "adminLevel": self.admin_level,
            "centerLat": self.center_lat,
            "centerLon": self.center_lon,
            "areaSqKm": self.area_sq_km,
            "stableKey": self.stable_key,
            "externalGeometryId": self.external_geometry_id,
        }
        out.update({k: v for k, v in optional.items() if v is not None})
        return out
