from __future__ import annotations

from typing import Optional


class LocationFilterError(Exception):
    """Base class for every error raised by the location filter core."""


class GeometryValidationError(LocationFilterError, ValueError):
    """Malformed or out-of-range input caught before any commit or network call."""

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class PolygonLimitError(GeometryValidationError):
    def __init__(self, limit: int) -> None:
        super().__init__(f"maximum polygon limit reached: {limit}", field="polygons")
        self.limit = limit


class ModeNotActiveError(GeometryValidationError):
    def __init__(self) -> None:
        super().__init__("no location mode is active", field="mode")


class NotFoundError(LocationFilterError, KeyError):
    def __str__(self) -> str:
        # KeyError quotes its argument; keep plain messages for the API.
        return str(self.args[0]) if self.args else ""


class PolygonNotFoundError(NotFoundError):
    def __init__(self, polygon_id: str) -> None:
        super().__init__(f"polygon not found: {polygon_id}")
        self.polygon_id = polygon_id


class GeometryNotFoundError(NotFoundError):
    def __init__(self, geometry_id: object) -> None:
        super().__init__(f"geometry not found: {geometry_id}")
        self.geometry_id = geometry_id


class ServiceError(LocationFilterError):
    """An external service (travel-time, boundary search) failed.

    `reason` is a short machine-readable tag: http_status, transport,
    malformed, empty.
    """

    def __init__(self, reason: str, message: str, *, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.reason = reason
        self.status = status
