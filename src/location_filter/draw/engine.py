from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional

from location_filter.errors import (
    GeometryValidationError,
    PolygonLimitError,
    PolygonNotFoundError,
)
from location_filter.geometry.geojson import (
    drawing_features,
    feature_collection,
    polygon_feature,
    vertex_features,
)
from location_filter.geometry.primitives import (
    MIN_POLYGON_POINTS,
    Point,
    Polygon,
    coerce_point,
    validate_polygon,
)


logger = logging.getLogger("lf.draw")

IDLE = "idle"
DRAWING = "drawing"
EDITING = "editing"

DEFAULT_MAX_POLYGONS = 4


@dataclass
class DrawSessionState:
    """Draft bucket for draw mode.

    `history` is the undo stack: one snapshot of `current_points` per
    mutation, the last entry always equal to `current_points`.
    """

    mode: str = IDLE
    current_points: List[Point] = field(default_factory=list)
    polygons: List[Polygon] = field(default_factory=list)
    selected_polygon_id: Optional[str] = None
    history: List[List[Point]] = field(default_factory=list)

    @property
    def polygon(self) -> Optional[Polygon]:
        return self.polygons[-1] if self.polygons else None

    @property
    def is_empty(self) -> bool:
        return not self.polygons and not self.current_points

    def reset(self) -> None:
        self.mode = IDLE
        self.current_points = []
        self.polygons = []
        self.selected_polygon_id = None
        self.history = []


class DrawEngine:
    """Point-collection state machine: idle -> drawing -> (editing <-> drawing) -> idle.

    The engine mutates the DrawSessionState it is given, so the owner of the
    bucket (the mode controller) sees every change without copying.
    """

    def __init__(
        self,
        state: Optional[DrawSessionState] = None,
        *,
        max_polygons: int = DEFAULT_MAX_POLYGONS,
        on_change: Optional[Callable[[DrawSessionState], None]] = None,
    ) -> None:
        self.state = state if state is not None else DrawSessionState()
        self.max_polygons = max(int(max_polygons), 1)
        self.on_change = on_change

    @property
    def mode(self) -> str:
        return self.state.mode

    @property
    def can_start(self) -> bool:
        return len(self.state.polygons) < self.max_polygons

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self.state)

    def _push_history(self) -> None:
        self.state.history.append(list(self.state.current_points))

    def _to_idle(self) -> None:
        self.state.mode = IDLE
        self.state.current_points = []
        self.state.selected_polygon_id = None
        self.state.history = []

    def _find(self, polygon_id: str) -> int:
        for index, polygon in enumerate(self.state.polygons):
            if polygon.id == polygon_id:
                return index
        raise PolygonNotFoundError(polygon_id)

    def start(self) -> None:
        if not self.can_start:
            logger.warning("maximum polygon limit reached: %s", self.max_polygons)
            raise PolygonLimitError(self.max_polygons)
        if self.state.mode == EDITING:
            logger.info("abandoning edit of %s", self.state.selected_polygon_id)
        self.state.mode = DRAWING
        self.state.current_points = []
        self.state.selected_polygon_id = None
        self.state.history = [[]]
        logger.debug("started drawing new polygon")
        self._notify()

    def add_point(self, raw: Any) -> bool:
        """Append a clicked point. Clicks while idle are ignored."""

        if self.state.mode == IDLE:
            return False
        point = coerce_point(raw, field_name="point")
        self.state.current_points.append(point)
        self._push_history()
        self._notify()
        return True

    def move_point(self, index: int, raw: Any) -> None:
        if self.state.mode == IDLE:
            raise GeometryValidationError("no polygon is being drawn", field="mode")
        if not 0 <= index < len(self.state.current_points):
            raise GeometryValidationError(f"no point at index {index}", field="index")
        self.state.current_points[index] = coerce_point(raw, field_name="point")
        self._push_history()
        self._notify()

    def undo(self) -> None:
        if self.state.mode == IDLE or len(self.state.history) < 2:
            return
        self.state.history.pop()
        self.state.current_points = list(self.state.history[-1])
        if not self.state.current_points and self.state.mode == DRAWING:
            self._to_idle()
        self._notify()

    def complete(self) -> Polygon:
        if self.state.mode == IDLE:
            raise GeometryValidationError("no polygon is being drawn", field="mode")
        if len(self.state.current_points) < MIN_POLYGON_POINTS:
            raise GeometryValidationError(
                f"polygon needs at least {MIN_POLYGON_POINTS} points, "
                f"got {len(self.state.current_points)}",
                field="points",
            )
        if self.state.mode == EDITING and self.state.selected_polygon_id:
            index = self._find(self.state.selected_polygon_id)
            polygon = self.state.polygons[index].with_points(self.state.current_points)
            validate_polygon(polygon)
            self.state.polygons[index] = polygon
            logger.info("polygon %s updated: %s points", polygon.id, len(polygon.points))
        else:
            polygon = Polygon.from_points(self.state.current_points)
            validate_polygon(polygon)
            self.state.polygons.append(polygon)
            logger.info("polygon %s completed: %s points", polygon.id, len(polygon.points))
        self._to_idle()
        self._notify()
        return polygon

    def cancel(self) -> None:
        if self.state.mode == EDITING:
            logger.info("edit of %s cancelled", self.state.selected_polygon_id)
        self._to_idle()
        self._notify()

    def edit(self, polygon_id: str) -> None:
        # Editing is exempt from the polygon cap: the polygon is already counted.
        polygon = self.state.polygons[self._find(polygon_id)]
        self.state.mode = EDITING
        self.state.current_points = list(polygon.points)
        self.state.selected_polygon_id = polygon.id
        self.state.history = [list(polygon.points)]
        logger.debug("editing polygon %s", polygon.id)
        self._notify()

    def delete(self, polygon_id: str) -> None:
        index = self._find(polygon_id)
        del self.state.polygons[index]
        if self.state.selected_polygon_id == polygon_id:
            self._to_idle()
        logger.info("deleted polygon %s", polygon_id)
        self._notify()

    def rename(self, polygon_id: str, name: Optional[str]) -> Polygon:
        index = self._find(polygon_id)
        polygon = replace(self.state.polygons[index], name=(name or "").strip() or None)
        self.state.polygons[index] = polygon
        self._notify()
        return polygon

    def clear(self) -> None:
        self.state.reset()
        logger.debug("all polygons cleared")
        self._notify()

    def preview_features(self) -> Dict[str, Any]:
        outline = drawing_features(self.state.current_points)
        vertices = vertex_features(self.state.current_points)
        return feature_collection(outline["features"] + vertices["features"])

    def polygons_features(self) -> Dict[str, Any]:
        selected = self.state.selected_polygon_id
        return feature_collection(
            polygon_feature(p, selected=p.id == selected)
            for p in self.state.polygons
            # The polygon under edit is drawn by the preview instead.
            if not (self.state.mode == EDITING and p.id == selected)
        )
