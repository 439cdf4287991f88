from __future__ import annotations

import logging
import sqlite3
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from location_filter.boundaries.selection import BoundarySelectionEngine
from location_filter.config import Settings, get_settings
from location_filter.draw.engine import DrawEngine
from location_filter.drafts import MODES, LocalLocationStates
from location_filter.errors import (
    GeometryValidationError,
    LocationFilterError,
    ModeNotActiveError,
)
from location_filter.filter_state import AppliedLocationFilter
from location_filter.geometry.geojson import polygon_geometry
from location_filter.geometry.primitives import (
    Polygon,
    validate_isochrone,
    validate_polygon,
    validate_radius,
)
from location_filter.isochrone.engine import IsochroneEngine, RingFetcher
from location_filter.map_layer.boundaries import BoundaryHoverTracker, BoundarySelectionPass
from location_filter.map_layer.styles import RADIUS_COLOR, profile_color
from location_filter.map_layer.synchronizer import MapLayerSynchronizer
from location_filter.radius.engine import RadiusEngine


logger = logging.getLogger("lf.controller")

PREVIEW_KINDS: Dict[str, Tuple[str, ...]] = {
    "search": (),
    "draw": ("draw-preview", "draw-polygons"),
    "isochrone": ("isochrone",),
    "radius": ("radius",),
}


class GeometryStore(Protocol):
    def create(
        self,
        geometry_type: str,
        geometry: Dict[str, Any],
        *,
        name: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Any: ...

    def delete(self, geometry_id: int) -> None: ...


class ModeController:
    """Single entry point of the location filter UI.

    Owns the per-mode drafts, the engines working on them and the applied
    filter. At most one mode is active; switching modes never resets a
    draft.
    """

    def __init__(
        self,
        *,
        sync: Optional[MapLayerSynchronizer] = None,
        applied: Optional[AppliedLocationFilter] = None,
        settings: Optional[Settings] = None,
        isochrone_client: Optional[RingFetcher] = None,
        store: Optional[GeometryStore] = None,
        persist: Optional[bool] = None,
        lang: str = "en",
        on_apply: Optional[Callable[[AppliedLocationFilter], None]] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.sync = sync if sync is not None else MapLayerSynchronizer(theme=self.settings.theme)
        self.applied = (
            applied
            if applied is not None
            else AppliedLocationFilter(max_polygons=self.settings.max_polygons)
        )
        self.drafts = LocalLocationStates()
        self.lang = lang
        self.on_apply = on_apply

        self.persist = self.settings.persist_on_apply if persist is None else persist
        if self.persist and store is None:
            from location_filter.storage import open_store

            store = open_store(self.settings.geometry_db)
        self.store = store

        self.draw = DrawEngine(
            self.drafts.draw,
            max_polygons=self.settings.max_polygons,
            on_change=lambda _s: self._refresh("draw"),
        )
        self.isochrone = IsochroneEngine(
            self.drafts.isochrone,
            client=isochrone_client,
            on_change=lambda _d: self._refresh("isochrone"),
        )
        self.radius = RadiusEngine(self.drafts.radius, on_change=lambda _d: self._refresh("radius"))
        self.boundaries = BoundarySelectionEngine(
            self.drafts.search, on_change=lambda _d: self._refresh("search")
        )
        self.hover = BoundaryHoverTracker(self.sync)
        self.selection_pass = BoundarySelectionPass(self.sync)

        self.active_mode: Optional[str] = None
        self._disposed = False

    # -- mode switching -------------------------------------------------

    def get_active_mode(self) -> Optional[str]:
        return self.active_mode

    def set_mode(self, mode: Optional[str]) -> None:
        if mode is not None and mode not in MODES:
            raise GeometryValidationError(f"unknown location mode: {mode}", field="mode")
        if mode == self.active_mode:
            return
        previous = self.active_mode
        if previous == "isochrone":
            self.isochrone.cancel()
        if previous == "search":
            self.sync.detach("boundaries", "click")

        self.active_mode = mode
        if mode == "search":
            self.sync.attach("boundaries", "click", "click", self._on_boundary_click)
        if mode is not None:
            self._refresh(mode)
        logger.info("location mode %s -> %s", previous, mode)

    def close_active(self) -> None:
        mode = self.active_mode
        if mode is None:
            return
        self.set_mode(None)
        for kind in PREVIEW_KINDS[mode]:
            self.sync.teardown(kind)

    def _require_mode(self) -> str:
        if self.active_mode is None:
            raise ModeNotActiveError()
        return self.active_mode

    # -- previews -------------------------------------------------------

    def _refresh(self, mode: str) -> None:
        if self._disposed:
            return
        if mode == "draw":
            self.sync.ensure_layers("draw-preview", self.draw.preview_features())
            self.sync.ensure_layers("draw-polygons", self.draw.polygons_features())
        elif mode == "isochrone":
            self.sync.ensure_layers("isochrone", self.isochrone.preview_features())
        elif mode == "radius":
            self.sync.ensure_layers("radius", self.radius.preview_features())
        elif mode == "search":
            self._refresh_selection()

    def _refresh_selection(self) -> None:
        local = [i.stable_key for i in self.drafts.search.selected_locations if i.stable_key]
        self.selection_pass.update(local, self.applied.selected_stable_keys())

    def show_boundaries(self, source: Dict[str, Any]) -> None:
        """Add the boundary base layer with hover and selection passes."""

        self.sync.ensure_layers("boundaries", source)
        self.hover.attach()
        self.selection_pass.attach()
        self.selection_pass.index_features(self.sync.query_features("boundaries"))
        self._refresh_selection()

    def _on_boundary_click(self, event: Dict[str, Any]) -> None:
        self.boundaries.handle_click(event, self.lang)

    def set_theme(self, theme: str) -> None:
        self.sync.set_theme(theme)

    # -- apply / clear ---------------------------------------------------

    def clear_active(self) -> None:
        mode = self._require_mode()
        if mode == "draw":
            self.draw.clear()
        elif mode == "isochrone":
            self.isochrone.clear()
        elif mode == "radius":
            self.radius.clear()
        else:
            self.boundaries.clear()
        logger.debug("cleared %s draft", mode)

    def apply_active(self) -> AppliedLocationFilter:
        """Validate the active draft and commit it into the applied filter.

        Nothing is committed when validation or persistence fails.
        """

        mode = self._require_mode()
        snapshot = self.applied.snapshot()
        created: List[int] = []
        try:
            if mode == "search":
                self.applied.commit_locations(self.drafts.search.selected_locations)
            elif mode == "draw":
                self._apply_draw(created)
            elif mode == "isochrone":
                self._apply_isochrone(created)
            else:
                self._apply_radius(created)
        except (LocationFilterError, sqlite3.Error):
            self._rollback(created)
            self.applied.restore(snapshot)
            raise

        self._drop_superseded(snapshot)
        logger.info("applied %s filter", mode)
        if mode == "search":
            self._refresh_selection()
        if self.on_apply is not None:
            self.on_apply(self.applied)
        return self.applied

    def _store(self, created: List[int], geometry_type: str, geometry: Dict[str, Any], **kw: Any) -> Optional[int]:
        if not self.persist or self.store is None:
            return None
        stored = self.store.create(geometry_type, geometry, **kw)
        geometry_id = int(stored.id)
        created.append(geometry_id)
        return geometry_id

    def _apply_draw(self, created: List[int]) -> None:
        polygons: List[Polygon] = list(self.drafts.draw.polygons)
        if not polygons:
            raise GeometryValidationError("draw at least one complete polygon", field="polygons")
        for polygon in polygons:
            validate_polygon(polygon)
        synced = self.applied.synced_polygons(polygons)

        stored_ids = dict(self.applied.stored_polygon_ids)
        previous = {p.id: p for p in self.applied.polygons}
        for polygon in polygons:
            if polygon.id in stored_ids and previous.get(polygon.id) == polygon:
                continue
            geometry_id = self._store(
                created,
                "polygon",
                polygon_geometry(polygon),
                name=polygon.name,
                metadata={"clientId": polygon.id},
            )
            if geometry_id is not None:
                stored_ids[polygon.id] = geometry_id

        self.applied.polygons = synced
        self.applied.stored_polygon_ids = {
            p.id: stored_ids[p.id] for p in synced if p.id in stored_ids
        }
        self.applied.set_geometry_ids("draw", self.applied.stored_polygon_ids.values())

    def _apply_isochrone(self, created: List[int]) -> None:
        draft = self.drafts.isochrone
        if draft.polygon is None or draft.isochrone is None:
            raise GeometryValidationError("no isochrone has been computed", field="isochrone")
        settings = validate_isochrone(draft.isochrone)
        validate_polygon(draft.polygon)
        geometry_id = self._store(
            created,
            "isochrone",
            polygon_geometry(draft.polygon),
            name=draft.polygon.name,
            metadata={
                "center": settings.center.to_dict(),
                "profile": settings.profile,
                "minutes": settings.minutes,
                "color": profile_color(settings.profile),
            },
        )
        self.applied.commit_isochrone(settings, draft.polygon)
        self.applied.set_geometry_ids("isochrone", [geometry_id] if geometry_id is not None else [])

    def _apply_radius(self, created: List[int]) -> None:
        draft = self.drafts.radius
        if draft.polygon is None or draft.radius is None:
            raise GeometryValidationError("pick a center for the radius", field="center")
        settings = validate_radius(draft.radius)
        geometry_id = self._store(
            created,
            "radius",
            settings.to_dict(),
            name=draft.polygon.name,
            metadata={"color": RADIUS_COLOR},
        )
        self.applied.commit_radius(settings, draft.polygon)
        self.applied.set_geometry_ids("radius", [geometry_id] if geometry_id is not None else [])

    def _rollback(self, created: List[int]) -> None:
        for geometry_id in created:
            try:
                self.store.delete(geometry_id)  # type: ignore[union-attr]
            except (LocationFilterError, sqlite3.Error) as e:
                logger.warning("rollback of geometry %s failed: %s", geometry_id, e)

    def _drop_superseded(self, before: AppliedLocationFilter) -> None:
        if not self.persist or self.store is None:
            return
        still_used = set(self.applied.all_geometry_ids())
        for geometry_id in before.all_geometry_ids():
            if geometry_id in still_used:
                continue
            try:
                self.store.delete(geometry_id)
            except (LocationFilterError, sqlite3.Error) as e:
                logger.warning("could not delete superseded geometry %s: %s", geometry_id, e)

    # -- lifecycle -------------------------------------------------------

    def search_params(self) -> Dict[str, Any]:
        return self.applied.to_search_params()

    def dispose(self) -> None:
        """End the session: cancel requests, drop drafts and every layer."""

        self.isochrone.cancel()
        self.hover.detach()
        self.selection_pass.detach()
        self.active_mode = None
        self._disposed = True
        self.sync.teardown_all()
        self.drafts.reset()
        logger.debug("location session disposed")

    async def aclose(self) -> None:
        self.dispose()
        closer = getattr(self.isochrone.client, "aclose", None)
        if closer is not None:
            await closer()
        close_store = getattr(self.store, "close", None)
        if close_store is not None:
            close_store()
