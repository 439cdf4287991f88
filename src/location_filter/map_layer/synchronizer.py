from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from location_filter.geometry.geojson import is_empty
from location_filter.map_layer.styles import KINDS, SOURCE_IDS, layer_specs
from location_filter.map_layer.surface import Handler, InMemoryMapSurface, MapSurface, MapSurfaceError


logger = logging.getLogger("lf.map")

# Vector tile sources promote this property to the feature id.
PROMOTE_IDS: Dict[str, str] = {"boundaries": "osm_id", "draw-polygons": "id"}


@dataclass
class _KindEntry:
    source_id: str
    layer_ids: List[str] = field(default_factory=list)
    source_layer: Optional[str] = None
    # channel -> [(event, layer_id, handler)]
    listeners: Dict[str, List[Tuple[str, Optional[str], Handler]]] = field(default_factory=dict)


class MapLayerSynchronizer:
    """Sole owner of sources, layers and listeners on the map surface.

    Engines hand it plain GeoJSON; it never reads engine state. Surface
    refusals are logged and swallowed: a preview that cannot be drawn must
    not break authoring.
    """

    def __init__(self, surface: Optional[MapSurface] = None, *, theme: str = "dark") -> None:
        self.surface: MapSurface = surface if surface is not None else InMemoryMapSurface()
        self.theme = theme
        self._registry: Dict[str, _KindEntry] = {}

    def _entry(self, kind: str) -> _KindEntry:
        if kind not in KINDS:
            raise KeyError(f"unknown layer kind: {kind}")
        entry = self._registry.get(kind)
        if entry is None:
            entry = _KindEntry(source_id=SOURCE_IDS[kind])
            self._registry[kind] = entry
        return entry

    def is_present(self, kind: str) -> bool:
        entry = self._registry.get(kind)
        return bool(entry and entry.layer_ids)

    def layer_ids(self, kind: str) -> List[str]:
        entry = self._registry.get(kind)
        return list(entry.layer_ids) if entry else []

    def listener_count(self, kind: str, channel: Optional[str] = None) -> int:
        entry = self._registry.get(kind)
        if not entry:
            return 0
        if channel is not None:
            return len(entry.listeners.get(channel, []))
        return sum(len(v) for v in entry.listeners.values())

    @staticmethod
    def _source_spec(kind: str, data: Dict[str, Any]) -> Dict[str, Any]:
        if data.get("type") in ("vector", "raster", "geojson"):
            return dict(data)
        spec: Dict[str, Any] = {"type": "geojson", "data": data}
        if kind in PROMOTE_IDS:
            spec["promoteId"] = PROMOTE_IDS[kind]
        return spec

    def ensure_layers(self, kind: str, data: Optional[Dict[str, Any]]) -> None:
        """Create or update the source and layers of `kind`.

        Repeated calls only replace source data. Empty data removes every
        layer and the source of that kind; listeners stay registered.
        """

        entry = self._entry(kind)
        if is_empty(data):
            self._remove_layers(entry)
            return
        assert data is not None
        try:
            if self.surface.has_source(entry.source_id):
                if data.get("type") in ("FeatureCollection", "Feature"):
                    self.surface.set_source_data(entry.source_id, data)
            else:
                spec = self._source_spec(kind, data)
                self.surface.add_source(entry.source_id, spec)
                vector = spec.get("type") == "vector"
                for layer in layer_specs(kind, self.theme):
                    if not vector:
                        layer = {k: v for k, v in layer.items() if k != "source-layer"}
                    elif entry.source_layer is None:
                        entry.source_layer = layer.get("source-layer")
                    if not self.surface.has_layer(layer["id"]):
                        self.surface.add_layer(layer)
                    entry.layer_ids.append(layer["id"])
                logger.debug("layers added for %s: %s", kind, entry.layer_ids)
        except MapSurfaceError as e:
            logger.warning("could not sync %s layers: %s", kind, e)

    def _remove_layers(self, entry: _KindEntry) -> None:
        try:
            for layer_id in reversed(entry.layer_ids):
                if self.surface.has_layer(layer_id):
                    self.surface.remove_layer(layer_id)
            if self.surface.has_source(entry.source_id):
                self.surface.remove_source(entry.source_id)
        except MapSurfaceError as e:
            logger.warning("could not remove %s: %s", entry.source_id, e)
        entry.layer_ids = []
        entry.source_layer = None

    def teardown(self, kind: str) -> None:
        entry = self._registry.get(kind)
        if entry is None:
            return
        self.detach(kind)
        self._remove_layers(entry)
        del self._registry[kind]
        logger.debug("teardown %s", kind)

    def teardown_all(self) -> None:
        for kind in list(self._registry):
            self.teardown(kind)

    def default_layer(self, kind: str) -> str:
        specs = layer_specs(kind, self.theme)
        return specs[0]["id"]

    def attach(
        self,
        kind: str,
        channel: str,
        event: str,
        handler: Handler,
        *,
        layer_id: Optional[str] = None,
    ) -> None:
        """Register `handler` for `event` on the kind's layer under `channel`.

        Attaching the same handler twice is a no-op.
        """

        entry = self._entry(kind)
        target = layer_id or self.default_layer(kind)
        bucket = entry.listeners.setdefault(channel, [])
        if any(ev == event and lid == target and h is handler for ev, lid, h in bucket):
            return
        self.surface.on(event, target, handler)
        bucket.append((event, target, handler))

    def detach(self, kind: str, channel: Optional[str] = None) -> None:
        entry = self._registry.get(kind)
        if entry is None:
            return
        channels = [channel] if channel is not None else list(entry.listeners)
        for name in channels:
            for event, target, handler in entry.listeners.pop(name, []):
                self.surface.off(event, target, handler)

    def set_theme(self, theme: str) -> None:
        """Repaint existing layers; source data is left alone."""

        if theme == self.theme:
            return
        self.theme = theme
        for kind, entry in self._registry.items():
            if not entry.layer_ids:
                continue
            for layer in layer_specs(kind, theme):
                if layer["id"] not in entry.layer_ids:
                    continue
                for name, value in (layer.get("paint") or {}).items():
                    try:
                        self.surface.set_paint_property(layer["id"], name, value)
                    except MapSurfaceError as e:
                        logger.warning("could not repaint %s: %s", layer["id"], e)

    def set_feature_state(self, kind: str, feature_id: Any, state: Dict[str, Any]) -> bool:
        entry = self._registry.get(kind)
        if entry is None or not entry.layer_ids:
            return False
        try:
            self.surface.set_feature_state(
                entry.source_id, feature_id, state, source_layer=entry.source_layer
            )
        except MapSurfaceError as e:
            logger.warning("feature state for %s/%s not applied: %s", kind, feature_id, e)
            return False
        return True

    def query_features(self, kind: str) -> List[Dict[str, Any]]:
        entry = self._registry.get(kind)
        if entry is None or not entry.layer_ids:
            return []
        return self.surface.query_source_features(entry.source_id, entry.source_layer)
