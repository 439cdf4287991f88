from __future__ import annotations

import copy
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from location_filter.errors import LocationFilterError


Handler = Callable[[Dict[str, Any]], Any]


class MapSurfaceError(LocationFilterError):
    """The map widget refused an operation (missing source or layer)."""


class MapSurface(Protocol):
    """The subset of a Mapbox GL style API the synchronizer drives."""

    def has_source(self, source_id: str) -> bool: ...

    def add_source(self, source_id: str, spec: Dict[str, Any]) -> None: ...

    def set_source_data(self, source_id: str, data: Dict[str, Any]) -> None: ...

    def remove_source(self, source_id: str) -> None: ...

    def has_layer(self, layer_id: str) -> bool: ...

    def add_layer(self, layer: Dict[str, Any], before: Optional[str] = None) -> None: ...

    def remove_layer(self, layer_id: str) -> None: ...

    def set_paint_property(self, layer_id: str, name: str, value: Any) -> None: ...

    def on(self, event: str, layer_id: Optional[str], handler: Handler) -> None: ...

    def off(self, event: str, layer_id: Optional[str], handler: Handler) -> None: ...

    def set_feature_state(
        self,
        source_id: str,
        feature_id: Any,
        state: Dict[str, Any],
        source_layer: Optional[str] = None,
    ) -> None: ...

    def query_source_features(
        self, source_id: str, source_layer: Optional[str] = None
    ) -> List[Dict[str, Any]]: ...


class InMemoryMapSurface:
    """Map surface kept in plain dicts.

    Used when no widget is attached (CLI, server) and as the test double;
    `fire()` plays back UI events to registered handlers.
    """

    def __init__(self) -> None:
        self.sources: Dict[str, Dict[str, Any]] = {}
        self.layers: Dict[str, Dict[str, Any]] = {}
        self.layer_order: List[str] = []
        self.handlers: List[Tuple[str, Optional[str], Handler]] = []
        self.feature_state: Dict[Tuple[str, Any], Dict[str, Any]] = {}

    def has_source(self, source_id: str) -> bool:
        return source_id in self.sources

    def add_source(self, source_id: str, spec: Dict[str, Any]) -> None:
        if source_id in self.sources:
            raise MapSurfaceError(f"source already exists: {source_id}")
        self.sources[source_id] = copy.deepcopy(spec)

    def set_source_data(self, source_id: str, data: Dict[str, Any]) -> None:
        if source_id not in self.sources:
            raise MapSurfaceError(f"no such source: {source_id}")
        self.sources[source_id]["data"] = copy.deepcopy(data)

    def remove_source(self, source_id: str) -> None:
        if any(layer.get("source") == source_id for layer in self.layers.values()):
            raise MapSurfaceError(f"source {source_id} is still used by a layer")
        self.sources.pop(source_id, None)
        for key in [k for k in self.feature_state if k[0] == source_id]:
            del self.feature_state[key]

    def has_layer(self, layer_id: str) -> bool:
        return layer_id in self.layers

    def add_layer(self, layer: Dict[str, Any], before: Optional[str] = None) -> None:
        layer_id = layer["id"]
        if layer_id in self.layers:
            raise MapSurfaceError(f"layer already exists: {layer_id}")
        if layer.get("source") not in self.sources:
            raise MapSurfaceError(f"layer {layer_id} references missing source {layer.get('source')}")
        self.layers[layer_id] = copy.deepcopy(layer)
        if before and before in self.layer_order:
            self.layer_order.insert(self.layer_order.index(before), layer_id)
        else:
            self.layer_order.append(layer_id)

    def remove_layer(self, layer_id: str) -> None:
        self.layers.pop(layer_id, None)
        if layer_id in self.layer_order:
            self.layer_order.remove(layer_id)

    def set_paint_property(self, layer_id: str, name: str, value: Any) -> None:
        if layer_id not in self.layers:
            raise MapSurfaceError(f"no such layer: {layer_id}")
        self.layers[layer_id].setdefault("paint", {})[name] = copy.deepcopy(value)

    def on(self, event: str, layer_id: Optional[str], handler: Handler) -> None:
        self.handlers.append((event, layer_id, handler))

    def off(self, event: str, layer_id: Optional[str], handler: Handler) -> None:
        for i, (ev, lid, h) in enumerate(self.handlers):
            if ev == event and lid == layer_id and h is handler:
                del self.handlers[i]
                return

    def set_feature_state(
        self,
        source_id: str,
        feature_id: Any,
        state: Dict[str, Any],
        source_layer: Optional[str] = None,
    ) -> None:
        if source_id not in self.sources:
            raise MapSurfaceError(f"no such source: {source_id}")
        self.feature_state.setdefault((source_id, feature_id), {}).update(state)

    def get_feature_state(self, source_id: str, feature_id: Any) -> Dict[str, Any]:
        return dict(self.feature_state.get((source_id, feature_id), {}))

    def query_source_features(
        self, source_id: str, source_layer: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        source = self.sources.get(source_id)
        if not source:
            return []
        data = source.get("data") or {}
        promote = source.get("promoteId")
        out: List[Dict[str, Any]] = []
        for feature in data.get("features") or []:
            feature = copy.deepcopy(feature)
            if promote and "id" not in feature:
                feature["id"] = (feature.get("properties") or {}).get(promote)
            out.append(feature)
        return out

    def listeners(self, event: Optional[str] = None) -> List[Tuple[str, Optional[str], Handler]]:
        return [h for h in self.handlers if event is None or h[0] == event]

    def fire(self, event: str, layer_id: Optional[str] = None, payload: Optional[Dict[str, Any]] = None) -> int:
        """Deliver an event to matching handlers; returns how many ran."""

        # Layer-scoped handlers only hear events on layers that exist.
        matched = [
            h
            for ev, lid, h in list(self.handlers)
            if ev == event and (lid is None or (lid == layer_id and lid in self.layers))
        ]
        for handler in matched:
            handler(dict(payload or {}))
        return len(matched)
