from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Mapping, Optional, Set

from location_filter.boundaries.helpers import has_valid_stable_key
from location_filter.map_layer.synchronizer import MapLayerSynchronizer


logger = logging.getLogger("lf.map")

KIND = "boundaries"


class BoundaryHoverTracker:
    """Hover highlight for boundary features.

    Lives on its own listener channel so it keeps working while click
    selection is detached.
    """

    channel = "hover"

    def __init__(self, sync: MapLayerSynchronizer) -> None:
        self.sync = sync
        self.hovered_id: Any = None

    def attach(self) -> None:
        self.sync.attach(KIND, self.channel, "mousemove", self.on_move)
        self.sync.attach(KIND, self.channel, "mouseleave", self.on_leave)

    def detach(self) -> None:
        self.on_leave({})
        self.sync.detach(KIND, self.channel)

    def on_move(self, event: Dict[str, Any]) -> None:
        features = event.get("features")
        if not isinstance(features, (list, tuple)) or not features:
            return
        top = features[0]
        if not isinstance(top, Mapping):
            logger.warning("hovered boundary is not a feature")
            return
        feature_id = top.get("id")
        if feature_id is None:
            props = top.get("properties")
            feature_id = props.get("osm_id") if isinstance(props, Mapping) else None
        if feature_id is None:
            logger.warning("hovered boundary has no id")
            return
        if feature_id == self.hovered_id:
            return
        if self.hovered_id is not None:
            self.sync.set_feature_state(KIND, self.hovered_id, {"hover": False})
        self.hovered_id = feature_id
        self.sync.set_feature_state(KIND, feature_id, {"hover": True})

    def on_leave(self, event: Dict[str, Any]) -> None:
        if self.hovered_id is not None:
            self.sync.set_feature_state(KIND, self.hovered_id, {"hover": False})
        self.hovered_id = None


class BoundarySelectionPass:
    """Keeps `selected` feature state in line with the chosen stable keys.

    Tiles load lazily, so a stable key may have no known feature id yet; such
    keys stay pending until `index_features` sees them.
    """

    channel = "sourcedata"

    def __init__(self, sync: MapLayerSynchronizer) -> None:
        self.sync = sync
        self.key_to_feature_id: Dict[str, Any] = {}
        self.pending: Set[str] = set()
        self.selected: Set[str] = set()

    def attach(self) -> None:
        self.sync.attach(KIND, self.channel, "sourcedata", self.on_source_data)

    def detach(self) -> None:
        self.sync.detach(KIND, self.channel)

    def on_source_data(self, event: Dict[str, Any]) -> None:
        if event.get("sourceId") not in (None, KIND):
            return
        if event.get("isSourceLoaded") is False:
            return
        self.index_features(self.sync.query_features(KIND))

    def index_features(self, features: Iterable[Dict[str, Any]]) -> int:
        """Learn stable key -> feature id; returns how many were new."""

        added = 0
        for feature in features:
            key = (feature.get("properties") or {}).get("wikidata")
            feature_id = feature.get("id")
            if not has_valid_stable_key(key) or feature_id is None:
                continue
            if key in self.key_to_feature_id:
                continue
            self.key_to_feature_id[key] = feature_id
            added += 1
            if key in self.pending:
                if self.sync.set_feature_state(KIND, feature_id, {"selected": True}):
                    self.pending.discard(key)
        if added:
            logger.debug("indexed %s boundary keys, total %s", added, len(self.key_to_feature_id))
        return added

    def update(self, *key_sets: Iterable[str]) -> None:
        """Mark the union of `key_sets` (local and applied) as selected."""

        wanted: Set[str] = set()
        for keys in key_sets:
            wanted.update(k for k in keys if k)

        for key in self.selected - wanted:
            self.pending.discard(key)
            feature_id = self.key_to_feature_id.get(key)
            if feature_id is not None:
                self.sync.set_feature_state(KIND, feature_id, {"selected": False})
        for key in wanted:
            feature_id = self.key_to_feature_id.get(key)
            if feature_id is None or not self.sync.set_feature_state(
                KIND, feature_id, {"selected": True}
            ):
                self.pending.add(key)
        self.selected = wanted

    def feature_id(self, stable_key: str) -> Optional[Any]:
        return self.key_to_feature_id.get(stable_key)
