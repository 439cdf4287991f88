from __future__ import annotations

import logging
from typing import Any, Callable, List, Mapping, Optional

from location_filter.boundaries.helpers import feature_to_item, has_valid_stable_key
from location_filter.drafts import SearchDraft
from location_filter.geometry.primitives import BoundaryItem


logger = logging.getLogger("lf.boundaries")


class BoundarySelectionEngine:
    """Multi-select of administrative regions keyed by their stable key.

    Items without a stable key are never added; no surrogate key is made up.
    """

    def __init__(
        self,
        draft: Optional[SearchDraft] = None,
        *,
        on_change: Optional[Callable[[SearchDraft], None]] = None,
    ) -> None:
        self.draft = draft if draft is not None else SearchDraft()
        self.on_change = on_change

    @property
    def selected(self) -> List[BoundaryItem]:
        return self.draft.selected_locations

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self.draft)

    def index_of(self, stable_key: str) -> int:
        for i, item in enumerate(self.draft.selected_locations):
            if item.stable_key == stable_key:
                return i
        return -1

    def is_selected(self, stable_key: str) -> bool:
        return self.index_of(stable_key) >= 0

    def toggle(self, item: BoundaryItem) -> bool:
        """Add or remove `item`; returns True when it ends up selected."""

        if not has_valid_stable_key(item.stable_key):
            logger.warning("boundary %s has no stable key, cannot select", item.id)
            return False
        index = self.index_of(item.stable_key)  # type: ignore[arg-type]
        if index >= 0:
            self.draft.selected_locations = [
                it for i, it in enumerate(self.draft.selected_locations) if i != index
            ]
            logger.debug("boundary %s deselected", item.stable_key)
            self._notify()
            return False
        self.draft.selected_locations = [*self.draft.selected_locations, item]
        logger.debug("boundary %s selected", item.stable_key)
        self._notify()
        return True

    def add(self, item: BoundaryItem) -> bool:
        """Select `item` unless already selected (search list picks)."""

        if not has_valid_stable_key(item.stable_key):
            logger.warning("boundary %s has no stable key, cannot select", item.id)
            return False
        if self.is_selected(item.stable_key):  # type: ignore[arg-type]
            return False
        self.draft.selected_locations = [*self.draft.selected_locations, item]
        self._notify()
        return True

    def remove(self, stable_key: str) -> bool:
        index = self.index_of(stable_key)
        if index < 0:
            return False
        self.draft.selected_locations = [
            it for i, it in enumerate(self.draft.selected_locations) if i != index
        ]
        self._notify()
        return True

    def clear(self) -> None:
        self.draft.reset()
        self._notify()

    def handle_click(self, event: Mapping[str, Any], lang: str = "en") -> Optional[BoundaryItem]:
        """Toggle the top feature of a map click event.

        `event` carries a `features` list (topmost first) of boundary tile
        features. Returns the converted item, or None when nothing usable
        was clicked.
        """

        features = event.get("features")
        if not isinstance(features, (list, tuple)) or not features:
            return None
        item = feature_to_item(features[0], lang)
        if item is None:
            logger.debug("clicked feature has no osm_id")
            return None
        if item.stable_key is None:
            logger.warning("boundary %s has no wikidata, cannot sync with search", item.id)
            return None
        self.toggle(item)
        return item
