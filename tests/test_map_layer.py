import pytest

from location_filter.geometry.geojson import feature_collection
from location_filter.map_layer.boundaries import BoundaryHoverTracker, BoundarySelectionPass
from location_filter.map_layer.styles import layer_specs, profile_color, theme_colors
from location_filter.map_layer.surface import InMemoryMapSurface, MapSurfaceError
from location_filter.map_layer.synchronizer import MapLayerSynchronizer


SQUARE_FC = feature_collection(
    [
        {
            "type": "Feature",
            "properties": {"color": "#28A745"},
            "geometry": {"type": "Polygon", "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 0]]]},
        }
    ]
)

BOUNDARY_TILES = {"type": "vector", "tiles": ["http://tiles.test/{z}/{x}/{y}.pbf"]}


def _sync(theme="dark"):
    surface = InMemoryMapSurface()
    return surface, MapLayerSynchronizer(surface, theme=theme)


def test_ensure_layers_adds_once_then_updates_data():
    surface, sync = _sync()
    sync.ensure_layers("isochrone", SQUARE_FC)
    assert sync.layer_ids("isochrone") == ["isochrone-fill", "isochrone-line"]
    assert surface.layer_order == ["isochrone-fill", "isochrone-line"]

    updated = feature_collection([])
    updated["features"] = SQUARE_FC["features"] * 2
    sync.ensure_layers("isochrone", updated)
    assert surface.layer_order == ["isochrone-fill", "isochrone-line"]
    assert len(surface.sources["isochrone"]["data"]["features"]) == 2


def test_empty_data_removes_layers_but_keeps_listeners():
    surface, sync = _sync()
    sync.ensure_layers("radius", SQUARE_FC)
    sync.attach("radius", "click", "click", lambda e: None)

    sync.ensure_layers("radius", feature_collection([]))

    assert not sync.is_present("radius")
    assert not surface.has_source("radius")
    assert surface.layers == {}
    assert sync.listener_count("radius", "click") == 1


def test_geojson_sources_drop_source_layer_and_promote_ids():
    surface, sync = _sync()
    sync.ensure_layers("draw-polygons", SQUARE_FC)
    assert surface.sources["completed-polygons"]["promoteId"] == "id"
    assert all("source-layer" not in layer for layer in surface.layers.values())


def test_vector_boundaries_keep_source_layer():
    surface, sync = _sync()
    sync.ensure_layers("boundaries", BOUNDARY_TILES)
    assert sync.layer_ids("boundaries") == ["boundaries-fill", "boundaries-outline", "boundaries-labels"]
    assert surface.layers["boundaries-fill"]["source-layer"] == "boundaries"
    assert surface.sources["boundaries"]["type"] == "vector"


def test_attach_is_idempotent_and_teardown_detaches():
    surface, sync = _sync()
    sync.ensure_layers("isochrone", SQUARE_FC)
    calls = []
    handler = calls.append
    sync.attach("isochrone", "click", "click", handler)
    sync.attach("isochrone", "click", "click", handler)
    assert len(surface.listeners("click")) == 1

    assert surface.fire("click", "isochrone-fill", {"x": 1}) == 1
    assert calls == [{"x": 1}]

    sync.teardown("isochrone")
    assert surface.listeners() == []
    assert surface.layers == {} and surface.sources == {}
    assert sync.listener_count("isochrone") == 0


def test_detach_one_channel_leaves_others():
    surface, sync = _sync()
    sync.ensure_layers("boundaries", BOUNDARY_TILES)
    sync.attach("boundaries", "click", "click", lambda e: None)
    sync.attach("boundaries", "hover", "mousemove", lambda e: None)

    sync.detach("boundaries", "click")
    assert sync.listener_count("boundaries", "click") == 0
    assert sync.listener_count("boundaries", "hover") == 1
    assert [ev for ev, _, _ in surface.listeners()] == ["mousemove"]


def test_set_theme_repaints_existing_layers():
    surface, sync = _sync("light")
    sync.ensure_layers("draw-polygons", SQUARE_FC)
    data_before = surface.sources["completed-polygons"]["data"]

    sync.set_theme("dark")

    expected = layer_specs("draw-polygons", "dark")[0]["paint"]["fill-color"]
    assert surface.layers["completed-polygons-fill"]["paint"]["fill-color"] == expected
    assert surface.sources["completed-polygons"]["data"] == data_before
    assert theme_colors("light") != theme_colors("dark")


def test_surface_errors_are_logged_not_raised(caplog):
    class RefusingSurface(InMemoryMapSurface):
        def add_layer(self, layer, before=None):
            raise MapSurfaceError("style not loaded")

    sync = MapLayerSynchronizer(RefusingSurface())
    with caplog.at_level("WARNING", logger="lf.map"):
        sync.ensure_layers("radius", SQUARE_FC)
    assert "could not sync radius" in caplog.text


def test_isochrone_layer_reads_feature_color():
    fill = layer_specs("isochrone")[0]["paint"]["fill-color"]
    assert fill[0] == "coalesce"
    assert profile_color("cycling") == "#FFC107"
    assert profile_color("unknown") == "#198BFF"


def _boundary_fc():
    return feature_collection(
        [
            {"type": "Feature", "properties": {"osm_id": 347950, "wikidata": "Q1492"}, "geometry": None},
            {"type": "Feature", "properties": {"osm_id": 345, "wikidata": "Q7038"}, "geometry": None},
        ]
    )


def test_hover_tracker_moves_highlight():
    surface, sync = _sync()
    sync.ensure_layers("boundaries", _boundary_fc())
    hover = BoundaryHoverTracker(sync)
    hover.attach()

    surface.fire("mousemove", "boundaries-fill", {"features": [{"id": 347950}]})
    assert surface.get_feature_state("boundaries", 347950) == {"hover": True}
    surface.fire("mousemove", "boundaries-fill", {"features": [{"properties": {"osm_id": 345}}]})
    assert surface.get_feature_state("boundaries", 347950) == {"hover": False}
    assert surface.get_feature_state("boundaries", 345) == {"hover": True}

    surface.fire("mouseleave", "boundaries-fill")
    assert hover.hovered_id is None
    assert surface.get_feature_state("boundaries", 345) == {"hover": False}


@pytest.mark.parametrize(
    "features",
    [["boundary"], [None], [{"properties": "osm"}], {"0": {"id": 1}}, "boundary"],
)
def test_hover_tracker_ignores_unusable_features(features):
    surface, sync = _sync()
    sync.ensure_layers("boundaries", _boundary_fc())
    hover = BoundaryHoverTracker(sync)
    hover.attach()

    surface.fire("mousemove", "boundaries-fill", {"features": [{"id": 347950}]})
    surface.fire("mousemove", "boundaries-fill", {"features": features})
    assert hover.hovered_id == 347950
    assert surface.get_feature_state("boundaries", 347950) == {"hover": True}


def test_selection_pass_marks_pending_keys_once_indexed():
    surface, sync = _sync()
    selection = BoundarySelectionPass(sync)

    selection.update({"Q1492"}, set())
    assert selection.pending == {"Q1492"}

    sync.ensure_layers("boundaries", _boundary_fc())
    selection.attach()
    surface.fire("sourcedata", "boundaries-fill", {"sourceId": "boundaries", "isSourceLoaded": True})

    assert selection.feature_id("Q1492") == 347950
    assert selection.pending == set()
    assert surface.get_feature_state("boundaries", 347950) == {"selected": True}

    selection.update(set(), {"Q7038"})
    assert surface.get_feature_state("boundaries", 347950) == {"selected": False}
    assert surface.get_feature_state("boundaries", 345) == {"selected": True}
    assert selection.selected == {"Q7038"}


def test_selection_pass_ignores_other_sources():
    surface, sync = _sync()
    sync.ensure_layers("boundaries", _boundary_fc())
    selection = BoundarySelectionPass(sync)
    selection.on_source_data({"sourceId": "radius"})
    assert selection.key_to_feature_id == {}
