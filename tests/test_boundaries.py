import pytest
import requests

from location_filter.boundaries.helpers import (
    display_name,
    feature_to_item,
    search_location_type,
    search_result_to_item,
    stable_keys,
    tile_location_type,
)
from location_filter.boundaries.search import BoundarySearchClient
from location_filter.boundaries.selection import BoundarySelectionEngine
from location_filter.errors import GeometryValidationError, ServiceError
from location_filter.geometry.primitives import BoundaryItem


BARCELONA = BoundaryItem(id=347950, name="Barcelona", type="city", admin_level=8, stable_key="Q1492")
GIRONA = BoundaryItem(id=345, name="Girona", type="city", admin_level=8, stable_key="Q7038")


def _tile_feature(**props):
    base = {"osm_id": 347950, "admin_level": 8, "name": "Barcelona", "wikidata": "Q1492"}
    base.update(props)
    return {"type": "Feature", "properties": base}


def test_admin_level_tables_differ_between_tiles_and_search():
    assert tile_location_type(4) == "region"
    assert search_location_type(4) == "province"
    assert tile_location_type("8") == "city"
    assert search_location_type(8) == "district"
    assert tile_location_type(None) == "neighborhood"
    assert search_location_type(3) == "city"


def test_display_name_falls_back_to_base_name():
    props = {"name": "Barcelona", "name_es": "Barcelona (es)", "name_ca": ""}
    assert display_name(props, "es-ES") == "Barcelona (es)"
    assert display_name(props, "ca") == "Barcelona"
    assert display_name(props, "de") == "Barcelona"


def test_feature_to_item_maps_tile_properties():
    item = feature_to_item(_tile_feature(name_fr="Barcelone"), "fr")
    assert item == BoundaryItem(
        id=347950,
        name="Barcelone",
        type="city",
        admin_level=8,
        stable_key="Q1492",
        external_geometry_id=347950,
    )


def test_feature_to_item_without_ids():
    assert feature_to_item({"properties": {"name": "X"}}) is None
    no_key = feature_to_item(_tile_feature(wikidata=""))
    assert no_key is not None and no_key.stable_key is None
    from_feature_id = feature_to_item({"id": 12, "properties": {"name": "Y"}})
    assert from_feature_id.id == 12


def test_search_result_to_item():
    item = search_result_to_item(
        {"id": "7", "name": "Gracia", "admin_level": 10, "center_lat": "41.4", "center_lon": 2.15, "wikidata": "Q6744"}
    )
    assert item.id == 7
    assert item.type == "neighborhood"
    assert item.center_lat == 41.4
    assert item.stable_key == "Q6744"
    assert search_result_to_item({"name": "no id"}) is None
    assert stable_keys([BARCELONA, item, BoundaryItem(id=1, name="k")]) == ["Q1492", "Q6744"]


def test_toggle_twice_restores_selection():
    engine = BoundarySelectionEngine()
    engine.add(GIRONA)
    before = list(engine.selected)

    assert engine.toggle(BARCELONA) is True
    assert len(engine.selected) == 2
    assert engine.toggle(BARCELONA) is False
    assert engine.selected == before


def test_items_without_stable_key_are_not_selected(caplog):
    engine = BoundarySelectionEngine()
    keyless = BoundaryItem(id=9, name="Nowhere")
    with caplog.at_level("WARNING", logger="lf.boundaries"):
        assert engine.toggle(keyless) is False
        assert engine.add(keyless) is False
    assert engine.selected == []
    assert "no stable key" in caplog.text


def test_add_is_idempotent_and_remove():
    changes = []
    engine = BoundarySelectionEngine(on_change=changes.append)
    assert engine.add(BARCELONA)
    assert not engine.add(BARCELONA)
    assert engine.remove("Q1492")
    assert not engine.remove("Q1492")
    assert len(changes) == 2


def test_handle_click_toggles_top_feature():
    engine = BoundarySelectionEngine()
    event = {"features": [_tile_feature(), _tile_feature(osm_id=1, wikidata="Q1")]}

    item = engine.handle_click(event)
    assert item.stable_key == "Q1492"
    assert engine.is_selected("Q1492")
    assert not engine.is_selected("Q1")

    engine.handle_click(event)
    assert engine.selected == []

    assert engine.handle_click({"features": []}) is None
    assert engine.handle_click({"features": [_tile_feature(wikidata=None)]}) is None
    assert engine.selected == []


@pytest.mark.parametrize(
    "features",
    [["boundary"], [None], [42], [{"properties": "osm", "id": None}], {"0": {"id": 1}}, "boundary"],
)
def test_handle_click_ignores_unusable_features(features):
    engine = BoundarySelectionEngine()
    assert engine.handle_click({"features": features}) is None
    assert engine.selected == []


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self._text = text

    def json(self):
        if self._text is not None:
            raise ValueError("not json")
        return self._payload


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.headers = {}
        self.response = response
        self.exc = exc
        self.calls = []
        self.closed = False

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params, timeout))
        if self.exc is not None:
            raise self.exc
        return self.response

    def close(self):
        self.closed = True


def _search_client(session):
    return BoundarySearchClient(base_url="http://boundaries.test/", timeout=3, session=session)


def test_search_parses_results_envelope():
    session = FakeSession(
        FakeResponse(payload={"results": [{"id": 1, "name": "Barcelona", "admin_level": 6}, {"bad": True}]})
    )
    client = _search_client(session)
    items = client.search("  Barc ", "ca")

    assert [i.name for i in items] == ["Barcelona"]
    assert items[0].type == "city"
    url, params, timeout = session.calls[0]
    assert url == "http://boundaries.test/api/v1/boundaries/search"
    assert params == {"q": "Barc", "lang": "ca"}
    assert timeout == 3
    assert "User-Agent" in session.headers


def test_search_accepts_bare_list_and_unknown_shape():
    assert len(_search_client(FakeSession(FakeResponse(payload=[{"id": 2, "name": "Girona"}]))).search("Gi")) == 1
    assert _search_client(FakeSession(FakeResponse(payload={"hits": []}))).search("Gi") == []


def test_search_rejects_short_query_without_request():
    session = FakeSession(FakeResponse(payload=[]))
    with pytest.raises(GeometryValidationError) as exc:
        _search_client(session).search(" a ")
    assert exc.value.field == "q"
    assert session.calls == []


@pytest.mark.parametrize(
    "session, reason",
    [
        (FakeSession(FakeResponse(status_code=500)), "http_status"),
        (FakeSession(FakeResponse(text="<html>")), "malformed"),
        (FakeSession(exc=requests.ConnectionError("refused")), "transport"),
    ],
)
def test_search_failures(session, reason):
    with pytest.raises(ServiceError) as exc:
        _search_client(session).search("Barcelona")
    assert exc.value.reason == reason


def test_close_closes_session():
    session = FakeSession()
    _search_client(session).close()
    assert session.closed
