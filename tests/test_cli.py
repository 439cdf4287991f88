import json
import logging

import pytest

from location_filter import __main__ as cli
from location_filter.errors import ServiceError
from location_filter.geometry.primitives import BoundaryItem


SQUARE = {"type": "Polygon", "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 1], [0, 0]]]}


@pytest.fixture(autouse=True)
def reset_lf_logging():
    yield
    base = logging.getLogger("lf")
    for handler in list(base.handlers):
        base.removeHandler(handler)
    base.setLevel(logging.NOTSET)


def _lines(capsys):
    return [json.loads(line) for line in capsys.readouterr().out.splitlines() if line.strip()]


def test_radius_prints_feature(capsys):
    assert cli.main(["radius", "--lng", "2.17", "--lat", "41.38", "--km", "3"]) == 0
    (feature,) = _lines(capsys)
    assert feature["properties"]["radiusKm"] == 3.0
    assert feature["properties"]["name"] == "3 km"
    assert len(feature["geometry"]["coordinates"][0]) == 65


def test_geometries_add_list_delete(tmp_path, capsys):
    db = str(tmp_path / "cli.sqlite")
    assert cli.main(["geometries", "--db", db, "add", "--type", "polygon", "--geometry", json.dumps(SQUARE), "--name", "Home"]) == 0
    created = _lines(capsys)[0]["data"]
    assert created["name"] == "Home"

    cli.main(["geometries", "--db", db, "list"])
    assert _lines(capsys)[0]["total"] == 1

    cli.main(["geometries", "--db", db, "delete", str(created["id"])])
    assert _lines(capsys) == [{"success": True}]


def test_boundaries_prints_json_lines(monkeypatch, capsys):
    class FakeClient:
        def search(self, query, lang):
            assert (query, lang) == ("Barcelona", "es")
            return [BoundaryItem(id=1, name="Barcelona", stable_key="Q1492")]

        def close(self):
            pass

    import location_filter.boundaries.search as search_mod

    monkeypatch.setattr(search_mod, "BoundarySearchClient", FakeClient)
    assert cli.main(["boundaries", "Barcelona", "--lang", "es"]) == 0
    assert _lines(capsys) == [{"id": 1, "name": "Barcelona", "type": "city", "stableKey": "Q1492"}]


class FakeIsochroneClient:
    error = None

    async def fetch_ring(self, settings):
        if self.error is not None:
            raise self.error
        return [[0, 0], [0.1, 0], [0.1, 0.1], [0, 0]]

    async def aclose(self):
        pass


def test_isochrone_prints_feature(monkeypatch, capsys):
    import location_filter.isochrone.client as client_mod

    monkeypatch.setattr(client_mod, "MapboxIsochroneClient", FakeIsochroneClient)
    assert cli.main(["isochrone", "--lng", "0", "--lat", "0", "--profile", "driving", "--minutes", "30"]) == 0
    (feature,) = _lines(capsys)
    assert feature["properties"]["color"] == "#198BFF"
    assert feature["properties"]["name"] == "Driving 30 min"


def test_isochrone_failure_exits_non_zero(monkeypatch, capsys):
    import location_filter.isochrone.client as client_mod

    class Failing(FakeIsochroneClient):
        error = ServiceError("http_status", "HTTP 401", status=401)

    monkeypatch.setattr(client_mod, "MapboxIsochroneClient", Failing)
    assert cli.main(["isochrone", "--lng", "0", "--lat", "0"]) == 1
    assert _lines(capsys) == [{"error": {"reason": "http_status", "message": "HTTP 401", "status": 401}}]


def test_safe_main_reports_errors(monkeypatch, capsys):
    monkeypatch.setattr("sys.argv", ["location_filter", "radius", "--lng", "0", "--lat", "0", "--km", "500"])
    with pytest.raises(SystemExit) as exc:
        cli._safe_main()
    assert exc.value.code == 1
    assert "radiusKm must be between" in _lines(capsys)[0]["error"]


def test_logs_go_to_stderr(capsys):
    cli.main(["--log-level", "info", "radius", "--lng", "0", "--lat", "0"])
    logging.getLogger("lf.test").info("side channel")
    captured = capsys.readouterr()
    assert "side channel" in captured.err
    assert "side channel" not in captured.out
