import pytest

from location_filter.draw.engine import DRAWING, EDITING, IDLE, DrawEngine, DrawSessionState
from location_filter.errors import (
    GeometryValidationError,
    PolygonLimitError,
    PolygonNotFoundError,
)
from location_filter.geometry.primitives import Point


SQUARE = [(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0)]


def _draw(engine, points=SQUARE):
    engine.start()
    for p in points:
        engine.add_point(p)
    return engine.complete()


def test_start_add_complete_appends_polygon():
    engine = DrawEngine()
    poly = _draw(engine)

    assert engine.mode == IDLE
    assert engine.state.polygons == [poly]
    assert engine.state.polygon is poly
    assert [p.to_position() for p in poly.points] == [list(p) for p in SQUARE]
    assert engine.state.current_points == []


def test_clicks_in_idle_are_ignored():
    engine = DrawEngine()
    assert engine.add_point((1.0, 1.0)) is False
    assert engine.state.current_points == []


def test_undo_on_empty_list_keeps_idle():
    engine = DrawEngine()
    engine.undo()
    assert engine.mode == IDLE
    assert engine.state.current_points == []


def test_undo_pops_points_and_returns_to_idle_when_empty():
    engine = DrawEngine()
    engine.start()
    engine.add_point((0, 0))
    engine.add_point((1, 0))
    assert engine.mode == DRAWING

    engine.undo()
    assert engine.state.current_points == [Point(0, 0)]
    engine.undo()
    assert engine.state.current_points == []
    assert engine.mode == IDLE


def test_undo_below_zero_while_drawing_is_noop():
    engine = DrawEngine()
    engine.start()
    engine.undo()
    assert engine.mode == DRAWING
    assert engine.state.history == [[]]


def test_undo_reverts_a_drag():
    engine = DrawEngine()
    engine.start()
    for p in SQUARE[:3]:
        engine.add_point(p)
    engine.move_point(1, (5.0, 5.0))
    assert engine.state.current_points[1] == Point(5.0, 5.0)
    engine.undo()
    assert engine.state.current_points[1] == Point(1.0, 0.0)


def test_move_point_bad_index_raises():
    engine = DrawEngine()
    engine.start()
    engine.add_point((0, 0))
    with pytest.raises(GeometryValidationError):
        engine.move_point(3, (1, 1))


def test_complete_with_two_points_fails_without_side_effects():
    engine = DrawEngine()
    existing = _draw(engine)
    engine.start()
    engine.add_point((10, 10))
    engine.add_point((11, 10))

    with pytest.raises(GeometryValidationError):
        engine.complete()

    assert engine.mode == DRAWING
    assert engine.state.current_points == [Point(10, 10), Point(11, 10)]
    assert engine.state.polygons == [existing]


def test_complete_in_idle_raises():
    with pytest.raises(GeometryValidationError):
        DrawEngine().complete()


def test_cap_refuses_new_polygon():
    engine = DrawEngine(max_polygons=2)
    _draw(engine)
    _draw(engine)
    assert not engine.can_start
    with pytest.raises(PolygonLimitError) as exc:
        engine.start()
    assert exc.value.limit == 2
    assert engine.mode == IDLE


def test_edit_at_cap_replaces_in_place():
    engine = DrawEngine(max_polygons=1)
    poly = _draw(engine)

    engine.edit(poly.id)
    assert engine.mode == EDITING
    assert engine.state.selected_polygon_id == poly.id
    engine.move_point(0, (-1.0, -1.0))
    edited = engine.complete()

    assert len(engine.state.polygons) == 1
    assert edited.id == poly.id
    assert edited.created_at == poly.created_at
    assert edited.points[0] == Point(-1.0, -1.0)


def test_cancel_edit_restores_original():
    engine = DrawEngine()
    poly = _draw(engine)
    engine.edit(poly.id)
    engine.add_point((3, 3))
    engine.cancel()

    assert engine.mode == IDLE
    assert engine.state.polygons == [poly]
    assert engine.state.selected_polygon_id is None


def test_undo_while_editing_never_drops_below_original():
    engine = DrawEngine()
    poly = _draw(engine)
    engine.edit(poly.id)
    engine.undo()
    assert engine.mode == EDITING
    assert engine.state.current_points == list(poly.points)


def test_edit_and_delete_unknown_ids_raise():
    engine = DrawEngine()
    with pytest.raises(PolygonNotFoundError):
        engine.edit("polygon-1-missing")
    with pytest.raises(PolygonNotFoundError):
        engine.delete("polygon-1-missing")


def test_delete_edited_polygon_returns_to_idle():
    engine = DrawEngine()
    first = _draw(engine)
    second = _draw(engine)
    engine.edit(first.id)
    engine.delete(first.id)

    assert engine.mode == IDLE
    assert engine.state.polygons == [second]


def test_rename_and_clear():
    engine = DrawEngine()
    poly = _draw(engine)
    renamed = engine.rename(poly.id, "  Beach  ")
    assert renamed.name == "Beach"
    assert engine.state.polygons[0].name == "Beach"

    engine.clear()
    assert engine.state.polygons == []
    assert engine.mode == IDLE


def test_on_change_is_called_for_every_mutation():
    calls = []
    engine = DrawEngine(on_change=lambda s: calls.append(s.mode))
    engine.start()
    engine.add_point((0, 0))
    engine.undo()
    assert calls == [DRAWING, DRAWING, IDLE]


def test_engine_mutates_given_bucket():
    bucket = DrawSessionState()
    engine = DrawEngine(bucket)
    _draw(engine)
    assert len(bucket.polygons) == 1


def test_preview_and_polygon_features():
    engine = DrawEngine()
    done = _draw(engine)
    engine.start()
    for p in [(5, 5), (6, 5), (6, 6)]:
        engine.add_point(p)

    preview = engine.preview_features()
    types = [f["geometry"]["type"] for f in preview["features"]]
    assert types == ["LineString", "Polygon", "Point", "Point", "Point"]
    assert preview["features"][2]["properties"]["anchor"] is True

    polys = engine.polygons_features()
    assert [f["id"] for f in polys["features"]] == [done.id]

    engine.cancel()
    engine.edit(done.id)
    # The polygon under edit moves to the preview.
    assert engine.polygons_features()["features"] == []
