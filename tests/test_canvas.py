from app.composer.canvas import CanvasItem, SpatialComposition, Viewport, clamp_zoom, normalize_rotation
from app.composer.types import ResultKind


def test_add_item_defaults():
    c = SpatialComposition()
    it = c.add_item("t1", (10, 20))
    assert (it.width, it.height) == (150.0, 150.0)
    assert it.rotation == 0.0
    assert it.id.startswith("canvas-")


def test_z_index_strictly_increasing_and_never_reused():
    c = SpatialComposition()
    a = c.add_item("t1")
    b = c.add_item("b1")
    assert b.z_index > a.z_index
    c.remove_item(b.id)
    d = c.add_item("f1")
    assert d.z_index > b.z_index
    assert d.id not in (a.id, b.id)


def test_remove_does_not_renumber():
    c = SpatialComposition()
    items = [c.add_item(ref) for ref in ("t1", "b1", "f1")]
    c.remove_item(items[1].id)
    assert [it.z_index for it in c.items] == [items[0].z_index, items[2].z_index]


def test_bring_to_front():
    c = SpatialComposition()
    a = c.add_item("t1")
    b = c.add_item("b1")
    assert c.bring_to_front(a.id).changed
    assert c.get(a.id).z_index > b.z_index
    assert [it.item_ref for it in c.ordered()] == ["b1", "t1"]
    assert not c.bring_to_front(a.id).changed


def test_update_merges_and_normalizes_rotation():
    c = SpatialComposition()
    a = c.add_item("t1", (0, 0))
    c.update_item(a.id, rotation=370)
    assert c.get(a.id).rotation == 10
    c.update_item(a.id, rotation=-90)
    assert c.get(a.id).rotation == 270
    c.update_item(a.id, position=(5, 6))
    got = c.get(a.id)
    assert (got.x, got.y, got.width) == (5, 6, 150.0)


def test_update_rejects_bad_size_and_unknown_id():
    c = SpatialComposition()
    a = c.add_item("t1")
    res = c.update_item(a.id, size=(0, 10))
    assert not res.changed and res.kind is ResultKind.INVARIANT
    assert c.get(a.id).width == 150.0
    res = c.update_item("canvas-missing", position=(1, 1))
    assert res.reason == "unknown_item"


def test_remove_clears_selection():
    c = SpatialComposition()
    a = c.add_item("t1")
    c.select(a.id)
    c.remove_item(a.id)
    assert c.selected_item_id is None


def test_zoom_clamped_on_every_write():
    c = SpatialComposition()
    c.set_viewport(zoom=10)
    assert c.viewport.zoom == 4.0
    c.set_viewport(zoom=0.01)
    assert c.viewport.zoom == 0.25
    for _ in range(40):
        c.zoom_in()
    assert c.viewport.zoom == 4.0
    for _ in range(40):
        c.zoom_out()
    assert c.viewport.zoom == 0.25
    assert clamp_zoom(1.5) == 1.5


def test_fit_to_screen_and_pan():
    c = SpatialComposition(viewport=Viewport(zoom=2.0, pan_x=30, pan_y=-4))
    c.fit_to_screen()
    assert c.viewport.as_dict() == {"zoom": 1.0, "pan": {"x": 0.0, "y": 0.0}}
    assert not c.fit_to_screen().changed


def test_auto_arrange_stacks_vertically():
    c = SpatialComposition()
    c.add_item("t1", (300, 300), (100, 80))
    c.add_item("b1", (0, 0), (100, 120))
    c.auto_arrange()
    assert [(it.x, it.y) for it in c.items] == [(100.0, 100.0), (100.0, 230.0)]


def test_clear_and_grid():
    c = SpatialComposition()
    assert not c.clear().changed
    c.add_item("t1")
    assert c.clear().changed
    assert c.items == []
    c.toggle_grid()
    assert c.show_grid


def test_from_dict_accepts_wire_names():
    c = SpatialComposition.from_dict(
        {
            "items": [
                {"clothItemId": "t1", "position": {"x": 1, "y": 2}, "size": {"width": 50, "height": 60}, "zIndex": 7},
            ],
            "viewport": {"zoom": 9, "pan": {"x": 3, "y": 4}},
        }
    )
    assert c.items[0].item_ref == "t1"
    assert c.viewport.zoom == 4.0
    nxt = c.add_item("b1")
    assert nxt.z_index == 8


def test_item_round_trip_dict():
    it = CanvasItem(id="canvas-1", item_ref="t1", x=1, y=2, width=3, height=4, rotation=45, z_index=2)
    assert CanvasItem.from_dict(it.as_dict()) == it


def test_tiny_negative_rotation_stays_below_360():
    canvas = SpatialComposition()
    it = canvas.add_item("t1")
    canvas.update_item(it.id, rotation=-1e-14)
    assert 0.0 <= canvas.get(it.id).rotation < 360.0
    assert normalize_rotation(-360.0) == 0.0
    assert normalize_rotation(-90.0) == 270.0


def test_from_dict_replaces_non_positive_size():
    it = CanvasItem.from_dict(
        {"item_ref": "t1", "position": {"x": 0, "y": 0}, "size": {"width": -20, "height": 0}, "rotation": -1e-14}
    )
    assert (it.width, it.height) == (150.0, 150.0)
    assert it.rotation < 360.0
