import pytest

from app.composer.history import HistoryStack
from app.composer.session import CompositionSession


def test_undo_redo_moves_cursor():
    h = HistoryStack("a")
    h.push("b")
    h.push("c")
    assert h.undo() == "b"
    assert h.undo() == "a"
    assert h.undo() is None
    assert not h.can_undo()
    assert h.redo() == "b"
    assert h.current == "b"


def test_push_after_undo_discards_redo_branch():
    h = HistoryStack(0)
    for n in (1, 2, 3):
        h.push(n)
    h.undo()
    h.undo()
    h.push(9)
    assert h.entries == [0, 1, 9]
    assert not h.can_redo()
    assert h.current == 9


def test_cursor_stays_in_bounds():
    h = HistoryStack("x")
    for _ in range(5):
        h.redo()
        h.undo()
    assert 0 <= h.cursor < len(h)


def test_limit_drops_oldest():
    h = HistoryStack(0, limit=3)
    for n in range(1, 6):
        h.push(n)
    assert h.entries == [3, 4, 5]
    assert h.cursor == 2
    assert h.undo() == 4


def test_limit_must_be_positive():
    with pytest.raises(ValueError):
        HistoryStack(0, limit=0)


def test_session_pushes_only_real_changes(catalog):
    s = CompositionSession("u1", catalog)
    hist = s.slot.history
    s.navigate("tops", "next")
    s.navigate("dresses", "next")  # outside 3-part, no-op
    s.toggle_lock("bottoms")  # locks are not undoable by default
    s.navigate("bottoms", "next")  # locked, no-op
    assert len(hist) == 2


def test_session_undo_redo_restores_indices(catalog):
    s = CompositionSession("u1", catalog)
    s.navigate("tops", "next")
    s.navigate("tops", "next")
    s.set_configuration("4-part")
    assert s.undo().changed
    assert s.slot.composition.configuration.value == "3-part"
    assert s.slot.composition.index["tops"] == 2
    s.undo()
    assert s.slot.composition.index["tops"] == 1
    s.redo()
    s.redo()
    assert s.slot.composition.configuration.value == "4-part"
    res = s.redo()
    assert not res.changed and res.reason == "nothing_to_redo"


def test_undoable_locks_switch(catalog, monkeypatch):
    from app.core.config import settings

    monkeypatch.setattr(settings, "COMPOSER_UNDOABLE_LOCKS", True)
    s = CompositionSession("u1", catalog)
    s.toggle_lock("tops")
    assert s.slot.composition.locked == {"tops"}
    s.undo()
    assert s.slot.composition.locked == set()
