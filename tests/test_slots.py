import random

import pytest

from app.core.taxonomy import SlotConfiguration
from app.composer.catalog import ItemCatalog
from app.composer.slots import SlotComposition
from app.composer.types import ResultKind
from app.schemas.composer import WardrobeItemRef


def test_default_configuration_initializes_slots(catalog):
    comp = SlotComposition(catalog)
    assert comp.configuration is SlotConfiguration.THREE_PART
    assert comp.slots == ["tops", "bottoms", "footwear"]
    assert comp.index == {"tops": 0, "bottoms": 0, "footwear": 0}
    assert comp.selected_item_ids() == {"tops": "t1", "bottoms": "b1", "footwear": "f1"}


def _three_each(categories=("tops", "bottoms", "dresses", "outerwear", "footwear")):
    return ItemCatalog([WardrobeItemRef(id=f"{c}-{i}", category=c) for c in categories for i in range(3)])


@pytest.mark.parametrize("configuration", ["2-part", "3-part", "4-part"])
def test_navigate_wraps_both_ways(configuration):
    cat = _three_each()
    comp = SlotComposition(cat, configuration)
    for c in comp.slots:
        for _ in range(3):
            assert comp.navigate(c, "next").changed
        assert comp.index[c] == 0  # full cycle
        comp.navigate(c, "prev")
        assert comp.index[c] == 2
        assert comp.resolve_item(c).id == f"{c}-2"
        comp.navigate(c, "next")
        assert comp.index[c] == 0


def test_navigate_locked_slot_is_noop(catalog):
    comp = SlotComposition(catalog)
    comp.toggle_lock("tops")
    res = comp.navigate("tops", "next")
    assert not res.changed
    assert res.reason == "locked"
    assert res.kind is ResultKind.USER_RECOVERABLE
    assert comp.index["tops"] == 0


def test_navigate_category_outside_configuration(catalog):
    comp = SlotComposition(catalog)
    res = comp.navigate("dresses", "next")
    assert not res.changed
    assert res.kind is ResultKind.INVARIANT
    assert "dresses" not in comp.index


def test_navigate_empty_category_reports_no_items():
    cat = ItemCatalog([WardrobeItemRef(id="t1", category="tops")])
    comp = SlotComposition(cat)
    res = comp.navigate("bottoms", "next")
    assert res.reason == "no_items"
    assert comp.resolve_item("bottoms") is None
    assert comp.selected_item_ids()["bottoms"] is None


def test_navigate_single_item_stays_put():
    cat = ItemCatalog([WardrobeItemRef(id="f1", category="footwear")])
    comp = SlotComposition(cat)
    res = comp.navigate("footwear", "next")
    assert not res.changed
    assert comp.index["footwear"] == 0


def test_invalid_direction(catalog):
    comp = SlotComposition(catalog)
    res = comp.navigate("tops", 2)
    assert res.kind is ResultKind.INVARIANT


def test_set_configuration_drops_and_initializes(catalog):
    comp = SlotComposition(catalog)
    comp.navigate("tops", "next")
    assert comp.set_configuration("2-part").changed
    assert comp.slots == ["dresses", "footwear"]
    assert comp.index == {"footwear": 0, "dresses": 0}
    comp.set_configuration("4-part")
    assert comp.index["tops"] == 0  # not remembered across configurations
    assert comp.index["outerwear"] == 0
    assert not comp.set_configuration("4-part").changed


def test_shuffle_respects_locks_over_many_runs(catalog):
    comp = SlotComposition(catalog, "4-part")
    comp.navigate("tops", "next")
    comp.toggle_lock("tops")
    rng = random.Random(7)
    for _ in range(20):
        comp.shuffle(rng)
        assert comp.index["tops"] == 1
        for c in comp.slots:
            assert 0 <= comp.index[c] < catalog.count(c)


def test_shuffle_skips_empty_slots():
    cat = ItemCatalog([WardrobeItemRef(id=f"t{i}", category="tops") for i in range(5)])
    comp = SlotComposition(cat)
    comp.shuffle(random.Random(3))
    assert "bottoms" not in comp.index
    assert "footwear" not in comp.index


def test_shuffle_with_everything_locked_is_noop(catalog):
    comp = SlotComposition(catalog)
    for c in comp.slots:
        comp.toggle_lock(c)
    res = comp.shuffle(random.Random(1))
    assert not res.changed


def test_snapshot_restore(catalog):
    comp = SlotComposition(catalog)
    snap = comp.snapshot()
    comp.navigate("tops", "next")
    comp.toggle_lock("bottoms")
    comp.restore(snap)
    assert comp.index["tops"] == 0
    assert "bottoms" in comp.locked  # locks untouched unless asked
    comp.restore(snap, locks=True)
    assert comp.locked == set()


def test_twenty_shuffles_with_locked_top():
    cat = _three_each(("tops", "bottoms", "footwear"))
    comp = SlotComposition(cat, "3-part")
    comp.navigate("tops", "next")
    comp.toggle_lock("tops")
    rng = random.Random(2024)
    seen = {"bottoms": set(), "footwear": set()}
    for _ in range(20):
        comp.shuffle(rng)
        assert comp.index["tops"] == 1
        for c in seen:
            seen[c].add(comp.index[c])
    assert len(seen["bottoms"]) >= 2
    assert len(seen["footwear"]) >= 2
