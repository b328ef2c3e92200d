from enum import Enum
from typing import Dict, List

CATEGORIES = ("tops", "bottoms", "dresses", "outerwear", "footwear", "accessories")


class SlotConfiguration(str, Enum):
    TWO_PART = "2-part"
    THREE_PART = "3-part"
    FOUR_PART = "4-part"


SLOT_CATEGORIES: Dict[SlotConfiguration, tuple[str, ...]] = {
    SlotConfiguration.TWO_PART: ("dresses", "footwear"),
    SlotConfiguration.THREE_PART: ("tops", "bottoms", "footwear"),
    SlotConfiguration.FOUR_PART: ("tops", "outerwear", "bottoms", "footwear"),
}

# Snapshot layout for slot mode, in a 1000px wide frame with 40px padding.
LAYOUT_WIDTH = 1000
LAYOUT_PADDING = 40
SLOT_SNAPSHOT_SIZE = (900, 1140)
CANVAS_SNAPSHOT_SIZE = (1000, 1000)

_FULL = LAYOUT_WIDTH - 2 * LAYOUT_PADDING

SLOT_LAYOUTS: Dict[SlotConfiguration, Dict[str, dict]] = {
    SlotConfiguration.TWO_PART: {
        "dresses": {"x": LAYOUT_PADDING, "y": LAYOUT_PADDING, "width": _FULL, "height": 450, "z_index": 1},
        "footwear": {"x": LAYOUT_PADDING, "y": 510, "width": _FULL, "height": 450, "z_index": 1},
    },
    SlotConfiguration.THREE_PART: {
        "tops": {"x": LAYOUT_PADDING, "y": LAYOUT_PADDING, "width": _FULL, "height": 300, "z_index": 1},
        "bottoms": {"x": LAYOUT_PADDING, "y": 360, "width": _FULL, "height": 300, "z_index": 1},
        "footwear": {"x": LAYOUT_PADDING, "y": 680, "width": _FULL, "height": 280, "z_index": 1},
    },
    SlotConfiguration.FOUR_PART: {
        "tops": {"x": LAYOUT_PADDING, "y": LAYOUT_PADDING, "width": 450, "height": 350, "z_index": 1},
        "outerwear": {"x": 510, "y": LAYOUT_PADDING, "width": 450, "height": 350, "z_index": 1},
        "bottoms": {"x": LAYOUT_PADDING, "y": 410, "width": _FULL, "height": 300, "z_index": 1},
        "footwear": {"x": LAYOUT_PADDING, "y": 730, "width": _FULL, "height": 230, "z_index": 1},
    },
}


def slot_categories(configuration: SlotConfiguration | str) -> List[str]:
    return list(SLOT_CATEGORIES[SlotConfiguration(configuration)])


def slot_layout(configuration: SlotConfiguration | str) -> Dict[str, dict]:
    cfg = SlotConfiguration(configuration)
    return {k: dict(v) for k, v in SLOT_LAYOUTS[cfg].items()}


def layout_name(configuration: SlotConfiguration | str) -> str:
    if SlotConfiguration(configuration) is SlotConfiguration.FOUR_PART:
        return "side-by-side"
    return "vertical-stack"


def is_category(value: str) -> bool:
    return value in CATEGORIES
