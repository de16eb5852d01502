"""
Descriptor Layouts — byte offsets of the descriptor record per movie version.

The descriptor record changed size five times. Each generation is one row;
a new generation is a new row at the top of LAYOUTS.
"""

from __future__ import annotations

from dataclasses import dataclass


# Mobile table indices at or above this value carry no mobile record.
DESC_TABLE_SIZE = 266
MOBILE_RECORD_SIZE = 16
NAME_FIELD_SIZE = 48
MAX_COLORS = 30
DESC_PICT_OFFSET = 0
DESC_TYPE_OFFSET = 16
DESC_TYPE_NPC = 3

OLDEST_LAYOUT_VERSION = 80


@dataclass(frozen=True)
class Layout:
    """Offsets inside one descriptor record."""
    desc_size: int
    colors_offset: int
    name_offset: int
    num_colors_offset: int
    bubble_counter_offset: int


# (min_version, layout), newest first.
LAYOUTS: tuple[tuple[int, Layout], ...] = (
    (142, Layout(desc_size=156, colors_offset=56, name_offset=86, num_colors_offset=48, bubble_counter_offset=28)),
    (114, Layout(desc_size=150, colors_offset=52, name_offset=82, num_colors_offset=44, bubble_counter_offset=24)),
    (106, Layout(desc_size=142, colors_offset=52, name_offset=82, num_colors_offset=44, bubble_counter_offset=24)),
    (98, Layout(desc_size=130, colors_offset=40, name_offset=70, num_colors_offset=32, bubble_counter_offset=24)),
    (OLDEST_LAYOUT_VERSION, Layout(desc_size=126, colors_offset=36, name_offset=66, num_colors_offset=28, bubble_counter_offset=20)),
)


def layout_for(version: int) -> Layout | None:
    """Return the descriptor layout for `version`, or None if it predates all of them."""
    for min_version, layout in LAYOUTS:
        if version >= min_version:
            return layout
    return None
