"""
clmov — State Reconstructor

Decodes the three embedded block kinds into a MovieState:
- picture table:  [count:2] count x [pict_id:2][h:2][v:2] [trailer:4]
- mobile table:   repeated [index:4] [mobile:16 if index < 266] [descriptor]
                  terminated by index -1
- game state:     [info string\\0] [picture table?] [mobile table?]

Each mobile record field is a 32-bit big-endian word truncated to its width.
The descriptor record size and field offsets come from layouts.layout_for().
"""

from __future__ import annotations

import logging
import struct
from typing import Callable

from clmov.data.state import DescriptorEntry, MobileEntry, MovieState, PictureEntry
from clmov.protocol.layouts import (
    DESC_PICT_OFFSET,
    DESC_TABLE_SIZE,
    DESC_TYPE_NPC,
    DESC_TYPE_OFFSET,
    MAX_COLORS,
    MOBILE_RECORD_SIZE,
    NAME_FIELD_SIZE,
    Layout,
    layout_for,
)
from clmov.protocol.movie_types import TABLE_SENTINEL

log = logging.getLogger(__name__)

NAME_ENCODING = "mac_roman"
PICTURE_ENTRY_SIZE = 6
PICTURE_TRAILER_SIZE = 4

PlaneLookup = Callable[[int], int]


def picture_table_size(count: int) -> int:
    """Bytes used by a picture table with `count` entries, trailer included."""
    return 2 + PICTURE_ENTRY_SIZE * count + PICTURE_TRAILER_SIZE


def _u32(data: bytes, pos: int) -> int:
    return struct.unpack_from(">I", data, pos)[0]


def _i32(data: bytes, pos: int) -> int:
    return struct.unpack_from(">i", data, pos)[0]


def _low_i16(word: int) -> int:
    """Signed value of the low 16 bits of a 32-bit word."""
    return ((word & 0xFFFF) ^ 0x8000) - 0x8000


def decode_name(raw: bytes) -> str:
    """Decode a fixed-width, null-terminated name field."""
    end = raw.find(b"\x00")
    if end >= 0:
        raw = raw[:end]
    return raw.decode(NAME_ENCODING, errors="replace")


def decode_descriptor(buf: bytes, index: int, layout: Layout) -> tuple[DescriptorEntry, int]:
    """Decode one descriptor record. Returns (descriptor, bubble_counter)."""
    pict = _u32(buf, DESC_PICT_OFFSET)
    # Both the 32-bit and the 16-bit all-ones value mean "no picture".
    pict_id = 0 if pict == 0xFFFFFFFF or pict & 0xFFFF == 0xFFFF else pict & 0xFFFF

    num_colors = _i32(buf, layout.num_colors_offset)
    if num_colors < 0 or num_colors > MAX_COLORS:
        num_colors = MAX_COLORS
    colors = bytes(buf[layout.colors_offset:min(layout.colors_offset + num_colors, len(buf))])

    name = decode_name(bytes(buf[layout.name_offset:layout.name_offset + NAME_FIELD_SIZE]))
    bubble_counter = _i32(buf, layout.bubble_counter_offset)

    descriptor = DescriptorEntry(
        index=index & 0xFF,
        type=_u32(buf, DESC_TYPE_OFFSET) & 0xFF,
        pict_id=pict_id,
        colors=colors,
        name=name,
    )
    return descriptor, bubble_counter


def decode_mobile(data: bytes, pos: int, index: int) -> MobileEntry:
    """Decode the 16-byte mobile record at `pos`."""
    state, h, v, colors = struct.unpack_from(">IIII", data, pos)
    return MobileEntry(
        index=index & 0xFF,
        state=state & 0xFF,
        h=_low_i16(h),
        v=_low_i16(v),
        colors=colors & 0xFF,
    )


class StateReconstructor:
    """Applies embedded blocks to a MovieState."""

    def __init__(self, state: MovieState, plane_lookup: PlaneLookup | None = None):
        self.state = state
        self.plane_lookup = plane_lookup

    def decode_picture_table(self, data: bytes, pos: int = 0) -> tuple[list[PictureEntry], int]:
        """Decode a picture table at `pos`, keeping on-disk order.

        The caller has already checked that the table fits. Returns the
        entries and the position just past the trailer.
        """
        count = struct.unpack_from(">H", data, pos)[0]
        pos += 2
        pictures: list[PictureEntry] = []
        for _ in range(count):
            if pos + PICTURE_ENTRY_SIZE > len(data):
                break
            pict_id, h, v = struct.unpack_from(">Hhh", data, pos)
            plane = self.plane_lookup(pict_id) if self.plane_lookup else 0
            pictures.append(PictureEntry(pict_id=pict_id, h=h, v=v, plane=plane))
            pos += PICTURE_ENTRY_SIZE
        if pos + PICTURE_TRAILER_SIZE <= len(data):
            pos += PICTURE_TRAILER_SIZE
        return pictures, pos

    def apply_mobile_table(self, data: bytes, version: int, pos: int = 0) -> int:
        """Decode a mobile/descriptor table starting at `pos`.

        Returns the position after the -1 sentinel. A record running past the
        end of `data` ends decoding and returns len(data).
        """
        layout = layout_for(version)
        if layout is None:
            log.debug("unsupported mobile table version %d", version)
            return pos

        while pos + 4 <= len(data):
            idx = _i32(data, pos)
            pos += 4
            if idx == -1:
                break

            has_mobile = idx < DESC_TABLE_SIZE
            if not has_mobile:
                idx -= DESC_TABLE_SIZE

            mobile = None
            if has_mobile:
                if pos + MOBILE_RECORD_SIZE > len(data):
                    return len(data)
                mobile = decode_mobile(data, pos, idx)
                pos += MOBILE_RECORD_SIZE

            if pos + layout.desc_size > len(data):
                return len(data)
            descriptor, bubble_counter = decode_descriptor(
                data[pos:pos + layout.desc_size], idx, layout,
            )
            pos += layout.desc_size

            if bubble_counter != 0:
                # Bubble text follows the record; only its length matters.
                if pos + 2 > len(data):
                    return len(data)
                length = struct.unpack_from(">H", data, pos)[0]
                pos += 2
                if pos + length > len(data):
                    return len(data)
                pos += length

            self.state.put(descriptor, mobile)
            self._announce(descriptor)

        return pos

    def apply_game_state(self, data: bytes, version: int) -> None:
        """Decode a game state payload: info string, picture table, mobile table."""
        if not data:
            return
        end = data.find(b"\x00")
        if end >= 0:
            info = bytes(data[:end])
            self.state.notify("info_text", {
                "raw": info,
                "text": info.decode(NAME_ENCODING, errors="replace"),
            })
            data = data[end + 1:]

        if len(data) >= 2:
            count = struct.unpack_from(">H", data, 0)[0]
            if count > 0 and picture_table_size(count) <= len(data):
                pictures, pos = self.decode_picture_table(data, 0)
                self.state.set_pictures(pictures)
                data = data[pos:]

        if TABLE_SENTINEL in data:
            self.apply_mobile_table(data, version, 0)

    def _announce(self, d: DescriptorEntry) -> None:
        """Tell subscribers about a freshly decoded appearance."""
        self.state.notify("appearance", {
            "index": d.index,
            "name": d.name,
            "pict_id": d.pict_id,
            "colors": d.colors,
            "is_npc": d.type == DESC_TYPE_NPC,
        })
        if d.name:
            self.state.notify("info_request", {"name": d.name})
