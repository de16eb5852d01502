"""
State Synthesizer — build initial-state blocks from a live MovieState.

Used when a recording starts mid-session: the movie needs a picture table
and a mobile/descriptor table up front so playback starts from the right
picture. The output uses the same layouts and sentinels the parser reads,
so StateReconstructor decodes it back to the same entries.
"""

from __future__ import annotations

import struct

from clmov.data.state import DescriptorEntry, MobileEntry, MovieState
from clmov.data.tables import NAME_ENCODING
from clmov.protocol.layouts import (
    DESC_PICT_OFFSET,
    DESC_TABLE_SIZE,
    DESC_TYPE_OFFSET,
    MAX_COLORS,
    NAME_FIELD_SIZE,
    Layout,
    layout_for,
)
from clmov.protocol.movie_types import TABLE_SENTINEL
from clmov.movie.recorder import game_state_block

PICTURE_TRAILER = TABLE_SENTINEL


def encode_descriptor(d: DescriptorEntry, layout: Layout) -> bytes:
    """Encode one descriptor record. The bubble counter is always zero."""
    buf = bytearray(layout.desc_size)
    struct.pack_into(">I", buf, DESC_PICT_OFFSET, d.pict_id & 0xFFFF)
    struct.pack_into(">I", buf, DESC_TYPE_OFFSET, d.type & 0xFF)

    colors = d.colors[:MAX_COLORS]
    struct.pack_into(">I", buf, layout.num_colors_offset, len(colors))
    buf[layout.colors_offset:layout.colors_offset + len(colors)] = colors

    # Room for the terminating null.
    name = d.name.encode(NAME_ENCODING, errors="replace")[:NAME_FIELD_SIZE - 1]
    buf[layout.name_offset:layout.name_offset + len(name)] = name
    return bytes(buf)


def encode_mobile(m: MobileEntry) -> bytes:
    return struct.pack(">IIII", m.state & 0xFF, m.h & 0xFFFF, m.v & 0xFFFF, m.colors & 0xFF)


def synthesize_picture_table(state: MovieState) -> bytes:
    """Picture table in the state's current order; empty if there are no pictures."""
    pictures = state.get_pictures()
    if not pictures:
        return b""
    out = bytearray(struct.pack(">H", len(pictures)))
    for p in pictures:
        out += struct.pack(">Hhh", p.pict_id & 0xFFFF, p.h, p.v)
    out += PICTURE_TRAILER
    return bytes(out)


def synthesize_mobile_table(state: MovieState, version: int) -> bytes:
    """Mobile/descriptor table for `version`'s layout, sorted by index.

    Descriptors without a mobile are written as descriptor-only entries
    (index + 266). Mobiles without a descriptor get a blank one. Empty if
    the state holds nothing or the version has no layout.
    """
    layout = layout_for(version)
    if layout is None:
        return b""

    with state.lock:
        descriptors = dict(state.descriptors)
        mobiles = dict(state.mobiles)

    indices = sorted(set(descriptors) | set(mobiles))
    if not indices:
        return b""

    out = bytearray()
    for idx in indices:
        # Every entry ends in a descriptor record, so a mobile without one
        # gets a blank descriptor and reads back with it.
        d = descriptors.get(idx) or DescriptorEntry(index=idx)
        m = mobiles.get(idx)
        if m is not None:
            out += struct.pack(">I", idx)
            out += encode_mobile(m)
        else:
            out += struct.pack(">I", idx + DESC_TABLE_SIZE)
        out += encode_descriptor(d, layout)
    out += TABLE_SENTINEL
    return bytes(out)


def synthesize_game_state_payload(state: MovieState, version: int, info_text: bytes = b"") -> bytes:
    """[info_text\\0][picture table][mobile table]"""
    return (
        bytes(info_text) + b"\x00"
        + synthesize_picture_table(state)
        + synthesize_mobile_table(state, version)
    )


def synthesize_game_state(state: MovieState, version: int, info_text: bytes = b"") -> bytes:
    """A complete game state block (24-byte header + payload) for the recorder."""
    payload = synthesize_game_state_payload(state, version, info_text)
    size = len(payload)
    return game_state_block(0, 0, 0, size, size, size, payload)
