"""Tests for descriptor/mobile/picture table decoding."""

import struct

from clmov.data.state import MovieState
from clmov.data.tables import StateReconstructor, decode_descriptor, picture_table_size
from clmov.protocol.layouts import LAYOUTS, layout_for
from movie_builders import (
    make_descriptor,
    make_mobile,
    make_mobile_entry,
    make_mobile_table,
    make_picture_table,
)

LAYOUT = layout_for(200)


class TestDescriptor:
    def test_fields(self):
        raw = make_descriptor(LAYOUT, pict_id=1234, type_=3, colors=b"\x05\x06\x07", name="Zed")
        d, bubble = decode_descriptor(raw, 300, LAYOUT)
        assert d.index == 300 & 0xFF
        assert d.type == 3
        assert d.pict_id == 1234
        assert d.colors == b"\x05\x06\x07"
        assert d.name == "Zed"
        assert bubble == 0

    def test_no_picture_sentinels(self):
        full, _ = decode_descriptor(make_descriptor(LAYOUT, pict_id=0xFFFFFFFF), 0, LAYOUT)
        short, _ = decode_descriptor(make_descriptor(LAYOUT, pict_id=0xFFFF), 0, LAYOUT)
        assert full.pict_id == 0
        assert short.pict_id == 0

    def test_pict_id_truncated_to_16_bits(self):
        d, _ = decode_descriptor(make_descriptor(LAYOUT, pict_id=0x00010005), 0, LAYOUT)
        assert d.pict_id == 5

    def test_color_count_clamped(self):
        colors = bytes(range(30))
        too_many, _ = decode_descriptor(make_descriptor(LAYOUT, colors=colors, num_colors=99), 0, LAYOUT)
        negative, _ = decode_descriptor(make_descriptor(LAYOUT, colors=colors, num_colors=-1), 0, LAYOUT)
        assert too_many.colors == colors
        assert negative.colors == colors

    def test_name_stops_at_null(self):
        raw = bytearray(make_descriptor(LAYOUT, name="Ann"))
        raw[LAYOUT.name_offset + 4:LAYOUT.name_offset + 8] = b"junk"
        d, _ = decode_descriptor(bytes(raw), 0, LAYOUT)
        assert d.name == "Ann"

    def test_mac_roman_name(self):
        d, _ = decode_descriptor(make_descriptor(LAYOUT, name="Zoë"), 0, LAYOUT)
        assert d.name == "Zoë"

    def test_every_generation(self):
        for version, layout in LAYOUTS:
            raw = make_descriptor(layout, pict_id=9, colors=b"\x01\x02", name=f"v{version}")
            d, _ = decode_descriptor(raw, 1, layout)
            assert (d.pict_id, d.colors, d.name) == (9, b"\x01\x02", f"v{version}")


class TestMobileTable:
    def test_mobile_and_descriptor_only(self):
        state = MovieState()
        table = make_mobile_table(
            make_mobile_entry(10, make_descriptor(LAYOUT, name="Mob"), make_mobile(4, -100, 250, 2)),
            make_mobile_entry(11, make_descriptor(LAYOUT, name="Desc")),
        )
        end = StateReconstructor(state).apply_mobile_table(table, 200)
        assert end == len(table)

        mob = state.get_mobile(10)
        assert (mob.state, mob.h, mob.v, mob.colors) == (4, -100, 250, 2)
        assert state.get_descriptor(11).name == "Desc"
        assert state.get_mobile(11) is None

    def test_stops_at_sentinel(self):
        state = MovieState()
        table = make_mobile_table(make_mobile_entry(1, make_descriptor(LAYOUT, name="A")))
        end = StateReconstructor(state).apply_mobile_table(table + b"rest", 200)
        assert end == len(table)

    def test_start_offset(self):
        state = MovieState()
        table = make_mobile_table(make_mobile_entry(1, make_descriptor(LAYOUT, name="A")))
        end = StateReconstructor(state).apply_mobile_table(b"xx" + table, 200, pos=2)
        assert end == len(table) + 2
        assert state.get_descriptor(1).name == "A"

    def test_bubble_text_skipped(self):
        state = MovieState()
        table = make_mobile_table(
            make_mobile_entry(1, make_descriptor(LAYOUT, name="Talker", bubble_counter=1), bubble=b"hello there"),
            make_mobile_entry(2, make_descriptor(LAYOUT, name="Next")),
        )
        end = StateReconstructor(state).apply_mobile_table(table, 200)
        assert end == len(table)
        assert state.get_descriptor(1).name == "Talker"
        assert state.get_descriptor(2).name == "Next"

    def test_overrun_consumes_rest(self):
        state = MovieState()
        entry = make_mobile_entry(1, make_descriptor(LAYOUT, name="Cut"), make_mobile())
        data = entry[:-20]
        end = StateReconstructor(state).apply_mobile_table(data, 200)
        assert end == len(data)
        assert state.get_descriptor(1) is None

    def test_unsupported_version_skips(self):
        state = MovieState()
        table = make_mobile_table(make_mobile_entry(1, make_descriptor(LAYOUT)))
        assert StateReconstructor(state).apply_mobile_table(table, 79, pos=0) == 0
        assert state.counts()["descriptors"] == 0

    def test_later_entry_replaces(self):
        state = MovieState()
        table = make_mobile_table(
            make_mobile_entry(5, make_descriptor(LAYOUT, name="First")),
            make_mobile_entry(5, make_descriptor(LAYOUT, name="Second")),
        )
        StateReconstructor(state).apply_mobile_table(table, 200)
        assert state.get_descriptor(5).name == "Second"
        assert state.counts()["descriptors"] == 1


class TestCallbacks:
    def test_appearance_and_info_request(self, recording_state):
        state, events = recording_state
        table = make_mobile_table(
            make_mobile_entry(1, make_descriptor(LAYOUT, pict_id=8, type_=3, name="Npc")),
            make_mobile_entry(2, make_descriptor(LAYOUT)),
        )
        StateReconstructor(state).apply_mobile_table(table, 200)

        kinds = [kind for kind, _ in events]
        assert kinds == ["appearance", "info_request", "appearance"]
        assert events[0][1]["is_npc"] is True
        assert events[0][1]["pict_id"] == 8
        assert events[1][1] == {"name": "Npc"}

    def test_failing_callback_does_not_stop_decoding(self, caplog):
        state = MovieState()
        state.on_update(lambda kind, data: 1 / 0)
        table = make_mobile_table(make_mobile_entry(1, make_descriptor(LAYOUT, name="Ok")))
        StateReconstructor(state).apply_mobile_table(table, 200)
        assert state.get_descriptor(1).name == "Ok"
        assert "update callback failed" in caplog.text

    def test_game_state_info_text(self, recording_state):
        state, events = recording_state
        StateReconstructor(state).apply_game_state(b"Hello\x00", 200)
        assert events == [("info_text", {"raw": b"Hello", "text": "Hello"})]


class TestPictureTable:
    def test_size(self):
        assert picture_table_size(0) == 6
        assert picture_table_size(3) == 24

    def test_decode_keeps_order(self):
        table = make_picture_table([(3, 1, 1), (1, -2, -2), (2, 3, 3)])
        pictures, end = StateReconstructor(MovieState()).decode_picture_table(table)
        assert [p.pict_id for p in pictures] == [3, 1, 2]
        assert pictures[1].h == -2
        assert end == len(table)

    def test_game_state_zero_count_skips_pictures(self):
        state = MovieState()
        payload = b"\x00" + struct.pack(">H", 0)
        StateReconstructor(state).apply_game_state(payload, 200)
        assert state.get_pictures() == []
