"""Tests for the movie recorder."""

import struct

import pytest

from clmov.movie.parser import MovieParser
from clmov.movie.recorder import MAX_FRAME_SIZE, MovieRecorder, game_state_block
from clmov.protocol.movie_types import FileHeader, FrameFlags, FrameHead
from movie_builders import make_picture_table


def _open(tmp_path, **kwargs) -> MovieRecorder:
    return MovieRecorder.open(tmp_path / "out.clMov", version=353, revision=2, start_time=1000, **kwargs)


def test_new_file_has_header(tmp_path):
    rec = _open(tmp_path)
    raw = rec.path.read_bytes()
    rec.close()
    head = FileHeader.unpack(raw)
    assert len(raw) == 24
    assert (head.version, head.header_len, head.frames, head.start_time, head.revision) == (353, 24, 0, 1000, 2)
    assert head.oldest_reader == 353 << 8


def test_close_writes_frame_count(tmp_path):
    with _open(tmp_path) as rec:
        rec.write_frame(b"one", 0)
        rec.write_frame(b"two", FrameFlags.STALE)
    raw = rec.path.read_bytes()
    assert FileHeader.unpack(raw).frames == 2
    assert rec.closed
    assert rec.frame_count == 2


def test_frame_layout(tmp_path):
    with _open(tmp_path) as rec:
        rec.write_frame(b"hello", 0)
        rec.write_frame(b"again", 0)
    raw = rec.path.read_bytes()
    first = FrameHead.unpack_from(raw, 24)
    second = FrameHead.unpack_from(raw, 24 + 12 + 5)
    assert (first.index, first.size, first.flags) == (0, 5, 0)
    assert second.index == 1
    assert raw[36:41] == b"hello"


def test_add_block_goes_before_payload(tmp_path):
    table = make_picture_table([(1, 2, 3)])
    with _open(tmp_path) as rec:
        rec.add_block(table, FrameFlags.PICTURE_TABLE)
        rec.write_frame(b"xy", FrameFlags.STALE)
        rec.write_frame(b"z", 0)
    raw = rec.path.read_bytes()

    head = FrameHead.unpack_from(raw, 24)
    assert head.size == 2  # blocks are not counted
    assert head.flags == FrameFlags.PICTURE_TABLE | FrameFlags.STALE
    assert raw[36:36 + len(table)] == table
    assert raw[36 + len(table):38 + len(table)] == b"xy"

    # Staged blocks and flags are used once.
    nxt = FrameHead.unpack_from(raw, 38 + len(table))
    assert nxt.flags == 0


def test_add_empty_block_is_noop(tmp_path):
    with _open(tmp_path) as rec:
        rec.add_block(b"", FrameFlags.GAME_STATE)
        rec.write_frame(b"a", 0)
    head = FrameHead.unpack_from(rec.path.read_bytes(), 24)
    assert head.flags == 0


def test_write_block(tmp_path):
    table = make_picture_table([(4, 0, 0)])
    with _open(tmp_path) as rec:
        rec.write_block(table, FrameFlags.PICTURE_TABLE)
        rec.write_block(b"", FrameFlags.MOBILE_DATA)
    raw = rec.path.read_bytes()
    assert rec.frame_count == 1
    head = FrameHead.unpack_from(raw, 24)
    assert (head.size, head.flags) == (0, FrameFlags.PICTURE_TABLE)
    assert raw[36:] == table


def test_recorded_file_parses(tmp_path):
    table = make_picture_table([(7, 1, 1), (3, 2, 2)])
    with _open(tmp_path) as rec:
        rec.write_block(table, FrameFlags.PICTURE_TABLE)
        rec.write_frame(b"\x00\x02draw", 0)
    parser = MovieParser()
    frames = parser.parse(rec.path.read_bytes())
    assert [f.index for f in frames] == [0, 1]
    assert [p.pict_id for p in parser.initial_state.pictures] == [7, 3]
    assert parser.anomalies == []


def test_closed_recorder_raises(tmp_path):
    rec = _open(tmp_path)
    rec.close()
    rec.close()  # idempotent
    with pytest.raises(ValueError):
        rec.write_frame(b"late", 0)
    with pytest.raises(ValueError):
        rec.write_block(b"late", FrameFlags.GAME_STATE)


def test_oversized_frame_rejected(tmp_path):
    with _open(tmp_path) as rec:
        with pytest.raises(ValueError):
            rec.write_frame(b"\x00" * (MAX_FRAME_SIZE + 1), 0)
    assert rec.frame_count == 0


def test_open_missing_directory(tmp_path):
    with pytest.raises(OSError):
        MovieRecorder.open(tmp_path / "nope" / "out.clMov", version=353, revision=0)


def test_game_state_block_header():
    block = game_state_block(1, 2, 3, 5, 5, 5, b"hello")
    assert len(block) == 24 + 5
    assert struct.unpack(">IIIIII", block[:24]) == (1, 2, 3, 5, 5, 5)
    assert block[24:] == b"hello"
