"""Tests for the movie analyzer."""

from clmov.movie.parser import parse_movie_data
from clmov.protocol.analyzer import MovieAnalyzer
from clmov.protocol.movie_types import FrameFlags, MovieFrame


def _frames() -> list[MovieFrame]:
    return [
        MovieFrame(index=0, flags=FrameFlags.PICTURE_TABLE, pre_data=b"\x00" * 6),
        MovieFrame(index=1, flags=0, data=b"\x00\x02abcd"),
        MovieFrame(index=2, flags=FrameFlags.STALE, data=b"\x00\x02abcd"),
        MovieFrame(index=5, flags=FrameFlags.MOBILE_DATA, data=b"\x00\x09xy", pre_data=b"\xff" * 4),
    ]


def test_size_distribution():
    sizes = MovieAnalyzer(_frames()).size_distribution()
    assert sizes == {0: 1, 4: 1, 6: 2}


def test_by_flag_and_counts():
    analyzer = MovieAnalyzer(_frames())
    assert [f.index for f in analyzer.by_flag(FrameFlags.MOBILE_DATA)] == [5]
    assert analyzer.flag_counts() == {"PICTURE_TABLE": 1, "STALE": 1, "MOBILE_DATA": 1}
    assert [f.index for f in analyzer.block_carriers()] == [0]


def test_tags():
    assert MovieAnalyzer(_frames()).tag_distribution() == {2: 2, 9: 1}


def test_find_gaps():
    gaps = MovieAnalyzer(_frames()).find_gaps()
    assert len(gaps) == 1
    assert (gaps[0].position, gaps[0].before, gaps[0].after) == (3, 2, 5)
    assert gaps[0].missing == 2


def test_byte_totals():
    analyzer = MovieAnalyzer(_frames())
    assert analyzer.payload_bytes() == 16
    assert analyzer.block_bytes() == 10


def test_diff_frames():
    a = MovieFrame(index=0, flags=0, data=b"\x00\x02ab")
    b = MovieFrame(index=1, flags=0, data=b"\x00\x02aXc")
    diffs = MovieAnalyzer([a, b]).diff_frames(a, b)
    assert diffs == [(3, ord("b"), ord("X")), (-1, 4, 5)]


def test_summary_and_report(plain_movie):
    analyzer = MovieAnalyzer(parse_movie_data(plain_movie))
    s = analyzer.summary()
    assert s["frames"] == 3
    assert s["draw_state_frames"] == 2
    assert s["gaps"] == 0
    report = analyzer.report()
    assert "Movie Analysis Report" in report
    assert "No index gaps" in report


def test_empty_report():
    assert MovieAnalyzer([]).report() == "No frames to analyze."
