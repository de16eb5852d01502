"""Shared fixtures for clmov tests."""

import pytest

from clmov.data.state import MovieState
from clmov.protocol.movie_types import FrameFlags
from movie_builders import make_frame, make_header, make_picture_table


@pytest.fixture
def three_picture_movie() -> bytes:
    """Version 200 movie: one zero-size frame carrying a 3-entry picture table."""
    table = make_picture_table([(1, 10, 20), (2, -5, 300), (3, 0, -1)])
    return make_header(version=200, frames=1) + make_frame(
        0, flags=FrameFlags.PICTURE_TABLE, pre=table,
    )


@pytest.fixture
def plain_movie() -> bytes:
    """Three payload frames, no blocks."""
    return (
        make_header(version=200, frames=3)
        + make_frame(0, b"\x00\x02hello")
        + make_frame(1, b"\x00\x02world!")
        + make_frame(2, b"\x00\x05x", flags=FrameFlags.STALE)
    )


@pytest.fixture
def recording_state() -> tuple[MovieState, list]:
    """A MovieState with a recording subscriber."""
    state = MovieState()
    events: list = []
    state.on_update(lambda kind, data: events.append((kind, data)))
    return state, events
