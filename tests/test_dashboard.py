"""Tests for the inspector's playback cursor (no UI is started)."""

import threading

from clmov.dashboard.app import MovieDashboard
from clmov.protocol.movie_types import MovieFrame


def _dashboard(count: int) -> MovieDashboard:
    app = MovieDashboard("movie.clMov")
    app.frames = [MovieFrame(index=i, flags=0, data=b"\x00\x02") for i in range(count)]
    return app


def test_step_walks_every_frame_once():
    app = _dashboard(3)
    assert [app._step() for _ in range(3)] == [0, 1, 2]
    assert app._step() is None
    assert app._playback_done


def test_seek_rewinds_and_resumes():
    app = _dashboard(3)
    while app._step() is not None:
        pass
    app._seek(0)
    assert not app._playback_done
    assert app._step() == 0

    app._seek(2)
    assert app._step() == 2


def test_concurrent_steps_claim_distinct_frames():
    app = _dashboard(2000)
    claimed: list[int] = []
    claimed_lock = threading.Lock()

    def worker() -> None:
        while True:
            position = app._step()
            if position is None:
                return
            with claimed_lock:
                claimed.append(position)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert sorted(claimed) == list(range(2000))
