"""
clmov Dashboard — Textual TUI App

Terminal inspector for a single movie. The movie is parsed in a worker
thread, then played back frame by frame: the cursor in the Frames tab
advances at the recording rate, scaled by the speed preset.

Playback controls:
  p     — pause / resume
  r     — rewind to the first frame
  [ / ] — decrease / increase speed (1x, 2x, 5x, 10x, MAX)
  x     — export the initial state to JSON
"""

from __future__ import annotations

import json
import logging
import threading
import time
from datetime import datetime
from pathlib import Path

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.css.query import NoMatches
from textual.widgets import Footer, Static, TabbedContent, TabPane

from clmov.dashboard.widgets import FramePanel, FrameSelected, StatePanel, SummaryPanel
from clmov.movie.container import load_movie_data
from clmov.movie.parser import MovieParser, ParserConfig
from clmov.protocol.movie_types import MovieError, MovieFrame

log = logging.getLogger(__name__)

# Playback speed presets: (label, multiplier)
# multiplier=0 means unbounded (no sleep)
SPEED_PRESETS = [
    ("1x", 1.0),
    ("2x", 2.0),
    ("5x", 5.0),
    ("10x", 10.0),
    ("MAX", 0.0),
]


class MovieDashboard(App):
    """clmov movie inspector."""

    CSS = """
    #header-bar {
        height: 1;
        background: $primary-background;
    }
    #status-label {
        width: 1fr;
    }
    #position-label {
        width: auto;
        padding: 0 1;
    }
    #frame-table {
        height: 2fr;
    }
    #frame-detail {
        height: 1fr;
        border-top: solid $accent;
        overflow-y: auto;
    }
    #desc-table {
        height: 2fr;
    }
    #picture-table {
        height: 1fr;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("f", "switch_tab('frames')", "Frames", show=True),
        Binding("s", "switch_tab('state')", "State", show=True),
        Binding("m", "switch_tab('summary')", "Summary", show=True),
        Binding("p", "toggle_pause", "Pause"),
        Binding("r", "rewind", "Rewind"),
        Binding("left_square_bracket", "speed_down", "Slower"),
        Binding("right_square_bracket", "speed_up", "Faster"),
        Binding("x", "export_state", "Export"),
    ]

    def __init__(self, path: str, version_hint: int = 0, fps: int = 5):
        super().__init__()
        self._path = Path(path)
        self._fps = max(fps, 1)
        self.parser = MovieParser(config=ParserConfig(version_hint=version_hint, partial=True))
        self.frames: list[MovieFrame] = []
        # Next frame for the playback thread; guarded by _position_lock.
        self._position = 0
        self._position_lock = threading.Lock()
        # Frame on screen; UI thread only.
        self._shown = 0
        self._paused = False
        self._loaded = False
        self._playback_done = False
        self._speed_index = 0  # index into SPEED_PRESETS

    @property
    def _speed_label(self) -> str:
        return SPEED_PRESETS[self._speed_index][0]

    @property
    def _speed_mult(self) -> float:
        return SPEED_PRESETS[self._speed_index][1]

    def compose(self) -> ComposeResult:
        with Horizontal(id="header-bar"):
            yield Static("clmov", id="status-label")
            yield Static("", id="position-label")
        with TabbedContent(id="tabs"):
            with TabPane("Frames", id="frames"):
                yield FramePanel()
            with TabPane("State", id="state"):
                yield StatePanel()
            with TabPane("Summary", id="summary"):
                yield SummaryPanel()
        yield Footer()

    def on_mount(self) -> None:
        self._update_header()
        thread = threading.Thread(target=self._run_load, daemon=True)
        thread.start()

    def _update_header(self) -> None:
        status: Static = self.query_one("#status-label", Static)
        position: Static = self.query_one("#position-label", Static)

        if not self._loaded:
            mode = "LOADING"
        else:
            done_tag = " DONE" if self._playback_done else ""
            mode = f"PLAY [{self._speed_label}]{done_tag}"
        paused = " [PAUSED]" if self._paused else ""
        status.update(f"clmov | {self._path.name} | {mode}{paused}")

        total = len(self.frames)
        if total:
            shown = min(self._shown, total - 1)
            position.update(f"frame #{self.frames[shown].index} | {shown + 1}/{total}")
        else:
            position.update("")

    # ---- Loading ----

    def _run_load(self) -> None:
        try:
            data = load_movie_data(self._path)
            frames = self.parser.parse(data)
        except (MovieError, OSError) as e:
            log.error("cannot load %s: %s", self._path, e)
            self.call_from_thread(self.notify, f"Cannot load {self._path.name}: {e}", severity="error")
            return

        self.frames = frames
        self._loaded = True
        self.call_from_thread(self._show_loaded)
        self.call_from_thread(
            self.notify,
            f"Loaded {len(frames)} frames, version {self.parser.version}",
        )
        self._run_playback()

    def _show_loaded(self) -> None:
        self.query_one(FramePanel).load_frames(self.frames)
        self.query_one(StatePanel).refresh_state(self.parser.initial_state)
        self.query_one(SummaryPanel).refresh_summary(self.parser, self.frames, self._fps)
        self._update_header()

    # ---- Playback ----

    def _step(self) -> int | None:
        """Claim the next frame to show, or None (and mark playback done) past the end."""
        with self._position_lock:
            if self._position >= len(self.frames):
                self._playback_done = True
                return None
            position = self._position
            self._position += 1
            return position

    def _seek(self, position: int) -> None:
        """Make `position` the next frame the playback thread shows."""
        with self._position_lock:
            self._position = position
            self._playback_done = False

    def _run_playback(self) -> None:
        while True:
            if self._paused or self._playback_done:
                time.sleep(0.1)
                continue

            position = self._step()
            if position is None:
                self.call_from_thread(self._update_header)
                self.call_from_thread(self.notify, "Playback complete")
                continue
            self.call_from_thread(self._show_position, position)

            mult = self._speed_mult
            if mult == 0.0:
                # MAX speed, but let the UI breathe
                time.sleep(0.001)
            else:
                time.sleep(1.0 / (self._fps * mult))

    def _show_position(self, position: int) -> None:
        if not (0 <= position < len(self.frames)):
            return
        try:
            panel: FramePanel = self.query_one(FramePanel)
        except NoMatches:
            return
        self._shown = position
        panel.move_to(position)
        panel.show_detail(self.frames[position])
        self._update_header()

    # ---- Actions ----

    def action_switch_tab(self, tab_id: str) -> None:
        tabs: TabbedContent = self.query_one("#tabs", TabbedContent)
        tabs.active = tab_id

    def action_toggle_pause(self) -> None:
        self._paused = not self._paused
        self._update_header()
        self.notify(f"{'Paused' if self._paused else 'Resumed'}")

    def action_rewind(self) -> None:
        self._seek(0)
        self._show_position(0)

    def action_speed_up(self) -> None:
        """Increase playback speed."""
        if self._speed_index < len(SPEED_PRESETS) - 1:
            self._speed_index += 1
            self._update_header()
            self.notify(f"Speed: {self._speed_label}")

    def action_speed_down(self) -> None:
        """Decrease playback speed."""
        if self._speed_index > 0:
            self._speed_index -= 1
            self._update_header()
            self.notify(f"Speed: {self._speed_label}")

    def action_export_state(self) -> None:
        """Export the movie's initial state to a JSON file."""
        if not self._loaded:
            self.notify("Movie not loaded yet", severity="warning")
            return
        export = self._build_export()
        out_dir = Path("data")
        out_dir.mkdir(exist_ok=True)
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        out_path = out_dir / f"{self._path.stem}_{ts}.json"
        out_path.write_text(json.dumps(export, indent=2, default=str))
        self.notify(f"Exported to {out_path}")

    def _build_export(self) -> dict:
        head = self.parser.header
        return {
            "exported_at": datetime.now().isoformat(),
            "movie": str(self._path),
            "version": self.parser.version,
            "revision": head.revision if head else 0,
            "frames": len(self.frames),
            "anomalies": [a.to_dict() for a in self.parser.anomalies],
            "initial_state": self.parser.initial_state.to_dict(),
        }

    def on_frame_selected(self, event: FrameSelected) -> None:
        """Show the bytes of a highlighted frame; while paused this also moves the cursor."""
        if not (0 <= event.position < len(self.frames)):
            return
        if self._paused:
            self._seek(event.position)
            self._shown = event.position
            self._update_header()
        self.query_one(FramePanel).show_detail(self.frames[event.position])
