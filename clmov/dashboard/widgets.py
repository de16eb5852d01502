"""
clmov Dashboard — Panel Widgets

Three panels for the movie inspector:
1. FramePanel    — frame table + hex dump of the selected frame
2. StatePanel    — descriptors, mobiles and pictures of the snapshot
3. SummaryPanel  — header, frame statistics and parse anomalies
"""

from __future__ import annotations

from rich.text import Text
from textual.containers import Vertical
from textual.message import Message
from textual.widgets import DataTable, Static

from clmov.data.state import MovieState
from clmov.movie.parser import MovieParser
from clmov.protocol.analyzer import MovieAnalyzer
from clmov.protocol.movie_types import MovieFrame

# Rows beyond this are not added to the frame table.
MAX_FRAME_ROWS = 20000


def _fmt_elapsed(seconds: float) -> str:
    m, s = divmod(int(seconds), 60)
    h, m = divmod(m, 60)
    if h:
        return f"{h}h{m:02d}m{s:02d}s"
    return f"{m}m{s:02d}s"


def hex_dump(data: bytes, limit: int = 256) -> str:
    """16-byte wide hex dump with ASCII, cut after `limit` bytes."""
    lines = []
    for i in range(0, min(len(data), limit), 16):
        chunk = data[i:i + 16]
        hex_part = " ".join(f"{b:02x}" for b in chunk)
        ascii_part = "".join(chr(b) if 32 <= b < 127 else "." for b in chunk)
        lines.append(f"  {i:04x}  {hex_part:<48s}  {ascii_part}")
    if len(data) > limit:
        lines.append(f"  ... ({len(data)} bytes total) ...")
    return "\n".join(lines)


# ---- Color map for frame flags ----

_FLAG_COLORS: dict[str, str] = {
    "GAME_STATE": "magenta",
    "MOBILE_DATA": "cyan",
    "PICTURE_TABLE": "yellow",
    "STALE": "bright_black",
}


def _flags_text(frame: MovieFrame) -> Text:
    names = frame.flag_names()
    if not names:
        return Text("-", style="bright_black")
    text = Text()
    for i, name in enumerate(names):
        if i:
            text.append("|", style="bright_black")
        text.append(name, style=_FLAG_COLORS.get(name, "white"))
    return text


class FrameSelected(Message):
    """Custom message when a frame row is highlighted."""

    def __init__(self, position: int) -> None:
        self.position = position
        super().__init__()


# ---- 1. Frame Panel ----

class FramePanel(Vertical):
    """Frame table with a detail view of the highlighted frame."""

    def compose(self):
        table = DataTable(id="frame-table")
        table.cursor_type = "row"
        yield table
        yield Static("Select a frame to see its bytes", id="frame-detail")

    def on_mount(self) -> None:
        table: DataTable = self.query_one("#frame-table", DataTable)
        table.add_columns("#", "Index", "Size", "Blocks", "Flags", "Tag")

    def load_frames(self, frames: list[MovieFrame]) -> None:
        table: DataTable = self.query_one("#frame-table", DataTable)
        table.clear()
        for pos, fr in enumerate(frames[:MAX_FRAME_ROWS]):
            tag = int.from_bytes(fr.data[:2], "big") if len(fr.data) >= 2 else None
            table.add_row(
                Text(str(pos), style="bright_black"),
                Text(str(fr.index)),
                Text(str(fr.size)),
                Text(str(len(fr.pre_data)) if fr.pre_data else "-"),
                _flags_text(fr),
                Text(str(tag) if tag is not None else "-"),
                key=str(pos),
            )

    def move_to(self, position: int) -> None:
        table: DataTable = self.query_one("#frame-table", DataTable)
        if position < table.row_count:
            table.move_cursor(row=position)

    def show_detail(self, frame: MovieFrame) -> None:
        detail: Static = self.query_one("#frame-detail", Static)
        lines = [f"Frame #{frame.index}  size={frame.size}  flags=0x{frame.flags:04x}"]
        if frame.pre_data:
            lines.append(f"Blocks ({len(frame.pre_data)} bytes):")
            lines.append(hex_dump(frame.pre_data, limit=64))
        if frame.data:
            lines.append("Payload:")
            lines.append(hex_dump(frame.data))
        detail.update("\n".join(lines))

    def on_data_table_row_highlighted(self, event: DataTable.RowHighlighted) -> None:
        if event.row_key and event.row_key.value:
            try:
                self.post_message(FrameSelected(int(event.row_key.value)))
            except (ValueError, TypeError):
                pass


# ---- 2. State Panel ----

class StatePanel(Vertical):
    """Snapshot tables."""

    def compose(self):
        yield Static("", id="state-summary")
        desc_table = DataTable(id="desc-table")
        desc_table.cursor_type = "row"
        yield desc_table
        yield DataTable(id="picture-table")

    def on_mount(self) -> None:
        desc_table: DataTable = self.query_one("#desc-table", DataTable)
        desc_table.add_columns("#", "Name", "Type", "Pict", "Colors", "Position", "State")
        pict_table: DataTable = self.query_one("#picture-table", DataTable)
        pict_table.add_columns("Order", "Pict", "H", "V", "Plane")

    def refresh_state(self, state: MovieState) -> None:
        summary: Static = self.query_one("#state-summary", Static)
        desc_table: DataTable = self.query_one("#desc-table", DataTable)
        pict_table: DataTable = self.query_one("#picture-table", DataTable)
        desc_table.clear()
        pict_table.clear()

        snap = state.clone()
        counts = snap.counts()
        summary.update(
            f" Descriptors: {counts['descriptors']} | Mobiles: {counts['mobiles']}"
            f" | Pictures: {counts['pictures']}"
        )

        for idx, d in sorted(snap.descriptors.items()):
            m = snap.mobiles.get(idx)
            name_style = "bold green" if m else "white"
            desc_table.add_row(
                Text(str(idx), style="bright_black"),
                Text(d.name or "-", style=name_style),
                Text(str(d.type)),
                Text(str(d.pict_id) if d.pict_id else "-"),
                Text(d.colors.hex() or "-", style="bright_black"),
                Text(f"({m.h}, {m.v})" if m else "-"),
                Text(str(m.state) if m else "-"),
            )

        for order, p in enumerate(snap.pictures[:2000]):
            pict_table.add_row(str(order), str(p.pict_id), str(p.h), str(p.v), str(p.plane))


# ---- 3. Summary Panel ----

class SummaryPanel(Vertical):
    """Header fields, analyzer report and anomalies."""

    def compose(self):
        yield Static("Loading...", id="summary-stats")

    def refresh_summary(self, parser: MovieParser, frames: list[MovieFrame], fps: int) -> None:
        stats: Static = self.query_one("#summary-stats", Static)
        head = parser.header
        duration = len(frames) / fps if fps > 0 else 0

        lines = [
            "clMov Inspector",
            f"{'=' * 40}",
            "",
            f"Version:          {parser.version} (raw {head.version})",
            f"Revision:         {head.revision}",
            f"Header Frames:    {head.frames}",
            f"Parsed Frames:    {len(frames)}",
            f"Duration @{fps}fps: {_fmt_elapsed(duration)}",
            "",
            MovieAnalyzer(frames).report(),
            "",
            f"Anomalies:        {len(parser.anomalies)}",
        ]
        for a in parser.anomalies[:20]:
            lines.append(f"  @{a.offset:<8d} {a.kind:<16s} {a.detail}")

        stats.update("\n".join(lines))
