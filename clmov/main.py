"""
clmov — Movie Tool Entry Point

Usage:
    python -m clmov.main info movie.clMov            # header, frame stats, anomalies
    python -m clmov.main verify a.clMov b.clMov.zip  # byte-exact round trip check
    python -m clmov.main state movie.clMov --json    # snapshot after parsing
    python -m clmov.main copy in.clMov out.clMov     # re-record through MovieRecorder
    python -m clmov.main zip movie.clMov             # wrap in movie.clMov.zip
    python -m clmov.main view movie.clMov            # terminal inspector
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path

from rich.console import Console
from rich.table import Table

from clmov.data.state import MovieState
from clmov.movie.container import compress_zip, load_movie_data
from clmov.movie.parser import MovieParser, ParserConfig
from clmov.movie.recorder import MovieRecorder
from clmov.movie.verify import verify_movie
from clmov.protocol.analyzer import MovieAnalyzer
from clmov.protocol.movie_types import MovieError

log = logging.getLogger("clmov")

console = Console()


def _parse(path: str, args: argparse.Namespace) -> tuple[MovieParser, list]:
    config = ParserConfig(version_hint=args.version_hint, partial=args.partial)
    parser = MovieParser(config=config)
    frames = parser.parse(load_movie_data(path))
    return parser, frames


def cmd_info(args: argparse.Namespace) -> int:
    parser, frames = _parse(args.movie, args)
    head = parser.header

    table = Table(title=Path(args.movie).name, show_header=False)
    table.add_column("field", style="bold")
    table.add_column("value")
    started = time.strftime("%Y-%m-%d %H:%M:%S", time.gmtime(max(head.unix_start_time, 0)))
    table.add_row("version", f"{parser.version} (raw {head.version})")
    table.add_row("revision", str(head.revision))
    table.add_row("header length", str(parser.header_len))
    table.add_row("frames (header)", str(head.frames))
    table.add_row("frames (parsed)", str(len(frames)))
    table.add_row("started", f"{started} UTC")
    table.add_row("oldest reader", f"0x{head.oldest_reader:x}")
    console.print(table)

    analyzer = MovieAnalyzer(frames)
    console.print(analyzer.report())

    counts = parser.initial_state.counts()
    console.print(
        f"Initial state: {counts['descriptors']} descriptors, "
        f"{counts['mobiles']} mobiles, {counts['pictures']} pictures"
    )
    if parser.anomalies:
        console.print(f"[yellow]{len(parser.anomalies)} anomalies[/yellow]")
        for a in parser.anomalies[:20]:
            console.print(f"  @{a.offset:<8d} {a.kind:<16s} {a.detail}")
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    failed = 0
    for path in args.movies:
        try:
            frames = verify_movie(path, args.version_hint)
        except MovieError as e:
            failed += 1
            console.print(f"[red]FAIL[/red] {path}: {e}")
            continue
        console.print(f"[green]OK[/green]   {path} ({len(frames)} frames)")
    return 1 if failed else 0


def cmd_state(args: argparse.Namespace) -> int:
    parser, _frames = _parse(args.movie, args)
    state: MovieState = parser.initial_state

    if args.json:
        print(json.dumps(state.to_dict(), indent=2))
        return 0

    data = state.to_dict()
    descs = Table(title="Descriptors")
    for col in ("#", "Name", "Type", "Pict", "Colors"):
        descs.add_column(col)
    for d in data["descriptors"]:
        descs.add_row(str(d["index"]), d["name"], str(d["type"]), str(d["pict_id"]), d["colors"])
    console.print(descs)

    mobs = Table(title="Mobiles")
    for col in ("#", "State", "Position", "Colors"):
        mobs.add_column(col)
    for m in data["mobiles"]:
        mobs.add_row(str(m["index"]), str(m["state"]), f"({m['h']}, {m['v']})", str(m["colors"]))
    console.print(mobs)

    console.print(f"Pictures: {len(data['pictures'])}")
    for p in data["pictures"][:args.max_pictures]:
        console.print(f"  {p['pict_id']:>5d} at ({p['h']}, {p['v']}) plane {p['plane']}")
    return 0


def cmd_copy(args: argparse.Namespace) -> int:
    parser, frames = _parse(args.movie, args)
    head = parser.header
    recorder = MovieRecorder.open(
        args.output, head.version, head.revision,
        start_time=head.start_time, oldest_reader=head.oldest_reader,
    )
    with recorder:
        recorder.write_movie_frames(frames)
    console.print(f"Wrote {recorder.frame_count} frames to {args.output}")
    return 0


def cmd_zip(args: argparse.Namespace) -> int:
    src = Path(args.movie)
    dst = Path(args.output) if args.output else src.with_name(src.name + ".zip")
    compress_zip(src, dst)
    console.print(f"Compressed: {dst}")
    return 0


def cmd_view(args: argparse.Namespace) -> int:
    from clmov.dashboard.app import MovieDashboard

    app = MovieDashboard(args.movie, version_hint=args.version_hint, fps=args.fps)
    app.run()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="clMov movie codec tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Enable debug logging")
    parser.add_argument("--version-hint", type=int, default=0,
                        help="Descriptor layout version for embedded tables (0 = movie version)")
    parser.add_argument("--partial", action="store_true",
                        help="Keep frames decoded before a truncated payload")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("info", help="Show header and frame statistics")
    p.add_argument("movie")
    p.set_defaults(func=cmd_info)

    p = sub.add_parser("verify", help="Check byte-exact round trip")
    p.add_argument("movies", nargs="+")
    p.set_defaults(func=cmd_verify)

    p = sub.add_parser("state", help="Show the snapshot reconstructed from a movie")
    p.add_argument("movie")
    p.add_argument("--json", action="store_true", help="Print JSON instead of tables")
    p.add_argument("--max-pictures", type=int, default=50,
                   help="Pictures to list (default: 50)")
    p.set_defaults(func=cmd_state)

    p = sub.add_parser("copy", help="Re-record a movie through the recorder")
    p.add_argument("movie")
    p.add_argument("output")
    p.set_defaults(func=cmd_copy)

    p = sub.add_parser("zip", help="Compress a movie into a zip archive")
    p.add_argument("movie")
    p.add_argument("output", nargs="?", default=None)
    p.set_defaults(func=cmd_zip)

    p = sub.add_parser("view", help="Open the terminal inspector")
    p.add_argument("movie")
    p.add_argument("--fps", type=int, default=5, help="Playback frames per second (default: 5)")
    p.set_defaults(func=cmd_view)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        return args.func(args)
    except MovieError as e:
        log.error("%s", e)
        return 1
    except OSError as e:
        log.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
