"""
Movie Analyzer — statistics over a parsed frame sequence.

Used by the CLI and the dashboard to summarize a movie:
1. Flag usage: which frames carry which blocks
2. Size distribution of payloads
3. Index gaps (dropped or reordered frames)
4. Message tags: first two payload bytes, big-endian (2 = draw state)
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass

from clmov.protocol.movie_types import FrameFlags, MovieFrame

DRAW_STATE_TAG = 2


@dataclass
class FrameGap:
    """Two consecutive frames whose indices are not sequential."""
    position: int  # position in the frame list of the second frame
    before: int
    after: int

    @property
    def missing(self) -> int:
        return self.after - self.before - 1

    def __repr__(self) -> str:
        return f"FrameGap(@{self.position}: {self.before} -> {self.after})"


class MovieAnalyzer:
    """Analyze parsed frames."""

    def __init__(self, frames: list[MovieFrame]):
        self.frames = frames

    def by_flag(self, flag: FrameFlags) -> list[MovieFrame]:
        return [f for f in self.frames if f.flags & flag]

    def block_carriers(self) -> list[MovieFrame]:
        """Zero-size frames that only carry blocks."""
        return [f for f in self.frames if f.is_block_carrier]

    def size_distribution(self) -> dict[int, int]:
        """Count frames by payload size."""
        counter = Counter(f.size for f in self.frames)
        return dict(sorted(counter.items()))

    def flag_counts(self) -> dict[str, int]:
        counter: Counter = Counter()
        for f in self.frames:
            for name in f.flag_names():
                counter[name] += 1
        return dict(counter)

    def tag_distribution(self) -> dict[int, int]:
        """Count payload frames by their 2-byte message tag."""
        counter = Counter(
            int.from_bytes(f.data[:2], "big") for f in self.frames if len(f.data) >= 2
        )
        return dict(sorted(counter.items()))

    def find_gaps(self) -> list[FrameGap]:
        gaps = []
        for i in range(1, len(self.frames)):
            before = self.frames[i - 1].index
            after = self.frames[i].index
            if after != before + 1:
                gaps.append(FrameGap(position=i, before=before, after=after))
        return gaps

    def payload_bytes(self) -> int:
        return sum(f.size for f in self.frames)

    def block_bytes(self) -> int:
        return sum(len(f.pre_data) for f in self.frames)

    def diff_frames(self, a: MovieFrame, b: MovieFrame) -> list[tuple[int, int, int]]:
        """Byte-level payload diff. Returns [(offset, byte_a, byte_b), ...].

        A length difference is reported as (-1, len_a, len_b).
        """
        diffs = [
            (i, x, y) for i, (x, y) in enumerate(zip(a.data, b.data)) if x != y
        ]
        if len(a.data) != len(b.data):
            diffs.append((-1, len(a.data), len(b.data)))
        return diffs

    def summary(self) -> dict:
        return {
            "frames": len(self.frames),
            "first_index": self.frames[0].index if self.frames else None,
            "last_index": self.frames[-1].index if self.frames else None,
            "payload_bytes": self.payload_bytes(),
            "block_bytes": self.block_bytes(),
            "block_carriers": len(self.block_carriers()),
            "draw_state_frames": self.tag_distribution().get(DRAW_STATE_TAG, 0),
            "gaps": len(self.find_gaps()),
            "flags": self.flag_counts(),
        }

    def report(self) -> str:
        """Generate a human-readable analysis report."""
        if not self.frames:
            return "No frames to analyze."

        s = self.summary()
        lines = [
            "=== Movie Analysis Report ===",
            f"Frames: {s['frames']} (#{s['first_index']} .. #{s['last_index']})",
            f"Payload: {s['payload_bytes']} bytes, blocks: {s['block_bytes']} bytes",
            "",
            "Flags:",
        ]
        for name, count in sorted(s["flags"].items()):
            lines.append(f"  {name:<15s} {count:>6d}")
        lines.append("")

        lines.append("Size Distribution (top 10):")
        sizes = self.size_distribution()
        for size, count in sorted(sizes.items(), key=lambda x: -x[1])[:10]:
            bar = "#" * min(count, 40)
            lines.append(f"  {size:>5} bytes: {count:>5}x {bar}")
        lines.append("")

        gaps = self.find_gaps()
        if gaps:
            lines.append(f"Index gaps: {len(gaps)}")
            for g in gaps[:10]:
                lines.append(f"  {g.before} -> {g.after} ({g.missing} missing)")
        else:
            lines.append("No index gaps")

        return "\n".join(lines)
