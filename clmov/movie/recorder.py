"""
Movie Recorder — write frames to a new .clMov file.

The header is written when the file is opened and rewritten by close()
with the final frame count. A file that is never closed keeps the frame
count from creation time (zero).

Blocks (game state, mobile table, picture table) go either
- in front of the next payload frame: add_block() then write_frame(), or
- into their own zero-size frame: write_block().
"""

from __future__ import annotations

import logging
import struct
from pathlib import Path
from typing import BinaryIO, Iterable

from clmov.protocol.movie_types import (
    BLOCK_FLAGS,
    DEFAULT_OLDEST_READER,
    HEADER_SIZE,
    FileHeader,
    FrameHead,
    MovieFrame,
    mac_timestamp,
)

log = logging.getLogger(__name__)

MAX_FRAME_SIZE = 0xFFFF


def game_state_block(
    left_pict_id: int,
    right_pict_id: int,
    mode: int,
    max_size: int,
    cur_size: int,
    expected_size: int,
    payload: bytes,
) -> bytes:
    """Prefix a game state payload with its 24-byte block header."""
    head = struct.pack(
        ">IIIIII",
        left_pict_id & 0xFFFFFFFF,
        right_pict_id & 0xFFFFFFFF,
        mode & 0xFFFFFFFF,
        max_size & 0xFFFFFFFF,
        cur_size & 0xFFFFFFFF,
        expected_size & 0xFFFFFFFF,
    )
    return head + bytes(payload)


class MovieRecorder:
    """Appends frames to a movie file it exclusively owns."""

    def __init__(self, f: BinaryIO, header: FileHeader, path: Path | None = None):
        self._f: BinaryIO | None = f
        self.head = header
        self.path = path
        # Pending pre-frame blocks, not counted in the next frame's size field.
        self._pre_data = bytearray()
        self._pre_flags = 0

    @classmethod
    def open(
        cls,
        path: str | Path,
        version: int,
        revision: int,
        start_time: int | None = None,
        oldest_reader: int = DEFAULT_OLDEST_READER,
    ) -> MovieRecorder:
        """Create (or truncate) `path` and write a fresh header."""
        path = Path(path)
        header = FileHeader(
            version=version,
            header_len=HEADER_SIZE,
            frames=0,
            start_time=start_time if start_time is not None else mac_timestamp(),
            revision=revision,
            oldest_reader=oldest_reader,
        )
        f = open(path, "w+b")
        recorder = cls(f, header, path)
        try:
            recorder.write_header()
        except OSError:
            f.close()
            raise
        log.info("recording movie to %s (version %d, revision %d)", path, version, revision)
        return recorder

    @property
    def closed(self) -> bool:
        return self._f is None

    @property
    def frame_count(self) -> int:
        return self.head.frames

    def _file(self) -> BinaryIO:
        if self._f is None:
            raise ValueError("recorder is closed")
        return self._f

    def write_header(self) -> None:
        """Write the header at offset 0, leaving the file positioned at its end."""
        f = self._file()
        f.seek(0)
        f.write(self.head.pack())
        f.seek(0, 2)
        f.flush()

    def add_block(self, data: bytes, flag: int) -> None:
        """Stage a block to be written in front of the next frame's payload."""
        if not data:
            return
        self._pre_data.extend(data)
        self._pre_flags |= int(flag)

    def write_frame(self, data: bytes, flags: int) -> None:
        """Write one payload frame, merging any staged blocks and their flags."""
        f = self._file()
        if len(data) > MAX_FRAME_SIZE:
            raise ValueError(f"frame payload of {len(data)} bytes exceeds {MAX_FRAME_SIZE}")
        head = FrameHead(index=self.head.frames, size=len(data), flags=int(flags) | self._pre_flags)
        self.head.frames += 1
        f.write(head.pack())
        if self._pre_data:
            f.write(bytes(self._pre_data))
            self._pre_data.clear()
            self._pre_flags = 0
        f.write(data)

    def write_block(self, data: bytes, flag: int) -> None:
        """Write a block in its own zero-size frame. Empty data writes nothing."""
        if not data:
            return
        f = self._file()
        head = FrameHead(index=self.head.frames, size=0, flags=flag)
        self.head.frames += 1
        f.write(head.pack())
        f.write(data)

    def write_movie_frames(self, frames: Iterable[MovieFrame]) -> None:
        """Re-record parsed frames in order.

        Zero-size frames become write_block() calls, the rest carry their
        pre_data through add_block(). Frame indices are renumbered from the
        recorder's counter. Flags are written back unchanged, including block
        flags whose block the parser skipped.
        """
        for fr in frames:
            if not fr.data:
                if fr.pre_data:
                    self.write_block(fr.pre_data, fr.flags)
                else:
                    self.write_frame(b"", fr.flags)
                continue
            if fr.pre_data:
                self.add_block(fr.pre_data, fr.flags & BLOCK_FLAGS)
            self.write_frame(fr.data, fr.flags)

    def close(self) -> None:
        """Rewrite the header with the final frame count and release the file."""
        if self._f is None:
            return
        f = self._f
        try:
            self.write_header()
        finally:
            self._f = None
            f.close()
        log.info("movie closed: %d frames", self.head.frames)

    def __enter__(self) -> MovieRecorder:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
