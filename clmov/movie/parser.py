"""
Movie Parser — split a .clMov buffer into frames and prime the session state.

Frames are located by their 0xDEADBEEF signature. When the cursor does not
sit on a signature (garbage between frames, or after a zero-size frame) the
parser scans forward to the next one and carries on; a tail with no further
signature is dropped.

Flag-triggered blocks between a frame header and its payload are decoded in
a fixed order (game state, mobile table, picture table) into the
MovieState, and their raw bytes are kept on the frame as pre_data so the
movie can be written back byte for byte.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from pathlib import Path

from clmov.data.state import MovieState
from clmov.data.tables import PlaneLookup, StateReconstructor, picture_table_size
from clmov.movie.container import load_movie_data, read_zip_bytes
from clmov.protocol.movie_types import (
    FRAME_HEADER_SIZE,
    GAME_STATE_HEADER_SIZE,
    HEADER_SIZE,
    MOVIE_SIGNATURE,
    OLDEST_MOVIE_VERSION,
    SIGNATURE_BYTES,
    TABLE_SENTINEL,
    Anomaly,
    FileHeader,
    FrameFlags,
    FrameHead,
    InvalidFormat,
    MovieFrame,
    Truncated,
    UnsupportedVersion,
)

log = logging.getLogger(__name__)

MAX_PICTURES = 8192
MIN_MOVIE_SIZE = 8


# ---- Configuration ----

@dataclass
class ParserConfig:
    """Parser behavior configuration."""
    # Descriptor layout version for embedded tables (0 = the movie's own version)
    version_hint: int = 0
    # Return the frames before a truncated payload instead of raising Truncated
    partial: bool = False
    # Picture tables claiming more entries than this are skipped
    max_pictures: int = MAX_PICTURES
    # pict_id -> rendering plane, stored on each PictureEntry
    plane_lookup: PlaneLookup | None = None


@dataclass
class BlockResult:
    """What one flag-triggered block handler did."""
    consumed: int = 0
    decoded: bool = False


class MovieParser:
    """Decode movie buffers into frames, updating `state` as blocks are found."""

    def __init__(self, state: MovieState | None = None, config: ParserConfig | None = None):
        self.state = state if state is not None else MovieState()
        self.config = config or ParserConfig()
        self.reconstructor = StateReconstructor(self.state, self.config.plane_lookup)
        self.header: FileHeader | None = None
        self.header_bytes: bytes = b""
        self.header_len: int = HEADER_SIZE
        self.version: int = 0
        self.initial_state: MovieState | None = None
        self.anomalies: list[Anomaly] = []

    @property
    def revision(self) -> int:
        return self.header.revision if self.header else 0

    @property
    def layout_version(self) -> int:
        return self.config.version_hint or self.version

    def parse(self, data: bytes) -> list[MovieFrame]:
        """Decode every frame in `data`.

        Raises InvalidFormat, UnsupportedVersion, or Truncated (unless
        config.partial is set).
        """
        data = bytes(data)
        self.anomalies = []
        self._read_header(data)
        self.state.reset()

        frames: list[MovieFrame] = []
        try:
            self._scan_frames(data, frames)
        finally:
            self.initial_state = self.state.clone()
        return frames

    # ---- Header ----

    def _read_header(self, data: bytes) -> None:
        if len(data) < MIN_MOVIE_SIZE:
            raise InvalidFormat("short file")
        header = FileHeader.unpack(data)
        if header.signature != MOVIE_SIGNATURE:
            raise InvalidFormat(f"bad signature 0x{header.signature:08x}")

        version = header.normalized_version
        if version < OLDEST_MOVIE_VERSION:
            raise UnsupportedVersion(version)

        header_len = header.header_len
        if header_len <= 0 or header_len > len(data):
            header_len = HEADER_SIZE

        self.header = header
        self.version = version
        self.header_len = header_len
        self.header_bytes = data[:header_len]
        log.debug("movie version %d.%d headerLen %d", version, header.revision, header_len)
        if self.config.version_hint and self.config.version_hint != version:
            log.debug("descriptor layout forced to version %d", self.config.version_hint)

    # ---- Frames ----

    def _scan_frames(self, data: bytes, frames: list[MovieFrame]) -> None:
        pos = self.header_len
        last_index: int | None = None

        while pos + FRAME_HEADER_SIZE <= len(data):
            if data[pos:pos + 4] != SIGNATURE_BYTES:
                found = data.find(SIGNATURE_BYTES, pos)
                if found < 0:
                    self._anomaly(pos, "trailing", f"{len(data) - pos} bytes without a frame signature")
                    break
                self._anomaly(pos, "resync", f"skipped {found - pos} bytes", skipped=found - pos)
                pos = found
                continue

            head = FrameHead.unpack_from(data, pos)
            if last_index is not None and head.index != last_index + 1:
                self._anomaly(pos, "frame_gap", f"frame gap: {last_index} -> {head.index}")
            last_index = head.index
            pos += FRAME_HEADER_SIZE

            pre_start = pos
            if head.flags & FrameFlags.GAME_STATE:
                pos += self._read_game_state(data, pos).consumed
            if head.flags & FrameFlags.MOBILE_DATA:
                pos += self._read_mobile_table(data, pos).consumed
            if head.flags & FrameFlags.PICTURE_TABLE:
                pos += self._read_picture_table(data, pos).consumed
            pre_data = data[pre_start:pos]

            if head.size > 0:
                if pos + head.size > len(data):
                    message = (
                        f"frame {head.index} wants {head.size} bytes at offset {pos}, "
                        f"{len(data) - pos} left"
                    )
                    if not self.config.partial:
                        raise Truncated(message, frames=list(frames), offset=pos)
                    log.warning("truncated movie: %s", message)
                    break
                frames.append(MovieFrame(
                    index=head.index, flags=head.flags,
                    data=data[pos:pos + head.size], pre_data=pre_data,
                ))
                pos += head.size
            else:
                frames.append(MovieFrame(index=head.index, flags=head.flags, pre_data=pre_data))
                found = data.find(SIGNATURE_BYTES, pos)
                if found < 0:
                    if pos < len(data):
                        self._anomaly(pos, "trailing", f"{len(data) - pos} bytes without a frame signature")
                    break
                if found > pos:
                    self._anomaly(pos, "resync", f"skipped {found - pos} bytes", skipped=found - pos)
                pos = found

    # ---- Block handlers ----

    def _read_game_state(self, data: bytes, pos: int) -> BlockResult:
        """[left:4][right:4][mode:4][max_size:4][cur_size:4][expected:4][payload:max_size]"""
        if pos + GAME_STATE_HEADER_SIZE > len(data):
            self._anomaly(pos, "game_state_size", "game state header past end of file")
            return BlockResult()
        max_size = struct.unpack_from(">I", data, pos + 12)[0]
        start = pos + GAME_STATE_HEADER_SIZE
        end = start + max_size
        if end > len(data):
            self._anomaly(pos, "game_state_size", f"game state size {max_size} past end of file")
            return BlockResult()
        self.reconstructor.apply_game_state(data[start:end], self.layout_version)
        return BlockResult(consumed=end - pos, decoded=True)

    def _read_mobile_table(self, data: bytes, pos: int) -> BlockResult:
        # Only trust the flag if a table terminator exists somewhere ahead.
        if data.find(TABLE_SENTINEL, pos) < 0:
            self._anomaly(pos, "mobile_probe", "mobile table flag without a terminator")
            return BlockResult()
        end = self.reconstructor.apply_mobile_table(data, self.layout_version, pos)
        return BlockResult(consumed=end - pos, decoded=True)

    def _read_picture_table(self, data: bytes, pos: int) -> BlockResult:
        if pos + 2 > len(data):
            self._anomaly(pos, "picture_table", "picture table past end of file")
            return BlockResult()
        count = struct.unpack_from(">H", data, pos)[0]
        if count > self.config.max_pictures or pos + picture_table_size(count) > len(data):
            self._anomaly(pos, "picture_table", f"picture table of {count} entries does not fit")
            return BlockResult()
        pictures, end = self.reconstructor.decode_picture_table(data, pos)
        self.state.set_pictures(pictures)
        return BlockResult(consumed=end - pos, decoded=True)

    def _anomaly(self, offset: int, kind: str, detail: str, **extra) -> None:
        self.anomalies.append(Anomaly(offset=offset, kind=kind, detail=detail, extra=extra))
        log.warning("movie anomaly at offset %d (%s): %s", offset, kind, detail)


# ---- Convenience entry points ----

def parse_movie_data(
    data: bytes,
    version_hint: int = 0,
    state: MovieState | None = None,
    partial: bool = False,
) -> list[MovieFrame]:
    """Parse an in-memory movie. `state` (if given) receives the decoded blocks."""
    parser = MovieParser(state, ParserConfig(version_hint=version_hint, partial=partial))
    return parser.parse(data)


def parse_movie(
    path: str | Path,
    version_hint: int = 0,
    state: MovieState | None = None,
    partial: bool = False,
) -> list[MovieFrame]:
    """Parse a .clMov file, or the movie inside a .zip archive."""
    return parse_movie_data(load_movie_data(path), version_hint, state, partial)


def parse_movie_zip_bytes(
    zip_data: bytes,
    version_hint: int = 0,
    state: MovieState | None = None,
    partial: bool = False,
) -> list[MovieFrame]:
    """Parse the movie held in an in-memory zip archive."""
    return parse_movie_data(read_zip_bytes(zip_data), version_hint, state, partial)
