"""
Movie Types — wire constants, header/frame records and codec errors.

All multi-byte fields are big-endian.

File header (24 bytes by default):
  [signature:4][version:2][header_len:2][frames:4][start_time:4][revision:4][oldest_reader:4]

Frame:
  [signature:4][index:4][size:2][flags:2][flag-triggered blocks][payload:size]
"""

from __future__ import annotations

import struct
import time
from dataclasses import dataclass, field
from enum import IntFlag


MOVIE_SIGNATURE = 0xDEADBEEF
SIGNATURE_BYTES = b"\xde\xad\xbe\xef"
TABLE_SENTINEL = b"\xff\xff\xff\xff"

OLDEST_MOVIE_VERSION = 193
# One fork stores versions 100x larger.
SCALED_VERSION_THRESHOLD = 50000

HEADER_SIZE = 24
FRAME_HEADER_SIZE = 12
GAME_STATE_HEADER_SIZE = 24

# Seconds between 1904-01-01 and 1970-01-01.
MAC_EPOCH_DELTA = 2082844800
DEFAULT_OLDEST_READER = (353 << 8) + 0

_HEADER_STRUCT = struct.Struct(">IHHiIii")
_FRAME_STRUCT = struct.Struct(">IiHH")


class FrameFlags(IntFlag):
    NONE = 0
    STALE = 0x01
    MOBILE_DATA = 0x02
    GAME_STATE = 0x04
    PICTURE_TABLE = 0x08


# Flags that announce bytes between the frame header and the payload.
BLOCK_FLAGS = int(FrameFlags.MOBILE_DATA | FrameFlags.GAME_STATE | FrameFlags.PICTURE_TABLE)


# ---- Errors ----

class MovieError(Exception):
    """Base class for movie codec failures."""


class InvalidFormat(MovieError):
    """Buffer is too short or does not start with the movie signature."""


class UnsupportedVersion(MovieError):
    """Movie version is older than OLDEST_MOVIE_VERSION."""

    def __init__(self, version: int):
        super().__init__(f"movie version too old: {version}")
        self.version = version


class Truncated(MovieError):
    """A frame declared more payload than the buffer holds.

    `frames` holds every frame decoded before the truncated one.
    """

    def __init__(self, message: str, frames: list[MovieFrame], offset: int):
        super().__init__(message)
        self.frames = frames
        self.offset = offset


# ---- Records ----

def mac_timestamp(unix_ts: float | None = None) -> int:
    """Convert a Unix timestamp (default: now) to 1904-epoch seconds."""
    if unix_ts is None:
        unix_ts = time.time()
    return (int(unix_ts) + MAC_EPOCH_DELTA) & 0xFFFFFFFF


@dataclass
class FileHeader:
    """Movie file header."""
    signature: int = MOVIE_SIGNATURE
    version: int = 0
    header_len: int = HEADER_SIZE
    frames: int = 0
    start_time: int = 0
    revision: int = 0
    oldest_reader: int = DEFAULT_OLDEST_READER

    @property
    def normalized_version(self) -> int:
        if self.version > SCALED_VERSION_THRESHOLD:
            return self.version // 100
        return self.version

    @property
    def unix_start_time(self) -> int:
        return self.start_time - MAC_EPOCH_DELTA

    def pack(self) -> bytes:
        return _HEADER_STRUCT.pack(
            self.signature & 0xFFFFFFFF,
            self.version & 0xFFFF,
            self.header_len & 0xFFFF,
            _to_i32(self.frames),
            self.start_time & 0xFFFFFFFF,
            _to_i32(self.revision),
            _to_i32(self.oldest_reader),
        )

    @classmethod
    def unpack(cls, data: bytes) -> FileHeader:
        """Read a header from the start of `data`.

        Fields past the end of a short buffer read as zero.
        """
        raw = bytes(data[:HEADER_SIZE]).ljust(HEADER_SIZE, b"\x00")
        return cls(*_HEADER_STRUCT.unpack(raw))


@dataclass
class FrameHead:
    """The fixed 12-byte header in front of every frame."""
    index: int
    size: int
    flags: int
    signature: int = MOVIE_SIGNATURE

    def pack(self) -> bytes:
        return _FRAME_STRUCT.pack(
            self.signature & 0xFFFFFFFF, _to_i32(self.index),
            self.size & 0xFFFF, self.flags & 0xFFFF,
        )

    @classmethod
    def unpack_from(cls, data: bytes, offset: int = 0) -> FrameHead:
        signature, index, size, flags = _FRAME_STRUCT.unpack_from(data, offset)
        return cls(index=index, size=size, flags=flags, signature=signature)


@dataclass
class MovieFrame:
    """One decoded frame.

    pre_data holds the raw bytes of the flag-triggered blocks that sat
    between the frame header and the payload. It is not counted in the
    frame's size field but must be written back for an exact copy.
    """
    index: int
    flags: int
    data: bytes = b""
    pre_data: bytes = b""

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def is_block_carrier(self) -> bool:
        return not self.data

    def has_flag(self, flag: FrameFlags) -> bool:
        return bool(self.flags & flag)

    def flag_names(self) -> list[str]:
        return [f.name for f in FrameFlags if f and self.flags & f]

    def encode(self) -> bytes:
        head = FrameHead(index=self.index, size=len(self.data), flags=self.flags)
        return head.pack() + self.pre_data + self.data

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "flags": self.flags,
            "flag_names": self.flag_names(),
            "size": self.size,
            "pre_data_size": len(self.pre_data),
        }

    def __repr__(self) -> str:
        names = "|".join(self.flag_names()) or "-"
        return f"MovieFrame(#{self.index} {self.size}b flags={names} pre={len(self.pre_data)}b)"


@dataclass
class Anomaly:
    """A non-fatal structural problem found while parsing."""
    offset: int
    kind: str  # "resync", "trailing", "frame_gap", "game_state_size", "mobile_probe", "picture_table"
    detail: str = ""
    extra: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"offset": self.offset, "kind": self.kind, "detail": self.detail, **self.extra}


def _to_i32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value
