"""
Round-trip Verification — parse a movie, re-encode it, compare bytes.

A diagnostic, not a repair tool: a mismatch reports where the copies
diverge and nothing else.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from clmov.movie.container import load_movie_data
from clmov.movie.parser import MovieParser, ParserConfig
from clmov.protocol.movie_types import MovieError, MovieFrame

log = logging.getLogger(__name__)


class VerifyMismatch(MovieError):
    """Re-encoded bytes differ from the original."""

    def __init__(self, offset: int, encoded_len: int, original_len: int):
        super().__init__(
            f"mismatch at offset {offset} (encLen={encoded_len} origLen={original_len})"
        )
        self.offset = offset
        self.encoded_len = encoded_len
        self.original_len = original_len


def encode_movie(header_bytes: bytes, frames: Iterable[MovieFrame]) -> bytes:
    """Header bytes followed by each frame: 12-byte header, pre_data, payload."""
    out = bytearray(header_bytes)
    for fr in frames:
        out += fr.encode()
    return bytes(out)


def first_difference(a: bytes, b: bytes) -> int | None:
    """Offset of the first differing byte, or None if equal.

    When one buffer is a prefix of the other, the shorter length is returned.
    """
    if a == b:
        return None
    limit = min(len(a), len(b))
    for i in range(limit):
        if a[i] != b[i]:
            return i
    return limit


def verify_movie_data(data: bytes, version_hint: int = 0) -> list[MovieFrame]:
    """Check that `data` re-encodes to itself. Returns the parsed frames."""
    parser = MovieParser(config=ParserConfig(version_hint=version_hint))
    frames = parser.parse(data)
    encoded = encode_movie(parser.header_bytes, frames)
    offset = first_difference(encoded, data)
    if offset is not None:
        raise VerifyMismatch(offset, len(encoded), len(data))
    log.debug("round trip ok: %d frames, %d bytes", len(frames), len(data))
    return frames


def verify_movie(path: str | Path, version_hint: int = 0) -> list[MovieFrame]:
    """verify_movie_data() on a file (or the movie inside a .zip)."""
    return verify_movie_data(load_movie_data(path), version_hint)
