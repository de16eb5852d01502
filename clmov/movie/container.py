"""
Movie Container — raw .clMov files and single-movie zip archives.
"""

from __future__ import annotations

import io
import zipfile
from pathlib import Path

from clmov.protocol.movie_types import InvalidFormat

MOVIE_EXTENSION = ".clmov"


def extract_movie_from_zip(zf: zipfile.ZipFile) -> bytes:
    """Return the first member named *.clMov, or the first member at all."""
    infos = zf.infolist()
    if not infos:
        raise InvalidFormat("no files in archive")
    target = next(
        (info for info in infos if info.filename.lower().endswith(MOVIE_EXTENSION)),
        infos[0],
    )
    return zf.read(target)


def read_zip_bytes(zip_data: bytes) -> bytes:
    """Extract the movie from an in-memory zip archive."""
    try:
        with zipfile.ZipFile(io.BytesIO(zip_data)) as zf:
            return extract_movie_from_zip(zf)
    except zipfile.BadZipFile as e:
        raise InvalidFormat(f"bad zip archive: {e}") from e


def load_movie_data(path: str | Path) -> bytes:
    """Read a movie from disk, unwrapping it if the path ends in .zip."""
    path = Path(path)
    if path.suffix.lower() == ".zip":
        try:
            with zipfile.ZipFile(path) as zf:
                return extract_movie_from_zip(zf)
        except zipfile.BadZipFile as e:
            raise InvalidFormat(f"bad zip archive: {e}") from e
    return path.read_bytes()


def compress_zip(src: str | Path, dst: str | Path) -> Path:
    """Write a zip archive at `dst` holding `src` as its only (deflated) member."""
    src = Path(src)
    dst = Path(dst)
    dst.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(dst, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.write(src, arcname=src.name)
    return dst
