"""
clmov — Session Snapshot

Running picture of the session reconstructed from movie blocks:
- descriptors: who is on screen (name, picture, colors) keyed by 8-bit index
- mobiles: where they stand, keyed by the same index
- pictures: the picture table, kept in on-disk order

One MovieState is owned by each parse or recording session. Every access goes
through its lock; subscribers registered with on_update() are notified after
the lock has been released.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable

log = logging.getLogger(__name__)


# ---- Data classes ----

@dataclass(frozen=True)
class PictureEntry:
    """One placed picture from a picture table."""
    pict_id: int
    h: int
    v: int
    plane: int = 0  # from the plane lookup, not on the wire


@dataclass(frozen=True)
class MobileEntry:
    """A mobile's position and animation state."""
    index: int
    state: int = 0
    h: int = 0
    v: int = 0
    colors: int = 0


@dataclass(frozen=True)
class DescriptorEntry:
    """Appearance of a mobile: picture, colors and name."""
    index: int
    type: int = 0
    pict_id: int = 0  # 0 = no picture
    colors: bytes = b""
    name: str = ""


# Callback type: called with (event_type, data_dict)
# event_type: "appearance", "info_request", "info_text", "pictures", "reset"
UpdateCallback = Callable[[str, dict], None]


class MovieState:
    """Descriptors, mobiles and pictures for one session."""

    def __init__(self):
        self.descriptors: dict[int, DescriptorEntry] = {}
        self.mobiles: dict[int, MobileEntry] = {}
        self.pictures: list[PictureEntry] = []
        self._lock = threading.Lock()
        self._callbacks: list[UpdateCallback] = []

    @property
    def lock(self) -> threading.Lock:
        return self._lock

    def on_update(self, callback: UpdateCallback) -> None:
        """Subscribe to state changes."""
        self._callbacks.append(callback)

    def notify(self, event_type: str, data: dict) -> None:
        """Deliver an event to subscribers. Must not be called under the lock."""
        for cb in self._callbacks:
            try:
                cb(event_type, data)
            except Exception:
                log.exception("update callback failed for %s", event_type)

    # ---- Mutation ----

    def reset(self) -> None:
        """Drop everything decoded so far."""
        with self._lock:
            self.descriptors = {}
            self.mobiles = {}
            self.pictures = []
        self.notify("reset", {})

    def set_pictures(self, pictures: list[PictureEntry]) -> None:
        """Replace the picture table (no merging)."""
        with self._lock:
            self.pictures = list(pictures)
        self.notify("pictures", {"count": len(pictures)})

    def put(self, descriptor: DescriptorEntry, mobile: MobileEntry | None = None) -> None:
        """Store a descriptor and optional mobile, replacing older entries for the index."""
        with self._lock:
            if mobile is not None:
                self.mobiles[mobile.index] = mobile
            self.descriptors[descriptor.index] = descriptor

    def restore(self, other: MovieState) -> None:
        """Overwrite this state with a copy of `other` (used to rewind playback)."""
        snap = other.clone()
        with self._lock:
            self.descriptors = snap.descriptors
            self.mobiles = snap.mobiles
            self.pictures = snap.pictures

    # ---- Reading ----

    def clone(self) -> MovieState:
        """Deep copy of the entries. Subscribers are not copied."""
        out = MovieState()
        with self._lock:
            # Entries are frozen, copying the containers is enough.
            out.descriptors = dict(self.descriptors)
            out.mobiles = dict(self.mobiles)
            out.pictures = list(self.pictures)
        return out

    def get_descriptor(self, index: int) -> DescriptorEntry | None:
        with self._lock:
            return self.descriptors.get(index)

    def get_mobile(self, index: int) -> MobileEntry | None:
        with self._lock:
            return self.mobiles.get(index)

    def get_pictures(self) -> list[PictureEntry]:
        with self._lock:
            return list(self.pictures)

    def find_by_name(self, name: str) -> DescriptorEntry | None:
        """Case-insensitive descriptor lookup by name."""
        wanted = name.lower()
        with self._lock:
            for d in self.descriptors.values():
                if d.name.lower() == wanted:
                    return d
        return None

    def counts(self) -> dict[str, int]:
        with self._lock:
            return {
                "descriptors": len(self.descriptors),
                "mobiles": len(self.mobiles),
                "pictures": len(self.pictures),
            }

    def to_dict(self) -> dict:
        with self._lock:
            return {
                "descriptors": [
                    {
                        "index": d.index,
                        "type": d.type,
                        "pict_id": d.pict_id,
                        "colors": d.colors.hex(),
                        "name": d.name,
                    }
                    for _, d in sorted(self.descriptors.items())
                ],
                "mobiles": [
                    {"index": m.index, "state": m.state, "h": m.h, "v": m.v, "colors": m.colors}
                    for _, m in sorted(self.mobiles.items())
                ],
                "pictures": [
                    {"pict_id": p.pict_id, "h": p.h, "v": p.v, "plane": p.plane}
                    for p in self.pictures
                ],
            }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MovieState):
            return NotImplemented
        a, b = self.clone(), other.clone()
        return (
            a.descriptors == b.descriptors
            and a.mobiles == b.mobiles
            and a.pictures == b.pictures
        )
