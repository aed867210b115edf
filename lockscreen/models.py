"""
Value types shared by the lockscreen sync components.

Dependencies: errors
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from typing import Any, Optional, Tuple

from .errors import InvalidRequest


@dataclass(frozen=True)
class NowPlayingSnapshot:
    """Immutable bundle of now-playing fields at one instant."""
    title: str
    artist: str
    album: str = ""
    artwork_url: Optional[str] = None
    is_playing: bool = False
    duration_ms: Optional[int] = None
    position_ms: Optional[int] = None

    @classmethod
    def from_request(
        cls,
        title: Any,
        artist: Any,
        is_playing: Any,
        artwork_url: Any = None,
        album: Any = None,
        duration_ms: Any = None,
        position_ms: Any = None,
    ) -> "NowPlayingSnapshot":
        """Validate raw request fields and build a snapshot, or raise InvalidRequest."""
        if not isinstance(title, str):
            raise InvalidRequest("title is required and must be a string")
        if not isinstance(artist, str):
            raise InvalidRequest("artist is required and must be a string")
        if not isinstance(is_playing, bool):
            raise InvalidRequest("isPlaying is required and must be a boolean")
        if artwork_url is not None and not isinstance(artwork_url, str):
            raise InvalidRequest("artworkUrl must be a string")
        if album is not None and not isinstance(album, str):
            raise InvalidRequest("album must be a string")
        for name, value in (("durationMs", duration_ms), ("positionMs", position_ms)):
            # bool is an int subclass, reject it explicitly
            if value is not None and (isinstance(value, bool) or not isinstance(value, int) or value < 0):
                raise InvalidRequest(f"{name} must be a non-negative integer")

        return cls(
            title=title,
            artist=artist,
            album=album or "",
            artwork_url=(artwork_url.strip() or None) if artwork_url else None,
            is_playing=is_playing,
            duration_ms=duration_ms,
            position_ms=position_ms,
        )

    @property
    def key(self) -> Tuple[str, str, bool]:
        """The (title, artist, is_playing) triple used for no-op suppression."""
        return (self.title, self.artist, self.is_playing)

    @property
    def playback_rate(self) -> float:
        return 1.0 if self.is_playing else 0.0

    @property
    def is_live_stream(self) -> bool:
        return self.duration_ms is None

    def with_album(self, album: str) -> "NowPlayingSnapshot":
        return replace(self, album=album)


@dataclass(frozen=True)
class ArtworkEntry:
    """A decoded artwork image and the URL it came from."""
    source_url: str
    image: Any  # PIL.Image.Image, or a file path when read back from disk

    @property
    def size(self) -> Optional[Tuple[int, int]]:
        return getattr(self.image, "size", None)


@dataclass(frozen=True)
class PendingUpdate:
    """The most recent request still waiting for its debounce window to close."""
    snapshot: NowPlayingSnapshot
    force_update: bool = False
    reason: str = "request"

    @property
    def is_reapply(self) -> bool:
        """Refresh, verify and forensic reapplies replay the last applied snapshot."""
        return self.reason != "request"

    def forced(self, reason: Optional[str] = None) -> "PendingUpdate":
        return replace(self, force_update=True, reason=reason or self.reason)


@dataclass
class OverrideLockState:
    locked: bool = False
    locked_until: Optional[float] = None  # time.monotonic() deadline


@dataclass(frozen=True)
class SurfacePayload:
    """Everything the shared now-playing surface displays, replaced atomically."""
    title: str
    artist: str
    album: str = ""
    playback_rate: float = 0.0
    is_live_stream: bool = True
    elapsed_ms: int = 0
    duration_ms: Optional[int] = None
    artwork: Optional[ArtworkEntry] = None
    # Wall clock stamp so consecutive writes are never identical
    updated_at: float = field(default_factory=time.time)

    @property
    def artwork_url(self) -> Optional[str]:
        return self.artwork.source_url if self.artwork else None

    def to_dict(self) -> dict:
        """JSON-friendly view; the image handle itself is not serializable."""
        return {
            "title": self.title,
            "artist": self.artist,
            "album": self.album,
            "playback_rate": self.playback_rate,
            "is_live_stream": self.is_live_stream,
            "elapsed_ms": self.elapsed_ms,
            "duration_ms": self.duration_ms,
            "artwork_url": self.artwork_url,
            "updated_at": self.updated_at,
        }


def build_payload(snapshot: NowPlayingSnapshot, artwork: Optional[ArtworkEntry] = None) -> SurfacePayload:
    """Format a snapshot for the surface. Artwork is attached only when it belongs to this snapshot."""
    if artwork is not None and artwork.source_url != snapshot.artwork_url:
        artwork = None
    return SurfacePayload(
        title=snapshot.title,
        artist=snapshot.artist,
        album=snapshot.album,
        playback_rate=snapshot.playback_rate,
        is_live_stream=snapshot.is_live_stream,
        elapsed_ms=snapshot.position_ms or 0,
        duration_ms=snapshot.duration_ms,
        artwork=artwork,
    )
