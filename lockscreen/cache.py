"""
MetadataCache: what was last written to the surface, plus the one cached artwork.

Dependencies: models
"""
from __future__ import annotations

from typing import Optional

from .models import ArtworkEntry, NowPlayingSnapshot
from logging_config import get_logger

logger = get_logger(__name__)


class MetadataCache:
    """
    Holds the last snapshot actually written to the surface and at most one
    ArtworkEntry. Only the controller mutates it, and only after a write succeeds.
    """

    def __init__(self):
        self.last_applied: Optional[NowPlayingSnapshot] = None
        self.artwork: Optional[ArtworkEntry] = None

    def matches(self, snapshot: NowPlayingSnapshot) -> bool:
        """True when the snapshot's (title, artist, is_playing) equals the last applied one."""
        return self.last_applied is not None and self.last_applied.key == snapshot.key

    def record(self, snapshot: NowPlayingSnapshot) -> None:
        self.last_applied = snapshot
        if not snapshot.artwork_url:
            self.clear_artwork()

    def artwork_for(self, url: Optional[str]) -> Optional[ArtworkEntry]:
        """The cached entry when it was downloaded from exactly this URL."""
        if url and self.artwork is not None and self.artwork.source_url == url:
            return self.artwork
        return None

    def store_artwork(self, entry: ArtworkEntry) -> None:
        if self.artwork is not None and self.artwork.source_url != entry.source_url:
            logger.debug(f"[METADATA] Discarding cached artwork for {self.artwork.source_url}")
        self.artwork = entry

    def clear_artwork(self) -> None:
        if self.artwork is not None:
            logger.debug("[METADATA] No artwork URL provided - cleared artwork cache")
        self.artwork = None

    def clear(self) -> None:
        self.last_applied = None
        self.artwork = None
