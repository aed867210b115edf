"""
Placeholder detection: title/artist pairs that mean "metadata not loaded yet".

Dependencies: helpers
"""
from __future__ import annotations

from typing import Iterable, Optional

import config
from .helpers import normalize_text
from logging_config import get_logger

logger = get_logger(__name__)


class PlaceholderFilter:
    """
    Classifies incoming metadata as a loading placeholder.

    A title or artist is a placeholder when, trimmed and case-folded, it is in
    the respective denylist (the empty string always is), or when it contains
    one of the configured substrings ("loading stream" / "connecting").
    """

    def __init__(
        self,
        titles: Iterable[str] = (),
        artists: Iterable[str] = (),
        title_substrings: Iterable[str] = (),
        artist_substrings: Iterable[str] = (),
    ):
        self.titles = {normalize_text(t) for t in titles} | {""}
        self.artists = {normalize_text(a) for a in artists} | {""}
        self.title_substrings = tuple(normalize_text(s) for s in title_substrings if s)
        self.artist_substrings = tuple(normalize_text(s) for s in artist_substrings if s)

    @classmethod
    def from_config(cls, station: Optional[dict] = None) -> "PlaceholderFilter":
        station = station or config.STATION
        name = station.get("name") or ""
        titles = list(station.get("placeholder_titles", []))
        if name:
            # The bare station name is what players show while the stream connects
            titles += [name, f"{name} Stream"]
        return cls(
            titles=titles,
            artists=station.get("placeholder_artists", []),
            title_substrings=station.get("placeholder_title_substrings", []),
            artist_substrings=station.get("placeholder_artist_substrings", []),
        )

    def is_placeholder(self, title: Optional[str], artist: Optional[str]) -> bool:
        t = normalize_text(title)
        a = normalize_text(artist)
        if t in self.titles or a in self.artists:
            return True
        if any(s in t for s in self.title_substrings):
            return True
        return any(s in a for s in self.artist_substrings)

    def should_suppress(self, title: Optional[str], artist: Optional[str], is_playing: bool) -> bool:
        """Placeholders are only dropped during playback; a paused one has nothing coming to replace it."""
        return is_playing and self.is_placeholder(title, artist)
