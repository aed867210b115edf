"""
The shared "now playing" surface: one mutable slot with last-write-wins semantics.

The controller only needs write / read / clear. Two implementations ship:
InMemorySurface (tests, embedding) and FileSurface, which publishes
now_playing.json plus the artwork image for external widgets.

Dependencies: helpers, models
"""
from __future__ import annotations

import json
import os
import shutil
import uuid
from abc import ABC, abstractmethod
from collections import deque
from pathlib import Path
from typing import Optional

from PIL import Image

from .helpers import run_in_daemon_executor
from .models import ArtworkEntry, SurfacePayload
from logging_config import get_logger

logger = get_logger(__name__)


class NowPlayingSurface(ABC):
    """Abstract shared surface. Every write replaces the whole payload."""

    @abstractmethod
    async def write(self, payload: SurfacePayload) -> None:
        pass

    @abstractmethod
    async def read(self) -> Optional[SurfacePayload]:
        pass

    @abstractmethod
    async def clear(self) -> None:
        pass


class InMemorySurface(NowPlayingSurface):
    """A single in-process slot. Keeps a short write history for diagnostics."""

    def __init__(self, history_size: int = 50):
        self.payload: Optional[SurfacePayload] = None
        self.history: deque = deque(maxlen=history_size)
        self.write_count = 0

    async def write(self, payload: SurfacePayload) -> None:
        self.payload = payload
        self.history.append(payload)
        self.write_count += 1

    async def read(self) -> Optional[SurfacePayload]:
        return self.payload

    async def clear(self) -> None:
        self.payload = None


class FileSurface(NowPlayingSurface):
    """
    Publishes the payload as now_playing.json and the artwork as
    now_playing_art.png inside `directory`. Files are replaced atomically so
    readers never see a half-written file.
    """

    INFO_FILE = "now_playing.json"
    ART_FILE = "now_playing_art.png"

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.info_path = self.directory / self.INFO_FILE
        self.art_path = self.directory / self.ART_FILE
        self._saved_art_url: Optional[str] = None

    async def write(self, payload: SurfacePayload) -> None:
        await run_in_daemon_executor(self._write_sync, payload)

    async def read(self) -> Optional[SurfacePayload]:
        return await run_in_daemon_executor(self._read_sync)

    async def clear(self) -> None:
        await run_in_daemon_executor(self._clear_sync)

    def _atomic_write(self, target: Path, writer) -> None:
        temp_path = target.parent / f"{target.stem}_{uuid.uuid4().hex}{target.suffix}.tmp"
        try:
            writer(temp_path)
            os.replace(temp_path, target)
        finally:
            if temp_path.exists():
                try:
                    os.remove(temp_path)
                except OSError:
                    pass

    def _save_artwork(self, artwork: ArtworkEntry) -> None:
        image = artwork.image
        if isinstance(image, Image.Image):
            if image.mode not in ("RGB", "RGBA", "L", "LA", "P"):
                image = image.convert("RGB")
            self._atomic_write(self.art_path, lambda p: image.save(p, format="PNG"))
        elif isinstance(image, (str, Path)) and Path(image).exists():
            if Path(image).resolve() != self.art_path.resolve():
                self._atomic_write(self.art_path, lambda p: shutil.copy2(image, p))
        else:
            raise TypeError(f"Unsupported artwork handle: {type(image).__name__}")
        self._saved_art_url = artwork.source_url

    def _write_sync(self, payload: SurfacePayload) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        if payload.artwork is not None and payload.artwork.source_url != self._saved_art_url:
            self._save_artwork(payload.artwork)

        def dump(path: Path):
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(payload.to_dict(), f, indent=2, ensure_ascii=False)

        self._atomic_write(self.info_path, dump)

    def _read_sync(self) -> Optional[SurfacePayload]:
        if not self.info_path.exists():
            return None
        try:
            with open(self.info_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"[SURFACE] Could not read {self.info_path.name}: {e}")
            return None

        artwork = None
        art_url = data.get("artwork_url")
        if art_url and self.art_path.exists():
            artwork = ArtworkEntry(source_url=art_url, image=str(self.art_path))

        return SurfacePayload(
            title=data.get("title", ""),
            artist=data.get("artist", ""),
            album=data.get("album", ""),
            playback_rate=float(data.get("playback_rate", 0.0)),
            is_live_stream=bool(data.get("is_live_stream", True)),
            elapsed_ms=int(data.get("elapsed_ms") or 0),
            duration_ms=data.get("duration_ms"),
            artwork=artwork,
            updated_at=float(data.get("updated_at", 0.0)),
        )

    def _clear_sync(self) -> None:
        for path in (self.info_path, self.art_path):
            try:
                path.unlink()
            except FileNotFoundError:
                pass
        self._saved_art_url = None
