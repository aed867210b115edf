"""Pytest configuration and shared fixtures"""
import asyncio
import os
import sys
import tempfile
from pathlib import Path

# Keep settings.json, published files and logs out of the source tree.
# Must happen before anything imports settings / config.
_TMP_ROOT = Path(tempfile.mkdtemp(prefix="nowplaying_tests_"))
os.environ.setdefault("NOWPLAYING_SETTINGS_FILE", str(_TMP_ROOT / "settings.json"))
os.environ.setdefault("NOWPLAYING_CACHE_DIR", str(_TMP_ROOT / "cache"))
os.environ.setdefault("NOWPLAYING_LOGS_DIR", str(_TMP_ROOT / "logs"))

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

import pytest
from PIL import Image

from lockscreen import ArtworkEntry, InMemorySurface, SyncController, SyncTimings, SurfacePayload

FAST_TIMINGS = SyncTimings(
    debounce=0.02,
    artwork_timeout=0.2,
    artwork_lock=0.15,
    verify_delay=0.05,
    verify_attempts=3,
    forensic_interval=0.05,
    forensic_max_reapplies=3,
)


class FakeFetcher:
    """Stands in for ArtworkFetcher: no network, records every URL asked for."""

    def __init__(self, delay: float = 0.0, fail: bool = False):
        self.delay = delay
        self.fail = fail
        self.calls = []
        self.closed = False

    async def _fetch(self, url):
        await asyncio.sleep(self.delay)
        if self.fail:
            return None
        return ArtworkEntry(source_url=url, image=Image.new("RGB", (4, 4), "red"))

    async def fetch_with_timeout(self, url, timeout=3.0):
        self.calls.append(url)
        try:
            return await asyncio.wait_for(self._fetch(url), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    def close(self):
        self.closed = True


class HijackedSurface(InMemorySurface):
    """A surface where another app immediately overwrites the next `hijacks` writes."""

    def __init__(self, hijacks: int = 0):
        super().__init__()
        self.hijacks = hijacks
        self.read_count = 0

    async def write(self, payload):
        await super().write(payload)
        if self.hijacks > 0:
            self.hijacks -= 1
            self.payload = SurfacePayload(title="Other App", artist="Someone Else", playback_rate=1.0)

    async def read(self):
        self.read_count += 1
        return await super().read()


@pytest.fixture
def surface():
    return InMemorySurface()


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
async def make_controller():
    """Factory so tests can pick their own surface / fetcher; everything is disposed afterwards."""
    created = []

    def factory(surface=None, fetcher=None, timings=FAST_TIMINGS, forensic_enabled=False):
        controller = SyncController(
            surface if surface is not None else InMemorySurface(),
            fetcher=fetcher if fetcher is not None else FakeFetcher(),
            timings=timings,
            forensic_enabled=forensic_enabled,
        )
        created.append(controller)
        return controller

    yield factory

    for controller in created:
        await controller.dispose()


@pytest.fixture
async def controller(make_controller, surface, fetcher):
    return make_controller(surface=surface, fetcher=fetcher)
