"""
Post-write verification and override forensics.

RecoveryVerifier reads the surface back shortly after each write and asks for
a forced reapply when it disagrees. ForensicMonitor polls the surface at a low
rate and does the same when an external writer has replaced our metadata.
Both are bounded: neither retries forever.

Dependencies: state, helpers, models, cache, surface
"""
from __future__ import annotations

import asyncio
from typing import Callable, Optional

from . import state
from .cache import MetadataCache
from .errors import VerificationMismatch
from .helpers import cancel_task, create_tracked_task
from .models import NowPlayingSnapshot, SurfacePayload
from .surface import NowPlayingSurface
from logging_config import get_logger

logger = get_logger(__name__)

ReapplyCallback = Callable[[str], bool]


def surface_matches(expected: NowPlayingSnapshot, current: Optional[SurfacePayload]) -> bool:
    """Title, artist and play/pause rate must all agree."""
    if current is None:
        return False
    if current.title != expected.title or current.artist != expected.artist:
        return False
    if expected.is_playing and current.playback_rate == 0.0:
        return False
    if not expected.is_playing and current.playback_rate > 0.0:
        return False
    return True


class RecoveryVerifier:
    """
    One pending read-back at a time. A newer write supersedes the pending
    check; the attempt budget resets when the intended metadata changes or a
    check passes.

    After max_attempts forced reapplies of the same metadata the write that
    follows is not read back and the budget starts over. An empty surface
    counts as a mismatch here: right after our own write it means the write
    was lost.
    """

    def __init__(
        self,
        surface: NowPlayingSurface,
        reapply: ReapplyCallback,
        delay: float = state.VERIFY_DELAY,
        max_attempts: int = state.VERIFY_ATTEMPTS,
        is_disposed: Callable[[], bool] = lambda: False,
    ):
        self.surface = surface
        self._reapply = reapply
        self.delay = delay
        self.max_attempts = max_attempts
        self._is_disposed = is_disposed
        self._task: Optional[asyncio.Task] = None
        self._expected: Optional[NowPlayingSnapshot] = None
        self.attempts = 0
        self.abandoned = 0

    def schedule(self, expected: NowPlayingSnapshot) -> None:
        if self._expected is None or self._expected.key != expected.key:
            self.attempts = 0
        self._expected = expected
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

        if self.attempts >= self.max_attempts:
            self.abandoned += 1
            logger.warning(
                f"[VERIFY] Abandoning verification after {self.attempts} retry attempts: "
                f"'{expected.title}' by '{expected.artist}'"
            )
            self.attempts = 0
            return
        self._task = create_tracked_task(self._check(expected), name="verify-surface")

    async def cancel(self) -> None:
        task, self._task = self._task, None
        await cancel_task(task)
        self._expected = None
        self.attempts = 0

    async def _check(self, expected: NowPlayingSnapshot) -> None:
        await asyncio.sleep(self.delay)
        if self._is_disposed():
            return

        try:
            current = await self.surface.read()
        except Exception as e:
            logger.error(f"[VERIFY] Surface read failed: {e}")
            return

        if surface_matches(expected, current):
            logger.debug(f"[VERIFY] Metadata verification successful: '{expected.title}' by '{expected.artist}'")
            self.attempts = 0
            return

        mismatch = VerificationMismatch(
            (expected.title, expected.artist, expected.playback_rate),
            (current.title, current.artist, current.playback_rate) if current else None,
        )
        self.attempts += 1
        logger.warning(f"[VERIFY] Verification failed ({self.attempts}/{self.max_attempts}), forcing reapply: {mismatch}")
        self._reapply("verify")


class ForensicMonitor:
    """
    Low-frequency poll comparing the surface against the last applied cache
    values. A difference is treated as an external override.

    An empty surface (cleared, or never written) is not an override and resets
    the count, unlike the verifier's read-back.
    """

    def __init__(
        self,
        surface: NowPlayingSurface,
        cache: MetadataCache,
        reapply: ReapplyCallback,
        interval: float = state.FORENSIC_INTERVAL,
        max_reapplies: int = state.FORENSIC_MAX_REAPPLIES,
        is_disposed: Callable[[], bool] = lambda: False,
    ):
        self.surface = surface
        self.cache = cache
        self._reapply = reapply
        self.interval = interval
        self.max_reapplies = max_reapplies
        self._is_disposed = is_disposed
        self._task: Optional[asyncio.Task] = None
        self._consecutive = 0
        self._discrepancy_key = None
        self.overrides_detected = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        logger.info(f"[FORENSIC] Override detection started ({self.interval}s interval)")
        self._task = create_tracked_task(self._run(), name="forensic-monitor")

    async def stop(self) -> None:
        task, self._task = self._task, None
        await cancel_task(task)

    async def _run(self) -> None:
        while not self._is_disposed():
            await asyncio.sleep(self.interval)
            if self._is_disposed():
                return
            try:
                await self.check_once()
            except Exception as e:
                logger.error(f"[FORENSIC] Check failed: {e}")

    async def check_once(self) -> bool:
        """Returns True when an override was detected on this pass."""
        expected = self.cache.last_applied
        current = await self.surface.read()
        if expected is None or current is None or not current.title:
            self._reset()
            return False

        if current.title == expected.title and current.artist == expected.artist:
            self._reset()
            return False

        if self._discrepancy_key != expected.key:
            self._discrepancy_key = expected.key
            self._consecutive = 0

        self.overrides_detected += 1
        if self._consecutive >= self.max_reapplies:
            if self._consecutive == self.max_reapplies:
                logger.warning(f"[FORENSIC][OVERRIDE] Giving up after {self._consecutive} reapplies; surface keeps '{current.title}'")
                self._consecutive += 1
            return True

        self._consecutive += 1
        logger.warning("[FORENSIC][OVERRIDE] Detected metadata override")
        logger.warning(f"[FORENSIC][OVERRIDE] Expected: '{expected.title}' by '{expected.artist}'")
        logger.warning(f"[FORENSIC][OVERRIDE] Current: '{current.title}' by '{current.artist}'")
        self._reapply("forensic")
        return True

    def _reset(self) -> None:
        self._consecutive = 0
        self._discrepancy_key = None
