"""
OverrideGuard: the short-lived lock that protects an artwork write.

A second actor (playback telemetry, the audio plugin's own notification) can
overwrite the surface right after our text-only write. Once the artwork write
lands, the guard holds the surface for a few seconds so that write wins.

Dependencies: state, models, errors, surface
"""
from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Optional, TypeVar

from . import state
from .errors import OverrideRejected
from .models import OverrideLockState, SurfacePayload
from .surface import NowPlayingSurface
from logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class OverrideGuard:
    """Gatekeeper for every write this process makes to the shared surface."""

    def __init__(
        self,
        surface: NowPlayingSurface,
        hold: float = state.ARTWORK_LOCK_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.surface = surface
        self.hold = hold
        self._clock = clock
        self._state = OverrideLockState()
        self._release_handle: Optional[asyncio.TimerHandle] = None
        self.rejections = 0

    @property
    def state(self) -> OverrideLockState:
        return OverrideLockState(self.locked, self._state.locked_until if self.locked else None)

    @property
    def locked(self) -> bool:
        # The deadline check releases the lock even if the release timer never ran
        if self._state.locked and self._state.locked_until is not None:
            if self._clock() >= self._state.locked_until:
                self._unlock()
        return self._state.locked

    def remaining(self) -> float:
        if not self.locked or self._state.locked_until is None:
            return 0.0
        return max(0.0, self._state.locked_until - self._clock())

    async def write(self, payload: SurfacePayload) -> None:
        """Write through to the surface unless the artwork lock is held."""
        if self.locked:
            self.rejections += 1
            remaining = self.remaining()
            logger.info(f"[GUARD] Rejected write of '{payload.title}' - artwork lock held ({remaining:.2f}s left)")
            raise OverrideRejected(remaining)
        await self.surface.write(payload)

    async def with_artwork_lock(self, body: Callable[[], Awaitable[T]], hold: Optional[float] = None) -> T:
        """
        Take the lock, run body (the one write allowed while locked), and
        release after `hold` seconds whether body succeeded or not.
        """
        if self.locked:
            self.rejections += 1
            raise OverrideRejected(self.remaining())

        hold = self.hold if hold is None else hold
        if self._release_handle is not None:
            # A timer left over from an expired lock must not release this one
            self._release_handle.cancel()
            self._release_handle = None
        self._state.locked = True
        self._state.locked_until = self._clock() + hold
        logger.debug(f"[GUARD] Artwork lock taken for {hold}s")
        try:
            return await body()
        finally:
            self._arm_release(hold)

    async def clear(self) -> None:
        """Blank the surface. Always allowed; drops any held lock."""
        self.release()
        await self.surface.clear()

    def release(self) -> None:
        if self._release_handle is not None:
            self._release_handle.cancel()
            self._release_handle = None
        self._unlock()

    def _arm_release(self, hold: float) -> None:
        if self._release_handle is not None:
            self._release_handle.cancel()
        loop = asyncio.get_running_loop()
        self._release_handle = loop.call_later(hold, self._on_release_timer)

    def _on_release_timer(self) -> None:
        self._release_handle = None
        if self._state.locked:
            logger.debug("[GUARD] Artwork lock released")
        self._unlock()

    def _unlock(self) -> None:
        self._state.locked = False
        self._state.locked_until = None
