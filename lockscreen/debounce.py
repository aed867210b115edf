"""
Debouncer: coalesces a burst of update requests into one delayed application.

Dependencies: state, helpers, models
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

from . import state
from .helpers import create_tracked_task
from .models import PendingUpdate
from logging_config import get_logger

logger = get_logger(__name__)


class Debouncer:
    """
    Keeps at most one PendingUpdate. Every schedule() replaces it and restarts
    the quiet-period timer; when the timer fires the latest update is handed to
    the callback exactly once.
    """

    def __init__(
        self,
        callback: Callable[[PendingUpdate], Awaitable[None]],
        window: float = state.DEBOUNCE_SECONDS,
    ):
        self._callback = callback
        self.window = window
        self._pending: Optional[PendingUpdate] = None
        self._handle: Optional[asyncio.TimerHandle] = None
        self._coalesced = 0

    @property
    def pending(self) -> Optional[PendingUpdate]:
        return self._pending

    @property
    def armed(self) -> bool:
        return self._handle is not None

    def schedule(self, update: PendingUpdate, delay: Optional[float] = None) -> None:
        """Store update as the only pending one and (re)arm the timer."""
        if self._handle is not None:
            self._handle.cancel()
            self._coalesced += 1
        self._pending = update
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.window if delay is None else delay, self._fire)

    def replace_pending(self, update: PendingUpdate) -> None:
        """Swap the pending update without touching the timer."""
        if self._handle is None:
            raise RuntimeError("No armed timer to attach the update to")
        self._pending = update

    def cancel(self) -> None:
        """Drop the timer and the pending update without invoking the callback."""
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._pending = None
        self._coalesced = 0

    def _fire(self) -> None:
        update, self._pending = self._pending, None
        self._handle = None
        coalesced, self._coalesced = self._coalesced, 0
        if update is None:
            return
        if coalesced:
            logger.debug(f"[DEBOUNCE] Coalesced {coalesced + 1} requests into one update")
        create_tracked_task(self._callback(update), name="debounced-apply")
