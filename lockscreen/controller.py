"""
SyncController: the single owner of the shared now-playing surface.

Flow for one request:
    request_update -> placeholder / duplicate checks -> Debouncer
    -> _apply (serialized) -> text write -> verify
    -> artwork fetch (if the URL is new) -> locked artwork write -> verify

Every surface mutation goes through _write_lock, so this component never has
two writes in flight. Timer and fetch callbacks re-check _disposed and the
clear epoch before touching state.

Dependencies: state, helpers, models, errors, cache, debounce, placeholder,
artwork, guard, verifier, surface
"""
from __future__ import annotations

import asyncio
from dataclasses import asdict
from typing import Any, Dict, Optional

from . import state
from .artwork import ArtworkFetcher
from .cache import MetadataCache
from .debounce import Debouncer
from .errors import OverrideRejected
from .guard import OverrideGuard
from .helpers import cancel_task, create_tracked_task
from .models import ArtworkEntry, NowPlayingSnapshot, PendingUpdate, build_payload
from .placeholder import PlaceholderFilter
from .state import SyncTimings
from .surface import NowPlayingSurface
from .verifier import ForensicMonitor, RecoveryVerifier
from logging_config import get_logger

logger = get_logger(__name__)

# Slack added when waiting out the artwork lock so the retry lands after the deadline
_LOCK_SLACK = 0.01


class SyncController:
    """Keeps the shared surface in step with the latest requested metadata."""

    def __init__(
        self,
        surface: NowPlayingSurface,
        fetcher: Optional[ArtworkFetcher] = None,
        timings: Optional[SyncTimings] = None,
        placeholder_filter: Optional[PlaceholderFilter] = None,
        default_album: str = state.DEFAULT_ALBUM,
        forensic_enabled: bool = state.FORENSIC_ENABLED,
    ):
        self.timings = timings or SyncTimings()
        self.surface = surface
        self.fetcher = fetcher or ArtworkFetcher()
        self.placeholders = placeholder_filter or PlaceholderFilter.from_config()
        self.default_album = default_album
        self.forensic_enabled = forensic_enabled

        self.cache = MetadataCache()
        self.guard = OverrideGuard(surface, hold=self.timings.artwork_lock)
        self.debouncer = Debouncer(self._apply, window=self.timings.debounce)
        self.verifier = RecoveryVerifier(
            surface,
            self._schedule_reapply,
            delay=self.timings.verify_delay,
            max_attempts=self.timings.verify_attempts,
            is_disposed=lambda: self._disposed,
        )
        self.forensic = ForensicMonitor(
            surface,
            self.cache,
            self._schedule_reapply,
            interval=self.timings.forensic_interval,
            max_reapplies=self.timings.forensic_max_reapplies,
            is_disposed=lambda: self._disposed,
        )

        self._write_lock = asyncio.Lock()
        self._artwork_task: Optional[asyncio.Task] = None
        self._artwork_task_url: Optional[str] = None
        # Bumped by clear()/dispose(); work started under an older epoch is dropped
        self._epoch = 0
        self._disposed = False

        self.stats: Dict[str, int] = {
            'requests': 0,
            'placeholders_blocked': 0,
            'duplicates_skipped': 0,
            'writes': 0,
            'artwork_writes': 0,
            'artwork_reused': 0,
            'artwork_failures': 0,
            'rejected_writes': 0,
            'reapplies': 0,
        }

    @property
    def disposed(self) -> bool:
        return self._disposed

    # ------------------------------------------------------------------
    # Inbound API
    # ------------------------------------------------------------------

    def request_update(
        self,
        title: Any,
        artist: Any,
        is_playing: Any,
        artwork_url: Any = None,
        album: Any = None,
        duration_ms: Any = None,
        position_ms: Any = None,
        force_update: bool = False,
    ) -> bool:
        """
        Queue a metadata update and return immediately.

        Raises:
            InvalidRequest: required fields are missing or malformed

        Returns:
            True when the request was accepted (including placeholder and
            duplicate no-ops), False only after the controller was disposed
        """
        if self._disposed:
            logger.warning(f"[METADATA] Ignoring update after dispose: '{title}'")
            return False

        snapshot = NowPlayingSnapshot.from_request(
            title, artist, is_playing,
            artwork_url=artwork_url, album=album,
            duration_ms=duration_ms, position_ms=position_ms,
        )
        if not snapshot.album and self.default_album:
            snapshot = snapshot.with_album(self.default_album)
        self.stats['requests'] += 1

        if self.placeholders.should_suppress(snapshot.title, snapshot.artist, snapshot.is_playing):
            self.stats['placeholders_blocked'] += 1
            logger.info(f"[METADATA] Blocking placeholder during playback: {snapshot.title} by {snapshot.artist}")
            return True

        pending = self.debouncer.pending
        idle = pending is None and not self._write_lock.locked()
        if not force_update and idle and self.cache.matches(snapshot):
            self.stats['duplicates_skipped'] += 1
            logger.debug(f"[METADATA] Skipping identical update: {snapshot.title} by {snapshot.artist}, playing={snapshot.is_playing}")
            return True

        # A reapply already waiting in the window stays forced when a plain request replaces it
        force = force_update or (pending is not None and pending.force_update)
        self.debouncer.schedule(PendingUpdate(snapshot, force_update=force))
        logger.debug(f"[METADATA] Queued update for debouncing: {snapshot.title} by {snapshot.artist}, playing={snapshot.is_playing}")
        return True

    def request_refresh(self) -> bool:
        """Force the latest known snapshot back onto the surface (app resumed / became active)."""
        if self._disposed:
            return False
        if not self._schedule_reapply("refresh"):
            logger.debug("[METADATA] Refresh requested but nothing has been applied yet")
            return False
        logger.info("[METADATA] Refreshing metadata")
        return True

    async def clear(self) -> None:
        """Blank the surface and forget everything cached, cancelling pending work."""
        self._epoch += 1
        self.debouncer.cancel()
        await self.verifier.cancel()
        await self._cancel_artwork()
        async with self._write_lock:
            try:
                await self.guard.clear()
            finally:
                self.cache.clear()
        logger.info("[METADATA] Now playing surface cleared")

    async def start(self) -> None:
        if self.forensic_enabled and not self._disposed:
            self.forensic.start()

    async def dispose(self) -> None:
        """Stop all timers and tasks. No deferred callback mutates anything afterwards."""
        if self._disposed:
            return
        self._disposed = True
        self._epoch += 1
        self.debouncer.cancel()
        await self.forensic.stop()
        await self.verifier.cancel()
        await self._cancel_artwork()
        self.guard.release()
        close = getattr(self.fetcher, "close", None)
        if callable(close):
            close()
        logger.info("[METADATA] Sync controller disposed")

    def status(self) -> Dict[str, Any]:
        last = self.cache.last_applied
        pending = self.debouncer.pending
        return {
            "last_applied": asdict(last) if last else None,
            "pending": asdict(pending.snapshot) if pending else None,
            "artwork_url": self.cache.artwork.source_url if self.cache.artwork else None,
            "locked": self.guard.locked,
            "lock_remaining": round(self.guard.remaining(), 3),
            "forensic_running": self.forensic.running,
            "disposed": self._disposed,
            "stats": dict(self.stats),
        }

    # ------------------------------------------------------------------
    # Reapply coalescing
    # ------------------------------------------------------------------

    def _schedule_reapply(self, reason: str) -> bool:
        """
        Route a forced reapply through the Debouncer so verify, forensic and
        refresh triggers for the same discrepancy collapse into one write.
        A pending request is newer intent: it is only marked forced.
        """
        if self._disposed:
            return False
        pending = self.debouncer.pending
        if pending is not None:
            if not pending.force_update:
                self.debouncer.replace_pending(pending.forced())
            return True

        snapshot = self.cache.last_applied
        if snapshot is None:
            return False
        self.stats['reapplies'] += 1
        logger.info(f"[METADATA] Reapplying metadata ({reason}): '{snapshot.title}' by '{snapshot.artist}'")
        self.debouncer.schedule(PendingUpdate(snapshot, force_update=True, reason=reason))
        return True

    # ------------------------------------------------------------------
    # Apply path
    # ------------------------------------------------------------------

    async def _apply(self, update: PendingUpdate) -> None:
        epoch = self._epoch
        if self._disposed:
            return

        async with self._write_lock:
            if self._disposed or epoch != self._epoch:
                return

            snapshot = update.snapshot
            # Second duplicate check: the cache may have moved while this sat in the window
            if not update.force_update and self.cache.matches(snapshot):
                self.stats['duplicates_skipped'] += 1
                logger.debug("[METADATA] No significant metadata change; skipping update.")
                return

            cached_art = self.cache.artwork_for(snapshot.artwork_url)
            payload = build_payload(snapshot, cached_art)
            try:
                await self.guard.write(payload)
            except OverrideRejected as e:
                self.stats['rejected_writes'] += 1
                self._defer(update, e.remaining or 0.0)
                return

            self.cache.record(snapshot)
            self.stats['writes'] += 1
            if cached_art is not None:
                self.stats['artwork_reused'] += 1
            logger.info(
                f"[METADATA] Updated surface: Title=\"{snapshot.title}\", Artist=\"{snapshot.artist}\", "
                f"isPlaying={snapshot.is_playing}, force={update.force_update}, "
                f"artwork={'cached' if cached_art else 'pending' if snapshot.artwork_url else 'none'}"
            )
            self.verifier.schedule(snapshot)

            if snapshot.artwork_url and cached_art is None:
                self._start_artwork_fetch(snapshot.artwork_url)
            elif not snapshot.artwork_url:
                self._drop_artwork_fetch()

    def _defer(self, update: PendingUpdate, remaining: float) -> None:
        """
        A write bounced off the artwork lock: retry once the lock has lapsed.
        A newer request waiting in the window wins. A reapply queued meanwhile
        only replays older metadata, so a bounced request takes its place.
        """
        if self._disposed:
            return
        pending = self.debouncer.pending
        if pending is not None:
            if update.is_reapply or not pending.is_reapply:
                return
            update = update.forced()
        delay = remaining + _LOCK_SLACK
        logger.info(f"[METADATA] Deferring '{update.snapshot.title}' by {delay:.2f}s until the artwork lock lapses")
        self.debouncer.schedule(update, delay=delay)

    # ------------------------------------------------------------------
    # Artwork phase
    # ------------------------------------------------------------------

    def _start_artwork_fetch(self, url: str) -> None:
        if self._artwork_task is not None and not self._artwork_task.done():
            if self._artwork_task_url == url:
                return  # Same artwork already downloading; its result serves this snapshot too
            logger.debug(f"[ARTWORK] Superseding in-flight fetch for {self._artwork_task_url}")
            self._artwork_task.cancel()
        self._artwork_task_url = url
        self._artwork_task = create_tracked_task(self._load_artwork(url, self._epoch), name="artwork-fetch")

    def _drop_artwork_fetch(self) -> None:
        if self._artwork_task is not None and not self._artwork_task.done():
            self._artwork_task.cancel()
        self._artwork_task = None
        self._artwork_task_url = None

    async def _cancel_artwork(self) -> None:
        task = self._artwork_task
        self._artwork_task = None
        self._artwork_task_url = None
        await cancel_task(task)

    async def _load_artwork(self, url: str, epoch: int) -> None:
        entry = await self.fetcher.fetch_with_timeout(url, timeout=self.timings.artwork_timeout)
        if self._disposed or epoch != self._epoch:
            return
        if entry is None:
            self.stats['artwork_failures'] += 1
            logger.warning(f"[ARTWORK] Keeping text-only metadata, artwork unavailable: {url}")
            return
        await self._apply_artwork(entry, epoch)

    async def _apply_artwork(self, entry: ArtworkEntry, epoch: int, retry: bool = True) -> None:
        wait = None
        async with self._write_lock:
            if self._disposed or epoch != self._epoch:
                return
            current = self.cache.last_applied
            if current is None or current.artwork_url != entry.source_url:
                logger.debug(f"[ARTWORK] Discarding artwork for superseded metadata: {entry.source_url}")
                return

            payload = build_payload(current, entry)
            try:
                await self.guard.with_artwork_lock(
                    lambda: self.guard.surface.write(payload),
                    hold=self.timings.artwork_lock,
                )
            except OverrideRejected as e:
                # An earlier artwork write still holds the lock
                self.stats['rejected_writes'] += 1
                wait = (e.remaining or 0.0) + _LOCK_SLACK
            else:
                self.cache.store_artwork(entry)
                self.stats['artwork_writes'] += 1
                logger.info(f"[METADATA] Atomically updated surface with artwork for '{current.title}'")
                self.verifier.schedule(current)
                return

        if retry and wait is not None:
            await asyncio.sleep(wait)
            await self._apply_artwork(entry, epoch, retry=False)
