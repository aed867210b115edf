"""
Artwork fetching for the lockscreen surface.
Downloads with bounded linear-backoff retries and a hard overall timeout.

Dependencies: state, helpers, models, errors
"""
from __future__ import annotations

import asyncio
import io
from typing import Optional
from urllib.parse import urlparse

import requests
from PIL import Image, UnidentifiedImageError

from . import state
from .errors import FetchFailed
from .helpers import run_in_daemon_executor
from .models import ArtworkEntry
from logging_config import get_logger

logger = get_logger(__name__)


class _RetryableFetchError(Exception):
    """One attempt failed in a way another attempt may fix."""


class ArtworkFetcher:
    """
    Fetches and decodes artwork images.

    fetch() retries network errors, empty bodies and undecodable bytes with a
    linearly growing delay (retry_delay, 2 * retry_delay, ...).
    fetch_with_timeout() bounds the whole thing and never raises.
    """

    def __init__(
        self,
        max_retries: int = state.ARTWORK_RETRIES,
        retry_delay: float = state.ARTWORK_RETRY_DELAY,
        request_timeout: float = state.ARTWORK_REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.request_timeout = request_timeout
        self.session = session or requests.Session()
        self.session.headers.update({'User-Agent': state.ARTWORK_USER_AGENT})
        self.request_stats = {'attempts': 0, 'successes': 0, 'failures': 0, 'timeouts': 0}

    def _download_sync(self, url: str) -> Image.Image:
        """Blocking download + decode. Runs in the thread executor."""
        try:
            response = self.session.get(url, timeout=self.request_timeout)
            logger.debug(f"[ARTWORK] HTTP Status: {response.status_code}")
            response.raise_for_status()
        except requests.RequestException as e:
            raise _RetryableFetchError(f"network error: {e}") from e

        data = response.content
        if not data:
            raise _RetryableFetchError("no data received")

        try:
            image = Image.open(io.BytesIO(data))
            image.load()  # force decode now, Image.open is lazy
        except (UnidentifiedImageError, OSError) as e:
            raise _RetryableFetchError(f"failed to decode {len(data)} bytes: {e}") from e
        return image

    async def fetch(self, url: str) -> ArtworkEntry:
        """Download and decode artwork, retrying transient failures. Raises FetchFailed."""
        parsed = urlparse(url or "")
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise FetchFailed(url, "invalid artwork URL")

        attempts = self.max_retries + 1
        last_error = "unknown error"
        for attempt in range(attempts):
            logger.debug(f"[ARTWORK] Download attempt {attempt + 1}/{attempts} for: {url}")
            self.request_stats['attempts'] += 1
            try:
                image = await run_in_daemon_executor(self._download_sync, url)
            except _RetryableFetchError as e:
                last_error = str(e)
                logger.warning(f"[ARTWORK] Attempt {attempt + 1} failed: {last_error}")
                if attempt < self.max_retries:
                    delay = self.retry_delay * (attempt + 1)
                    logger.debug(f"[ARTWORK] Retrying in {delay}s...")
                    await asyncio.sleep(delay)
                continue

            self.request_stats['successes'] += 1
            logger.info(f"[ARTWORK] Download successful on attempt {attempt + 1}, size: {image.size}")
            return ArtworkEntry(source_url=url, image=image)

        self.request_stats['failures'] += 1
        raise FetchFailed(url, last_error, attempts)

    async def fetch_with_timeout(self, url: str, timeout: float = state.ARTWORK_TIMEOUT) -> Optional[ArtworkEntry]:
        """
        Race fetch() against a timer. Whichever finishes first wins; the loser
        is cancelled and its late result (if any) is discarded.

        Returns:
            ArtworkEntry on success, None on timeout or exhausted retries
        """
        try:
            return await asyncio.wait_for(self.fetch(url), timeout=timeout)
        except asyncio.TimeoutError:
            self.request_stats['timeouts'] += 1
            logger.warning(f"[ARTWORK] Fetch timed out after {timeout}s for: {url}")
        except FetchFailed as e:
            logger.warning(f"[ARTWORK] {e}")
        return None

    def close(self) -> None:
        self.session.close()
