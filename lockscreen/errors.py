"""
Error taxonomy for the lockscreen sync core.

Nothing here is fatal to the host: callers either get an immediate
InvalidRequest, or the failure is logged and degraded (text-only artwork,
abandoned verification).
"""
from __future__ import annotations

from typing import Optional


class SyncError(Exception):
    """Base class for all lockscreen sync errors."""


class InvalidRequest(SyncError, ValueError):
    """A request is missing required fields or carries values of the wrong type."""

    code = "INVALID_ARGUMENTS"


class FetchFailed(SyncError):
    """Artwork could not be downloaded or decoded within the retry budget."""

    def __init__(self, url: str, reason: str, attempts: int = 0):
        self.url = url
        self.reason = reason
        self.attempts = attempts
        super().__init__(f"Artwork fetch failed for {url}: {reason}")


class OverrideRejected(SyncError):
    """A surface write was attempted while the artwork lock was held."""

    def __init__(self, remaining: Optional[float] = None):
        self.remaining = remaining
        msg = "Surface is locked for an artwork write"
        if remaining is not None:
            msg += f" ({remaining:.2f}s remaining)"
        super().__init__(msg)


class VerificationMismatch(SyncError):
    """The surface read back something other than what was written."""

    def __init__(self, expected, current):
        self.expected = expected
        self.current = current
        super().__init__(f"Expected {expected!r}, surface shows {current!r}")
