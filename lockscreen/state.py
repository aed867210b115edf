"""
Shared State Module for the lockscreen package.
Contains the timing constants and the background task registry.

CRITICAL: This module must be imported first by all other modules.
It imports NOTHING from the lockscreen package (besides leaf types) to prevent circular imports.
"""
from __future__ import annotations

from dataclasses import dataclass

import config
from logging_config import get_logger

logger = get_logger(__name__)

# ==========================================
# CONSTANTS (from config)
# ==========================================

DEBOUNCE_SECONDS = config.SYNC["debounce_ms"] / 1000.0
ARTWORK_TIMEOUT = config.SYNC["artwork"]["timeout"]
ARTWORK_RETRIES = config.SYNC["artwork"]["retries"]
ARTWORK_RETRY_DELAY = config.SYNC["artwork"]["retry_delay"]
ARTWORK_REQUEST_TIMEOUT = config.SYNC["artwork"]["request_timeout"]
ARTWORK_USER_AGENT = config.SYNC["artwork"]["user_agent"]
ARTWORK_LOCK_SECONDS = config.SYNC["lock_ms"] / 1000.0
VERIFY_DELAY = config.SYNC["verify"]["delay_ms"] / 1000.0
VERIFY_ATTEMPTS = config.SYNC["verify"]["attempts"]
FORENSIC_ENABLED = config.SYNC["forensic"]["enabled"]
FORENSIC_INTERVAL = config.SYNC["forensic"]["interval"]
FORENSIC_MAX_REAPPLIES = config.SYNC["forensic"]["max_reapplies"]

DEFAULT_ALBUM = config.STATION["album"]


@dataclass(frozen=True)
class SyncTimings:
    """All delays the controller waits on, in seconds. Tests shrink these."""
    debounce: float = DEBOUNCE_SECONDS
    artwork_timeout: float = ARTWORK_TIMEOUT
    artwork_lock: float = ARTWORK_LOCK_SECONDS
    verify_delay: float = VERIFY_DELAY
    verify_attempts: int = VERIFY_ATTEMPTS
    forensic_interval: float = FORENSIC_INTERVAL
    forensic_max_reapplies: int = FORENSIC_MAX_REAPPLIES


# ==========================================
# TASK TRACKING
# ==========================================

# Global set to track background tasks and prevent garbage collection
_background_tasks: set = set()
