"""
Lockscreen Package - now playing synchronization core

External code can use:
    from lockscreen import SyncController, InMemorySurface

The internal structure is:
    state.py       - Timing constants, task registry
    helpers.py     - Executor, tracked tasks, text normalization
    errors.py      - Error taxonomy
    models.py      - Snapshot / payload value types
    placeholder.py - Loading-placeholder detection
    cache.py       - Last applied metadata + artwork cache
    debounce.py    - Burst coalescing
    artwork.py     - Artwork download with retry and timeout
    surface.py     - Shared surface implementations
    guard.py       - Artwork write lock
    verifier.py    - Read-back verification and override forensics
    controller.py  - Orchestrator
    lifecycle.py   - App lifecycle hooks
    remote.py      - Remote transport commands
"""

# --- Level 0: State and leaf types ---
from .state import SyncTimings
from .errors import (
    SyncError,
    InvalidRequest,
    FetchFailed,
    OverrideRejected,
    VerificationMismatch,
)
from .models import (
    NowPlayingSnapshot,
    ArtworkEntry,
    PendingUpdate,
    OverrideLockState,
    SurfacePayload,
    build_payload,
)

# --- Level 1: Components ---
from .placeholder import PlaceholderFilter
from .cache import MetadataCache
from .debounce import Debouncer
from .artwork import ArtworkFetcher
from .surface import NowPlayingSurface, InMemorySurface, FileSurface
from .guard import OverrideGuard
from .verifier import RecoveryVerifier, ForensicMonitor, surface_matches

# --- Level 2: Orchestration ---
from .controller import SyncController
from .lifecycle import LifecycleEvent, handle_lifecycle_event
from .remote import RemoteCommand, RemoteCommandCenter
from .helpers import create_tracked_task, shutdown_daemon_executor
