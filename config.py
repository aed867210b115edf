"""
NowPlaying Sync Configuration Loader
Loads values from settings.json via the settings manager.
"""
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from settings import settings

# ==========================================
# Path Configuration
# ==========================================
if "__compiled__" in globals() or getattr(sys, 'frozen', False):
    ROOT_DIR = Path(sys.executable).parent
else:
    ROOT_DIR = Path(__file__).parent

# ==========================================
# Version
# ==========================================
VERSION = "1.0.0"

env_file = ROOT_DIR / '.env'
if env_file.exists():
    load_dotenv(env_file)


def _coerce(value: str, default):
    """Env vars are strings; shape them like the default they replace."""
    if isinstance(default, bool):
        return value.lower() in ('true', '1', 'yes', 'on')
    if isinstance(default, (int, float)):
        try:
            return type(default)(value)
        except ValueError:
            return default
    if isinstance(default, list):
        return [v.strip() for v in value.split(',') if v.strip()]
    return value


# Helper to prefer Env Var > Settings JSON > Default
def conf(key, default=None):
    # 1. Check Env Var (Highest Priority - good for docker/dev)
    env_val = os.getenv(key.upper().replace('.', '_'))
    if env_val is not None:
        fallback = settings.get(key, default)
        return _coerce(env_val, fallback) if fallback is not None else env_val

    # 2. Check Settings JSON
    json_val = settings.get(key)
    if json_val is not None:
        return json_val

    # 3. Default
    return default


# ==========================================
# EXPORTED CONFIG DICTS
# ==========================================

# Published now_playing.json / artwork live here when the file surface is used
CACHE_DIR = Path(os.getenv("NOWPLAYING_CACHE_DIR", str(ROOT_DIR / "cache")))

try:
    CACHE_DIR.mkdir(parents=True, exist_ok=True)
except (OSError, PermissionError) as e:
    # Can't use logger here (not configured yet), so use print
    print(f"Warning: Failed to create directory {CACHE_DIR}: {e}")

DEBUG = {
    "log_file": conf("debug.log_file", "nowplaying.log"),
    "log_level": conf("debug.log_level", "WARNING" if getattr(sys, 'frozen', False) else "INFO"),
    "log_to_console": conf("debug.log_to_console", not getattr(sys, 'frozen', False)),
    "log_detailed": conf("debug.log_detailed", False),
    "log_rotation": {
        "max_bytes": conf("debug.log_rotation.max_bytes", 10485760),
        "backup_count": conf("debug.log_rotation.backup_count", 5)
    }
}

SERVER = {
    "port": conf("server.port", 9020),
    "host": conf("server.host", "127.0.0.1"),
    "surface": conf("server.surface", "file"),
}

SYNC = {
    "debounce_ms": conf("sync.debounce_ms", 250),
    "artwork": {
        "timeout": conf("sync.artwork_timeout", 3.0),
        "retries": conf("sync.artwork_retries", 2),
        "retry_delay": conf("sync.artwork_retry_delay", 1.0),
        "request_timeout": conf("sync.artwork_request_timeout", 10.0),
        "user_agent": f"NowPlayingSync/{VERSION}",
    },
    "lock_ms": conf("sync.artwork_lock_ms", 2000),
    "verify": {
        "delay_ms": conf("sync.verify_delay_ms", 500),
        "attempts": conf("sync.verify_attempts", 3),
    },
    "forensic": {
        "enabled": conf("sync.forensic_enabled", True),
        "interval": conf("sync.forensic_interval", 1.0),
        "max_reapplies": conf("sync.forensic_max_reapplies", 3),
    },
}

STATION = {
    "name": conf("station.name", "Live Radio"),
    "album": conf("station.album", "Live Radio"),
    "placeholder_titles": conf("station.placeholder_titles", ["Loading stream...", "Connecting..."]),
    "placeholder_artists": conf("station.placeholder_artists", ["Connecting...", "Live Stream"]),
    "placeholder_title_substrings": ["loading stream"],
    "placeholder_artist_substrings": ["connecting"],
}
