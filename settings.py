"""
NowPlaying Sync Settings Manager
Handles dynamic configuration management using settings.json
"""

import ast
import json
import os
import shutil
import sys
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from logging_config import get_logger

logger = get_logger(__name__)

# Allow overriding the settings file location via environment variable
if "__compiled__" in globals() or getattr(sys, 'frozen', False):
    ROOT_DIR = Path(sys.executable).parent
else:
    ROOT_DIR = Path(__file__).parent

SETTINGS_FILE = Path(os.getenv("NOWPLAYING_SETTINGS_FILE", str(ROOT_DIR / "settings.json")))


@dataclass
class Setting:
    """Represents a single configurable setting"""
    name: str
    type: type
    default: Any
    requires_restart: bool = False
    category: Optional[str] = None
    description: Optional[str] = None
    widget_type: str = "text"  # text, number, slider, switch, select, list
    options: Optional[list] = None  # For select
    min_val: Optional[float] = None  # For slider/number
    max_val: Optional[float] = None  # For slider/number
    advanced: bool = False  # Hide from main view

    def validate_and_convert(self, value: Any) -> Any:
        try:
            if self.type == bool and isinstance(value, str):
                return value.lower() in ('true', '1', 'yes', 'on')

            if self.type == list:
                if isinstance(value, list):
                    return value
                if isinstance(value, str):
                    value = value.strip()
                    # ast first (handles ['a'] and ["a"]), then JSON, then commas
                    try:
                        parsed = ast.literal_eval(value)
                        if isinstance(parsed, list):
                            return parsed
                    except (ValueError, SyntaxError):
                        pass
                    try:
                        parsed = json.loads(value)
                        if isinstance(parsed, list):
                            return parsed
                    except json.JSONDecodeError:
                        pass
                    clean_value = value.strip("[]")
                    if clean_value:
                        return [v.strip().strip("'").strip('"') for v in clean_value.split(',') if v.strip()]
                    return []
                return self.default

            converted = self.type(value)
            if self.min_val is not None and converted < self.min_val:
                return self.default
            if self.max_val is not None and converted > self.max_val:
                return self.default
            return converted
        except (ValueError, TypeError):
            return self.default


class SettingsManager:
    def __init__(self, settings_file: Optional[Path] = None):
        self._settings: Dict[str, Any] = {}
        self._file = Path(settings_file) if settings_file else SETTINGS_FILE

        # Define all available settings
        self._definitions = {
            # Debug
            "debug.log_file": Setting("Log File", str, "nowplaying.log", True, "Debug", "Log file name"),
            "debug.log_level": Setting("Log Level", str, "INFO", True, "Debug", "Console logging verbosity", "select", options=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
            "debug.log_to_console": Setting("Log to Console", bool, True, True, "Debug", "Print logs to terminal", "switch"),
            "debug.log_detailed": Setting("Detailed Logging", bool, False, True, "Debug", "Write DEBUG records to the log file", "switch"),
            "debug.log_rotation.max_bytes": Setting("Max Log Size", int, 10485760, True, "Debug", "Max log file size (bytes)", "number"),
            "debug.log_rotation.backup_count": Setting("Log Backups", int, 5, True, "Debug", "Number of backups to keep", "number"),

            # Server
            "server.port": Setting("Port", int, 9020, True, "Server", "Control channel port", "number", min_val=1, max_val=65535),
            "server.host": Setting("Host", str, "127.0.0.1", True, "Server", "Bind address"),
            "server.surface": Setting("Surface", str, "file", True, "Server", "Where now playing info is published", "select", options=["file", "memory"]),

            # Sync timings
            "sync.debounce_ms": Setting("Debounce Window", int, 250, True, "Sync", "Quiet period before a burst is applied (ms)", "slider", min_val=0, max_val=5000),
            "sync.artwork_timeout": Setting("Artwork Timeout", float, 3.0, True, "Sync", "Hard ceiling for an artwork fetch (s)", "slider", min_val=0.5, max_val=30.0),
            "sync.artwork_retries": Setting("Artwork Retries", int, 2, True, "Sync", "Retries after the first artwork attempt", "number", min_val=0, max_val=5),
            "sync.artwork_retry_delay": Setting("Retry Delay", float, 1.0, True, "Sync", "Base delay between artwork attempts (s), grows linearly", "number", min_val=0.0, max_val=10.0, advanced=True),
            "sync.artwork_request_timeout": Setting("Request Timeout", float, 10.0, True, "Sync", "Socket timeout for one artwork request (s)", "number", min_val=0.5, max_val=60.0, advanced=True),
            "sync.artwork_lock_ms": Setting("Artwork Lock", int, 2000, True, "Sync", "Protected window after an artwork write (ms)", "slider", min_val=0, max_val=10000),
            "sync.verify_delay_ms": Setting("Verify Delay", int, 500, True, "Sync", "Read-back delay after a write (ms)", "number", min_val=50, max_val=10000),
            "sync.verify_attempts": Setting("Verify Attempts", int, 3, True, "Sync", "Forced reapplies before verification gives up", "number", min_val=0, max_val=10),
            "sync.forensic_enabled": Setting("Override Detection", bool, True, True, "Sync", "Poll the surface for external overrides", "switch"),
            "sync.forensic_interval": Setting("Override Poll", float, 1.0, True, "Sync", "Override detection poll interval (s)", "number", min_val=0.1, max_val=60.0),
            "sync.forensic_max_reapplies": Setting("Override Reapplies", int, 3, True, "Sync", "Consecutive reapplies for one override before giving up", "number", min_val=0, max_val=10, advanced=True),

            # Station
            "station.name": Setting("Station Name", str, "Live Radio", True, "Station", "Bare station name, treated as a loading placeholder"),
            "station.album": Setting("Album Line", str, "Live Radio", True, "Station", "Album text shown when a request has none"),
            "station.placeholder_titles": Setting("Placeholder Titles", list, ["Loading stream...", "Connecting..."], True, "Station", "Titles that mean metadata has not loaded", "list"),
            "station.placeholder_artists": Setting("Placeholder Artists", list, ["Connecting...", "Live Stream"], True, "Station", "Artists that mean metadata has not loaded", "list"),
        }

        self.load_settings()

    def load_settings(self) -> None:
        """Load settings from JSON, fall back to defaults"""
        self._settings = {}

        for key, definition in self._definitions.items():
            self._settings[key] = definition.default

        if self._file.exists():
            try:
                with open(self._file, 'r', encoding='utf-8') as f:
                    saved = json.load(f)
                for key, val in saved.items():
                    if key in self._definitions:
                        self._settings[key] = self._definitions[key].validate_and_convert(val)
                    else:
                        # Unknown keys are kept so newer files survive a downgrade
                        self._settings[key] = val
            except Exception as e:
                logger.error(f"Failed to load {self._file.name}: {e} - resetting to defaults")
                backup_path = self._file.with_suffix('.json.corrupted')
                try:
                    shutil.copy2(self._file, backup_path)
                    logger.info(f"Backed up corrupted settings to {backup_path}")
                except OSError:
                    pass
                self.save_to_config()
        else:
            logger.info(f"Creating default settings file at {self._file}")
            self.save_to_config()

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a setting value.
        Priority:
        1. Loaded value (from JSON or Schema Default)
        2. Schema Default (if key in definitions but not in settings dict yet)
        3. Provided 'default' argument (if key unknown)
        """
        if key in self._settings:
            return self._settings[key]

        if key in self._definitions:
            return self._definitions[key].default

        return default

    def set(self, key: str, value: Any) -> bool:
        """Set a known setting. Returns True when the change needs a restart."""
        if key not in self._definitions:
            raise KeyError(key)

        setting = self._definitions[key]
        self._settings[key] = setting.validate_and_convert(value)
        return setting.requires_restart

    def save_to_config(self) -> None:
        """Save current memory settings to JSON file"""
        temp_path = self._file.parent / f"settings_{uuid.uuid4().hex}.json.tmp"
        try:
            self._file.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_path, 'w', encoding='utf-8') as f:
                sanitized = {}
                for key, val in self._settings.items():
                    defin = self._definitions.get(key)
                    if defin and defin.type == list and not isinstance(val, list):
                        logger.warning(f"List setting '{key}' invalid type, restoring default")
                        val = defin.default
                    sanitized[key] = val
                json.dump(sanitized, f, indent=4, sort_keys=True)

            # Atomic replace (works on both Windows and Unix)
            os.replace(temp_path, self._file)
        except OSError as e:
            logger.error(f"Failed to save settings: {e}")
            if temp_path.exists():
                try:
                    os.remove(temp_path)
                except OSError:
                    pass

    def get_all(self) -> Dict:
        """Return settings grouped by category for the control API"""
        result = {}
        for key, val in self._settings.items():
            defin = self._definitions.get(key)
            if not defin:
                continue

            cat = defin.category or "Misc"
            result.setdefault(cat, {})[key] = {
                "value": val,
                "name": defin.name,
                "description": defin.description,
                "type": defin.type.__name__,
                "requires_restart": defin.requires_restart,
                "widget_type": defin.widget_type,
                "options": defin.options,
                "min": defin.min_val,
                "max": defin.max_val,
                "advanced": defin.advanced,
            }
        return result

    def reset_to_defaults(self):
        if self._file.exists():
            os.remove(self._file)
        self.load_settings()


settings = SettingsManager()
