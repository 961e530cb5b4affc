"""
Settings overrides for the trip telemetry engine.
Reads operator overrides (thresholds, placeholder scores) from a JSON file
that is edited outside the engine.

Settings file location:
    ~/.triptelemetry_settings.json

Recognised keys:
    trip.jump_threshold_m   GPS jump rejection distance (metres)
    trip.cornering_score    Cornering score placed on finalized trips

If the settings file is corrupt (invalid JSON), it is deleted and defaults
are used. A warning is logged in this case.
"""

import json
import logging
import math
import os
import threading
from typing import Any, Optional

logger = logging.getLogger('tripTelemetry.settings')

SETTINGS_FILE = os.path.expanduser("~/.triptelemetry_settings.json")


class SettingsManager:
    """
    Read-only view of the overrides file, loaded once on first use.

    Missing keys and invalid values fall back to the caller's default, which
    is always the matching config.py constant.
    """

    _instance: Optional['SettingsManager'] = None
    _lock = threading.Lock()

    def __new__(cls):
        """Singleton pattern - one overrides file per process."""
        with cls._lock:
            if cls._instance is None:
                instance = super().__new__(cls)
                instance._initialised = False
                cls._instance = instance
        return cls._instance

    def __init__(self):
        if self._initialised:
            return

        self._settings = {}
        self._file_path = SETTINGS_FILE
        self._load()
        self._initialised = True

    def _load(self):
        try:
            if not os.path.exists(self._file_path):
                logger.debug("No settings file at %s, using defaults", self._file_path)
                return
            with open(self._file_path, 'r', encoding='utf-8') as f:
                loaded = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning("Corrupt settings file deleted, using defaults: %s", e)
            self._delete_corrupt_file()
            return
        except OSError as e:
            logger.warning("Could not load settings: %s", e)
            return

        if not isinstance(loaded, dict):
            logger.warning("Settings file %s is not an object, ignoring", self._file_path)
            return
        self._settings = loaded
        logger.info("Settings overrides loaded from %s", self._file_path)

    def _delete_corrupt_file(self):
        try:
            os.remove(self._file_path)
        except OSError as e:
            logger.error("Failed to remove corrupt settings file: %s", e)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Look up a dotted key such as "trip.cornering_score".

        Returns default when any part of the path is missing or not an object.
        """
        value = self._settings
        for part in key.split('.'):
            if not isinstance(value, dict) or part not in value:
                return default
            value = value[part]
        return value

    def get_number(self, key: str, default: float) -> float:
        """
        Numeric override for key. Bools, strings, NaN and other non-numbers
        log a warning and yield default.
        """
        value = self.get(key, default)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
            logger.warning("Setting %s=%r is not a number, using %s", key, value, default)
            return default
        return value


def get_settings() -> SettingsManager:
    """Get the settings manager singleton."""
    return SettingsManager()
