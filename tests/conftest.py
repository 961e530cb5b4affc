"""
Shared pytest fixtures for trip telemetry tests.
"""

import os
import sys
import json
import tempfile
import pytest

# Add project root to path for imports
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from trip.data.models import RawFix  # noqa: E402
from utils.settings import SettingsManager  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point the settings singleton at an empty temp file for every test."""
    monkeypatch.setattr('utils.settings.SETTINGS_FILE', str(tmp_path / "settings.json"))
    SettingsManager._instance = None
    yield
    SettingsManager._instance = None


@pytest.fixture
def temp_settings_file():
    """Create a temporary settings file for testing SettingsManager."""
    with tempfile.NamedTemporaryFile(mode='w', suffix='.json', delete=False) as f:
        f.write('{}')
        temp_path = f.name
    yield temp_path
    if os.path.exists(temp_path):
        os.remove(temp_path)


@pytest.fixture
def temp_settings_with_data():
    """Create a temporary settings file with trip overrides."""
    test_data = {
        "trip": {
            "jump_threshold_m": 250.0,
            "cornering_score": 60
        }
    }
    with tempfile.NamedTemporaryFile(mode='w', suffix='.json', delete=False) as f:
        json.dump(test_data, f)
        temp_path = f.name
    yield temp_path
    if os.path.exists(temp_path):
        os.remove(temp_path)


class FakeClock:
    """Manually advanced clock for deterministic elapsed times."""

    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def city_drive_fixes():
    """
    Three fixes 0.0005 deg of latitude apart (~55.6m each):
    standing start, 54 km/h, then braking to 18 km/h.
    """
    return [
        RawFix(lat=52.0000, lon=4.0000, speed=0.0, timestamp=0.0),
        RawFix(lat=52.0005, lon=4.0000, speed=15.0, timestamp=1.0),
        RawFix(lat=52.0010, lon=4.0000, speed=5.0, timestamp=2.0),
    ]
