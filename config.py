"""
Configuration settings for the trip telemetry engine.
Contains constants for fix filtering, speed, harsh events, scoring and storage.

Organised into logical sections:
1. Application & Data Storage (version, data directories)
2. Fix Filtering (GPS jump threshold, coordinate bounds)
3. Speed & Units
4. Harsh Event Detection (acceleration thresholds)
5. Scoring (eco-score penalties, cornering placeholder)
6. Trip Handler (polling, queues, error recovery)
"""

import logging
import os

logger = logging.getLogger("tripTelemetry.config")

# ==============================================================================
# APPLICATION VERSION
# ==============================================================================
# Format: MAJOR.MINOR.PATCH
APP_VERSION = "0.3.2"

# ==============================================================================
# DATA STORAGE
# ==============================================================================
# Local data directory for trip history
LOCAL_DATA_DIR = os.path.expanduser("~/.triptelemetry")

# Environment override, used by CI and tests
DATA_DIR_ENV_VAR = "TRIP_TELEMETRY_DATA_DIR"


def get_data_dir() -> str:
    """
    Get the base data directory for persistent storage.

    Returns the directory named by TRIP_TELEMETRY_DATA_DIR if set,
    otherwise the local fallback under the user's home.
    """
    override = os.environ.get(DATA_DIR_ENV_VAR)
    if override:
        logger.debug("Using data directory from %s: %s", DATA_DIR_ENV_VAR, override)
        return override
    return LOCAL_DATA_DIR


TRIP_DATA_DIR = os.path.join(get_data_dir(), "trips")

# ==============================================================================
# FIX FILTERING
# ==============================================================================

# Maximum distance between consecutive accepted fixes (metres).
# Fixes further than this from the last accepted fix are GPS glitches at ~1Hz.
TRIP_JUMP_THRESHOLD_M = 100.0

# Valid WGS84 coordinate ranges (degrees)
LATITUDE_RANGE = (-90.0, 90.0)
LONGITUDE_RANGE = (-180.0, 180.0)

# ==============================================================================
# SPEED & UNITS
# ==============================================================================

MPS_TO_KMH = 3.6  # 1 m/s = 3.6 km/h
METRES_PER_KM = 1000.0

# ==============================================================================
# HARSH EVENT DETECTION
# ==============================================================================

HARSH_BRAKE_THRESHOLD_MPS2 = -3.0  # Below this = harsh brake
HARSH_ACCEL_THRESHOLD_MPS2 = 3.0   # Above this = harsh acceleration

# Assumed interval between fixes. Actual fix spacing is not measured.
NOMINAL_FIX_INTERVAL_S = 1.0

# ==============================================================================
# SCORING
# ==============================================================================

ECO_SCORE_MAX = 100
ECO_SCORE_MIN = 0

# (threshold_kmh, penalty) pairs, checked highest first
ECO_AVG_SPEED_PENALTIES = [
    (100.0, 30),
    (80.0, 20),
    (60.0, 10),
]
ECO_MAX_SPEED_PENALTIES = [
    (130.0, 20),
    (110.0, 10),
]

# Cornering is not measured yet; finalized trips carry this placeholder
CORNERING_SCORE_DEFAULT = 75

# ==============================================================================
# TRIP HANDLER
# ==============================================================================

TRIP_HANDLER_POLL_INTERVAL_S = 0.1  # Poll location source at ~10Hz
TRIP_HANDLER_QUEUE_DEPTH = 2        # 1 current + 1 buffer
TRIP_HANDLER_ERROR_LOG_AFTER = 3    # Log on the Nth consecutive error
TRIP_HANDLER_MAX_CONSECUTIVE_ERRORS = 10
TRIP_HANDLER_JOIN_TIMEOUT_S = 2.0
