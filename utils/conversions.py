"""
Unit conversion utilities for the trip telemetry engine.

Provides speed, distance and duration conversions.
"""

from config import MPS_TO_KMH, METRES_PER_KM


# Speed conversions
def mps_to_kmh(mps):
    """Convert metres per second to km/h."""
    return mps * MPS_TO_KMH


def kmh_to_mps(kmh):
    """Convert km/h to metres per second."""
    return kmh / MPS_TO_KMH


# Distance conversions
def metres_to_km(metres):
    """Convert metres to kilometres."""
    return metres / METRES_PER_KM


# Duration
def elapsed_whole_minutes(start_time: float, now: float) -> int:
    """
    Whole minutes between two timestamps in seconds (floored).

    Clock steps backwards report 0 rather than a negative duration.
    """
    elapsed = now - start_time
    if elapsed <= 0:
        return 0
    return int(elapsed // 60)


def format_duration(minutes: int) -> str:
    """Format a duration in minutes as '1h 05m' or '12m'."""
    hours = minutes // 60
    mins = minutes % 60
    if hours > 0:
        return f"{hours}h {mins:02d}m"
    return f"{mins}m"
