"""
Geometry and sanity checks for GPS fixes.
"""

import math

from config import LATITUDE_RANGE, LONGITUDE_RANGE

EARTH_RADIUS_M = 6371000  # Mean Earth radius in meters


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate great circle distance between two GPS points in meters.

    Args:
        lat1, lon1: First point (decimal degrees)
        lat2, lon2: Second point (decimal degrees)

    Returns:
        Distance in meters
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (math.sin(delta_phi / 2) ** 2 +
         math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def is_valid_coordinate(lat: float, lon: float) -> bool:
    """True if lat/lon are finite and inside WGS84 bounds."""
    if lat is None or lon is None:
        return False
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return False
    return (LATITUDE_RANGE[0] <= lat <= LATITUDE_RANGE[1] and
            LONGITUDE_RANGE[0] <= lon <= LONGITUDE_RANGE[1])


def is_valid_speed(speed_mps) -> bool:
    """Speed may be absent; when present it must be finite and non-negative."""
    if speed_mps is None:
        return True
    return math.isfinite(speed_mps) and speed_mps >= 0
