"""
GPS test data fixtures for trip engine tests.
Contains known coordinates, distances and speed profiles.
"""

# Cities with known approximate distances
CITY_COORDINATES = {
    'london': (51.5074, -0.1278),
    'paris': (48.8566, 2.3522),
    'amsterdam': (52.3676, 4.9041),
    'utrecht': (52.0907, 5.1214),
    'quito': (-0.1807, -78.4678),  # Near equator
}

# Known distances between cities (metres, approximate)
CITY_DISTANCES = {
    ('london', 'paris'): 344_000,
    ('london', 'amsterdam'): 358_000,
    ('amsterdam', 'utrecht'): 34_200,
}

# Metres per 0.0001 deg of latitude on a 6371km sphere
METRES_PER_TEN_THOUSANDTH_LAT = 11.1195

# Speed profiles in m/s, one sample per nominal second
SPEED_PROFILES = {
    # Gentle pull-away and cruise, no harsh events (max step 2 m/s²)
    'smooth': [0.0, 2.0, 4.0, 6.0, 8.0, 10.0, 12.0, 13.0, 13.0, 12.0, 11.0],
    # Launch then emergency stop
    'aggressive': [0.0, 5.0, 10.0, 15.0, 20.0, 10.0, 2.0],
    # Parked
    'stationary': [0.0, 0.0, 0.0, 0.0, 0.0],
}


def straight_north(start_lat, start_lon, speeds, step_deg=0.0001, start_time=0.0):
    """Build (lat, lon, speed, timestamp) tuples heading north in fixed steps."""
    return [
        (start_lat + i * step_deg, start_lon, speed, start_time + i)
        for i, speed in enumerate(speeds)
    ]
