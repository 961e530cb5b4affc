"""
Trip distance accumulation from consecutive accepted fixes.
"""

from typing import Optional

from trip.data.models import AcceptedFix
from trip.utils.geometry import haversine_distance


class DistanceAccumulator:
    """Sums great-circle segment lengths between accepted fixes."""

    def __init__(self):
        self.total_distance_m = 0.0

    @staticmethod
    def segment_length(previous: Optional[AcceptedFix], current: AcceptedFix) -> float:
        """Metres between two accepted fixes, 0 for the first fix of a trip."""
        if previous is None:
            return 0.0
        return haversine_distance(previous.lat, previous.lon, current.lat, current.lon)

    def add_segment(self, previous: Optional[AcceptedFix], current: AcceptedFix) -> float:
        """
        Add the segment ending at current to the total.

        Only called for fixes that passed the fix filter, so the segment is
        never an implausible jump.

        Returns:
            Metres added
        """
        metres = self.segment_length(previous, current)
        self.total_distance_m += metres
        return metres
