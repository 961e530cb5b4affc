"""
GPS fix filtering.

Rejects samples that cannot be real travel: malformed values and jumps
larger than the threshold from the last accepted fix.
"""

from typing import Optional

from config import TRIP_JUMP_THRESHOLD_M
from trip.data.models import AcceptedFix, FixVerdict, RawFix
from trip.utils.geometry import haversine_distance, is_valid_coordinate, is_valid_speed


class FixFilter:
    """
    Pure predicate over (previous accepted fix, candidate).

    Holds no trip state: the caller keeps the last accepted fix and must not
    replace it with a rejected one, so the next candidate is compared against
    the last *accepted* position.
    """

    def __init__(self, jump_threshold_m: float = TRIP_JUMP_THRESHOLD_M):
        self.jump_threshold_m = jump_threshold_m

    def evaluate(self, previous: Optional[AcceptedFix], candidate: RawFix) -> FixVerdict:
        """
        Classify a candidate fix.

        Args:
            previous: Last accepted fix, or None at the start of a trip
            candidate: Raw fix from the location source

        Returns:
            FixVerdict for the candidate
        """
        if not is_valid_coordinate(candidate.lat, candidate.lon):
            return FixVerdict.MALFORMED
        if not is_valid_speed(candidate.speed):
            return FixVerdict.MALFORMED

        if previous is None:
            return FixVerdict.FIRST_FIX

        distance = haversine_distance(previous.lat, previous.lon, candidate.lat, candidate.lon)
        if distance > self.jump_threshold_m:
            return FixVerdict.GPS_JUMP

        return FixVerdict.ACCEPTED

    def accept(self, previous: Optional[AcceptedFix], candidate: RawFix) -> bool:
        """True if the candidate may be folded into the trip accumulators."""
        return self.evaluate(previous, candidate).accepted
