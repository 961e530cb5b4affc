"""
Harsh braking / acceleration detection.

Acceleration is approximated from consecutive accepted speed samples over a
fixed nominal interval (NOMINAL_FIX_INTERVAL_S). The real spacing between
fixes is not measured, so irregular sampling biases the estimate.
"""

from config import (
    HARSH_ACCEL_THRESHOLD_MPS2,
    HARSH_BRAKE_THRESHOLD_MPS2,
    MPS_TO_KMH,
    NOMINAL_FIX_INTERVAL_S,
)
from trip.data.models import HarshEvent


def approximate_acceleration(previous_speed_kmh: float, current_speed_kmh: float,
                             elapsed_seconds: float = NOMINAL_FIX_INTERVAL_S) -> float:
    """Longitudinal acceleration in m/s² between two speed samples."""
    return (current_speed_kmh - previous_speed_kmh) / MPS_TO_KMH / elapsed_seconds


class EventDetector:
    """
    Classifies speed transitions and counts harsh events.

    Counts only ever increase for the lifetime of a trip.
    """

    def __init__(self,
                 brake_threshold: float = HARSH_BRAKE_THRESHOLD_MPS2,
                 accel_threshold: float = HARSH_ACCEL_THRESHOLD_MPS2):
        self.brake_threshold = brake_threshold
        self.accel_threshold = accel_threshold
        self.harsh_brake_count = 0
        self.harsh_accel_count = 0
        self.last_speed_kmh = 0.0

    def classify(self, previous_speed_kmh: float, current_speed_kmh: float,
                 elapsed_seconds: float = NOMINAL_FIX_INTERVAL_S) -> HarshEvent:
        """
        Classify a single transition without touching any counters.

        No prior moving sample (previous <= 0) never yields an event.
        """
        if previous_speed_kmh <= 0:
            return HarshEvent.NONE

        accel = approximate_acceleration(previous_speed_kmh, current_speed_kmh, elapsed_seconds)
        if accel < self.brake_threshold:
            return HarshEvent.HARSH_BRAKE
        if accel > self.accel_threshold:
            return HarshEvent.HARSH_ACCEL
        return HarshEvent.NONE

    def observe(self, current_speed_kmh: float) -> HarshEvent:
        """
        Classify the transition from the last sample to this one, bump the
        matching counter and remember this sample as the new previous speed.
        """
        event = self.classify(self.last_speed_kmh, current_speed_kmh)

        if event is HarshEvent.HARSH_BRAKE:
            self.harsh_brake_count += 1
        elif event is HarshEvent.HARSH_ACCEL:
            self.harsh_accel_count += 1

        self.last_speed_kmh = current_speed_kmh
        return event
