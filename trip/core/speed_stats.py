"""
Running speed statistics for a trip.

Keeps only a count and a sum so memory does not grow with trip length.
"""


class SpeedStatistics:
    """Running maximum and mean of moving speed samples (km/h)."""

    def __init__(self):
        self.max_speed_kmh = 0.0
        self.sample_sum = 0.0
        self.sample_count = 0

    def observe(self, speed_kmh: float) -> bool:
        """
        Record a speed sample.

        Stationary or unknown samples (speed <= 0) are ignored so they do not
        drag down the mean.

        Returns:
            True if the sample was counted
        """
        if speed_kmh <= 0:
            return False

        self.max_speed_kmh = max(self.max_speed_kmh, speed_kmh)
        self.sample_sum += speed_kmh
        self.sample_count += 1
        return True

    def average_speed_kmh(self) -> float:
        """Mean moving speed, 0 when nothing has been observed."""
        if self.sample_count == 0:
            return 0.0
        return self.sample_sum / self.sample_count
