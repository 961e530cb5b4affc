"""
Eco-score for finalized trips.

Deterministic 0-100 score that penalises high average and maximum speed.
"""

from config import (
    ECO_AVG_SPEED_PENALTIES,
    ECO_MAX_SPEED_PENALTIES,
    ECO_SCORE_MAX,
    ECO_SCORE_MIN,
)


def _penalty(speed_kmh: float, table) -> int:
    """First penalty whose threshold the speed strictly exceeds (table sorted high to low)."""
    for threshold, penalty in table:
        if speed_kmh > threshold:
            return penalty
    return 0


def average_speed_penalty(avg_speed_kmh: float) -> int:
    return _penalty(avg_speed_kmh, ECO_AVG_SPEED_PENALTIES)


def max_speed_penalty(max_speed_kmh: float) -> int:
    return _penalty(max_speed_kmh, ECO_MAX_SPEED_PENALTIES)


def calculate_eco_score(avg_speed_kmh: float, max_speed_kmh: float) -> int:
    """
    Score a trip from its final average and maximum speed.

    Args:
        avg_speed_kmh: Mean moving speed over the trip
        max_speed_kmh: Highest speed over the trip

    Returns:
        Integer score clamped to [0, 100]
    """
    score = ECO_SCORE_MAX - average_speed_penalty(avg_speed_kmh) - max_speed_penalty(max_speed_kmh)
    return max(ECO_SCORE_MIN, min(ECO_SCORE_MAX, score))
