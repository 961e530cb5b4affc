"""
Core data structures for the active-trip telemetry engine.

Unit Conventions
----------------
- Time: seconds (float, Unix or monotonic timestamps)
- Distance: metres internally, kilometres in snapshots and finalized trips
- Speed: metres per second on fixes, km/h in statistics and snapshots
- Coordinates: decimal degrees (WGS84)

Snapshots and finalized trips are frozen so they can be handed to other
threads without copying.
"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Optional

from config import MPS_TO_KMH


class TripState(Enum):
    """Trip session state machine states."""
    CREATED = "created"      # Session exists, no fix seen yet
    ACTIVE = "active"        # Receiving fixes
    FINALIZED = "finalized"  # Terminal, after stop()


class FixVerdict(Enum):
    """Outcome of running a raw fix through the fix filter."""
    FIRST_FIX = "first_fix"  # No previous fix, always accepted
    ACCEPTED = "accepted"
    GPS_JUMP = "gps_jump"    # Too far from the last accepted fix
    MALFORMED = "malformed"  # NaN/out-of-range coordinates or bad speed

    @property
    def accepted(self) -> bool:
        return self in (FixVerdict.FIRST_FIX, FixVerdict.ACCEPTED)


class HarshEvent(Enum):
    """Driving event classification for one speed transition."""
    NONE = "none"
    HARSH_BRAKE = "harsh_brake"
    HARSH_ACCEL = "harsh_accel"


@dataclass(frozen=True)
class RawFix:
    """
    One location sample as delivered by the location source.

    Attributes:
        lat: Latitude in decimal degrees.
        lon: Longitude in decimal degrees.
        speed: Instantaneous ground speed in m/s. None when unknown.
        timestamp: Sample time in seconds.
    """
    lat: float
    lon: float
    speed: Optional[float] = None
    timestamp: float = 0.0


@dataclass(frozen=True)
class AcceptedFix:
    """A raw fix that passed the fix filter. Only the latest one is kept."""
    lat: float
    lon: float
    speed: float
    timestamp: float

    @classmethod
    def from_raw(cls, fix: RawFix) -> 'AcceptedFix':
        return cls(
            lat=fix.lat,
            lon=fix.lon,
            speed=fix.speed if fix.speed is not None else 0.0,
            timestamp=fix.timestamp,
        )

    @property
    def speed_kmh(self) -> float:
        return self.speed * MPS_TO_KMH


@dataclass(frozen=True)
class TripSnapshot:
    """
    Point-in-time read view of a trip in progress.

    Attributes:
        distance_km: Total accepted distance.
        current_speed_kmh: Speed of the last accepted fix (0 if none).
        max_speed_kmh: Highest moving speed seen.
        avg_speed_kmh: Mean of moving speed samples (0 if none).
        elapsed_minutes: Whole minutes since trip start (floored).
        harsh_brake_count: Harsh brake events so far.
        harsh_accel_count: Harsh acceleration events so far.
        accepted_fixes: Fixes folded into the accumulators.
        rejected_fixes: Fixes dropped by the filter.
        timestamp: The 'now' this snapshot was computed for.
    """
    distance_km: float
    current_speed_kmh: float
    max_speed_kmh: float
    avg_speed_kmh: float
    elapsed_minutes: int
    harsh_brake_count: int = 0
    harsh_accel_count: int = 0
    accepted_fixes: int = 0
    rejected_fixes: int = 0
    timestamp: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Broadcast payload for live trip screens."""
        return {
            'distance': self.distance_km,
            'speed': self.current_speed_kmh,
            'max_speed': self.max_speed_kmh,
            'avg_speed': self.avg_speed_kmh,
            'duration': self.elapsed_minutes,
        }


@dataclass(frozen=True)
class UpdateResult:
    """Result of feeding one raw fix to a trip session."""
    verdict: FixVerdict
    event: HarshEvent
    snapshot: TripSnapshot

    @property
    def accepted(self) -> bool:
        return self.verdict.accepted


@dataclass(frozen=True)
class FinalizedTrip:
    """
    Immutable trip record produced once, when the trip is stopped.

    car_id, user_id and reservation_id are echoed unchanged from start().
    """
    car_id: Any
    user_id: Any
    reservation_id: Any
    start_time: float
    end_time: float
    distance_km: float
    duration_minutes: int
    avg_speed_kmh: float
    max_speed_kmh: float
    harsh_brake_count: int
    harsh_accel_count: int
    cornering_score: int
    eco_score: int
    accepted_fixes: int = 0
    rejected_fixes: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_telemetry_request(self) -> Dict[str, Any]:
        """Request body for the telemetry endpoint of the backend."""
        return {
            'userId': self.user_id,
            'carId': self.car_id,
            'reservationId': self.reservation_id,
            'avgSpeedKmh': self.avg_speed_kmh,
            'maxSpeedKmh': self.max_speed_kmh,
            'tripDistanceKm': self.distance_km,
            'tripDurationMin': self.duration_minutes,
            'harshBrakes': self.harsh_brake_count,
            'harshAccelerations': self.harsh_accel_count,
            'corneringScore': self.cornering_score,
            'ecoScore': self.eco_score,
        }
