"""
Active trip session state machine.

Composes the fix filter, distance accumulator, speed statistics and event
detector into one trip aggregate with a snapshot read API and a one-shot
finalize.

State Machine:
- CREATED: session exists, no fix seen yet
- ACTIVE: first update() received (accepted or not)
- FINALIZED: stop() called; update() and stop() raise InvalidStateError

Thread Model
------------
update(), snapshot() and stop() serialise on one lock, so a reader never
sees a half-applied fix. After every update the session also swaps in a new
immutable TripSnapshot, readable lock-free through latest_snapshot.
Callers must stop feeding fixes before calling stop(); there is no queue of
in-flight updates to drain.
"""

import logging
import threading
import time
from typing import Any, Callable, Optional

from config import CORNERING_SCORE_DEFAULT, TRIP_JUMP_THRESHOLD_M
from trip.analysis.eco_score import calculate_eco_score
from trip.core.distance_accumulator import DistanceAccumulator
from trip.core.event_detector import EventDetector
from trip.core.fix_filter import FixFilter
from trip.core.speed_stats import SpeedStatistics
from trip.data.models import (
    AcceptedFix,
    FinalizedTrip,
    FixVerdict,
    HarshEvent,
    RawFix,
    TripSnapshot,
    TripState,
    UpdateResult,
)
from utils.conversions import elapsed_whole_minutes, metres_to_km, mps_to_kmh
from utils.settings import get_settings

logger = logging.getLogger('tripTelemetry.session')


class InvalidStateError(RuntimeError):
    """A mutating call was made on a session that has already been finalized."""

    def __init__(self, operation: str, state: TripState):
        super().__init__(f"Cannot {operation}() a trip session in state '{state.value}'")
        self.operation = operation
        self.state = state


def _clock_from(start_time: float) -> Callable[[], float]:
    """Wall clock in the time domain of start_time (offset fixed at creation)."""
    offset = start_time - time.time()
    return lambda: time.time() + offset


class TripSession:
    """
    Live, mutable aggregate for a single trip.

    Usage:
        session = TripSession.start(car_id, user_id, reservation_id)

        # For each fix from the location source
        result = session.update(RawFix(lat, lon, speed_mps, timestamp))

        # Any time, from any thread
        snapshot = session.snapshot()

        # Once, after unsubscribing from the location source
        trip = session.stop()
    """

    def __init__(self, car_id: Any, user_id: Any, reservation_id: Any,
                 start_time: float,
                 jump_threshold_m: Optional[float] = None,
                 clock: Optional[Callable[[], float]] = None):
        """
        Initialise an empty trip.

        Args:
            car_id, user_id, reservation_id: Opaque identity, echoed into the finalized trip
            start_time: Trip start in seconds, same clock as later 'now' values
            jump_threshold_m: GPS jump distance; settings then config used when None
            clock: Time source used when a call does not pass 'now'. Defaults to
                the wall clock shifted so it reads start_time right now.
        """
        self._settings = get_settings()

        self.car_id = car_id
        self.user_id = user_id
        self.reservation_id = reservation_id
        self.start_time = start_time
        self._clock = clock if clock is not None else _clock_from(start_time)

        if jump_threshold_m is None:
            jump_threshold_m = self._settings.get_number("trip.jump_threshold_m", TRIP_JUMP_THRESHOLD_M)

        self._filter = FixFilter(jump_threshold_m)
        self._distance = DistanceAccumulator()
        self._speed = SpeedStatistics()
        self._events = EventDetector()

        self._last_fix: Optional[AcceptedFix] = None
        self._accepted_fixes = 0
        self._rejected_fixes = 0

        self._state = TripState.CREATED
        self._finalized: Optional[FinalizedTrip] = None
        self._lock = threading.Lock()

        self._latest = self._build_snapshot(start_time)

    @classmethod
    def start(cls, car_id: Any, user_id: Any, reservation_id: Any,
              now: Optional[float] = None, **kwargs) -> 'TripSession':
        """Create a session with all accumulators at zero. Always succeeds."""
        clock = kwargs.get('clock') or time.time
        start_time = clock() if now is None else now
        session = cls(car_id, user_id, reservation_id, start_time, **kwargs)
        logger.info("Trip started: car=%s user=%s reservation=%s",
                    car_id, user_id, reservation_id)
        return session

    # ------------------------------------------------------------------
    # Read-only accessors
    # ------------------------------------------------------------------

    @property
    def state(self) -> TripState:
        return self._state

    @property
    def last_fix(self) -> Optional[AcceptedFix]:
        return self._last_fix

    @property
    def total_distance_m(self) -> float:
        return self._distance.total_distance_m

    @property
    def max_speed_kmh(self) -> float:
        return self._speed.max_speed_kmh

    @property
    def speed_sample_count(self) -> int:
        return self._speed.sample_count

    @property
    def speed_sample_sum(self) -> float:
        return self._speed.sample_sum

    @property
    def last_instant_speed_kmh(self) -> float:
        return self._events.last_speed_kmh

    @property
    def harsh_brake_count(self) -> int:
        return self._events.harsh_brake_count

    @property
    def harsh_accel_count(self) -> int:
        return self._events.harsh_accel_count

    @property
    def accepted_fix_count(self) -> int:
        return self._accepted_fixes

    @property
    def rejected_fix_count(self) -> int:
        return self._rejected_fixes

    @property
    def jump_threshold_m(self) -> float:
        return self._filter.jump_threshold_m

    @property
    def latest_snapshot(self) -> TripSnapshot:
        """Snapshot published by the last update(), read without locking."""
        return self._latest

    def average_speed_kmh(self) -> float:
        return self._speed.average_speed_kmh()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def update(self, fix: RawFix, now: Optional[float] = None) -> UpdateResult:
        """
        Fold one raw fix into the trip.

        A rejected fix leaves every accumulator and the last accepted fix
        untouched; the returned result carries the unchanged snapshot.

        Raises:
            InvalidStateError: if the session has been finalized
        """
        with self._lock:
            if self._state is TripState.FINALIZED:
                raise InvalidStateError("update", self._state)
            if self._state is TripState.CREATED:
                self._state = TripState.ACTIVE

            now = self._clock() if now is None else now
            verdict = self._filter.evaluate(self._last_fix, fix)

            if not verdict.accepted:
                self._rejected_fixes += 1
                if verdict is FixVerdict.GPS_JUMP:
                    logger.warning("GPS jump ignored: (%.6f, %.6f) is more than %.0fm from last fix",
                                   fix.lat, fix.lon, self._filter.jump_threshold_m)
                else:
                    logger.warning("Malformed fix ignored: lat=%s lon=%s speed=%s",
                                   fix.lat, fix.lon, fix.speed)
                self._latest = self._build_snapshot(now)
                return UpdateResult(verdict, HarshEvent.NONE, self._latest)

            accepted = AcceptedFix.from_raw(fix)
            metres = self._distance.add_segment(self._last_fix, accepted)

            speed_kmh = mps_to_kmh(accepted.speed)
            # Stationary or unknown samples never touch event state
            moving = self._speed.observe(speed_kmh)
            event = self._events.observe(speed_kmh) if moving else HarshEvent.NONE

            if event is HarshEvent.HARSH_BRAKE:
                logger.info("Harsh brake detected (total: %d)", self._events.harsh_brake_count)
            elif event is HarshEvent.HARSH_ACCEL:
                logger.info("Harsh acceleration detected (total: %d)", self._events.harsh_accel_count)

            self._last_fix = accepted
            self._accepted_fixes += 1

            logger.debug("Fix accepted: +%.1fm (total %.3fkm), speed %.1fkm/h",
                         metres, metres_to_km(self._distance.total_distance_m), speed_kmh)

            self._latest = self._build_snapshot(now)
            return UpdateResult(verdict, event, self._latest)

    def snapshot(self, now: Optional[float] = None) -> TripSnapshot:
        """Consistent point-in-time view. Needs no new fix; valid after stop() too."""
        with self._lock:
            now = self._clock() if now is None else now
            return self._build_snapshot(now)

    def stop(self, now: Optional[float] = None,
             cornering_score: Optional[int] = None) -> FinalizedTrip:
        """
        Finalize the trip and return its immutable record.

        Args:
            now: End time; the clock is used when None
            cornering_score: Placeholder score; settings then config used when None

        Raises:
            InvalidStateError: if the session has already been finalized
        """
        with self._lock:
            if self._state is TripState.FINALIZED:
                raise InvalidStateError("stop", self._state)

            now = self._clock() if now is None else now
            if cornering_score is None:
                cornering_score = int(self._settings.get_number("trip.cornering_score",
                                                                CORNERING_SCORE_DEFAULT))

            final = self._build_snapshot(now)
            trip = FinalizedTrip(
                car_id=self.car_id,
                user_id=self.user_id,
                reservation_id=self.reservation_id,
                start_time=self.start_time,
                end_time=now,
                distance_km=final.distance_km,
                duration_minutes=final.elapsed_minutes,
                avg_speed_kmh=final.avg_speed_kmh,
                max_speed_kmh=final.max_speed_kmh,
                harsh_brake_count=final.harsh_brake_count,
                harsh_accel_count=final.harsh_accel_count,
                cornering_score=cornering_score,
                eco_score=calculate_eco_score(final.avg_speed_kmh, final.max_speed_kmh),
                accepted_fixes=final.accepted_fixes,
                rejected_fixes=final.rejected_fixes,
            )

            self._state = TripState.FINALIZED
            self._finalized = trip
            self._latest = final

        logger.info("Trip finalized: %.2fkm in %dmin, avg %.1fkm/h, max %.1fkm/h, eco %d",
                    trip.distance_km, trip.duration_minutes, trip.avg_speed_kmh,
                    trip.max_speed_kmh, trip.eco_score)
        return trip

    @property
    def finalized_trip(self) -> Optional[FinalizedTrip]:
        """The record returned by stop(), or None while the trip is running."""
        return self._finalized

    def _build_snapshot(self, now: float) -> TripSnapshot:
        """Caller holds the lock (or is __init__)."""
        current_speed = self._last_fix.speed_kmh if self._last_fix is not None else 0.0
        return TripSnapshot(
            distance_km=metres_to_km(self._distance.total_distance_m),
            current_speed_kmh=current_speed,
            max_speed_kmh=self._speed.max_speed_kmh,
            avg_speed_kmh=self._speed.average_speed_kmh(),
            elapsed_minutes=elapsed_whole_minutes(self.start_time, now),
            harsh_brake_count=self._events.harsh_brake_count,
            harsh_accel_count=self._events.harsh_accel_count,
            accepted_fixes=self._accepted_fixes,
            rejected_fixes=self._rejected_fixes,
            timestamp=now,
        )
