"""
Active Trip Handler.

Hosts a TripSession on a background thread: polls the location source,
feeds fixes to the session, and publishes snapshots for lock-free reads
and to observers (live trip screens). On end_trip the finalized record is
handed once to the persistence collaborator.
"""

import logging
import time
from typing import Any, Callable, Iterable, Optional

from config import (
    TRIP_HANDLER_ERROR_LOG_AFTER,
    TRIP_HANDLER_MAX_CONSECUTIVE_ERRORS,
    TRIP_HANDLER_POLL_INTERVAL_S,
    TRIP_HANDLER_QUEUE_DEPTH,
)
from trip.core.trip_session import InvalidStateError, TripSession
from trip.data.models import FinalizedTrip, RawFix, TripSnapshot, UpdateResult
from utils.conversions import kmh_to_mps
from utils.publisher_base import BoundedQueuePublisher, Observer

logger = logging.getLogger('tripTelemetry.handler')

Persistence = Callable[[FinalizedTrip], Any]


class TripHandler(BoundedQueuePublisher):
    """
    Trip handler consuming location snapshots and publishing trip state.

    The location source is any object with get_snapshot() returning None or
    an object with .timestamp and .data, where data holds 'has_fix',
    'latitude', 'longitude' and 'speed_kmh'. Each location snapshot is fed to
    the session at most once (deduplicated by timestamp).

    Usage:
        handler = TripHandler(gps_source, persistence=get_trip_store())
        handler.add_observer(on_trip_update)
        handler.start_trip(car_id, user_id, reservation_id)
        ...
        trip = handler.end_trip()
    """

    def __init__(self, location_source, persistence: Optional[Persistence] = None,
                 observers: Optional[Iterable[Observer]] = None,
                 clock: Callable[[], float] = time.time):
        """
        Args:
            location_source: Object exposing get_snapshot()
            persistence: Called once with the FinalizedTrip at end_trip()
            observers: Callbacks receiving each published snapshot
            clock: Time source for the session
        """
        super().__init__(queue_depth=TRIP_HANDLER_QUEUE_DEPTH)
        self.location_source = location_source
        self.persistence = persistence
        self._clock = clock

        for observer in observers or ():
            self.add_observer(observer)

        self.session: Optional[TripSession] = None
        self._last_location_timestamp: Optional[float] = None

        self.consecutive_errors = 0
        self.max_consecutive_errors = TRIP_HANDLER_MAX_CONSECUTIVE_ERRORS

    # ------------------------------------------------------------------
    # Trip lifecycle
    # ------------------------------------------------------------------

    def start_trip(self, car_id: Any, user_id: Any, reservation_id: Any,
                   run_worker: bool = True) -> TripSession:
        """
        Create the session and start consuming fixes.

        Args:
            run_worker: Start the polling thread (tests drive the handler directly)

        Raises:
            RuntimeError: if a trip is already running on this handler
        """
        if self.session is not None:
            raise RuntimeError("A trip is already active on this handler")

        self.session = TripSession.start(car_id, user_id, reservation_id, clock=self._clock)
        self._last_location_timestamp = None
        self.consecutive_errors = 0
        self._publish_state(self.session.latest_snapshot, notify=True)

        if run_worker:
            self.start()
        return self.session

    def end_trip(self, cornering_score: Optional[int] = None) -> FinalizedTrip:
        """
        Stop consuming fixes, finalize the session and persist the record once.

        The worker thread is stopped before the session is finalized so no
        update can be in flight when stop() commits.

        Raises:
            RuntimeError: if no trip is active
        """
        if self.session is None:
            raise RuntimeError("No active trip to end")

        self.stop()

        session = self.session
        trip = session.stop(cornering_score=cornering_score)
        self._publish_state(session.latest_snapshot, notify=True, final=True)
        self.session = None

        self._persist(trip)
        return trip

    def _persist(self, trip: FinalizedTrip):
        """Deliver the record to the persistence collaborator. No retries here."""
        if self.persistence is None:
            logger.info("No persistence configured, finalized trip not stored")
            return
        try:
            result = self.persistence(trip)
            if result is False:
                logger.warning("Persistence reported failure for reservation %s",
                               trip.reservation_id)
        except Exception as e:
            logger.error("Persisting trip for reservation %s failed: %s",
                         trip.reservation_id, e)

    def get_trip_snapshot(self) -> Optional[TripSnapshot]:
        """Fresh snapshot of the running trip (elapsed time computed now)."""
        session = self.session
        if session is None:
            return None
        return session.snapshot()

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def _worker_loop(self):
        """Background thread polling the location source."""
        while self.running:
            try:
                location = self.location_source.get_snapshot()
                if location is not None:
                    self._process_location(location)
                self.consecutive_errors = 0

            except InvalidStateError as e:
                logger.error("Trip handler: %s, stopping worker", e)
                self.running = False
                break

            except Exception as e:
                self.consecutive_errors += 1
                if self.consecutive_errors == TRIP_HANDLER_ERROR_LOG_AFTER:
                    logger.warning("Trip handler: Error: %s", e)
                elif self.consecutive_errors >= self.max_consecutive_errors:
                    logger.warning("Trip handler: Too many errors, continuing...")
                    self.consecutive_errors = 0

            time.sleep(TRIP_HANDLER_POLL_INTERVAL_S)

    def _process_location(self, location) -> Optional[UpdateResult]:
        """
        Feed one location snapshot to the session.

        Returns:
            UpdateResult, or None if the snapshot had no fix or was already seen
        """
        session = self.session
        if session is None:
            return None

        data = location.data
        if not data.get('has_fix'):
            return None
        if location.timestamp == self._last_location_timestamp:
            return None
        self._last_location_timestamp = location.timestamp

        result = session.update(self._convert_location(location))

        # Observers only hear about accepted fixes; pollers see every update
        self._publish_state(result.snapshot, notify=result.accepted,
                            verdict=result.verdict.value, event=result.event.value)
        return result

    @staticmethod
    def _convert_location(location) -> RawFix:
        """Convert a location source snapshot to a RawFix (km/h to m/s)."""
        data = location.data
        speed_kmh = data.get('speed_kmh')
        return RawFix(
            lat=data.get('latitude'),
            lon=data.get('longitude'),
            speed=kmh_to_mps(speed_kmh) if speed_kmh is not None else None,
            timestamp=location.timestamp,
        )

    def _publish_state(self, snapshot: TripSnapshot, notify: bool,
                       final: bool = False, **metadata):
        data = snapshot.to_dict()
        data['harsh_brakes'] = snapshot.harsh_brake_count
        data['harsh_accelerations'] = snapshot.harsh_accel_count
        data['snapshot'] = snapshot

        metadata['final'] = final
        if self.session is not None:
            metadata['state'] = self.session.state.value

        self._publish_snapshot(data, metadata, notify=notify)
