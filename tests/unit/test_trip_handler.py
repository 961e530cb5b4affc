"""
Unit tests for TripHandler.
Drives the handler directly with run_worker=False except where the polling
thread itself is under test.
"""

import threading
import time
from unittest.mock import Mock

import pytest

from service.trip_handler import TripHandler
from trip.core.trip_session import InvalidStateError
from trip.data.models import FinalizedTrip, FixVerdict, TripState
from utils.publisher_base import PublishedSnapshot


def gps_snapshot(lat, lon, speed_kmh=0.0, timestamp=1.0, has_fix=True):
    """Location snapshot shaped like the GPS handler output."""
    return PublishedSnapshot(
        timestamp=timestamp,
        data={
            'has_fix': has_fix,
            'latitude': lat,
            'longitude': lon,
            'speed_kmh': speed_kmh,
        },
    )


class FakeLocationSource:
    """Returns queued snapshots in order, then repeats the last one."""

    def __init__(self, snapshots=()):
        self._snapshots = list(snapshots)
        self._last = None
        self._lock = threading.Lock()

    def push(self, snapshot):
        with self._lock:
            self._snapshots.append(snapshot)

    def get_snapshot(self):
        with self._lock:
            if self._snapshots:
                self._last = self._snapshots.pop(0)
            return self._last


@pytest.fixture
def source():
    return FakeLocationSource()


@pytest.fixture
def persistence():
    return Mock(return_value=True)


@pytest.fixture
def handler(source, persistence, clock):
    return TripHandler(source, persistence=persistence, clock=clock)


class TestTripHandlerLifecycle:

    @pytest.mark.unit
    def test_start_trip_creates_session(self, handler):
        session = handler.start_trip("car", "user", "res", run_worker=False)

        assert handler.session is session
        assert session.state is TripState.CREATED
        assert handler.get_data()['distance'] == 0.0

    @pytest.mark.unit
    def test_start_twice_raises(self, handler):
        handler.start_trip("car", "user", "res", run_worker=False)
        with pytest.raises(RuntimeError):
            handler.start_trip("car", "user", "res2", run_worker=False)

    @pytest.mark.unit
    def test_end_without_start_raises(self, handler):
        with pytest.raises(RuntimeError):
            handler.end_trip()

    @pytest.mark.unit
    def test_end_trip_persists_once(self, handler, persistence):
        handler.start_trip("car", "user", "res", run_worker=False)
        handler._process_location(gps_snapshot(52.0, 4.0, 36.0, timestamp=1.0))

        trip = handler.end_trip()

        assert isinstance(trip, FinalizedTrip)
        persistence.assert_called_once_with(trip)
        assert handler.session is None
        assert handler.get_trip_snapshot() is None

    @pytest.mark.unit
    def test_end_trip_publishes_final_snapshot(self, handler):
        handler.start_trip("car", "user", "res", run_worker=False)
        handler.end_trip()

        snapshot = handler.get_snapshot()
        assert snapshot.metadata['final'] is True
        assert snapshot.metadata['state'] == TripState.FINALIZED.value

    @pytest.mark.unit
    def test_persistence_failure_does_not_raise(self, source, clock):
        persistence = Mock(side_effect=IOError("disk full"))
        handler = TripHandler(source, persistence=persistence, clock=clock)
        handler.start_trip("car", "user", "res", run_worker=False)

        trip = handler.end_trip()

        assert trip.reservation_id == "res"
        persistence.assert_called_once()

    @pytest.mark.unit
    def test_persistence_returning_false(self, source, clock):
        persistence = Mock(return_value=False)
        handler = TripHandler(source, persistence=persistence, clock=clock)
        handler.start_trip("car", "user", "res", run_worker=False)

        assert handler.end_trip() is not None

    @pytest.mark.unit
    def test_no_persistence(self, source, clock):
        handler = TripHandler(source, clock=clock)
        handler.start_trip("car", "user", "res", run_worker=False)
        assert handler.end_trip().eco_score == 100

    @pytest.mark.unit
    def test_new_trip_after_end(self, handler):
        handler.start_trip("car", "user", "res-1", run_worker=False)
        handler.end_trip()
        session = handler.start_trip("car", "user", "res-2", run_worker=False)
        assert session.reservation_id == "res-2"


class TestTripHandlerProcessing:

    @pytest.mark.unit
    def test_speed_converted_from_kmh(self, handler):
        handler.start_trip("car", "user", "res", run_worker=False)
        result = handler._process_location(gps_snapshot(52.0, 4.0, 54.0))

        assert result.verdict is FixVerdict.FIRST_FIX
        assert handler.session.last_fix.speed == pytest.approx(15.0)
        assert handler.get_data()['speed'] == pytest.approx(54.0)

    @pytest.mark.unit
    def test_no_fix_ignored(self, handler):
        handler.start_trip("car", "user", "res", run_worker=False)
        assert handler._process_location(gps_snapshot(52.0, 4.0, has_fix=False)) is None
        assert handler.session.state is TripState.CREATED

    @pytest.mark.unit
    def test_duplicate_timestamp_ignored(self, handler):
        """Test the same location snapshot is fed to the session only once."""
        handler.start_trip("car", "user", "res", run_worker=False)
        location = gps_snapshot(52.0, 4.0, 36.0, timestamp=5.0)

        assert handler._process_location(location) is not None
        assert handler._process_location(location) is None
        assert handler.session.accepted_fix_count == 1

    @pytest.mark.unit
    def test_no_session_ignored(self, handler):
        assert handler._process_location(gps_snapshot(52.0, 4.0)) is None

    @pytest.mark.unit
    def test_missing_speed(self, handler):
        handler.start_trip("car", "user", "res", run_worker=False)
        location = PublishedSnapshot(timestamp=1.0, data={
            'has_fix': True, 'latitude': 52.0, 'longitude': 4.0,
        })
        result = handler._process_location(location)
        assert result.accepted is True
        assert handler.session.speed_sample_count == 0

    @pytest.mark.unit
    def test_harsh_brake_published(self, handler):
        handler.start_trip("car", "user", "res", run_worker=False)
        handler._process_location(gps_snapshot(52.0000, 4.0, 54.0, timestamp=1.0))
        handler._process_location(gps_snapshot(52.0005, 4.0, 18.0, timestamp=2.0))

        snapshot = handler.get_snapshot()
        assert snapshot.data['harsh_brakes'] == 1
        assert snapshot.metadata['event'] == 'harsh_brake'
        assert snapshot.metadata['state'] == 'active'


class TestTripHandlerObservers:

    @pytest.mark.unit
    def test_observers_notified_on_accepted_only(self, source, clock):
        observer = Mock()
        handler = TripHandler(source, observers=[observer], clock=clock)
        handler.start_trip("car", "user", "res", run_worker=False)
        assert observer.call_count == 1  # initial snapshot

        handler._process_location(gps_snapshot(0.0, 0.0, 36.0, timestamp=1.0))
        assert observer.call_count == 2

        # ~111m jump, rejected
        handler._process_location(gps_snapshot(0.001, 0.0, 36.0, timestamp=2.0))
        assert observer.call_count == 2
        assert handler.get_snapshot().metadata['verdict'] == 'gps_jump'

        handler.end_trip()
        assert observer.call_count == 3
        assert observer.call_args[0][0].metadata['final'] is True

    @pytest.mark.unit
    def test_broken_observer_does_not_stop_trip(self, handler):
        handler.add_observer(Mock(side_effect=ValueError("boom")))
        handler.start_trip("car", "user", "res", run_worker=False)

        result = handler._process_location(gps_snapshot(52.0, 4.0, 36.0))
        assert result.accepted is True


class TestTripHandlerWorker:

    @pytest.mark.unit
    def test_worker_consumes_fixes(self, source, persistence, clock):
        source.push(gps_snapshot(52.0000, 4.0, 36.0, timestamp=1.0))
        source.push(gps_snapshot(52.0005, 4.0, 36.0, timestamp=2.0))
        handler = TripHandler(source, persistence=persistence, clock=clock)

        handler.start_trip("car", "user", "res")
        deadline = time.time() + 5.0
        while handler.session.accepted_fix_count < 2 and time.time() < deadline:
            time.sleep(0.05)

        trip = handler.end_trip()

        assert trip.accepted_fixes == 2
        assert trip.distance_km == pytest.approx(0.0556, rel=1e-2)
        assert handler.thread is None
        persistence.assert_called_once_with(trip)

    @pytest.mark.unit
    def test_worker_survives_source_errors(self, clock):
        source = Mock()
        source.get_snapshot.side_effect = RuntimeError("serial glitch")
        handler = TripHandler(source, clock=clock)

        handler.start_trip("car", "user", "res")
        time.sleep(0.35)
        assert handler.running is True
        assert handler.consecutive_errors >= 1

        handler.end_trip()
        assert handler.running is False

    @pytest.mark.unit
    def test_worker_stops_on_finalized_session(self, source, clock):
        handler = TripHandler(source, clock=clock)
        handler.start_trip("car", "user", "res", run_worker=False)
        handler.session.stop()

        source.push(gps_snapshot(52.0, 4.0, timestamp=1.0))
        handler.running = True
        handler._worker_loop()

        assert handler.running is False

    @pytest.mark.unit
    def test_process_on_finalized_session_raises(self, handler):
        handler.start_trip("car", "user", "res", run_worker=False)
        handler.session.stop()

        with pytest.raises(InvalidStateError):
            handler._process_location(gps_snapshot(52.0, 4.0))
