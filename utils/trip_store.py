"""
Persistent local storage for finalized trips.

Stores one row per finalized trip in SQLite so trip history survives
restarts. This is the default persistence collaborator for the trip
handler; delivery to the backend is handled elsewhere and retried there.
"""

import logging
import os
import sqlite3
import threading
from typing import Any, List, Optional

from config import TRIP_DATA_DIR
from trip.data.models import FinalizedTrip

logger = logging.getLogger('tripTelemetry.store')

DATABASE_FILE = os.path.join(TRIP_DATA_DIR, "trips.db")

_COLUMNS = (
    "car_id", "user_id", "reservation_id", "start_time", "end_time",
    "distance_km", "duration_minutes", "avg_speed_kmh", "max_speed_kmh",
    "harsh_brake_count", "harsh_accel_count", "cornering_score", "eco_score",
    "accepted_fixes", "rejected_fixes",
)


def _sql_value(value: Any) -> Any:
    """SQLite stores int/float/str/None natively; other identifiers go in as text."""
    if value is None or isinstance(value, (int, float, str)):
        return value
    return str(value)


class TripStore:
    """
    Manages persistent storage of finalized trips.

    Thread-safe singleton; every call opens its own connection under a lock.
    """

    _instance: Optional['TripStore'] = None
    _lock = threading.Lock()

    def __new__(cls):
        """Singleton pattern - only one store instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialised = False
        return cls._instance

    def __init__(self):
        if self._initialised:
            return

        self._db_path = DATABASE_FILE
        self._db_lock = threading.Lock()
        self._ensure_data_dir()
        self._init_database()
        self._initialised = True

    def _ensure_data_dir(self):
        try:
            os.makedirs(os.path.dirname(self._db_path), exist_ok=True)
        except OSError as e:
            logger.warning("Could not create trip data directory: %s", e)

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path)

    def _init_database(self):
        """Create the trips table if it does not exist."""
        with self._db_lock:
            try:
                conn = self._connect()
                try:
                    conn.execute('''
                        CREATE TABLE IF NOT EXISTS trips (
                            id INTEGER PRIMARY KEY AUTOINCREMENT,
                            car_id,
                            user_id,
                            reservation_id,
                            start_time REAL NOT NULL,
                            end_time REAL NOT NULL,
                            distance_km REAL NOT NULL,
                            duration_minutes INTEGER NOT NULL,
                            avg_speed_kmh REAL NOT NULL,
                            max_speed_kmh REAL NOT NULL,
                            harsh_brake_count INTEGER NOT NULL,
                            harsh_accel_count INTEGER NOT NULL,
                            cornering_score INTEGER NOT NULL,
                            eco_score INTEGER NOT NULL,
                            accepted_fixes INTEGER DEFAULT 0,
                            rejected_fixes INTEGER DEFAULT 0
                        )
                    ''')
                    conn.execute('''
                        CREATE INDEX IF NOT EXISTS idx_trips_user
                        ON trips(user_id)
                    ''')
                    conn.commit()
                finally:
                    conn.close()
                logger.info("Trip database initialised: %s", self._db_path)
            except sqlite3.Error as e:
                logger.warning("Could not initialise trip database: %s", e)

    def save_trip(self, trip: FinalizedTrip) -> bool:
        """
        Store a finalized trip.

        Returns:
            True if the trip was written
        """
        values = tuple(_sql_value(getattr(trip, column)) for column in _COLUMNS)
        placeholders = ", ".join("?" for _ in _COLUMNS)

        with self._db_lock:
            try:
                conn = self._connect()
                try:
                    conn.execute(
                        f"INSERT INTO trips ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                        values,
                    )
                    conn.commit()
                finally:
                    conn.close()
            except sqlite3.Error as e:
                logger.error("Could not save trip for reservation %s: %s", trip.reservation_id, e)
                return False

        logger.info("Trip saved: reservation=%s, %.2fkm", trip.reservation_id, trip.distance_km)
        return True

    def __call__(self, trip: FinalizedTrip) -> bool:
        """Lets the store be passed directly as a persistence callable."""
        return self.save_trip(trip)

    def get_trips(self, user_id: Any = None, car_id: Any = None,
                  limit: int = 50) -> List[FinalizedTrip]:
        """
        Most recent trips first, optionally filtered by user and/or car.
        """
        query = f"SELECT {', '.join(_COLUMNS)} FROM trips"
        clauses = []
        params: List[Any] = []
        if user_id is not None:
            clauses.append("user_id = ?")
            params.append(_sql_value(user_id))
        if car_id is not None:
            clauses.append("car_id = ?")
            params.append(_sql_value(car_id))
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY end_time DESC, id DESC LIMIT ?"
        params.append(limit)

        with self._db_lock:
            try:
                conn = self._connect()
                try:
                    rows = conn.execute(query, params).fetchall()
                finally:
                    conn.close()
            except sqlite3.Error as e:
                logger.warning("Could not read trips: %s", e)
                return []

        return [FinalizedTrip(**dict(zip(_COLUMNS, row))) for row in rows]

    def get_trip_count(self) -> int:
        with self._db_lock:
            try:
                conn = self._connect()
                try:
                    (count,) = conn.execute("SELECT COUNT(*) FROM trips").fetchone()
                finally:
                    conn.close()
                return count
            except sqlite3.Error as e:
                logger.warning("Could not count trips: %s", e)
                return 0


def get_trip_store() -> TripStore:
    """Get the trip store singleton."""
    return TripStore()
