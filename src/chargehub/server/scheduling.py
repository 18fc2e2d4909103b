import logging
import threading
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy.orm import Session

import chargehub.server.crud as crud
import chargehub.server.models as models
from chargehub.server.errors import InvalidTransition, NotFound, SlotConflict, ValidationError
from chargehub.server.ledger import BookingLedger, next_status
from chargehub.server.registry import StationRegistry
from chargehub.server.utils import TimeInterval

logger = logging.getLogger("server_logger")

BS = models.BookingStatus
BA = models.BookingAction

# Station status written together with the booking status, keyed like the transition table.
STATION_EFFECTS = {
    (BS.SCHEDULED, BA.START): models.StationStatus.OCCUPIED,
    (BS.ACTIVE, BA.COMPLETE): models.StationStatus.AVAILABLE,
    (BS.ACTIVE, BA.CANCEL): models.StationStatus.AVAILABLE,
}


class StationLocks:
    ''' One mutex per station, created on first use. '''

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[int, threading.Lock] = {}

    def get(self, station_id: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(station_id)
            if lock is None:
                lock = self._locks[station_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, station_id: int):
        lock = self.get(station_id)
        with lock:
            yield


# Shared by every request handled by this process
station_locks = StationLocks()


def parse_action(action) -> models.BookingAction:
    try:
        return models.BookingAction(action)
    except ValueError:
        raise ValidationError(f"Invalid action '{action}'. Expected one of: start, complete, cancel") from None


class SchedulingService:
    '''
    Creates bookings and moves them through their lifecycle.

    The conflict check and the insert of a new booking, and a status change
    together with its station status, each run as one transaction while the
    station is locked: in-process through ``station_locks`` and in the
    database through a row lock on the station.

    The notifier, when given, is told to start or stop charging after a
    transition has been committed.
    '''

    def __init__(self, db: Session, notifier=None, locks: StationLocks = station_locks):
        self.db = db
        self.notifier = notifier
        self.locks = locks
        self.ledger = BookingLedger(db)
        self.registry = StationRegistry(db)

    def list_bookings(self, user_id: int) -> dict:
        return {
            "bookings": self.ledger.list_owned(user_id),
            "stations": self.registry.list(),
            "vehicles": crud.get_user_vehicles(self.db, user_id),
        }

    def create_booking(self, user_id: int, vehicle_id: int, station_id: int, start_time: datetime, duration_minutes) -> models.Booking:
        if crud.get_owned_vehicle(self.db, vehicle_id, user_id) is None:
            raise NotFound("Vehicle not found")

        interval = TimeInterval.from_duration(start_time, duration_minutes)
        # Unknown stations fail here, before a lock is created for them
        self.registry.get(station_id)

        with self.locks.hold(station_id):
            try:
                self.registry.lock_for_update(station_id)
                conflict = self.ledger.find_conflict(station_id, interval)
                if conflict is not None:
                    logger.info(f"Rejected booking on station {station_id} for {interval.start} - {interval.end}: overlaps booking {conflict.id}")
                    raise SlotConflict("This time slot is already booked")

                db_booking = self.ledger.create(user_id, vehicle_id, station_id, interval)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(db_booking)
        logger.info(f"Booking {db_booking.id} scheduled on station {station_id} for {interval.start} - {interval.end}")
        return db_booking

    def transition_booking(self, user_id: int, booking_id: int, action) -> models.Booking:
        action = parse_action(action)
        db_booking = self.ledger.find_owned(booking_id, user_id)
        station_id = db_booking.station_id

        with self.locks.hold(station_id):
            try:
                self.registry.lock_for_update(station_id)
                # Status may have changed since it was read without the lock
                self.db.refresh(db_booking)
                previous = db_booking.status
                next_status(previous, action)

                if action is BA.START and self.ledger.find_active(station_id=station_id):
                    raise InvalidTransition("Another charging session is already active on this station")

                self.ledger.transition(db_booking.id, action)
                station_status = STATION_EFFECTS.get((previous, action))
                if station_status is not None:
                    self.registry.set_status(station_id, station_status)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(db_booking)
        logger.info(f"Booking {db_booking.id}: {previous.value} -> {db_booking.status.value}")

        if self.notifier is not None:
            try:
                if previous is BS.SCHEDULED and action is BA.START:
                    self.notifier.send_start_charging(db_booking)
                elif previous is BS.ACTIVE:
                    self.notifier.send_stop_charging(db_booking)
            except Exception:
                logger.warning(f"Could not notify vehicle {db_booking.vehicle_id} about booking {db_booking.id}", exc_info=True)
        return db_booking
