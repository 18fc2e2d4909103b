from typing import Optional

from sqlalchemy.orm import Session

import chargehub.server.models as models
from chargehub.server.errors import InvalidTransition, NotFound
from chargehub.server.utils import TimeInterval

BS = models.BookingStatus
BA = models.BookingAction

# (current status, action) -> next status. Pairs missing here are not allowed.
TRANSITIONS = {
    (BS.SCHEDULED, BA.START): BS.ACTIVE,
    (BS.ACTIVE, BA.COMPLETE): BS.COMPLETED,
    (BS.SCHEDULED, BA.CANCEL): BS.CANCELLED,
    (BS.ACTIVE, BA.CANCEL): BS.CANCELLED,
}


def next_status(current: models.BookingStatus, action: models.BookingAction) -> models.BookingStatus:
    try:
        return TRANSITIONS[(current, action)]
    except KeyError:
        raise InvalidTransition(f"Can not {action.value} a booking that is {current.value}") from None


def booking_interval(booking: models.Booking) -> TimeInterval:
    return TimeInterval(booking.start_time, booking.end_time)


class BookingLedger:
    '''
    All bookings. Nothing here commits; the scheduling service decides where
    a unit of work ends.
    '''

    def __init__(self, db: Session):
        self.db = db

    def find_conflict(self, station_id: int, interval: TimeInterval) -> Optional[models.Booking]:
        ''' First open booking on the station whose interval overlaps the given one, if any '''
        open_bookings = (
            self.db.query(models.Booking)
            .filter(
                models.Booking.station_id == station_id,
                models.Booking.status.in_(models.OPEN_BOOKING_STATUSES),
            )
            .order_by(models.Booking.start_time.asc())
            .all()
        )
        for booking in open_bookings:
            if interval.overlaps(booking_interval(booking)):
                return booking
        return None

    def create(self, user_id: int, vehicle_id: int, station_id: int, interval: TimeInterval) -> models.Booking:
        db_booking = models.Booking(
            user_id=user_id,
            vehicle_id=vehicle_id,
            station_id=station_id,
            start_time=interval.start,
            end_time=interval.end,
            status=BS.SCHEDULED,
        )
        self.db.add(db_booking)
        self.db.flush()
        return db_booking

    def get(self, booking_id: int) -> models.Booking:
        db_booking = self.db.query(models.Booking).filter(models.Booking.id == booking_id).first()
        if db_booking is None:
            raise NotFound("Booking not found")
        return db_booking

    def find_owned(self, booking_id: int, user_id: int) -> models.Booking:
        db_booking = self.db.query(models.Booking).filter(
            models.Booking.id == booking_id,
            models.Booking.user_id == user_id,
        ).first()
        if db_booking is None:
            raise NotFound("Booking not found")
        return db_booking

    def list_owned(self, user_id: int):
        return (
            self.db.query(models.Booking)
            .filter(models.Booking.user_id == user_id)
            .order_by(models.Booking.start_time.desc())
            .all()
        )

    def find_active(self, station_id: Optional[int] = None, vehicle_id: Optional[int] = None, user_id: Optional[int] = None):
        query = self.db.query(models.Booking).filter(models.Booking.status == BS.ACTIVE)
        if station_id is not None:
            query = query.filter(models.Booking.station_id == station_id)
        if vehicle_id is not None:
            query = query.filter(models.Booking.vehicle_id == vehicle_id)
        if user_id is not None:
            query = query.filter(models.Booking.user_id == user_id)
        return query.order_by(models.Booking.start_time.asc()).all()

    def transition(self, booking_id: int, action: models.BookingAction) -> models.Booking:
        db_booking = self.get(booking_id)
        db_booking.status = next_status(db_booking.status, action)
        self.db.flush()
        return db_booking
