import random
from typing import Optional

from sqlalchemy.orm import Session

import chargehub.server.config as config
import chargehub.server.crud as crud
import chargehub.server.schemas as schemas
from chargehub.server.errors import NotFound, ValidationError
from chargehub.server.ledger import BookingLedger
from chargehub.server.utils import utcnow


def simulated_reading(rng: random.Random = random) -> schemas.BatteryReading:
    ''' Plausible values shown while a vehicle has not reported any telemetry yet '''
    return schemas.BatteryReading(
        charge_level=rng.uniform(20, 80),
        voltage=rng.uniform(350, 400),
        current=rng.uniform(10, 50),
        temperature=rng.uniform(25, 40),
        health_score=rng.uniform(88, 98),
        charging_power=rng.uniform(7, 22),
        estimated_time=rng.randint(30, 150),
        timestamp=utcnow(),
    )


def latest_reading(db: Session, vehicle_id: int):
    ''' Returns (reading, is_simulated) for the vehicle '''
    db_log = crud.get_latest_battery_log(db, vehicle_id)
    if db_log is None:
        return simulated_reading(), True
    return schemas.BatteryReading.model_validate(db_log), False


def get_monitoring(db: Session, user_id: int, vehicle_id: Optional[int] = None, booking_id: Optional[int] = None) -> dict:
    '''
    Battery data for one of the user's vehicles, picked either directly or
    through one of the user's bookings (the booking wins when both are given).
    '''
    if booking_id is None and vehicle_id is None:
        raise ValidationError("vehicle_id or booking_id is required")

    db_booking = None
    if booking_id is not None:
        db_booking = BookingLedger(db).find_owned(booking_id, user_id)
        db_vehicle = db_booking.vehicle
    else:
        db_vehicle = crud.get_owned_vehicle(db, vehicle_id, user_id)
        if db_vehicle is None:
            raise NotFound("Vehicle not found")

    reading, is_simulated = latest_reading(db, db_vehicle.id)
    return {
        "vehicle": db_vehicle,
        "booking": db_booking,
        "latest_log": reading,
        "recent_logs": crud.get_recent_battery_logs(db, db_vehicle.id, config.RECENT_LOGS_LIMIT),
        "is_simulated": is_simulated,
    }


def get_active_sessions(db: Session, user_id: int) -> list:
    sessions = []
    for db_booking in BookingLedger(db).find_active(user_id=user_id):
        reading, is_simulated = latest_reading(db, db_booking.vehicle_id)
        sessions.append({"booking": db_booking, "latest_log": reading, "is_simulated": is_simulated})
    return sessions
