from sqlalchemy.orm import Session

import chargehub.server.models as models
import chargehub.server.schemas as schemas
from chargehub.server.errors import NotFound, ValidationError

"""
This file contains methods used for interacting directly with the database
for users, vehicles and battery telemetry. Stations and bookings live in
registry.py and ledger.py.
"""


# User
def get_user(db: Session, user_id: int):
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_user_by_email(db: Session, email: str):
    return db.query(models.User).filter(models.User.email == email.strip().lower()).first()


def create_user(db: Session, user: schemas.UserCreate, password_hash: str):
    db_user = models.User(
        email=user.email.strip().lower(),
        password_hash=password_hash,
        name=user.name,
        phone=user.phone or None,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


# Vehicle
def get_vehicle(db: Session, vehicle_id: int):
    return db.query(models.Vehicle).filter(models.Vehicle.id == vehicle_id).first()


def get_owned_vehicle(db: Session, vehicle_id: int, user_id: int):
    return db.query(models.Vehicle).filter(
        models.Vehicle.id == vehicle_id,
        models.Vehicle.user_id == user_id,
    ).first()


def get_vehicle_by_plate(db: Session, license_plate: str):
    return db.query(models.Vehicle).filter(models.Vehicle.license_plate == license_plate.strip().upper()).first()


def get_user_vehicles(db: Session, user_id: int):
    return (
        db.query(models.Vehicle)
        .filter(models.Vehicle.user_id == user_id)
        .order_by(models.Vehicle.created_at.desc(), models.Vehicle.id.desc())
        .all()
    )


def create_vehicle(db: Session, user_id: int, vehicle: schemas.VehicleCreate):
    db_vehicle = models.Vehicle(
        user_id=user_id,
        make=vehicle.make,
        model=vehicle.model,
        year=vehicle.year,
        license_plate=vehicle.license_plate.strip().upper(),
        battery_capacity_kwh=vehicle.battery_capacity_kwh,
    )
    db.add(db_vehicle)
    db.commit()
    db.refresh(db_vehicle)
    return db_vehicle


def delete_vehicle(db: Session, vehicle_id: int, user_id: int):
    '''
    Deletes a vehicle of the user, together with its telemetry and finished bookings.
    A vehicle that still has a scheduled or active booking can not be deleted.
    '''
    db_vehicle = get_owned_vehicle(db, vehicle_id, user_id)
    if db_vehicle is None:
        raise NotFound("Vehicle not found")

    if any(b.status in models.OPEN_BOOKING_STATUSES for b in db_vehicle.bookings):
        raise ValidationError("Vehicle has scheduled or active bookings. Cancel them first.")

    db.delete(db_vehicle)
    db.commit()


# Battery telemetry
def create_battery_log(db: Session, log: schemas.BatteryLogCreate):
    if get_vehicle(db, log.vehicle_id) is None:
        raise NotFound("Vehicle not found")

    db_log = models.BatteryLog(**log.model_dump())
    db.add(db_log)
    db.commit()
    db.refresh(db_log)
    return db_log


def get_latest_battery_log(db: Session, vehicle_id: int):
    return (
        db.query(models.BatteryLog)
        .filter(models.BatteryLog.vehicle_id == vehicle_id)
        .order_by(models.BatteryLog.timestamp.desc(), models.BatteryLog.id.desc())
        .first()
    )


def get_recent_battery_logs(db: Session, vehicle_id: int, limit: int):
    return (
        db.query(models.BatteryLog)
        .filter(models.BatteryLog.vehicle_id == vehicle_id)
        .order_by(models.BatteryLog.timestamp.desc(), models.BatteryLog.id.desc())
        .limit(limit)
        .all()
    )
