from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

import chargehub.server.config as config
import chargehub.server.crud as crud
import chargehub.server.models as models
import chargehub.server.monitoring as monitoring
import chargehub.server.schemas as schemas
import chargehub.server.security as security
from chargehub.server.database import get_db
from chargehub.server.ledger import BookingLedger
from chargehub.server.registry import StationRegistry
from chargehub.server.scheduling import SchedulingService

"""
This file contains definitions for all the REST API endpoints of the server.
Errors from the booking core (errors.py) are turned into responses by the
handlers registered in run.py.
"""

router = APIRouter()


def get_notifier(request: Request):
    return getattr(request.app.state, "mqtt_client", None)


def get_scheduler(db: Session = Depends(get_db), notifier=Depends(get_notifier)):
    return SchedulingService(db, notifier=notifier)


def _start_session(response: Response, db_user: models.User):
    token = security.make_session_token(db_user.id, db_user.email, db_user.name)
    response.set_cookie(config.SESSION_COOKIE, token, **security.cookie_settings())
    return schemas.AuthReturn(user=schemas.User.model_validate(db_user))


# Auth
@router.post("/auth/register", response_model=schemas.AuthReturn)
def register(user: schemas.UserCreate, response: Response, db: Session = Depends(get_db)):
    if crud.get_user_by_email(db, user.email) is not None:
        raise HTTPException(status_code=400, detail="Email is already registered")

    db_user = crud.create_user(db, user, security.hash_password(user.password))
    return _start_session(response, db_user)


@router.post("/auth/login", response_model=schemas.AuthReturn)
def login(credentials: schemas.UserLogin, response: Response, db: Session = Depends(get_db)):
    db_user = crud.get_user_by_email(db, credentials.email)
    if db_user is None or not security.verify_password(credentials.password, db_user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return _start_session(response, db_user)


@router.post("/auth/logout")
def logout(response: Response):
    response.delete_cookie(config.SESSION_COOKIE, path="/")
    return {"success": True}


@router.get("/auth/me", response_model=schemas.User)
def me(user: models.User = Depends(security.get_current_user)):
    return user


# Vehicle
@router.get("/vehicles", response_model=list[schemas.Vehicle])
def list_vehicles(user: models.User = Depends(security.get_current_user), db: Session = Depends(get_db)):
    return crud.get_user_vehicles(db, user.id)


@router.post("/vehicles", response_model=schemas.Vehicle)
def create_vehicle(vehicle: schemas.VehicleCreate, user: models.User = Depends(security.get_current_user), db: Session = Depends(get_db)):
    if crud.get_vehicle_by_plate(db, vehicle.license_plate) is not None:
        raise HTTPException(status_code=400, detail="License plate is already registered")
    return crud.create_vehicle(db, user.id, vehicle)


@router.delete("/vehicles/{vehicle_id}")
def delete_vehicle(vehicle_id: int, user: models.User = Depends(security.get_current_user), db: Session = Depends(get_db)):
    crud.delete_vehicle(db, vehicle_id, user.id)
    return {"success": True}


# Charging Station
@router.get("/stations", response_model=list[schemas.ChargingStation])
def list_stations(db: Session = Depends(get_db)):
    return StationRegistry(db).list()


@router.get("/stations/{station_id}", response_model=schemas.ChargingStation)
def get_station(station_id: int, db: Session = Depends(get_db)):
    return StationRegistry(db).get(station_id)


# Booking
@router.get("/bookings", response_model=schemas.BookingOverview)
def list_bookings(user: models.User = Depends(security.get_current_user), scheduler: SchedulingService = Depends(get_scheduler)):
    return scheduler.list_bookings(user.id)


@router.post("/bookings", response_model=schemas.Booking)
def create_booking(booking: schemas.BookingCreate, user: models.User = Depends(security.get_current_user), scheduler: SchedulingService = Depends(get_scheduler)):
    '''
    Books a station for a vehicle of the user, from start_time for duration_minutes.
    The slot must not overlap any scheduled or active booking on the station.
    '''
    return scheduler.create_booking(
        user.id,
        booking.vehicle_id,
        booking.station_id,
        booking.start_time,
        booking.duration_minutes,
    )


@router.patch("/bookings/{booking_id}", response_model=schemas.Booking)
def update_booking(booking_id: int, update: schemas.BookingUpdate, user: models.User = Depends(security.get_current_user), scheduler: SchedulingService = Depends(get_scheduler)):
    ''' Starts, completes or cancels a booking of the user. '''
    return scheduler.transition_booking(user.id, booking_id, update.action)


# Monitoring
@router.get("/monitoring", response_model=schemas.MonitoringReturn)
def get_monitoring(
    vehicle_id: Optional[int] = None,
    booking_id: Optional[int] = None,
    user: models.User = Depends(security.get_current_user),
    db: Session = Depends(get_db),
):
    return monitoring.get_monitoring(db, user.id, vehicle_id=vehicle_id, booking_id=booking_id)


@router.get("/monitoring/active", response_model=list[schemas.ActiveSession])
def get_active_sessions(user: models.User = Depends(security.get_current_user), db: Session = Depends(get_db)):
    return monitoring.get_active_sessions(db, user.id)


# Hardware
@router.post("/hardware/status", response_model=schemas.BatteryLogReturn, dependencies=[Depends(security.require_hardware_key)])
def record_battery_status(log: schemas.BatteryLogCreate, db: Session = Depends(get_db)):
    ''' Battery status reported by the charging hardware of a vehicle. '''
    db_log = crud.create_battery_log(db, log)
    return schemas.BatteryLogReturn(log_id=db_log.id)


@router.get("/hardware/command", response_model=schemas.HardwareCommand, response_model_exclude_none=True, dependencies=[Depends(security.require_hardware_key)])
def get_hardware_command(vehicle_id: int, db: Session = Depends(get_db)):
    ''' Tells the hardware of a vehicle whether it should be charging right now. '''
    active = BookingLedger(db).find_active(vehicle_id=vehicle_id)
    if not active:
        return schemas.HardwareCommand(command="idle", message="No active charging session")

    db_booking = active[0]
    return schemas.HardwareCommand(
        command="charge",
        station_id=db_booking.station_id,
        station_name=db_booking.station.name,
        power_output_kw=db_booking.station.power_output_kw,
        booking_id=db_booking.id,
        start_time=db_booking.start_time,
        end_time=db_booking.end_time,
    )


@router.get("/health", status_code=200)
def health():
    return {"status": "ok"}
