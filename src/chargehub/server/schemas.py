from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from chargehub.server.models import BookingStatus, StationStatus

"""
This file contains the formats of data returned from the server, and received by the server.
The <Entity>Create classes are used when users wants to create a new entity.
The <Entity> classes are used when users are getting an entity from the database.
"""


# User
class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: str = Field(min_length=1)
    phone: Optional[str] = None


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class User(BaseModel):
    id: int
    email: str
    name: str
    phone: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class AuthReturn(BaseModel):
    success: bool = True
    user: User


# Vehicle
class VehicleBase(BaseModel):
    make: str = Field(min_length=1)
    model: str = Field(min_length=1)
    year: int
    license_plate: str = Field(min_length=1)
    battery_capacity_kwh: float = Field(gt=0)


class VehicleCreate(VehicleBase):
    pass


class Vehicle(VehicleBase):
    id: int
    user_id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Charging Station
class ChargingStation(BaseModel):
    id: int
    name: str
    location: str
    power_output_kw: float
    status: StationStatus

    model_config = ConfigDict(from_attributes=True)


# Booking
class BookingCreate(BaseModel):
    vehicle_id: int
    station_id: int
    start_time: datetime
    duration_minutes: int


class BookingUpdate(BaseModel):
    action: str


class Booking(BaseModel):
    id: int
    user_id: int
    vehicle_id: int
    station_id: int
    start_time: datetime
    end_time: datetime
    status: BookingStatus
    created_at: datetime
    vehicle: Vehicle
    station: ChargingStation

    model_config = ConfigDict(from_attributes=True)


class BookingOverview(BaseModel):
    bookings: list[Booking]
    stations: list[ChargingStation]
    vehicles: list[Vehicle]


# Battery telemetry
class BatteryLogCreate(BaseModel):
    vehicle_id: int
    charge_level: float = Field(ge=0, le=100)
    voltage: Optional[float] = None
    current: Optional[float] = None
    temperature: Optional[float] = None
    health_score: Optional[float] = None
    charging_power: Optional[float] = None
    estimated_time: Optional[int] = None


class BatteryReading(BaseModel):
    charge_level: float
    voltage: Optional[float] = None
    current: Optional[float] = None
    temperature: Optional[float] = None
    health_score: Optional[float] = None
    charging_power: Optional[float] = None
    estimated_time: Optional[int] = None
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)


class BatteryLog(BatteryReading):
    id: int
    vehicle_id: int


class BatteryLogReturn(BaseModel):
    success: bool = True
    log_id: int
    message: str = "Battery status recorded"


# Monitoring
class MonitoringReturn(BaseModel):
    vehicle: Vehicle
    booking: Optional[Booking] = None
    latest_log: BatteryReading
    recent_logs: list[BatteryLog]
    is_simulated: bool


class ActiveSession(BaseModel):
    booking: Booking
    latest_log: BatteryReading
    is_simulated: bool


# Hardware
class HardwareCommand(BaseModel):
    command: str
    message: Optional[str] = None
    station_id: Optional[int] = None
    station_name: Optional[str] = None
    power_output_kw: Optional[float] = None
    booking_id: Optional[int] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
