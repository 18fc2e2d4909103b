import enum

from sqlalchemy import Column, DateTime, Enum, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from chargehub.server.database import Base
from chargehub.server.utils import utcnow

"""
This file contains the database model definitions, with their relationships.
(Object–relational mapping)
Status values are stored as their lowercase tokens.
"""


class StationStatus(str, enum.Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    MAINTENANCE = "maintenance"


class BookingStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BookingAction(str, enum.Enum):
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"


# Bookings in these states hold their time slot on the station
OPEN_BOOKING_STATUSES = (BookingStatus.SCHEDULED, BookingStatus.ACTIVE)


def _status_column(enum_cls, default):
    status_type = Enum(
        enum_cls,
        native_enum=False,
        length=20,
        values_callable=lambda members: [m.value for m in members],
    )
    return Column(status_type, nullable=False, default=default)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    name = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    created_at = Column(DateTime(), default=utcnow)

    vehicles = relationship("Vehicle", back_populates="user")
    bookings = relationship("Booking", back_populates="user")


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True)
    make = Column(String, nullable=False)
    model = Column(String, nullable=False)
    year = Column(Integer, nullable=False)
    license_plate = Column(String, unique=True, nullable=False, index=True)
    battery_capacity_kwh = Column(Float, nullable=False)
    created_at = Column(DateTime(), default=utcnow)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    user = relationship("User", back_populates="vehicles")
    bookings = relationship("Booking", back_populates="vehicle", cascade="all, delete-orphan")
    battery_logs = relationship("BatteryLog", back_populates="vehicle", cascade="all, delete-orphan")


class ChargingStation(Base):
    __tablename__ = "stations"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    location = Column(String, nullable=False)
    power_output_kw = Column(Float, nullable=False)
    status = _status_column(StationStatus, StationStatus.AVAILABLE)

    bookings = relationship("Booking", back_populates="station")


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True)
    start_time = Column(DateTime(), nullable=False)
    end_time = Column(DateTime(), nullable=False)
    status = _status_column(BookingStatus, BookingStatus.SCHEDULED)
    created_at = Column(DateTime(), default=utcnow)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False, index=True)
    station_id = Column(Integer, ForeignKey("stations.id"), nullable=False, index=True)

    user = relationship("User", back_populates="bookings")
    vehicle = relationship("Vehicle", back_populates="bookings")
    station = relationship("ChargingStation", back_populates="bookings")


class BatteryLog(Base):
    __tablename__ = "battery_logs"

    id = Column(Integer, primary_key=True)
    charge_level = Column(Float, nullable=False)
    voltage = Column(Float, nullable=True)
    current = Column(Float, nullable=True)
    temperature = Column(Float, nullable=True)
    health_score = Column(Float, nullable=True)
    charging_power = Column(Float, nullable=True)
    estimated_time = Column(Integer, nullable=True)  # minutes
    timestamp = Column(DateTime(), default=utcnow, index=True)

    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False, index=True)

    vehicle = relationship("Vehicle", back_populates="battery_logs")
