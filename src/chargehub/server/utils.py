import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from chargehub.server.errors import ValidationError


@dataclass(frozen=True)
class TimeInterval:
    '''
    A half-open time interval [start, end).
    Intervals that only touch at an endpoint do not overlap.
    '''
    start: datetime
    end: datetime

    def __post_init__(self):
        if self.end <= self.start:
            raise ValidationError("Interval end must be after its start.")

    def overlaps(self, other: "TimeInterval") -> bool:
        return self.start < other.end and other.start < self.end

    @classmethod
    def from_duration(cls, start: datetime, duration_minutes) -> "TimeInterval":
        validate_duration(duration_minutes)
        start = to_utc_naive(start)
        return cls(start, start + timedelta(minutes=duration_minutes))


def validate_duration(duration_minutes):
    # bool is an int subclass, but True is not a duration
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int):
        raise ValidationError("Duration must be a whole number of minutes.")
    if duration_minutes <= 0:
        raise ValidationError("Duration must be positive.")


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def is_date_aware(d: datetime):
    return d.tzinfo is not None and d.tzinfo.utcoffset(d) is not None


def to_utc_naive(d: datetime) -> datetime:
    ''' Datetimes are stored naive, in UTC. Naive input is taken to be UTC already. '''
    if is_date_aware(d):
        return d.astimezone(timezone.utc).replace(tzinfo=None)
    return d


def estimate_charging_time(current_level: float, target_level: float, battery_capacity_kwh: float, charging_power_kw: float) -> int:
    ''' Minutes needed to charge from current_level to target_level (percentages), rounded up. '''
    if charging_power_kw <= 0 or target_level <= current_level:
        return 0

    energy_needed = (target_level - current_level) / 100 * battery_capacity_kwh
    return math.ceil(energy_needed / charging_power_kw * 60)
