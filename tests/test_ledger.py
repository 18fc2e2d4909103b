from __future__ import annotations

import random
from datetime import timedelta

import pytest

import chargehub.server.models as models
from chargehub.server.errors import InvalidTransition, NotFound, SlotConflict
from chargehub.server.ledger import TRANSITIONS, BookingLedger, booking_interval, next_status
from chargehub.server.scheduling import SchedulingService
from chargehub.server.utils import TimeInterval

from conftest import at

BS = models.BookingStatus
BA = models.BookingAction


def test_terminal_statuses_have_no_transitions() -> None:
    sources = {current for current, _ in TRANSITIONS}

    assert BS.COMPLETED not in sources
    assert BS.CANCELLED not in sources


def test_next_status_rejects_unlisted_pair() -> None:
    with pytest.raises(InvalidTransition):
        next_status(BS.SCHEDULED, BA.COMPLETE)


def test_status_tokens_are_stable() -> None:
    assert [s.value for s in BS] == ["scheduled", "active", "completed", "cancelled"]
    assert [s.value for s in models.StationStatus] == ["available", "occupied", "maintenance"]


def test_find_conflict_ignores_terminal_bookings(db, user, vehicle, station) -> None:
    ledger = BookingLedger(db)
    booking = ledger.create(user.id, vehicle.id, station.id, TimeInterval(at(10), at(11)))
    booking.status = BS.CANCELLED
    db.commit()

    assert ledger.find_conflict(station.id, TimeInterval(at(10), at(11))) is None


def test_find_conflict_returns_earliest_overlap(db, user, vehicle, station) -> None:
    ledger = BookingLedger(db)
    late = ledger.create(user.id, vehicle.id, station.id, TimeInterval(at(12), at(13)))
    early = ledger.create(user.id, vehicle.id, station.id, TimeInterval(at(10), at(11)))
    db.commit()

    assert ledger.find_conflict(station.id, TimeInterval(at(10, 30), at(12, 30))).id == early.id
    assert ledger.find_conflict(station.id, TimeInterval(at(12, 59), at(14))).id == late.id
    assert ledger.find_conflict(station.id, TimeInterval(at(11), at(12))) is None


def test_find_owned_scopes_by_user(db, user, vehicle, station) -> None:
    ledger = BookingLedger(db)
    booking = ledger.create(user.id, vehicle.id, station.id, TimeInterval(at(10), at(11)))
    db.commit()

    assert ledger.find_owned(booking.id, user.id).id == booking.id
    with pytest.raises(NotFound):
        ledger.find_owned(booking.id, user.id + 1)


def test_transition_persists_new_status(db, user, vehicle, station) -> None:
    ledger = BookingLedger(db)
    booking = ledger.create(user.id, vehicle.id, station.id, TimeInterval(at(10), at(11)))
    db.commit()

    ledger.transition(booking.id, BA.START)
    db.commit()
    db.expire_all()

    assert ledger.get(booking.id).status is BS.ACTIVE


@pytest.mark.parametrize("seed", range(5))
def test_open_bookings_never_overlap(db, locks, user, vehicle, stations, seed) -> None:
    rng = random.Random(seed)
    service = SchedulingService(db, locks=locks)
    station_ids = [s.id for s in stations[:2]]
    accepted: list[models.Booking] = []

    for _ in range(60):
        station_id = rng.choice(station_ids)
        start = at(0) + timedelta(minutes=15 * rng.randrange(0, 4 * 24))
        duration = rng.choice([15, 30, 45, 60, 90, 120])
        requested = TimeInterval.from_duration(start, duration)
        clashes = [
            b for b in accepted
            if b.station_id == station_id and b.status in models.OPEN_BOOKING_STATUSES
            and requested.overlaps(booking_interval(b))
        ]

        try:
            booking = service.create_booking(user.id, vehicle.id, station_id, start, duration)
        except SlotConflict:
            assert clashes
            continue

        assert not clashes
        accepted.append(booking)
        if rng.random() < 0.2:
            service.transition_booking(user.id, booking.id, "cancel")

    open_bookings = [b for b in accepted if b.status in models.OPEN_BOOKING_STATUSES]
    for i, a in enumerate(open_bookings):
        for b in open_bookings[i + 1:]:
            if a.station_id == b.station_id:
                assert not booking_interval(a).overlaps(booking_interval(b))
