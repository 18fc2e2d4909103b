from __future__ import annotations

from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

import chargehub.server.crud as crud
import chargehub.server.models as models
import chargehub.server.schemas as schemas
from chargehub.server.database import Base, get_db, make_engine
from chargehub.server.registry import StationRegistry
from chargehub.server.run import create_app
from chargehub.server.scheduling import StationLocks


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'chargehub.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def stations(db) -> list[models.ChargingStation]:
    registry = StationRegistry(db)
    registry.seed()
    return registry.list()


@pytest.fixture
def station(stations) -> models.ChargingStation:
    return stations[0]


@pytest.fixture
def locks() -> StationLocks:
    return StationLocks()


def make_user(db, email: str = "ada@example.com") -> models.User:
    return crud.create_user(db, schemas.UserCreate(email=email, password="secret123", name="Ada"), "not-a-real-hash")


def make_vehicle(db, user: models.User, plate: str = "ka01ab1234") -> models.Vehicle:
    vehicle = schemas.VehicleCreate(make="Tata", model="Nexon EV", year=2023, license_plate=plate, battery_capacity_kwh=40.5)
    return crud.create_vehicle(db, user.id, vehicle)


@pytest.fixture
def user(db) -> models.User:
    return make_user(db)


@pytest.fixture
def vehicle(db, user) -> models.Vehicle:
    return make_vehicle(db, user)


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2030, 5, 17, hour, minute)


class FakeNotifier:
    def __init__(self):
        self.sent: list[tuple[str, int]] = []

    def send_start_charging(self, booking) -> None:
        self.sent.append(("start_charging", booking.id))

    def send_stop_charging(self, booking) -> None:
        self.sent.append(("stop_charging", booking.id))


@pytest.fixture
def app(session_factory, stations):
    app = create_app()

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture
def client(app) -> TestClient:
    with TestClient(app) as client:
        yield client


@pytest.fixture
def auth_client(client) -> TestClient:
    response = client.post(
        "/auth/register",
        json={"email": "grace@example.com", "password": "hopper123", "name": "Grace"},
    )
    assert response.status_code == 200
    return client
