from __future__ import annotations

import json
from datetime import datetime
from types import SimpleNamespace

import pydantic
import pytest
from sqlalchemy.exc import OperationalError

import chargehub.server.config as config
import chargehub.server.crud as crud
from chargehub.server.mqtt import MQTTClient, parse_telemetry


class FakePahoClient:
    def __init__(self):
        self.published: list[tuple[str, dict]] = []

    def publish(self, topic: str, payload: str) -> None:
        self.published.append((topic, json.loads(payload)))


class Station:
    power_output_kw = 22.0


class Booking:
    id = 5
    vehicle_id = 12
    station_id = 3
    station = Station()
    end_time = datetime(2030, 5, 17, 10, 0)


def test_parse_telemetry_takes_vehicle_from_topic() -> None:
    log = parse_telemetry(f"{config.TELEMETRY_TOPIC}/12", b'{"charge_level": 55.5, "voltage": 381}')

    assert log.vehicle_id == 12
    assert log.charge_level == 55.5
    assert log.voltage == 381


def test_parse_telemetry_rejects_bad_payloads() -> None:
    with pytest.raises(ValueError):
        parse_telemetry(f"{config.TELEMETRY_TOPIC}/12", b"not json")
    with pytest.raises(ValueError):
        parse_telemetry(f"{config.TELEMETRY_TOPIC}/12", b"[1, 2]")
    with pytest.raises(pydantic.ValidationError):
        parse_telemetry(f"{config.TELEMETRY_TOPIC}/12", b'{"charge_level": 140}')


def test_record_telemetry_stores_sample(session_factory, db, vehicle) -> None:
    client = MQTTClient(session_factory=session_factory)
    payload = json.dumps({"vehicle_id": vehicle.id, "charge_level": 71.0, "temperature": 31.5}).encode()

    stored = client.record_telemetry(f"{config.TELEMETRY_TOPIC}/{vehicle.id}", payload)

    assert stored is not None
    latest = crud.get_latest_battery_log(db, vehicle.id)
    assert latest.charge_level == 71.0
    assert latest.temperature == 31.5


def test_record_telemetry_drops_unknown_vehicle_and_garbage(session_factory, db, vehicle) -> None:
    client = MQTTClient(session_factory=session_factory)

    assert client.record_telemetry(f"{config.TELEMETRY_TOPIC}/999", b'{"charge_level": 10}') is None
    assert client.record_telemetry(f"{config.TELEMETRY_TOPIC}/{vehicle.id}", b"{") is None
    assert crud.get_latest_battery_log(db, vehicle.id) is None


def test_charging_commands_go_to_vehicle_topic() -> None:
    client = MQTTClient()
    client.client = FakePahoClient()

    client.send_start_charging(Booking())
    client.send_stop_charging(Booking())

    topic = f"{config.VEHICLE_TOPIC}/12"
    assert client.client.published == [
        (topic, {"command": "start_charging", "booking_id": 5, "station_id": 3, "power_output_kw": 22.0, "end_time": "2030-05-17T10:00:00"}),
        (topic, {"command": "stop_charging", "booking_id": 5}),
    ]


class LockedSession:
    def __init__(self):
        self.rolled_back = False
        self.closed = False

    def query(self, *args):
        raise OperationalError("SELECT vehicles", {}, Exception("database is locked"))

    def rollback(self) -> None:
        self.rolled_back = True

    def close(self) -> None:
        self.closed = True


def test_database_error_does_not_escape_message_callback(caplog) -> None:
    session = LockedSession()
    client = MQTTClient(session_factory=lambda: session)
    msg = SimpleNamespace(topic=f"{config.TELEMETRY_TOPIC}/12", payload=b'{"charge_level": 40}')

    with caplog.at_level("ERROR", logger="server_logger"):
        client.on_message(client.client, None, msg)

    assert session.rolled_back
    assert session.closed
    assert "Could not store telemetry for vehicle 12" in caplog.text
