import json
import logging

import paho.mqtt.client as mqtt
import pydantic
from sqlalchemy.exc import SQLAlchemyError

import chargehub.server.config as config
import chargehub.server.crud as crud
import chargehub.server.schemas as schemas
from chargehub.server.database import SessionLocal
from chargehub.server.errors import ChargeHubError

logger = logging.getLogger("server_logger")


def parse_telemetry(topic: str, payload: bytes) -> schemas.BatteryLogCreate:
    '''
    Telemetry arrives on <TELEMETRY_TOPIC>/<vehicle_id>.
    The vehicle id in the topic is used when the payload does not carry one.
    '''
    data = json.loads(payload)
    if not isinstance(data, dict):
        raise ValueError("Telemetry payload must be a JSON object")
    if "vehicle_id" not in data:
        data["vehicle_id"] = topic.rsplit("/", 1)[-1]
    return schemas.BatteryLogCreate.model_validate(data)


class MQTTClient:
    '''
    Pushes charging commands to vehicles and records the telemetry they publish.
    '''

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory
        self.client = mqtt.Client(callback_api_version=mqtt.CallbackAPIVersion.VERSION2)
        self.client.on_connect = self.on_connect
        self.client.on_message = self.on_message

    def on_connect(self, client, userdata, flags, reason_code, properties):
        logger.info(f"on_connect(): {reason_code}")
        client.subscribe(f"{config.TELEMETRY_TOPIC}/+")

    def on_message(self, client, userdata, msg):
        logger.debug(f"MQTT Client recieved a message in topic '{msg.topic}': {msg.payload}")
        self.record_telemetry(msg.topic, msg.payload)

    def record_telemetry(self, topic: str, payload: bytes):
        try:
            log = parse_telemetry(topic, payload)
        except (ValueError, pydantic.ValidationError) as e:
            # pydantic's ValidationError is a ValueError too; both mean a malformed message
            logger.warning(f"Dropped malformed telemetry on '{topic}': {e}")
            return None

        db = self.session_factory()
        try:
            db_log = crud.create_battery_log(db, log)
            logger.debug(f"Recorded battery log {db_log.id} for vehicle {log.vehicle_id}")
            return db_log
        except ChargeHubError as e:
            logger.warning(f"Dropped telemetry for vehicle {log.vehicle_id}: {e.message}")
            return None
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Could not store telemetry for vehicle {log.vehicle_id}", exc_info=e)
            return None
        finally:
            db.close()

    def send_start_charging(self, booking):
        payload = {
            "command": "start_charging",
            "booking_id": booking.id,
            "station_id": booking.station_id,
            "power_output_kw": booking.station.power_output_kw,
            "end_time": booking.end_time.isoformat(),
        }
        self._publish(booking.vehicle_id, payload)

    def send_stop_charging(self, booking):
        payload = {"command": "stop_charging", "booking_id": booking.id}
        self._publish(booking.vehicle_id, payload)

    def _publish(self, vehicle_id: int, payload: dict):
        topic = f"{config.VEHICLE_TOPIC}/{vehicle_id}"
        payload = json.dumps(payload)
        self.client.publish(topic, payload)
        logger.debug(f"Sent to topic '{topic}' payload {payload}")

    def start(self):
        logger.info("Connecting to {}:{}".format(config.MQTT_BROKER, config.MQTT_PORT))
        self.client.connect(config.MQTT_BROKER, config.MQTT_PORT)
        self.client.loop_start()

    def stop(self):
        self.client.loop_stop()
        self.client.disconnect()
