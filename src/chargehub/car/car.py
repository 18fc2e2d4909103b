import json
import logging

import paho.mqtt.client as mqtt
import stmpy

import chargehub.server.config as config
from chargehub.server.utils import estimate_charging_time

logger = logging.getLogger("car_logger")

UPDATE_INTERVAL_MS = 1000
# Simulated seconds of charging per update, so a session plays out in minutes
TIME_SCALE = 60


class BatteryLogic:
    '''
    Battery of a simulated vehicle (idle <-> charging).
    While charging, the update timer adds energy and publishes telemetry.
    '''

    def __init__(self, vehicle_id, mqtt_client, battery_capacity_kwh=60.0, charge_level=20.0, update_interval_ms=UPDATE_INTERVAL_MS):
        self.vehicle_id = vehicle_id
        self.mqtt_client = mqtt_client
        self.battery_capacity_kwh = battery_capacity_kwh
        self.charge_level = charge_level
        self.health_score = 95.0
        self.temperature = 25.0
        self.booking_id = None
        self.power_kw = 0.0

        # Transitions
        transitions = [
            {"source": "initial", "target": "idle", "effect": "init_stm"},
            {"source": "idle", "target": "charging", "trigger": "start_charging", "effect": "on_charging(*)"},
            {"source": "charging", "target": "charging", "trigger": "update_timer", "effect": "on_charging_update"},
            {"source": "charging", "target": "idle", "trigger": "finish_charging", "effect": "on_finish_charging"},
        ]

        # States
        states = [
            {"name": "charging", "entry": f"start_timer('update_timer', {update_interval_ms})", "exit": "stop_timer('update_timer')"},
        ]

        # State machine
        self.stm = stmpy.Machine(
            name=f"vehicle_{vehicle_id}",
            transitions=transitions,
            states=states,
            obj=self,
        )

    def init_stm(self):
        logger.info(f"Vehicle {self.vehicle_id} state machine initialized")

    def on_charging(self, booking_id=None, power_output_kw=None):
        self.booking_id = booking_id
        self.power_kw = float(power_output_kw or 0)
        logger.debug(f"Vehicle moved from state idle -> charging for booking {self.booking_id} at {self.power_kw} kW.")
        self.publish_telemetry()

    def on_charging_update(self):
        added_kwh = self.power_kw * TIME_SCALE / 3600
        self.charge_level = min(100.0, self.charge_level + added_kwh / self.battery_capacity_kwh * 100)
        self.temperature = min(45.0, self.temperature + self.power_kw / 200)
        logger.info(f"Charge level updated to {self.charge_level:.1f}%.")

        self.publish_telemetry()
        if self.charge_level >= 100.0:
            self.stm.send("finish_charging")

    def on_finish_charging(self):
        logger.debug(f"Vehicle moved from state charging -> idle. Charging has finished with charge_level={self.charge_level:.1f}%")
        self.power_kw = 0.0
        self.booking_id = None
        self.publish_telemetry()

    def telemetry(self) -> dict:
        voltage = 350 + 50 * self.charge_level / 100
        return {
            "vehicle_id": self.vehicle_id,
            "charge_level": round(self.charge_level, 2),
            "voltage": round(voltage, 1),
            "current": round(self.power_kw * 1000 / voltage, 1),
            "temperature": round(self.temperature, 1),
            "health_score": self.health_score,
            "charging_power": self.power_kw,
            "estimated_time": estimate_charging_time(self.charge_level, 100, self.battery_capacity_kwh, self.power_kw),
        }

    def publish_telemetry(self):
        topic = f"{config.TELEMETRY_TOPIC}/{self.vehicle_id}"
        payload = json.dumps(self.telemetry())
        self.mqtt_client.publish(topic, payload)
        logger.debug(f"Sent telemetry to topic '{topic}' with payload {payload}")


class VehicleComponent:
    def __init__(self, vehicle_id, battery_capacity_kwh=60.0):
        # mqtt definitions
        self.mqtt_client = mqtt.Client(callback_api_version=mqtt.CallbackAPIVersion.VERSION2)
        self.mqtt_client.on_connect = self.on_connect
        self.mqtt_client.on_message = self.on_message
        self.mqtt_client.connect(config.MQTT_BROKER, config.MQTT_PORT)
        self.mqtt_client.subscribe(f"{config.VEHICLE_TOPIC}/{vehicle_id}")
        self.mqtt_client.loop_start()

        # stm definitions
        self.battery = BatteryLogic(vehicle_id, self.mqtt_client, battery_capacity_kwh)

        # driver
        self.stm_driver = stmpy.Driver()
        self.stm_driver.start(keep_active=True)
        self.stm_driver.add_machine(self.battery.stm)
        logger.info(f"Vehicle {vehicle_id} simulator started")

    def on_message(self, client, userdata, msg):
        logger.debug(f"MQTT Client recieved a message in topic '{msg.topic}': {msg.payload}")
        try:
            msg = json.loads(msg.payload)
        except ValueError:
            logger.warning(f"Ignored message that is not JSON: {msg.payload}")
            return

        command = msg.get("command")

        if command == "start_charging":
            self.battery.stm.send("start_charging", kwargs={
                "booking_id": msg.get("booking_id"),
                "power_output_kw": msg.get("power_output_kw"),
            })

        elif command == "stop_charging":
            self.battery.stm.send("finish_charging")

    def on_connect(self, client, userdata, flags, reason_code, properties):
        logger.debug(f"Client connected to broker {config.MQTT_BROKER}:{config.MQTT_PORT}: {reason_code}")

    def stop(self):
        self.stm_driver.stop()
        self.mqtt_client.loop_stop()
        self.mqtt_client.disconnect()
