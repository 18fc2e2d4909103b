import os

from dotenv import load_dotenv

"""
This file contains the settings of the server. Every value can be overridden
with an environment variable (or a .env file in the working directory).
"""

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


# Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./chargehub.db")

# Sessions
JWT_SECRET = os.getenv("JWT_SECRET", "ev-charging-secret-key")
JWT_ALG = "HS256"
SESSION_COOKIE = "session"
SESSION_TTL = int(os.getenv("SESSION_TTL", str(60 * 60 * 24 * 7)))  # 7 days
COOKIE_SECURE = _flag("COOKIE_SECURE", "false")

# Hardware devices authenticate with this key in the X-API-Key header
HARDWARE_API_KEY = os.getenv("HARDWARE_API_KEY", "ev-hardware-key-2024")

# MQTT
MQTT_ENABLED = _flag("MQTT_ENABLED", "true")
MQTT_BROKER = os.getenv("MQTT_BROKER", "test.mosquitto.org")
MQTT_PORT = int(os.getenv("MQTT_PORT", "1883"))
MQTT_TOPIC_PREFIX = os.getenv("MQTT_TOPIC_PREFIX", "chargehub")
VEHICLE_TOPIC = f"{MQTT_TOPIC_PREFIX}/vehicles"
TELEMETRY_TOPIC = f"{MQTT_TOPIC_PREFIX}/telemetry"

# Web server
HOST = os.getenv("HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Monitoring
RECENT_LOGS_LIMIT = 20
