"""ChargeHub: charging station reservations with live battery telemetry."""

__version__ = "0.1.0"
