import logging

from sqlalchemy.orm import Session

import chargehub.server.models as models
from chargehub.server.errors import NotFound

logger = logging.getLogger("server_logger")

DEFAULT_STATIONS = [
    {"name": "Station A", "location": "Basement Parking - Spot 1", "power_output_kw": 7.2},
    {"name": "Station B", "location": "Basement Parking - Spot 2", "power_output_kw": 7.2},
    {"name": "Station C", "location": "Ground Floor - East Wing", "power_output_kw": 22.0},
    {"name": "Fast Charger", "location": "Main Entrance", "power_output_kw": 50.0},
]


class StationRegistry:
    '''
    The fixed set of charging stations and their current status.
    The registry only stores; keeping station status consistent with the
    bookings is the job of the scheduling service.
    '''

    def __init__(self, db: Session):
        self.db = db

    def get(self, station_id: int) -> models.ChargingStation:
        db_station = self.db.query(models.ChargingStation).filter(models.ChargingStation.id == station_id).first()
        if db_station is None:
            raise NotFound("Charging station not found")
        return db_station

    def lock_for_update(self, station_id: int) -> models.ChargingStation:
        ''' Loads the station with a row lock held until the end of the transaction '''
        db_station = (
            self.db.query(models.ChargingStation)
            .filter(models.ChargingStation.id == station_id)
            .with_for_update()
            .first()
        )
        if db_station is None:
            raise NotFound("Charging station not found")
        return db_station

    def list(self):
        return self.db.query(models.ChargingStation).order_by(models.ChargingStation.name.asc()).all()

    def set_status(self, station_id: int, status: models.StationStatus):
        db_station = self.get(station_id)
        db_station.status = status
        return db_station

    def seed(self) -> int:
        ''' Inserts the default stations into an empty table. Returns how many were added. '''
        if self.db.query(models.ChargingStation).count() > 0:
            return 0

        for station in DEFAULT_STATIONS:
            self.db.add(models.ChargingStation(status=models.StationStatus.AVAILABLE, **station))
        self.db.commit()
        logger.info(f"Seeded {len(DEFAULT_STATIONS)} charging stations")
        return len(DEFAULT_STATIONS)
