import argparse
import logging
import time

from chargehub.car.car import VehicleComponent


def logger_init(level):
    logger = logging.getLogger("car_logger")
    logger.setLevel(level)
    ch = logging.StreamHandler()
    ch.setLevel(level)
    formatter = logging.Formatter("[%(asctime)s][%(levelname)s]   %(message)s")
    ch.setFormatter(formatter)
    logger.addHandler(ch)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Simulated vehicle that charges on command and publishes battery telemetry.")
    parser.add_argument("vehicle_id", type=int, help="id of the vehicle in the server")
    parser.add_argument("--capacity", type=float, default=60.0, help="battery capacity in kWh")
    return parser.parse_args(argv)


def run():
    ''' Starts the vehicle simulator from args, until interrupted '''
    logger_init(logging.DEBUG)

    args = parse_args()
    component = VehicleComponent(args.vehicle_id, battery_capacity_kwh=args.capacity)
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        component.stop()


if __name__ == "__main__":
    run()
