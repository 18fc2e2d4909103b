import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

import chargehub.server.config as config
import chargehub.server.endpoints as endpoints
from chargehub.server.database import Base, SessionLocal, engine
from chargehub.server.errors import ChargeHubError
from chargehub.server.mqtt import MQTTClient
from chargehub.server.registry import StationRegistry

logger = logging.getLogger("server_logger")


def logger_init(level):
    logger = logging.getLogger("server_logger")
    logger.setLevel(level)
    ch = logging.StreamHandler()
    ch.setLevel(level)
    formatter = logging.Formatter("[%(asctime)s][%(levelname)s]   %(message)s")
    ch.setFormatter(formatter)
    logger.addHandler(ch)


def init_db(bind=engine, session_factory=SessionLocal):
    ''' Creates the tables, if not present, and seeds the charging stations '''
    Base.metadata.create_all(bind=bind)
    db = session_factory()
    try:
        StationRegistry(db).seed()
    finally:
        db.close()


async def handle_chargehub_error(request: Request, exc: ChargeHubError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def handle_database_error(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.method} {request.url.path}", exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app() -> FastAPI:
    app = FastAPI(title="ChargeHub")
    app.state.mqtt_client = None
    app.add_exception_handler(ChargeHubError, handle_chargehub_error)
    app.add_exception_handler(SQLAlchemyError, handle_database_error)
    app.include_router(endpoints.router)
    return app


def run():
    ''' Starts the server '''
    logger_init(getattr(logging, config.LOG_LEVEL, logging.INFO))

    init_db()

    app = create_app()
    if config.MQTT_ENABLED:
        app.state.mqtt_client = MQTTClient()
        app.state.mqtt_client.start()

    try:
        uvicorn.run(app, host=config.HOST, port=config.PORT, log_level="info")
    finally:
        if app.state.mqtt_client is not None:
            app.state.mqtt_client.stop()


if __name__ == "__main__":
    run()
