from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

import chargehub.server.config as config

"""
This file sets up the database engine and the session factory used by the rest of the server.
"""


def make_engine(url: str):
    connect_args = {}
    if url.startswith("sqlite"):
        # Sessions are handed between the worker threads of the web server
        connect_args["check_same_thread"] = False
    return create_engine(url, connect_args=connect_args)


engine = make_engine(config.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    ''' Yields a session for the duration of one request '''
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
