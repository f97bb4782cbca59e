import logging
from typing import Iterator

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, Session, create_engine

import config
# Table models must be imported before create_all
from models.ambulance_model import Ambulance  # noqa: F401
from models.driver_model import DriverProfile  # noqa: F401
from models.request_model import EmergencyRequest  # noqa: F401

logger = logging.getLogger(__name__)


def make_engine(url: str) -> Engine:
    connect_args = {}
    if url.startswith("sqlite"):
        # Requests are served from a thread pool; writers wait on each other instead of failing
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(url, echo=False, connect_args=connect_args)


engine = make_engine(config.DATABASE_URL)


def init_db(target: Engine = None) -> None:
    target = target or engine
    SQLModel.metadata.create_all(target)
    logger.info(f"Database ready at {target.url}")


def open_session(target: Engine = None) -> Session:
    return Session(target or engine, expire_on_commit=False)


def get_session() -> Iterator[Session]:
    with open_session() as session:
        yield session
