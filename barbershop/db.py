# barbershop/db.py

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from .config import settings


def build_engine(database_url: str, echo: bool = False) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        # required for SQLite + FastAPI (sync endpoints run in a thread pool)
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(database_url, echo=echo, connect_args=connect_args)


# Engine = connection to the database
engine = build_engine(settings.database_url, echo=settings.sql_echo)


def init_db(bind: Engine = engine) -> None:
    from . import models  # noqa: F401 - register tables

    SQLModel.metadata.create_all(bind)


# Dependency: one session per request
def get_session():
    with Session(engine) as session:
        yield session
