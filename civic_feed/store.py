"""
store.py
========
Database gateway for the service.

1) Builds the engine ("connection factory") from the configured URL.
2) Creates any missing tables from the SQLModel classes in models.py.
3) Hands out Sessions, one per request.

The engine is created once per process by create_app() and kept on
app.state; nothing here holds a module-level engine.
"""

from typing import Generator

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine


def create_db_engine(db_url: str) -> Engine:
    """
    Create the engine for db_url.

    SQLite needs check_same_thread=False because FastAPI runs sync endpoints in a
    threadpool. An in-memory SQLite URL also gets a StaticPool so every session
    sees the same database (handy for tests).
    """
    kwargs = {"echo": False}
    if db_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if db_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(db_url, **kwargs)


def init_db(engine: Engine) -> None:
    """
    Create all tables defined in models.py. Safe to call on every startup:
    it only creates what is missing and never drops data.
    """
    from . import models  # noqa: F401  (import just to register models with SQLModel)

    SQLModel.metadata.create_all(engine)


def get_session(engine: Engine) -> Session:
    """
    Open a Session bound to engine.

      with get_session(engine) as session:
          session.add(obj)
          session.commit()
    """
    return Session(engine)


def get_db(request: Request) -> Generator[Session, None, None]:
    """FastAPI dependency: one Session per request, closed afterwards."""
    with get_session(request.app.state.engine) as session:
        yield session
