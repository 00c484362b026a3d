"""
Database wiring: declarative base, engine/session factories and the
per-request session dependency.

The engine and session factory are created by `main.create_app` and kept on
`app.state`; nothing here holds a process-wide connection.
"""

import logging
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

Base = declarative_base()


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create a SQLAlchemy engine for the given URL.

    SQLite connections are shared across the threads FastAPI runs sync
    endpoints on; an in-memory SQLite database additionally needs a single
    static connection or every session would see an empty database.
    """
    kwargs = {"echo": echo}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True

    engine = create_engine(database_url, **kwargs)
    logger.info(f"Database engine created for {engine.url.render_as_string(hide_password=True)}")
    return engine


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create all tables known to the declarative base."""
    # models must be imported so their tables are registered on Base.metadata
    import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def get_db(request: Request) -> Iterator[Session]:
    """FastAPI dependency: one session (unit of work) per request."""
    db: Session = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
