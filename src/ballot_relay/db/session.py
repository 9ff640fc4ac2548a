"""Database session configuration."""

from __future__ import annotations

from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from ballot_relay.core.settings import settings


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models."""


# Ensure model modules are imported so that metadata is populated when create_all runs.
import ballot_relay.models  # noqa: E402,F401


def _enable_sqlite_durability(dbapi_connection: Any, _record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=FULL")
    cursor.close()


def make_engine(url: str, *, echo: bool = False) -> Engine:
    """Create an engine for the queue database.

    File-backed SQLite gets WAL journaling with full fsync so a committed write
    survives a crash immediately after the call returns.
    """
    connect_args: dict[str, Any] = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False

    engine = create_engine(url, pool_pre_ping=True, echo=echo, connect_args=connect_args)
    if url.startswith("sqlite") and ":memory:" not in url and url != "sqlite://":
        event.listen(engine, "connect", _enable_sqlite_durability)
    return engine


def make_session_factory(engine: Engine) -> sessionmaker:
    """Return a session factory whose instances never expire loaded rows on commit."""
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


engine = make_engine(settings.database_url, echo=settings.sql_debug)

SessionLocal = make_session_factory(engine)


def create_tables(bind: Engine | None = None) -> None:
    """Create all database tables."""
    Base.metadata.create_all(bind=bind or engine)


def drop_tables(bind: Engine | None = None) -> None:
    """Drop all database tables."""
    Base.metadata.drop_all(bind=bind or engine)
