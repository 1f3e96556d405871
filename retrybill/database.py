"""Lazy, once-only database connection built on SQLAlchemy."""

from __future__ import annotations

import os
import threading
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    """Declarative base shared by all tables."""


class RecordNotFound(LookupError):
    """Raised when a requested row does not exist."""


def _build_engine(dsn: str) -> Engine:
    if not dsn:
        raise ArgumentError("empty database DSN")
    if "://" not in dsn:
        # libpq key/value connection string
        return create_engine("postgresql://", connect_args={"dsn": dsn})
    url = make_url(dsn)
    if url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:"):
        return create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_engine(url)


class StorageDb:
    """Holds a database engine created once on first ``connect``."""

    def __init__(self, dsn: str = "") -> None:
        self.dsn = dsn or os.environ.get("APP_PSQ_DSN", "")
        self._engine: Engine | None = None
        self._error: Exception | None = None
        self._connected = False
        self._lock = threading.Lock()

    def connect(self) -> "StorageDb":
        """Create the engine once; a failure is kept and raised by ``get_db``."""
        with self._lock:
            if not self._connected:
                self._connected = True
                try:
                    self._engine = _build_engine(self.dsn)
                except (SQLAlchemyError, ImportError, ValueError) as exc:
                    self._error = exc
        return self

    def get_db(self) -> Engine:
        """Return the engine, raising the connection error if there was one."""
        if self._error is not None:
            raise self._error
        if self._engine is None:
            raise RuntimeError("database is not connected")
        return self._engine

    def ping(self) -> bool:
        """Check that the database answers a trivial query."""
        with self.get_db().connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a session that commits on success and rolls back on error."""
        with Session(self.get_db(), expire_on_commit=False) as session:
            try:
                yield session
                session.commit()
            except BaseException:
                session.rollback()
                raise