from __future__ import annotations

import uuid
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase, Session

from .errors import ValidationError
from .settings import settings


class Base(DeclarativeBase):
    pass


_engine = None
_SessionLocal = None


def enable_sqlite_savepoints(engine: Engine) -> None:
    """pysqlite issues its own BEGIN lazily, which breaks SAVEPOINT.

    Hand transaction control back to SQLAlchemy (recipe from the SQLAlchemy
    pysqlite dialect docs).
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def _unicode_lower(value):
    return value.lower() if isinstance(value, str) else value


def enable_sqlite_unicode_lower(engine: Engine) -> None:
    """SQLite's built-in lower() only folds ASCII; use Python's so that
    ``lower(name)`` in SQL agrees with ``str.lower`` on our side."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.create_function("lower", 1, _unicode_lower, deterministic=True)


def init_engine(database_url: str | None = None):
    global _engine, _SessionLocal
    url = database_url or settings.database_url
    if url.startswith("sqlite"):
        _engine = create_engine(url, connect_args={"check_same_thread": False})
        enable_sqlite_savepoints(_engine)
        enable_sqlite_unicode_lower(_engine)
    else:
        _engine = create_engine(url, pool_pre_ping=True)
    _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_engine)
    return _engine


def get_engine():
    global _engine
    if _engine is None:
        init_engine()
    return _engine


def SessionLocal():
    global _SessionLocal
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


def get_db():
    db = SessionLocal()()
    try:
        yield db
    finally:
        db.close()


def parse_uuid(value, what: str = "id") -> str:
    """Canonical string form of a UUID, or ValidationError."""
    try:
        return str(uuid.UUID(str(value)))
    except (TypeError, ValueError):
        raise ValidationError(f"Malformed {what}: {value!r}")


def dialect_insert(db: Session, model):
    """INSERT construct supporting ON CONFLICT for the bound dialect."""
    name = db.get_bind().dialect.name
    if name == "postgresql":
        return postgresql.insert(model)
    if name == "sqlite":
        return sqlite.insert(model)
    raise ValueError(f"ON CONFLICT inserts not supported on dialect {name!r}")


class OwnerScope:
    """A session bound to one owner.

    Every per-user query goes through ``select``/``get`` so it carries the
    ``owner_id`` filter at the query-builder level.
    """

    def __init__(self, db: Session, owner_id: str):
        self.db = db
        self.owner_id = owner_id

    def select(self, model, *criteria):
        return select(model).where(model.owner_id == self.owner_id, *criteria)

    def get(self, model, obj_id: str):
        return self.db.scalar(self.select(model, model.id == obj_id))

    def add(self, obj):
        obj.owner_id = self.owner_id
        self.db.add(obj)
        return obj


@contextmanager
def owner_transaction(db: Session, owner_id) -> Iterator[OwnerScope]:
    """Run a unit of work for one owner: commit on success, roll back on error."""
    scope = OwnerScope(db, parse_uuid(owner_id, "owner id"))
    try:
        yield scope
        db.commit()
    except Exception:
        db.rollback()
        raise
