"""
Database engine, session factory and transaction helper.

A single SQLAlchemy engine (and its connection pool) is created at import time
and shared for the lifetime of the process. Each request gets its own session.
"""

import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from redirector_app.config import settings
from redirector_app.errors import StoreError

logger = logging.getLogger(__name__)


def _connect_args(database_url: str) -> dict:
    # SQLite connections are shared between the threadpool workers
    if database_url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(settings.database_url, connect_args=_connect_args(settings.database_url))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    """SQLite ignores foreign keys unless asked per connection."""
    if type(dbapi_connection).__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def get_db():
    """
    FastAPI dependency yielding one session per request.

    Closing the session discards any transaction that was not committed,
    so an aborted request never leaves partial writes behind.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session):
    """
    Run a block as one transaction: commit on success, roll back on any error.

    Domain errors propagate unchanged; store failures are re-raised as StoreError.
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreError(str(e)) from e
    except Exception:
        db.rollback()
        raise
