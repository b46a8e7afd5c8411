"""Database engine and unit-of-work setup.

Production Pattern:
- One engine per process, sessions per request
- Every booking write runs inside ``Database.transaction()``
- Writers are serialized by the store: ``BEGIN IMMEDIATE`` on SQLite,
  ``SERIALIZABLE`` isolation on PostgreSQL
- Read sessions never take the SQLite write lock
"""
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session as SQLSession, sessionmaker
from sqlalchemy.pool import StaticPool

from salon_booking import config
from salon_booking.database_models import Base

SERIALIZATION_SQLSTATES = {"40001", "40P01"}

# Connection execution option set by Database.transaction()
WRITE_TRANSACTION = "salon_write_transaction"


def create_db_engine(database_url: str) -> Engine:
    """
    Create an engine whose transactions are serialized for writers.

    SQLite: the pysqlite driver's implicit transaction handling is
    disabled. Write transactions (``Database.transaction()``) open with
    ``BEGIN IMMEDIATE`` so the database write lock is taken before the
    conflict re-check; read sessions open with a deferred ``BEGIN``.
    WAL journaling lets a writer commit while readers hold a snapshot.
    In-memory SQLite shares one connection (``StaticPool``).

    PostgreSQL: ``SERIALIZABLE`` isolation; callers retry on
    serialization failures (see ``is_serialization_failure``).
    """
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        kwargs = {
            "connect_args": {
                "check_same_thread": False,
                "timeout": config.SQLITE_BUSY_TIMEOUT,
            }
        }
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, **kwargs)
        _serialize_sqlite_transactions(engine)
        return engine

    return create_engine(
        database_url,
        pool_pre_ping=True,
        isolation_level="SERIALIZABLE",
    )


def _serialize_sqlite_transactions(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        if conn.get_execution_options().get(WRITE_TRANSACTION):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def is_serialization_failure(exc: Exception) -> bool:
    """True when the store aborted a transaction that may simply be retried."""
    if not isinstance(exc, DBAPIError):
        return False
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in SERIALIZATION_SQLSTATES:
        return True
    return "database is locked" in str(orig).lower()


class Database:
    """
    Thin wrapper around the SQLAlchemy engine and session factory.

    Usage:
        db = Database("sqlite:///salon.db")
        with db.transaction() as session:
            session.add(...)
    """

    def __init__(self, database_url: str):
        """
        Initialize the store and create tables if they do not exist.

        Args:
            database_url: SQLAlchemy connection string
        """
        self.database_url = database_url
        self.engine = create_db_engine(database_url)
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

    @contextmanager
    def transaction(self) -> Iterator[SQLSession]:
        """Unit of work: commit on success, roll back on any exception."""
        session = self.SessionLocal()
        try:
            session.connection(execution_options={WRITE_TRANSACTION: True})
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def read_session(self) -> Iterator[SQLSession]:
        """Read-only session; nothing is committed.

        Closing (rather than rolling back) keeps loaded objects usable
        after the block.
        """
        session = self.SessionLocal()
        try:
            yield session
        finally:
            session.close()

    def dispose(self):
        self.engine.dispose()


# Global store (initialized on first use)
_database: Optional[Database] = None


def get_database() -> Database:
    """Get or create the process-wide Database for ``config.DATABASE_URL``."""
    global _database

    if _database is None:
        _database = Database(config.DATABASE_URL)

    return _database


def close_database():
    """Dispose the global engine. Call during application shutdown."""
    global _database

    if _database is not None:
        _database.dispose()
        _database = None
