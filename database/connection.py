import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from database.base import Base
from core.config import settings

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE rules unless enabled per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _disable_pysqlite_transactions(dbapi_connection, connection_record):
    # Let SQLAlchemy emit BEGIN itself instead of the driver's deferred BEGIN
    dbapi_connection.isolation_level = None


def _begin_immediate(conn):
    # SQLite has no SELECT ... FOR UPDATE; take the write lock up front so
    # concurrent writers queue on the busy timeout instead of deadlocking.
    # Read-only transactions take it too, until the session ends.
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine with the connection settings each backend needs."""
    if database_url.startswith("sqlite"):
        in_memory = database_url in ("sqlite://", "sqlite:///:memory:") or ":memory:" in database_url
        if in_memory:
            # One shared connection so every session sees the same database
            db_engine = create_engine(
                database_url,
                echo=echo,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False}
            )
        else:
            db_engine = create_engine(
                database_url,
                echo=echo,
                connect_args={"check_same_thread": False, "timeout": 30}
            )
            event.listen(db_engine, "connect", _disable_pysqlite_transactions)
            event.listen(db_engine, "begin", _begin_immediate)
        event.listen(db_engine, "connect", _enable_sqlite_foreign_keys)
        return db_engine

    return create_engine(database_url, echo=echo, pool_pre_ping=True)


# Create database engine
engine = build_engine(settings.DATABASE_URL, echo=settings.SQL_ECHO)

# Create SessionLocal class
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def _import_models():
    # Registers every table on Base.metadata
    from models import user, store, rating  # noqa: F401


# Create all tables
def create_tables(bind: Engine = None):
    _import_models()
    Base.metadata.create_all(bind=bind or engine)


def drop_tables(bind: Engine = None):
    _import_models()
    Base.metadata.drop_all(bind=bind or engine)


# Dependency to get database session
def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    Run a block as one all-or-nothing unit of work.

    Commits when the block exits normally; on any exception the session is
    rolled back in full and the exception propagates unchanged.
    """
    try:
        yield db
        db.commit()
    except BaseException:
        db.rollback()
        raise
