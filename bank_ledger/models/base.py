"""
Database engine, session management, and base model.

This module is the foundation for all database operations.
Every model inherits from Base. The ledger store is built
from SessionLocal.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from bank_ledger.config import get_settings

settings = get_settings()

# Execution option naming the SQLite BEGIN mode for a connection.
# The ledger store sets it to IMMEDIATE for units of work.
SQLITE_BEGIN_MODE = "sqlite_begin_mode"


def build_engine(database_url: str) -> Engine:
    """
    Create an engine for the given URL.

    pool_pre_ping=True tests connections before using them,
    which handles cases where the database restarted or a
    connection went stale. SQLite connections are shared
    across worker threads, so the same-thread check is off.
    """
    connect_args = {}
    is_sqlite = database_url.startswith("sqlite")
    if is_sqlite:
        connect_args["check_same_thread"] = False
    engine = create_engine(
        database_url,
        pool_pre_ping=True,
        connect_args=connect_args,
    )
    if is_sqlite:
        _emit_sqlite_begin(engine)
    return engine


def _emit_sqlite_begin(engine: Engine) -> None:
    """
    Let SQLAlchemy emit BEGIN itself on SQLite.

    pysqlite defers BEGIN until the first write, so a unit of
    work could read a balance without holding any database lock.
    With the driver's transaction handling off, a connection
    carrying SQLITE_BEGIN_MODE="IMMEDIATE" takes the write lock
    at BEGIN, which serializes read-check-write across processes.
    """
    @event.listens_for(engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        mode = conn.get_execution_options().get(SQLITE_BEGIN_MODE, "DEFERRED")
        conn.exec_driver_sql(f"BEGIN {mode}")


def build_session_factory(engine: Engine) -> sessionmaker:
    """
    Session factory used by the ledger store.

    autoflush=False means SQL is only sent when we flush or
    commit. expire_on_commit=False keeps committed accounts and
    transactions readable after their session is closed, which
    is how the store hands them back to callers.
    """
    return sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,
    )


# --- Engine ---
engine = build_engine(settings.DATABASE_URL)

# --- Session Factory ---
SessionLocal = build_session_factory(engine)


# --- Base Model Class ---
class Base(DeclarativeBase):
    pass


def init_db(bind: Engine = engine) -> None:
    """Create all tables that do not exist yet."""
    # Importing the models registers them on Base.metadata
    import bank_ledger.models  # noqa: F401

    Base.metadata.create_all(bind=bind)
