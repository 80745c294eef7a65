"""
Lazy SQLAlchemy engine and session factory.

The engine is built from ``DATABASE_URL`` on first use (and rebuilt when the
variable changes) so tests can point the application at an in-memory SQLite
database before anything connects.
"""

import logging

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ebers.core.config import get_database_url
from ebers.core.db import register_query_timing

logger = logging.getLogger(__name__)

# Create Base class for models
Base = declarative_base()

# Internal lazy globals
_engine = None
_SessionLocal = None
_database_url = None


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def _build_engine(database_url: str) -> Engine:
    url = make_url(database_url)

    if url.drivername.startswith("postgres"):
        return create_engine(
            database_url,
            pool_size=10,
            max_overflow=20,
            pool_pre_ping=True,
            pool_recycle=3600,
            connect_args={
                "application_name": "ebers",
                "connect_timeout": 10,
            },
        )

    if url.drivername.startswith("sqlite"):
        if url.database in (None, "", ":memory:"):
            # One shared in-memory database for the whole process so DDL
            # survives across sessions.
            engine = create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            engine = create_engine(
                database_url, connect_args={"check_same_thread": False}
            )
        _enable_sqlite_foreign_keys(engine)
        return engine

    return create_engine(database_url)


def get_engine() -> Engine:
    """Return a cached engine, creating it from DATABASE_URL on first call."""
    global _engine, _SessionLocal, _database_url

    database_url = get_database_url()
    if _engine is None or _database_url != database_url:
        if _engine is not None:
            _engine.dispose()
        _engine = _build_engine(database_url)
        _SessionLocal = None
        _database_url = database_url
        register_query_timing(_engine)
        logger.info(
            "Database engine created",
            extra={
                "context": {
                    "dialect": _engine.dialect.name,
                    "database": make_url(database_url).database,
                }
            },
        )
    return _engine


def get_sessionmaker() -> sessionmaker:
    """Return a cached sessionmaker bound to the lazy engine."""
    global _SessionLocal
    engine = get_engine()
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    return _SessionLocal


def SessionLocal() -> Session:
    """Open a new Session bound to the current engine."""
    return get_sessionmaker()()


def get_db():
    """Dependency to get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables() -> None:
    """Create all tables in database using the lazy engine."""
    # Models must be imported so Base.metadata is populated
    from ebers.db import base  # noqa: F401

    Base.metadata.create_all(bind=get_engine())


def drop_tables() -> None:
    from ebers.db import base  # noqa: F401

    Base.metadata.drop_all(bind=get_engine())


def dispose_engine() -> None:
    """Close pooled connections and forget the cached engine."""
    global _engine, _SessionLocal, _database_url
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None
    _database_url = None
