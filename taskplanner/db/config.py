"""Database configuration for the task planner."""
import logging
from typing import Generator

from sqlalchemy import event
from sqlmodel import Session, create_engine

from taskplanner.config import DATABASE_URL, SQL_ECHO

logger = logging.getLogger(__name__)


def build_engine(database_url: str, echo: bool = False, **kwargs):
    """Create an engine, applying the SQLite connection pragmas when relevant."""
    is_sqlite = database_url.startswith("sqlite")
    connect_args = {"check_same_thread": False} if is_sqlite else {}
    connect_args.update(kwargs.pop("connect_args", {}))

    db_engine = create_engine(database_url, echo=echo, connect_args=connect_args, **kwargs)

    if is_sqlite:
        @event.listens_for(db_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            # Wait on locks instead of failing straight away with "database is locked"
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

    return db_engine


if DATABASE_URL.startswith("sqlite"):
    logger.info("Using SQLite database: %s", DATABASE_URL)
else:
    logger.info("Using database at %s", DATABASE_URL.split("@")[-1])

engine = build_engine(DATABASE_URL, echo=SQL_ECHO)


def get_session() -> Generator[Session, None, None]:
    """Dependency for getting database sessions."""
    with Session(engine) as session:
        yield session
