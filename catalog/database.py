import logging
import sqlite3
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from catalog.config import get_settings
from catalog.exceptions import ConflictError, PersistenceError

settings = get_settings()
logger = logging.getLogger(__name__)

# SQLite has no connection pool sizing
if settings.DATABASE_URL.startswith("sqlite"):
    engine = create_engine(
        settings.DATABASE_URL,
        connect_args={"check_same_thread": False},
    )
else:
    engine = create_engine(
        settings.DATABASE_URL,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
    )


@event.listens_for(Engine, "connect")
def enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    """SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection."""
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


def get_db():
    """
    Dependency to get database session.
    Yields a database session and closes it after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def commit_or_raise(db: Session, error_message: str, conflict: Optional[str] = None) -> None:
    """
    Commit the session, rolling back on failure.

    Args:
        db: Session to commit
        error_message: Message of the PersistenceError raised on failure
        conflict: When given, a constraint violation raises ConflictError
            with this message instead

    Raises:
        ConflictError: On a constraint violation when conflict is set
        PersistenceError: On any other database error
    """
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if conflict is not None:
            raise ConflictError(conflict) from e
        logger.error(f"{error_message}: {e}")
        raise PersistenceError(error_message, {"error": str(e)}) from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"{error_message}: {e}")
        raise PersistenceError(error_message, {"error": str(e)}) from e
