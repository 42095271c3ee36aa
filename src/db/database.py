"""
SQLite database engine and session management for the session catalog.

This module provides SQLite-specific database connectivity with:
- Session-per-operation pattern via get_db_session()
- session_scope() so several store operations can share one transaction
- NullPool connection pooling to avoid SQLite locking issues
- SQLite settings applied per connection (WAL mode, foreign keys, timeouts)
"""

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from dotenv import load_dotenv
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool

from .models import Base
from src.logger import setup_logging, log_function


db_logger = setup_logging(logger_name="database", log_file="logs/database.log")


load_dotenv()
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///data/catalog.db")


def validate_database_url(url: Optional[str]) -> tuple[bool, str]:
    """Validate the database URL format and path."""
    if not url:
        return False, "DATABASE_URL is not set"
    try:
        parsed = make_url(url)
    except ArgumentError as e:
        return False, f"Invalid database URL format: {e}"

    if parsed.get_backend_name() != "sqlite":
        return False, f"Only SQLite databases are supported, got: {parsed.drivername}"

    db_path = parsed.database
    if not db_path or db_path == ":memory:":
        return False, "Database file path is empty"

    # Check if parent directory exists (but don't create it)
    parent_dir = Path(db_path).parent
    if not parent_dir.exists():
        return False, f"Database directory does not exist: {parent_dir}"

    return True, db_path


def optimize_sqlite_connection(dbapi_connection, connection_record):
    """Apply SQLite-specific settings when a connection is created."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=30000")
    # Required for ON DELETE CASCADE from events to sessions to stream links
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


is_valid, db_info = validate_database_url(DATABASE_URL)
if not is_valid:
    db_logger.error(f"Database configuration error: {db_info}")
    raise ValueError(f"Database configuration error: {db_info}")

db_logger.info(f"Database configured: {db_info}")


engine = create_engine(
    DATABASE_URL,
    poolclass=NullPool,
    echo=False,
    connect_args={"check_same_thread": False, "timeout": 30},
)
event.listen(engine, "connect", optimize_sqlite_connection)

SessionLocal = sessionmaker(
    autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
)


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions (session-per-operation pattern).

    Rolls back and re-raises on any error. Callers commit.

    Usage:
        with get_db_session() as session:
            session.add(Event(name="British Grand Prix", round=12, country="United Kingdom"))
            session.commit()
    """
    session = SessionLocal()
    try:
        db_logger.debug("Database session created")
        yield session

    except OperationalError as e:
        db_logger.error(f"Database operational error: {e}")
        session.rollback()

        error_msg = str(e.orig) if getattr(e, "orig", None) is not None else str(e)
        if "database is locked" in error_msg.lower():
            raise OperationalError(
                "Database is locked. Another ingestion pass may be writing; "
                "try again once it has finished.",
                None,
                e.orig,
            ) from e
        if "no such table" in error_msg.lower():
            raise OperationalError(
                "Database table does not exist. Run init_database() or the "
                "Alembic migrations first.",
                None,
                e.orig,
            ) from e
        raise

    except SQLAlchemyError as e:
        db_logger.error(f"Database error: {e}")
        session.rollback()
        raise

    except Exception as e:
        db_logger.error(f"Unexpected error in database session: {e}")
        session.rollback()
        raise

    finally:
        session.close()
        db_logger.debug("Database session closed")


@contextmanager
def session_scope(session: Optional[Session] = None) -> Generator[Session, None, None]:
    """
    Reuse the caller's session, or open one and commit it on success.

    Store functions take an optional session: when given, the caller owns the
    transaction; when omitted, the operation runs in its own transaction.
    """
    if session is not None:
        yield session
        return
    with get_db_session() as own_session:
        yield own_session
        own_session.commit()


@log_function(logger_name="database")
def check_database_connection() -> bool:
    """
    Check if database connection is working.

    Returns:
        bool: True if connection is successful, False otherwise
    """
    try:
        with get_db_session() as session:
            session.execute(text("SELECT 1"))
            db_logger.info("Database connection test successful")
            return True
    except SQLAlchemyError as e:
        db_logger.error(f"Database connection test failed: {e}")
        return False


@log_function(logger_name="database")
def init_database() -> bool:
    """
    Create all catalog tables that do not exist yet.

    Note: This does not run Alembic migrations.

    Returns:
        bool: True if initialization successful, False otherwise
    """
    try:
        Base.metadata.create_all(bind=engine)
        db_logger.info("Database tables created successfully")
        return True
    except SQLAlchemyError as e:
        db_logger.error(f"Failed to initialize database: {e}")
        return False


def get_database_info() -> dict:
    """
    Get information about the database.

    Returns:
        dict: Database URL, file path, file size and table names
    """
    info = {
        "database_url": DATABASE_URL,
        "database_path": db_info,
        "engine_pool_class": engine.pool.__class__.__name__,
        "tables": sorted(Base.metadata.tables),
    }
    if os.path.exists(db_info):
        file_stats = os.stat(db_info)
        info.update(
            {
                "file_exists": True,
                "file_size_bytes": file_stats.st_size,
                "file_size_mb": round(file_stats.st_size / (1024 * 1024), 2),
                "last_modified": file_stats.st_mtime,
            }
        )
    else:
        info["file_exists"] = False
    return info
