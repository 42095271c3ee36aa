"""
Database package for the session catalog.

Structure:
- models.py: SQLAlchemy ORM models (Event, EventSession, StreamLink, ProcessedPost)
- database.py: Database connection, engine, and session factory
- catalog.py: Event / session / stream link upserts, read models and resets
- ledger.py: Processed-post ledger operations

Database Patterns:
- SQLite uses session-per-operation with get_db_session() context manager
- Store functions accept an optional session so a caller can group writes
  into one transaction (session_scope())

All models inherit from a common Base declarative class and follow consistent
naming conventions (singular class names, plural table names).
"""

from .models import Base, Event, EventSession, ProcessedPost, StreamLink, TimestampMixin
from .database import (
    get_db_session,
    session_scope,
    check_database_connection,
    init_database,
    get_database_info,
    engine,
    SessionLocal,
)
from .catalog import (
    save_event,
    save_session,
    save_stream_link,
    persist_event_graph,
    get_event_graph,
    get_events_by_name,
    list_events_with_counts,
    delete_event,
    reset_event,
    reset_all,
)
from .ledger import (
    CompletenessStatus,
    IN_PROGRESS_STATUSES,
    TERMINAL_FAILURE_STATUSES,
    get_ledger_entry,
    is_post_fully_processed,
    upsert_ledger_entry,
    mark_fully_processed,
    update_job_status,
    get_reference_job,
    should_skip_reference,
    get_completeness,
    get_most_recent_post_timestamp,
    get_event_year,
    delete_ledger_entries,
    utcnow,
)

__all__ = [
    "Base",
    "Event",
    "EventSession",
    "ProcessedPost",
    "StreamLink",
    "TimestampMixin",
    "get_db_session",
    "session_scope",
    "check_database_connection",
    "init_database",
    "get_database_info",
    "engine",
    "SessionLocal",
    "save_event",
    "save_session",
    "save_stream_link",
    "persist_event_graph",
    "get_event_graph",
    "get_events_by_name",
    "list_events_with_counts",
    "delete_event",
    "reset_event",
    "reset_all",
    "CompletenessStatus",
    "IN_PROGRESS_STATUSES",
    "TERMINAL_FAILURE_STATUSES",
    "get_ledger_entry",
    "is_post_fully_processed",
    "upsert_ledger_entry",
    "mark_fully_processed",
    "update_job_status",
    "get_reference_job",
    "should_skip_reference",
    "get_completeness",
    "get_most_recent_post_timestamp",
    "get_event_year",
    "delete_ledger_entries",
    "utcnow",
]
