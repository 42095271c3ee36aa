"""
Processed-post ledger operations.

One row per (post_id, quality). The ledger decides whether a post needs work,
carries resolver progress between passes and answers the completeness and
season-year questions the pipeline asks before touching an event.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from .database import session_scope
from .models import ProcessedPost
from src.logger import log_function


logger = logging.getLogger("database")

FULL_HD = "1080p"
FOUR_K = "4K"

IN_PROGRESS_STATUSES = frozenset(
    {
        "magnet_conversion",
        "waiting_files_selection",
        "queued",
        "downloading",
        "compressing",
        "uploading",
        "processing",
    }
)
TERMINAL_FAILURE_STATUSES = frozenset({"error", "dead", "magnet_error", "virus"})


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass
class CompletenessStatus:
    """Ledger view of an event across both quality tiers."""

    has_1080p: bool = False
    has_4k: bool = False
    fully_processed_1080p: bool = False
    fully_processed_4k: bool = False

    @property
    def is_complete(self) -> bool:
        return (
            self.has_1080p
            and self.has_4k
            and self.fully_processed_1080p
            and self.fully_processed_4k
        )


def _entry_to_dict(entry: ProcessedPost) -> dict:
    return {
        "post_id": entry.post_id,
        "quality": entry.quality,
        "post_url": entry.post_url,
        "title": entry.title,
        "event_name": entry.event_name,
        "event_round": entry.event_round,
        "created_utc": entry.created_utc,
        "processed_at": entry.processed_at,
        "is_fully_processed": entry.is_fully_processed,
        "reference": entry.reference,
        "job_id": entry.job_id,
        "job_status": entry.job_status,
        "job_last_checked": entry.job_last_checked,
    }


def get_ledger_entry(
    post_id: str, quality: str, session: Optional[Session] = None
) -> Optional[dict]:
    with session_scope(session) as db:
        entry = db.get(ProcessedPost, (post_id, quality))
        return _entry_to_dict(entry) if entry is not None else None


def is_post_fully_processed(
    post_id: str, quality: str, session: Optional[Session] = None
) -> bool:
    with session_scope(session) as db:
        entry = db.get(ProcessedPost, (post_id, quality))
        return bool(entry is not None and entry.is_fully_processed)


@log_function(logger_name="database", log_args=True)
def upsert_ledger_entry(
    post_id: str,
    quality: str,
    post_url: str,
    title: str,
    event_name: str,
    event_round: int,
    created_utc: int,
    is_fully_processed: bool = False,
    reference: Optional[str] = None,
    job_id: Optional[str] = None,
    job_status: Optional[str] = None,
    job_last_checked: Optional[datetime] = None,
    session: Optional[Session] = None,
) -> None:
    """
    Write a ledger entry, replacing every column of an existing one.

    Resolver-progress fields not passed in are cleared, so a re-parsed post
    starts from a clean slate.
    """
    with session_scope(session) as db:
        entry = db.get(ProcessedPost, (post_id, quality))
        if entry is None:
            entry = ProcessedPost(post_id=post_id, quality=quality)
            db.add(entry)
        entry.post_url = post_url
        entry.title = title
        entry.event_name = event_name
        entry.event_round = event_round
        entry.created_utc = int(created_utc)
        entry.processed_at = utcnow()
        entry.is_fully_processed = is_fully_processed
        entry.reference = reference
        entry.job_id = job_id
        entry.job_status = job_status
        entry.job_last_checked = job_last_checked
        db.flush()


@log_function(logger_name="database", log_args=True, log_result=True)
def mark_fully_processed(
    post_id: str, quality: str, session: Optional[Session] = None
) -> bool:
    """
    Flag a ledger entry as fully processed.

    Returns:
        bool: False when no entry exists for (post_id, quality)
    """
    with session_scope(session) as db:
        entry = db.get(ProcessedPost, (post_id, quality))
        if entry is None:
            return False
        entry.is_fully_processed = True
        entry.processed_at = utcnow()
        return True


def update_job_status(
    post_id: str,
    quality: str,
    job_id: Optional[str],
    status: Optional[str],
    checked_at: Optional[datetime] = None,
    session: Optional[Session] = None,
) -> bool:
    """
    Record the last resolver status seen for a ledger entry.

    Called on every poll, so it stays quiet at INFO level.
    """
    with session_scope(session) as db:
        entry = db.get(ProcessedPost, (post_id, quality))
        if entry is None:
            logger.warning(f"No ledger entry for post {post_id} ({quality}) to update")
            return False
        if job_id is not None:
            entry.job_id = job_id
        entry.job_status = status
        entry.job_last_checked = checked_at or utcnow()
        logger.debug(f"Post {post_id} ({quality}) job {job_id}: {status}")
        return True


def get_reference_job(
    reference: str, session: Optional[Session] = None
) -> Optional[dict]:
    """
    Most recently checked resolver job recorded for a reference.

    Returns:
        Dictionary with job_id, job_status and job_last_checked, or None
    """
    with session_scope(session) as db:
        entry = (
            db.query(ProcessedPost)
            .filter(ProcessedPost.reference == reference)
            .filter(ProcessedPost.job_id.isnot(None))
            .order_by(ProcessedPost.job_last_checked.desc())
            .first()
        )
        if entry is None:
            return None
        return {
            "job_id": entry.job_id,
            "job_status": entry.job_status,
            "job_last_checked": entry.job_last_checked,
        }


def should_skip_reference(
    reference: str,
    cooldown_minutes: float = 30,
    now: Optional[datetime] = None,
    session: Optional[Session] = None,
) -> bool:
    """
    True when a job for this reference is in progress and was checked recently.

    A reference whose in-progress job was last polled within the cooldown is
    left alone until the cooldown expires.
    """
    now = now or utcnow()
    threshold = now - timedelta(minutes=cooldown_minutes)
    with session_scope(session) as db:
        hit = (
            db.query(ProcessedPost.post_id)
            .filter(ProcessedPost.reference == reference)
            .filter(ProcessedPost.job_status.in_(IN_PROGRESS_STATUSES))
            .filter(ProcessedPost.job_last_checked.isnot(None))
            .filter(ProcessedPost.job_last_checked > threshold)
            .first()
        )
        return hit is not None


@log_function(logger_name="database")
def get_completeness(
    name: str, round_number: int, session: Optional[Session] = None
) -> CompletenessStatus:
    """
    Completeness of an event across both quality tiers.

    A tier counts as present when at least one ledger entry of that quality
    exists for the event, and as fully processed when any of them is.
    """
    status = CompletenessStatus()
    with session_scope(session) as db:
        rows = (
            db.query(ProcessedPost.quality, ProcessedPost.is_fully_processed)
            .filter_by(event_name=name, event_round=round_number)
            .all()
        )
    for quality, fully_processed in rows:
        if quality == FULL_HD:
            status.has_1080p = True
            status.fully_processed_1080p = status.fully_processed_1080p or fully_processed
        elif quality == FOUR_K:
            status.has_4k = True
            status.fully_processed_4k = status.fully_processed_4k or fully_processed
    return status


def get_most_recent_post_timestamp(
    name: Optional[str] = None,
    round_number: Optional[int] = None,
    session: Optional[Session] = None,
) -> Optional[int]:
    """Newest ``created_utc`` in the ledger, optionally for one event."""
    with session_scope(session) as db:
        query = db.query(func.max(ProcessedPost.created_utc))
        if name is not None:
            query = query.filter(ProcessedPost.event_name == name)
        if round_number is not None:
            query = query.filter(ProcessedPost.event_round == round_number)
        return query.scalar()


def get_event_year(
    name: str, round_number: int, session: Optional[Session] = None
) -> Optional[int]:
    """
    Season year of a stored event, derived from its ledger posts.

    The most common post year wins; ties go to the earliest year.

    Returns:
        The year, or None when the event has no ledger entries
    """
    with session_scope(session) as db:
        timestamps = [
            row[0]
            for row in db.query(ProcessedPost.created_utc)
            .filter_by(event_name=name, event_round=round_number)
            .all()
        ]
    if not timestamps:
        return None
    years = Counter(
        datetime.fromtimestamp(ts, tz=timezone.utc).year for ts in timestamps
    )
    return min(years, key=lambda year: (-years[year], year))


@log_function(logger_name="database", log_args=True, log_result=True)
def delete_ledger_entries(
    name: Optional[str] = None,
    round_number: Optional[int] = None,
    session: Optional[Session] = None,
) -> int:
    """
    Delete ledger entries, all of them or those of one event.

    Returns:
        int: Number of rows deleted
    """
    with session_scope(session) as db:
        query = db.query(ProcessedPost)
        if name is not None:
            query = query.filter(ProcessedPost.event_name == name)
        if round_number is not None:
            query = query.filter(ProcessedPost.event_round == round_number)
        deleted = query.delete(synchronize_session=False)
    logger.info(f"Deleted {deleted} ledger entries")
    return deleted
