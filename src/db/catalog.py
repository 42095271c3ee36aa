"""
Catalog store: events, sessions and stream links.

Upsert rules keep surrogate ids stable so that children never get orphaned:
events and sessions are looked up by their natural key and updated in place,
stream links are only inserted when the exact (session_id, quality, url) tuple
is absent.

Every function takes an optional SQLAlchemy ``Session``. Pass one to group
several writes in a single transaction (see persist_event_graph); omit it to
run the operation in its own transaction.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from .database import session_scope
from .models import Event, EventSession, ProcessedPost, StreamLink
from src.logger import log_function


logger = logging.getLogger("database")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _upsert_event(session: Session, name: str, round_number: int, country: str) -> int:
    event = session.query(Event).filter_by(name=name, round=round_number).one_or_none()
    if event is not None:
        event.country = country
        event.updated_at = _utcnow()
        session.flush()
        return event.id

    event = Event(name=name, round=round_number, country=country)
    session.add(event)
    session.flush()
    logger.info(f"Created event {name} (R{round_number}) with id {event.id}")
    return event.id


def _upsert_session(
    session: Session,
    event_id: int,
    name: str,
    display_name: str,
    date: Optional[str],
    duration: Optional[str],
) -> int:
    event_session = (
        session.query(EventSession)
        .filter_by(event_id=event_id, name=name)
        .one_or_none()
    )
    if event_session is not None:
        event_session.display_name = display_name
        event_session.date = date
        event_session.duration = duration
        event_session.updated_at = _utcnow()
        session.flush()
        return event_session.id

    event_session = EventSession(
        event_id=event_id,
        name=name,
        display_name=display_name,
        date=date,
        duration=duration,
    )
    session.add(event_session)
    session.flush()
    return event_session.id


def _insert_stream_link(
    session: Session,
    session_id: int,
    quality: str,
    url: str,
    filename: Optional[str],
    size: Optional[int],
    source: str,
) -> bool:
    exists = (
        session.query(StreamLink.id)
        .filter_by(session_id=session_id, quality=quality, url=url)
        .first()
    )
    if exists is not None:
        return False
    session.add(
        StreamLink(
            session_id=session_id,
            quality=quality,
            url=url,
            filename=filename,
            size=size,
            source=source,
        )
    )
    session.flush()
    return True


@log_function(logger_name="database", log_args=True, log_result=True)
def save_event(
    name: str, round_number: int, country: str, session: Optional[Session] = None
) -> int:
    """
    Insert or update an event and return its id.

    The id returned for a given (name, round) never changes while the row exists.
    """
    with session_scope(session) as db:
        return _upsert_event(db, name, round_number, country)


@log_function(logger_name="database", log_args=True, log_result=True)
def save_session(
    event_id: int,
    name: str,
    display_name: str,
    date: Optional[str] = None,
    duration: Optional[str] = None,
    session: Optional[Session] = None,
) -> int:
    """Insert or update a session of an event and return its id."""
    with session_scope(session) as db:
        return _upsert_session(db, event_id, name, display_name, date, duration)


@log_function(logger_name="database", log_args=True, log_result=True)
def save_stream_link(
    session_id: int,
    quality: str,
    url: str,
    filename: Optional[str] = None,
    size: Optional[int] = None,
    source: str = "Sky F1",
    session: Optional[Session] = None,
) -> bool:
    """
    Insert a stream link unless the exact tuple is already stored.

    Returns:
        bool: True if a row was inserted, False if it already existed
    """
    with session_scope(session) as db:
        return _insert_stream_link(db, session_id, quality, url, filename, size, source)


@log_function(logger_name="database")
def persist_event_graph(
    name: str,
    round_number: int,
    country: str,
    sessions: Sequence[dict[str, Any]],
    quality: str,
    source: str = "Sky F1",
) -> dict[str, int]:
    """
    Save an event, its sessions and their stream links in one transaction.

    Args:
        name: Event name
        round_number: Event round
        country: Event country
        sessions: Dicts with keys name, display_name, date, duration and an
            optional ``stream`` (object with url, filename and size attributes)
        quality: Quality tier of the streams
        source: Source label stored on each link

    Returns:
        Dictionary with event_id, sessions (saved) and links (inserted)
    """
    stats = {"event_id": 0, "sessions": 0, "links": 0}
    with session_scope() as db:
        event_id = _upsert_event(db, name, round_number, country)
        stats["event_id"] = event_id
        for item in sessions:
            session_id = _upsert_session(
                db,
                event_id,
                item["name"],
                item["display_name"],
                item.get("date"),
                item.get("duration"),
            )
            stats["sessions"] += 1
            stream = item.get("stream")
            if stream is None:
                continue
            if _insert_stream_link(
                db,
                session_id,
                quality,
                stream.url,
                stream.filename,
                stream.size,
                source,
            ):
                stats["links"] += 1
    logger.info(
        f"Persisted {name} (R{round_number}) {quality}: "
        f"{stats['sessions']} sessions, {stats['links']} new links"
    )
    return stats


def _session_to_dict(event_session: EventSession) -> dict[str, Any]:
    return {
        "id": event_session.id,
        "name": event_session.name,
        "display_name": event_session.display_name,
        "date": event_session.date,
        "duration": event_session.duration,
        "streams": [
            {
                "id": link.id,
                "quality": link.quality,
                "url": link.url,
                "filename": link.filename,
                "size": link.size,
                "source": link.source,
                "created_at": link.created_at,
            }
            for link in event_session.streams
        ],
    }


def _event_to_dict(event: Event) -> dict[str, Any]:
    return {
        "id": event.id,
        "name": event.name,
        "round": event.round,
        "country": event.country,
        "created_at": event.created_at,
        "updated_at": event.updated_at,
    }


@log_function(logger_name="database")
def get_event_graph(
    name: str, round_number: Optional[int] = None, session: Optional[Session] = None
) -> Optional[dict[str, Any]]:
    """
    Get an event with all its sessions and each session's stream links.

    When several rounds share the name and no round is given, the highest
    round is returned.

    Returns:
        Event dictionary with a ``sessions`` list, or None if not found
    """
    with session_scope(session) as db:
        query = (
            db.query(Event)
            .options(selectinload(Event.sessions).selectinload(EventSession.streams))
            .filter(Event.name == name)
        )
        if round_number is not None:
            query = query.filter(Event.round == round_number)
        event = query.order_by(Event.round.desc()).first()
        if event is None:
            return None
        graph = _event_to_dict(event)
        graph["sessions"] = [_session_to_dict(s) for s in event.sessions]
        return graph


@log_function(logger_name="database")
def get_events_by_name(name: str, session: Optional[Session] = None) -> list[dict[str, Any]]:
    """All stored events sharing a name, highest round first."""
    with session_scope(session) as db:
        events = (
            db.query(Event)
            .filter(Event.name == name)
            .order_by(Event.round.desc())
            .all()
        )
        return [_event_to_dict(e) for e in events]


@log_function(logger_name="database")
def list_events_with_counts(session: Optional[Session] = None) -> list[dict[str, Any]]:
    """
    List every event with its number of sessions and stream links.

    Returns:
        Event dictionaries with ``session_count`` and ``stream_count``, most
        recent round first
    """
    with session_scope(session) as db:
        rows = (
            db.query(
                Event,
                func.count(func.distinct(EventSession.id)),
                func.count(func.distinct(StreamLink.id)),
            )
            .outerjoin(EventSession, EventSession.event_id == Event.id)
            .outerjoin(StreamLink, StreamLink.session_id == EventSession.id)
            .group_by(Event.id)
            .order_by(Event.round.desc())
            .all()
        )
        events = []
        for event, session_count, stream_count in rows:
            data = _event_to_dict(event)
            data["session_count"] = session_count
            data["stream_count"] = stream_count
            events.append(data)
        return events


def _delete_event(db: Session, name: str, round_number: int) -> dict[str, int]:
    event = db.query(Event).filter_by(name=name, round=round_number).one_or_none()
    if event is None:
        return {"events": 0, "sessions": 0, "links": 0}

    session_ids = [s.id for s in event.sessions]
    links = 0
    if session_ids:
        links = (
            db.query(func.count(StreamLink.id))
            .filter(StreamLink.session_id.in_(session_ids))
            .scalar()
        )
    db.delete(event)
    db.flush()
    return {"events": 1, "sessions": len(session_ids), "links": links}


@log_function(logger_name="database", log_args=True, log_result=True)
def delete_event(
    name: str, round_number: int, session: Optional[Session] = None
) -> dict[str, int]:
    """
    Delete an event with its sessions and stream links.

    Ledger entries for the event are left untouched (see reset_event).

    Returns:
        Dictionary with events, sessions and links deleted
    """
    with session_scope(session) as db:
        return _delete_event(db, name, round_number)


@log_function(logger_name="database", log_args=True, log_result=True)
def reset_event(
    name: str, round_number: int, session: Optional[Session] = None
) -> dict[str, int]:
    """
    Delete an event tree and its ledger entries in one transaction.

    Used for season rollover and by the operator reset command.

    Returns:
        Dictionary with posts, events, sessions and links deleted
    """
    with session_scope(session) as db:
        counts = _delete_event(db, name, round_number)
        counts["posts"] = (
            db.query(ProcessedPost)
            .filter_by(event_name=name, event_round=round_number)
            .delete(synchronize_session=False)
        )
        return counts


@log_function(logger_name="database", log_result=True)
def reset_all(session: Optional[Session] = None) -> dict[str, int]:
    """Delete every stream link, session, event and ledger entry."""
    with session_scope(session) as db:
        return {
            "links": db.query(StreamLink).delete(synchronize_session=False),
            "sessions": db.query(EventSession).delete(synchronize_session=False),
            "events": db.query(Event).delete(synchronize_session=False),
            "posts": db.query(ProcessedPost).delete(synchronize_session=False),
        }
