"""
SQLAlchemy ORM models for the session catalog.

This module defines the database schema using SQLAlchemy's declarative base.
The schema is read directly by the catalog serving layer, so table and column
names are part of the public contract.

Models:
    Event: A Grand Prix weekend, unique on (name, round)
    EventSession: A session of an event, unique on (event_id, name)
    StreamLink: A playable URL for a session, unique on (session_id, quality, url)
    ProcessedPost: Ledger entry per (post_id, quality) tracking processing
        and resolver progress
    TimestampMixin: Provides created_at/updated_at timestamps
"""

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class TimestampMixin:
    """
    Mixin to add timestamp tracking to models.

    Provides:
        created_at: Timestamp when record was created (set automatically)
        updated_at: Timestamp when record was last modified (updated automatically)
    """

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )


class Event(Base, TimestampMixin):
    """
    A Grand Prix weekend.

    The surrogate id must stay stable across repeated saves of the same
    (name, round): sessions and stream links hang off it. Deleting an event
    deletes its sessions and their stream links.
    """

    __tablename__ = "events"
    __table_args__ = (UniqueConstraint("name", "round", name="uq_events_name_round"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False, index=True)
    round = Column(Integer, nullable=False)
    country = Column(String, nullable=False)

    sessions = relationship(
        "EventSession",
        back_populates="event",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="EventSession.id",
    )

    def __repr__(self):
        return f"<Event(id={self.id}, name='{self.name}', round={self.round})>"


class EventSession(Base, TimestampMixin):
    """
    A session of an event (practice, qualifying, sprint, race).

    ``name`` is the canonical category name, ``display_name`` the name as the
    post wrote it. ``date`` and ``duration`` are kept verbatim.
    """

    __tablename__ = "sessions"
    __table_args__ = (
        UniqueConstraint("event_id", "name", name="uq_sessions_event_name"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String, nullable=False)
    display_name = Column(String, nullable=False)
    date = Column(String, nullable=True)
    duration = Column(String, nullable=True)

    event = relationship("Event", back_populates="sessions")
    streams = relationship(
        "StreamLink",
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="StreamLink.id",
    )

    def __repr__(self):
        return (
            f"<EventSession(id={self.id}, event_id={self.event_id}, name='{self.name}')>"
        )


class StreamLink(Base):
    """A direct playable URL for one session at one quality."""

    __tablename__ = "stream_links"
    __table_args__ = (
        UniqueConstraint(
            "session_id", "quality", "url", name="uq_stream_links_session_quality_url"
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(
        Integer,
        ForeignKey("sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    quality = Column(String, nullable=False)
    url = Column(String, nullable=False)
    filename = Column(String, nullable=True)
    size = Column(BigInteger, nullable=True)
    source = Column(String, nullable=False, default="Sky F1", server_default="Sky F1")
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    session = relationship("EventSession", back_populates="streams")

    def __repr__(self):
        return (
            f"<StreamLink(id={self.id}, session_id={self.session_id}, "
            f"quality='{self.quality}', filename='{self.filename}')>"
        )


class ProcessedPost(Base):
    """
    Ledger entry for one (post, quality).

    Independent of the event tree: deleting an event leaves these rows in place.

    Attributes:
        post_id: Feed post id
        quality: Quality tier of the post ("1080p" or "4K")
        post_url: Permalink of the post
        title: Post title
        event_name: Name of the event the post belongs to
        event_round: Round of the event the post belongs to
        created_utc: Post creation time (unix seconds) as reported by the feed
        processed_at: Last time the entry was written by the pipeline
        is_fully_processed: True once every required session has a link of
            this quality
        reference: Magnet link extracted from the post
        job_id: Resolver job id
        job_status: Last resolver status seen
        job_last_checked: Time of the last resolver poll
    """

    __tablename__ = "processed_posts"

    post_id = Column(String, primary_key=True)
    quality = Column(String, primary_key=True)
    post_url = Column(String, nullable=False)
    title = Column(String, nullable=False)
    event_name = Column(String, nullable=False, index=True)
    event_round = Column(Integer, nullable=False)
    created_utc = Column(Integer, nullable=False)
    processed_at = Column(DateTime, nullable=False, server_default=func.now())
    is_fully_processed = Column(
        Boolean, nullable=False, default=False, server_default="0"
    )
    reference = Column(Text, nullable=True, index=True)
    job_id = Column(String, nullable=True)
    job_status = Column(String, nullable=True)
    job_last_checked = Column(DateTime, nullable=True)

    def __repr__(self):
        return (
            f"<ProcessedPost(post_id={self.post_id}, quality={self.quality}, "
            f"event='{self.event_name}' R{self.event_round}, "
            f"fully_processed={self.is_fully_processed}, job_status={self.job_status})>"
        )
