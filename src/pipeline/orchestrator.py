import fcntl
import logging
import threading
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy.exc import SQLAlchemyError

from src.db import (
    check_database_connection,
    get_completeness,
    get_database_info,
    get_event_year,
)
from src.ingestion import FeedPost, RedditAuth, RedditCredentials, RedditFeedClient
from src.logger import log_with_timer
from src.parser import EventInfo, extract_event_from_title, extract_year_from_title
from src.resolver import LinkResolver, RealDebridClient
from .config import PipelineConfig
from .stages import PostOutcome, PostResult, process_post


logger = logging.getLogger("pipeline")

_pass_lock = threading.Lock()


class PassAlreadyRunningError(RuntimeError):
    """Another ingestion pass holds the lock."""


class StoreUnavailableError(RuntimeError):
    """The catalog database cannot be reached."""


@dataclass
class EventGroup:
    event: EventInfo
    posts: list[FeedPost] = field(default_factory=list)

    @property
    def key(self) -> tuple[str, int]:
        return (self.event.name, self.event.round)

    def year(self, today: Optional[date] = None) -> int:
        return max(extract_year_from_title(p.title, today) for p in self.posts)


@dataclass
class PassSummary:
    posts_fetched: int = 0
    groups: int = 0
    groups_processed: int = 0
    outcomes: Counter = field(default_factory=Counter)
    stopped_early: bool = False
    stopped_at: Optional[tuple[str, int]] = None

    @property
    def errors(self) -> int:
        return self.outcomes[PostOutcome.ERROR]


def group_posts_by_event(posts: list[FeedPost]) -> list[EventGroup]:
    """
    Group posts by (event name, round), highest round first.

    Posts whose title names no known Grand Prix are dropped. Within a group,
    posts keep their feed order.
    """
    groups: dict[tuple[str, int], EventGroup] = {}
    for post in posts:
        event = extract_event_from_title(post.title)
        if event is None:
            continue
        key = (event.name, event.round)
        if key not in groups:
            groups[key] = EventGroup(event=event)
        groups[key].posts.append(post)
    return sorted(groups.values(), key=lambda g: g.event.round, reverse=True)


def should_stop_at(group: EventGroup, today: Optional[date] = None) -> bool:
    """
    True when the group's event is already complete in both quality tiers.

    Completeness recorded for an older season does not count: the new season's
    posts for the same round still need processing.
    """
    status = get_completeness(group.event.name, group.event.round)
    if not status.is_complete:
        return False
    stored_year = get_event_year(group.event.name, group.event.round)
    if stored_year is not None and stored_year < group.year(today):
        logger.info(
            f"{group.event.name} is complete for {stored_year}, "
            f"not for {group.year(today)}; continuing"
        )
        return False
    return True


def pass_lock_path() -> Path:
    """Lock file kept next to the catalog database."""
    return Path(get_database_info()["database_path"]).with_name("ingestion.lock")


@contextmanager
def pass_guard(lock_path: Optional[Path] = None) -> Iterator[None]:
    """
    Hold the ingestion pass lock for the duration of the block.

    Two locks are taken: a thread lock for passes in this process and an
    exclusive ``flock`` on the lock file for passes in other processes sharing
    the same database. Neither waits.

    Raises:
        PassAlreadyRunningError: If either lock is already held
    """
    if not _pass_lock.acquire(blocking=False):
        raise PassAlreadyRunningError("An ingestion pass is already running")
    try:
        lock_path = lock_path or pass_lock_path()
        lock_fd = open(lock_path, "w")
        try:
            try:
                fcntl.flock(lock_fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                raise PassAlreadyRunningError(
                    f"An ingestion pass is already running (lock held on {lock_path})"
                )
            try:
                yield
            finally:
                fcntl.flock(lock_fd, fcntl.LOCK_UN)
        finally:
            lock_fd.close()
    finally:
        _pass_lock.release()


def build_feed(config: PipelineConfig) -> RedditFeedClient:
    return RedditFeedClient(
        RedditAuth(RedditCredentials.from_env()),
        author=config.feed_author,
        max_pages=config.fetch_max_pages,
        page_delay=config.fetch_page_delay,
        lookback_days=config.fetch_lookback_days,
    )


def build_resolver(config: PipelineConfig) -> LinkResolver:
    return LinkResolver(
        RealDebridClient(config.realdebrid_api_key),
        max_attempts=config.resolver_max_attempts,
        poll_interval=config.resolver_poll_interval,
    )


def _run_post(
    post: FeedPost, resolver: LinkResolver, config: PipelineConfig, today: Optional[date]
) -> PostResult:
    try:
        return process_post(post, resolver, config, today)
    except SQLAlchemyError as e:
        logger.error(f"Database error while processing post {post.id}: {e}")
        return PostResult(PostOutcome.ERROR, post.id)


@log_with_timer(logger_name="pipeline")
def fetch_and_process(
    config: Optional[PipelineConfig] = None,
    feed: Optional[RedditFeedClient] = None,
    resolver: Optional[LinkResolver] = None,
    max_events: Optional[int] = None,
    today: Optional[date] = None,
) -> PassSummary:
    """
    Run one ingestion pass.

    Fetches the feed, groups posts by event (newest round first) and processes
    each group's posts in feed order. The pass stops early at the first event
    already complete in both tiers, or once ``max_events`` groups produced a
    processed post.

    Args:
        config: Pipeline configuration (from the environment by default)
        feed: Feed client (built from config by default)
        resolver: Link resolver (built from config by default)
        max_events: Cap on the number of events that get processed
        today: Date used for season decisions (defaults to today)

    Returns:
        PassSummary with per-outcome counts

    Raises:
        PassAlreadyRunningError: If another pass is running in any process
        StoreUnavailableError: If the database cannot be reached
        ValueError: If the configuration is invalid
        FeedAuthError: If the feed rejects the credentials
    """
    with pass_guard():
        config = config or PipelineConfig.from_env()
        if resolver is None:
            errors = config.validate()
            if errors:
                raise ValueError("Invalid configuration: " + "; ".join(errors))
            resolver = build_resolver(config)
        feed = feed or build_feed(config)

        if not check_database_connection():
            raise StoreUnavailableError("Cannot connect to the catalog database")

        logger.info("=== INGESTION PASS STARTED ===")
        posts = feed.fetch_posts()
        summary = PassSummary(posts_fetched=len(posts))
        groups = group_posts_by_event(posts)
        summary.groups = len(groups)
        logger.info(f"Found {len(posts)} Formula 1 posts in {len(groups)} events")

        for group in groups:
            if max_events is not None and summary.groups_processed >= max_events:
                logger.info(f"Reached the limit of {max_events} events")
                break

            name, round_number = group.key
            logger.info(f"Processing {name} (Round {round_number})...")
            if should_stop_at(group, today):
                logger.info(
                    f"{name} already fully processed (both 1080p and 4K), stopping this pass"
                )
                summary.stopped_early = True
                summary.stopped_at = group.key
                break

            group_succeeded = False
            for post in group.posts:
                result = _run_post(post, resolver, config, today)
                summary.outcomes[result.outcome] += 1
                group_succeeded = group_succeeded or result.succeeded
            if group_succeeded:
                summary.groups_processed += 1

            if get_completeness(name, round_number).is_complete:
                logger.info(f"{name} is now fully processed")

        logger.info(
            "=== INGESTION PASS COMPLETED === "
            + ", ".join(f"{o.value}={n}" for o, n in summary.outcomes.items())
        )
        return summary
