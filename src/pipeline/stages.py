"""
Per-post processing.

process_post takes one feed post through parse → rollover → skip checks →
ledger → resolve → persist → completeness, and reports what happened as a
PostOutcome. The orchestrator decides what to do with the outcome.
"""

import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from src.db import (
    TERMINAL_FAILURE_STATUSES,
    get_event_graph,
    get_event_year,
    get_events_by_name,
    get_ledger_entry,
    mark_fully_processed,
    persist_event_graph,
    reset_event,
    should_skip_reference,
    update_job_status,
    upsert_ledger_entry,
)
from src.ingestion import FeedPost
from src.logger import log_function
from src.parser import (
    EventInfo,
    ParsedSession,
    Quality,
    classify_quality,
    extract_download_reference,
    extract_event_from_title,
    extract_sessions,
    extract_year_from_title,
    has_all_required_sessions,
    match_stream_file,
)
from src.resolver import LinkResolver, ResolutionStatus, ResolvedFile
from .config import PipelineConfig


logger = logging.getLogger("pipeline")


class PostOutcome(str, Enum):
    PARSE_MISS = "parse_miss"
    ALREADY_PROCESSED = "already_processed"
    PREVIOUSLY_FAILED = "previously_failed"
    IN_FLIGHT = "in_flight"
    DEFERRED = "deferred"
    FAILED = "failed"
    PROCESSED = "processed"
    ERROR = "error"


@dataclass
class PostResult:
    outcome: PostOutcome
    post_id: str
    quality: Optional[str] = None
    event: Optional[EventInfo] = None
    fully_processed: bool = False

    @property
    def succeeded(self) -> bool:
        return self.outcome == PostOutcome.PROCESSED


@dataclass(frozen=True)
class ParsedPost:
    event: EventInfo
    quality: Quality
    year: int
    reference: str
    sessions: list[ParsedSession]


def parse_post(post: FeedPost, today: Optional[date] = None) -> Optional[ParsedPost]:
    """Everything the pipeline needs from a post, or None if anything is missing."""
    event = extract_event_from_title(post.title)
    if event is None:
        return None
    quality = classify_quality(post.title)
    if quality == Quality.UNKNOWN:
        return None
    body = post.body
    reference = extract_download_reference(body)
    if reference is None:
        return None
    sessions = extract_sessions(body)
    if not sessions:
        return None
    return ParsedPost(
        event=event,
        quality=quality,
        year=extract_year_from_title(post.title, today),
        reference=reference,
        sessions=sessions,
    )


def apply_season_rollover(
    event: EventInfo, post_year: int, today: Optional[date] = None
) -> int:
    """
    Reset last season's copies of an event before a new season's post lands.

    Only runs for posts of the current or next year. Each stored event with
    the same name whose ledger year is exactly ``post_year - 1`` is deleted
    together with its ledger entries. Same-season and older events are kept.

    Returns:
        Number of events reset
    """
    current_year = (today or date.today()).year
    if post_year not in (current_year, current_year + 1):
        return 0

    previous_year = post_year - 1
    reset_count = 0
    for stored in get_events_by_name(event.name):
        stored_year = get_event_year(stored["name"], stored["round"])
        if stored_year != previous_year:
            logger.debug(
                f"Keeping {stored['name']} (R{stored['round']}) from {stored_year}"
            )
            continue
        counts = reset_event(stored["name"], stored["round"])
        reset_count += 1
        logger.info(
            f"Rolled over {previous_year} {stored['name']} (R{stored['round']}): "
            f"{counts['posts']} posts, {counts['events']} event, "
            f"{counts['sessions']} sessions, {counts['links']} links deleted"
        )
    return reset_count


def build_session_graph(
    sessions: list[ParsedSession], files: list[ResolvedFile]
) -> list[dict]:
    """
    Pair each announced session with its resolved file.

    A category announced twice keeps its first occurrence. Sessions without a
    matching file are still saved, without a stream.
    """
    graph = []
    seen = set()
    for parsed in sessions:
        if parsed.category in seen:
            continue
        seen.add(parsed.category)
        graph.append(
            {
                "name": parsed.category.value,
                "display_name": parsed.raw_name,
                "date": parsed.date,
                "duration": parsed.duration,
                "stream": match_stream_file(files, parsed.category),
            }
        )
    return graph


def is_event_complete_for_quality(name: str, round_number: int, quality: str) -> bool:
    """
    True when every session the weekend format requires has a link of ``quality``.

    Only sessions holding a link of that quality are considered. A sprint
    weekend missing its sprint link reads as conventional and fails on the
    practice sessions it never had.
    """
    graph = get_event_graph(name, round_number)
    if graph is None:
        return False

    covered = [
        event_session["name"]
        for event_session in graph["sessions"]
        if any(s["quality"] == quality for s in event_session["streams"])
    ]
    return has_all_required_sessions(covered)


@log_function(logger_name="pipeline")
def process_post(
    post: FeedPost,
    resolver: LinkResolver,
    config: Optional[PipelineConfig] = None,
    today: Optional[date] = None,
) -> PostResult:
    """
    Process one feed post for its quality tier.

    Args:
        post: Feed post
        resolver: Link resolver used for the post's magnet link
        config: Pipeline configuration (skip cooldown, stream source)
        today: Date used for season rollover (defaults to today)

    Returns:
        PostResult describing the outcome. Database errors propagate.
    """
    config = config or PipelineConfig()

    parsed = parse_post(post, today)
    if parsed is None:
        logger.debug(f"Post {post.id} is not a usable release post: {post.title!r}")
        return PostResult(PostOutcome.PARSE_MISS, post.id)

    event = parsed.event
    quality = parsed.quality.value
    result = PostResult(PostOutcome.PARSE_MISS, post.id, quality=quality, event=event)

    apply_season_rollover(event, parsed.year, today)

    entry = get_ledger_entry(post.id, quality)
    if entry is not None and entry["is_fully_processed"]:
        logger.info(f"Post {post.id} ({quality}) already processed, skipping")
        result.outcome = PostOutcome.ALREADY_PROCESSED
        result.fully_processed = True
        return result
    if entry is not None and entry["job_status"] in TERMINAL_FAILURE_STATUSES:
        logger.info(
            f"Post {post.id} ({quality}) failed before with status "
            f"{entry['job_status']}, skipping until reset"
        )
        result.outcome = PostOutcome.PREVIOUSLY_FAILED
        return result
    if should_skip_reference(parsed.reference, config.skip_cooldown_minutes):
        logger.info(
            f"Skipping {quality} magnet link for {event.name}, "
            "still downloading from a previous attempt"
        )
        result.outcome = PostOutcome.IN_FLIGHT
        return result

    upsert_ledger_entry(
        post_id=post.id,
        quality=quality,
        post_url=post.url,
        title=post.title,
        event_name=event.name,
        event_round=event.round,
        created_utc=post.created_utc,
        is_fully_processed=False,
        reference=parsed.reference,
    )

    def record_status(job_id: str, status: str) -> None:
        update_job_status(post.id, quality, job_id, status)

    logger.info(f"Resolving {quality} magnet link for {event.name} (R{event.round})")
    resolution = resolver.resolve(parsed.reference, on_status=record_status)

    if resolution.status == ResolutionStatus.DEFERRED:
        update_job_status(post.id, quality, resolution.job_id, resolution.job_status)
        logger.info(f"Torrent still downloading for {event.name} ({quality}), will retry later")
        result.outcome = PostOutcome.DEFERRED
        return result

    if resolution.status == ResolutionStatus.FAILED:
        if resolution.job_status is not None:
            update_job_status(post.id, quality, resolution.job_id, resolution.job_status)
        logger.error(f"Failed to resolve {quality} magnet link for {event.name}")
        result.outcome = PostOutcome.FAILED
        return result

    if not resolution.files:
        logger.error(f"No video files resolved for {event.name} ({quality})")
        result.outcome = PostOutcome.FAILED
        return result

    persist_event_graph(
        event.name,
        event.round,
        event.country,
        build_session_graph(parsed.sessions, resolution.files),
        quality,
        source=config.stream_source,
    )

    if is_event_complete_for_quality(event.name, event.round, quality):
        mark_fully_processed(post.id, quality)
        result.fully_processed = True
        logger.info(f"Post {post.id} ({quality}) fully processed for {event.name}")

    result.outcome = PostOutcome.PROCESSED
    return result
