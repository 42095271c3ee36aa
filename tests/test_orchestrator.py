"""Ingestion pass: grouping, early stop, event cap and the pass lock."""

import subprocess
import sys
from datetime import date, datetime, timezone

import pytest
from sqlalchemy.exc import SQLAlchemyError

from src.db import get_event_graph, upsert_ledger_entry
from src.ingestion import FeedPost
from src.pipeline import (
    EventGroup,
    PassAlreadyRunningError,
    PipelineConfig,
    PostOutcome,
    fetch_and_process,
    group_posts_by_event,
    pass_guard,
    should_stop_at,
)
from src.pipeline import orchestrator
from src.parser import EventInfo
from src.resolver import ResolutionResult, ResolutionStatus, ResolvedFile


TODAY = date(2025, 7, 10)
BODY = (
    "Contains:\n"
    "Qualifying (05.07.2025) (1:05:00)\n"
    "Race (06.07.2025) (1:40:00)\n\n"
    "magnet:?xt=urn:btih:0123456789abcdef0123456789abcdef01234567\n"
)
BRITISH = "Formula 1 2025 British Grand Prix R12 - Full Event SkyF1HD 1080p"
BRITISH_4K = "Formula 1 2025 British Grand Prix R12 - Full Event SkyF1UHD 2160p"
AUSTRIAN = "Formula 1 2025 Austrian Grand Prix R11 - Full Event SkyF1HD 1080p"


def _ts(year):
    return int(datetime(year, 7, 6, tzinfo=timezone.utc).timestamp())


def _post(post_id, title):
    return FeedPost(
        id=post_id,
        title=title,
        url=f"https://reddit.com/{post_id}",
        author="egortech",
        created_utc=_ts(2025),
        selftext=BODY,
    )


class StaticFeed:
    def __init__(self, posts):
        self.posts = posts

    def fetch_posts(self):
        return list(self.posts)


class CountingResolver:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def resolve(self, reference, on_status=None):
        self.calls.append(reference)
        if self.error:
            raise self.error
        return ResolutionResult(
            status=ResolutionStatus.READY,
            job_id="T1",
            job_status="downloaded",
            files=[
                ResolvedFile("https://dl.example/q.mkv", "F1.R12.Qualifying.mkv", 1),
                ResolvedFile("https://dl.example/r.mkv", "F1.R12.Race.mkv", 1),
            ],
        )


def _complete(name, round_number, year):
    for post_id, quality in (("done-hd", "1080p"), ("done-4k", "4K")):
        upsert_ledger_entry(
            post_id=post_id,
            quality=quality,
            post_url=f"https://reddit.com/{post_id}",
            title=f"Formula 1 {year} {name}",
            event_name=name,
            event_round=round_number,
            created_utc=_ts(year),
            is_fully_processed=True,
        )


def test_group_posts_by_event_orders_by_round_descending():
    posts = [
        _post("a", AUSTRIAN),
        _post("b", BRITISH),
        _post("c", "Formula 1 2025 Season Review"),
        _post("d", BRITISH_4K),
    ]
    groups = group_posts_by_event(posts)
    assert [g.key for g in groups] == [("British Grand Prix", 12), ("Austrian Grand Prix", 11)]
    assert [p.id for p in groups[0].posts] == ["b", "d"]


def test_pass_stops_at_first_complete_event():
    _complete("British Grand Prix", 12, 2025)
    resolver = CountingResolver()
    feed = StaticFeed([_post("b", BRITISH), _post("a", AUSTRIAN)])

    summary = fetch_and_process(PipelineConfig(), feed=feed, resolver=resolver, today=TODAY)

    assert summary.stopped_early
    assert summary.stopped_at == ("British Grand Prix", 12)
    assert resolver.calls == []
    assert summary.posts_fetched == 2
    assert summary.groups == 2


def test_completeness_from_last_season_does_not_stop():
    _complete("British Grand Prix", 12, 2024)
    group = EventGroup(EventInfo("British Grand Prix", 12, "United Kingdom"), [_post("b", BRITISH)])
    assert not should_stop_at(group, TODAY)

    _complete("British Grand Prix", 12, 2025)
    assert should_stop_at(group, TODAY)


def test_max_events_caps_processed_groups():
    resolver = CountingResolver()
    feed = StaticFeed([_post("b", BRITISH), _post("a", AUSTRIAN)])

    summary = fetch_and_process(
        PipelineConfig(), feed=feed, resolver=resolver, max_events=1, today=TODAY
    )

    assert summary.groups_processed == 1
    assert summary.outcomes[PostOutcome.PROCESSED] == 1
    assert len(resolver.calls) == 1
    assert get_event_graph("British Grand Prix", 12) is not None
    assert get_event_graph("Austrian Grand Prix", 11) is None


def test_pass_processes_every_post_of_a_group():
    resolver = CountingResolver()
    feed = StaticFeed([_post("b", BRITISH), _post("d", BRITISH_4K), _post("x", "MotoGP")])

    summary = fetch_and_process(PipelineConfig(), feed=feed, resolver=resolver, today=TODAY)

    assert not summary.stopped_early
    assert summary.outcomes[PostOutcome.PROCESSED] == 2
    assert summary.errors == 0
    graph = get_event_graph("British Grand Prix", 12)
    qualities = {s["quality"] for sess in graph["sessions"] for s in sess["streams"]}
    assert qualities == {"1080p", "4K"}


def test_database_error_is_counted_and_pass_continues():
    resolver = CountingResolver(error=SQLAlchemyError("disk I/O error"))
    feed = StaticFeed([_post("b", BRITISH), _post("a", AUSTRIAN)])

    summary = fetch_and_process(PipelineConfig(), feed=feed, resolver=resolver, today=TODAY)

    assert summary.errors == 2
    assert len(resolver.calls) == 2


def test_concurrent_pass_is_rejected():
    orchestrator._pass_lock.acquire()
    try:
        with pytest.raises(PassAlreadyRunningError):
            fetch_and_process(
                PipelineConfig(), feed=StaticFeed([]), resolver=CountingResolver()
            )
    finally:
        orchestrator._pass_lock.release()


HOLD_LOCK = """
import fcntl, sys
lock_fd = open(sys.argv[1], "w")
fcntl.flock(lock_fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
print("held", flush=True)
sys.stdin.read()
"""

TRY_LOCK = """
import fcntl, sys
lock_fd = open(sys.argv[1], "w")
try:
    fcntl.flock(lock_fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
except BlockingIOError:
    print("busy")
else:
    print("free")
"""


def test_pass_in_another_process_blocks_this_one():
    lock_path = str(orchestrator.pass_lock_path())
    holder = subprocess.Popen(
        [sys.executable, "-c", HOLD_LOCK, lock_path],
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        text=True,
    )
    try:
        assert holder.stdout.readline().strip() == "held"
        with pytest.raises(PassAlreadyRunningError):
            fetch_and_process(
                PipelineConfig(), feed=StaticFeed([]), resolver=CountingResolver()
            )
    finally:
        holder.stdin.close()
        holder.wait(timeout=10)
        holder.stdout.close()

    summary = fetch_and_process(
        PipelineConfig(), feed=StaticFeed([]), resolver=CountingResolver()
    )
    assert summary.posts_fetched == 0


def test_running_pass_blocks_another_process():
    lock_path = str(orchestrator.pass_lock_path())

    def other_process():
        return subprocess.run(
            [sys.executable, "-c", TRY_LOCK, lock_path],
            capture_output=True,
            text=True,
            timeout=10,
        ).stdout.strip()

    with pass_guard():
        assert other_process() == "busy"
    assert other_process() == "free"


def test_missing_api_key_is_rejected_when_building_resolver():
    with pytest.raises(ValueError):
        fetch_and_process(PipelineConfig(realdebrid_api_key=None), feed=StaticFeed([]))
