"""Processed-post ledger: full replace, job tracking, skip policy and season year."""

from datetime import datetime, timedelta, timezone

from src.db import (
    delete_ledger_entries,
    get_completeness,
    get_event_year,
    get_ledger_entry,
    get_most_recent_post_timestamp,
    get_reference_job,
    is_post_fully_processed,
    mark_fully_processed,
    should_skip_reference,
    update_job_status,
    upsert_ledger_entry,
    utcnow,
)


MAGNET = "magnet:?xt=urn:btih:0123456789abcdef0123456789abcdef01234567"


def _ts(year, month=7, day=6):
    return int(datetime(year, month, day, tzinfo=timezone.utc).timestamp())


def _entry(post_id="p1", quality="1080p", name="British Grand Prix", round_number=12, **extra):
    fields = dict(
        post_id=post_id,
        quality=quality,
        post_url=f"https://reddit.com/{post_id}",
        title=f"Formula 1 {name} R{round_number} {quality}",
        event_name=name,
        event_round=round_number,
        created_utc=_ts(2025),
        reference=MAGNET,
    )
    fields.update(extra)
    upsert_ledger_entry(**fields)


def test_upsert_is_full_replace():
    _entry(job_id="T1", job_status="downloading", job_last_checked=utcnow())
    _entry(title="Formula 1 British Grand Prix R12 1080p (re-upload)")

    entry = get_ledger_entry("p1", "1080p")
    assert entry["title"] == "Formula 1 British Grand Prix R12 1080p (re-upload)"
    assert entry["job_id"] is None
    assert entry["job_status"] is None
    assert entry["is_fully_processed"] is False


def test_mark_fully_processed():
    _entry()
    assert not is_post_fully_processed("p1", "1080p")
    assert mark_fully_processed("p1", "1080p")
    assert is_post_fully_processed("p1", "1080p")
    assert not is_post_fully_processed("p1", "4K")
    assert not mark_fully_processed("missing", "4K")


def test_update_job_status_and_reference_job():
    _entry()
    checked = datetime(2025, 7, 6, 12, 0)
    assert update_job_status("p1", "1080p", "T1", "downloading", checked_at=checked)
    assert get_reference_job(MAGNET) == {
        "job_id": "T1",
        "job_status": "downloading",
        "job_last_checked": checked,
    }
    assert not update_job_status("missing", "1080p", "T1", "queued")


def test_should_skip_reference_within_cooldown():
    _entry()
    now = datetime(2025, 7, 6, 12, 0)
    update_job_status("p1", "1080p", "T1", "downloading", checked_at=now - timedelta(minutes=10))
    assert should_skip_reference(MAGNET, 30, now=now)


def test_should_not_skip_after_cooldown():
    _entry()
    now = datetime(2025, 7, 6, 12, 0)
    update_job_status("p1", "1080p", "T1", "downloading", checked_at=now - timedelta(minutes=31))
    assert not should_skip_reference(MAGNET, 30, now=now)


def test_should_not_skip_finished_or_failed_jobs():
    _entry()
    now = datetime(2025, 7, 6, 12, 0)
    update_job_status("p1", "1080p", "T1", "downloaded", checked_at=now)
    assert not should_skip_reference(MAGNET, 30, now=now)
    update_job_status("p1", "1080p", "T1", "dead", checked_at=now)
    assert not should_skip_reference(MAGNET, 30, now=now)


def test_get_completeness_needs_both_tiers():
    _entry("p1", "1080p")
    mark_fully_processed("p1", "1080p")
    status = get_completeness("British Grand Prix", 12)
    assert status.has_1080p and status.fully_processed_1080p
    assert not status.has_4k
    assert not status.is_complete

    _entry("p2", "4K")
    assert not get_completeness("British Grand Prix", 12).is_complete
    mark_fully_processed("p2", "4K")
    assert get_completeness("British Grand Prix", 12).is_complete


def test_event_year_majority_vote():
    _entry("p1", "1080p", created_utc=_ts(2024))
    _entry("p2", "4K", created_utc=_ts(2024))
    _entry("p3", "1080p", created_utc=_ts(2025))
    assert get_event_year("British Grand Prix", 12) == 2024


def test_event_year_tie_goes_to_earliest():
    _entry("p1", "1080p", created_utc=_ts(2025))
    _entry("p2", "4K", created_utc=_ts(2024))
    assert get_event_year("British Grand Prix", 12) == 2024


def test_event_year_without_entries():
    assert get_event_year("British Grand Prix", 12) is None


def test_most_recent_post_timestamp():
    assert get_most_recent_post_timestamp() is None
    _entry("p1", created_utc=_ts(2025, 7, 5))
    _entry("p2", created_utc=_ts(2025, 7, 6))
    _entry("p3", name="Austrian Grand Prix", round_number=11, created_utc=_ts(2025, 6, 29))
    assert get_most_recent_post_timestamp() == _ts(2025, 7, 6)
    assert get_most_recent_post_timestamp("Austrian Grand Prix", 11) == _ts(2025, 6, 29)


def test_delete_ledger_entries_by_event():
    _entry("p1")
    _entry("p2", name="Austrian Grand Prix", round_number=11)
    assert delete_ledger_entries(name="British Grand Prix") == 1
    assert get_ledger_entry("p2", "1080p") is not None
    assert delete_ledger_entries() == 1
