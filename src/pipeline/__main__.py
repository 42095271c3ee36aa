#!/usr/bin/env python3
"""
CLI interface for the session catalog ingestion pipeline.

One pass:
    1. Fetch the author's Formula 1 posts from Reddit
    2. Group them by Grand Prix, newest round first
    3. Parse sessions and magnet links, resolve them through Real-Debrid
    4. Store events, sessions and stream links; stop at the first event that
       is already complete in both quality tiers

Usage:
    python -m src.pipeline                       # Run one pass
    python -m src.pipeline --max-events 2        # Process at most 2 events
    python -m src.pipeline --init-db             # Create the tables
    python -m src.pipeline --list                # Show the catalog

Operator resets:
    python -m src.pipeline --reset-cache                        # Forget every processed post
    python -m src.pipeline --reset-event "British Grand Prix"   # Forget its posts
    python -m src.pipeline --reset-event "British Grand Prix [R12]"  # Delete event and posts
    python -m src.pipeline --reset-all                          # Empty the catalog
"""

import argparse
import re
import sys
from typing import Optional

from src.db import (
    delete_ledger_entries,
    get_database_info,
    init_database,
    list_events_with_counts,
    reset_all,
    reset_event,
)
from src.logger import setup_logging
from .orchestrator import fetch_and_process


_EVENT_ARG = re.compile(r"^(.*?)\s*(?:\[R(\d{1,2})\]|\bR(\d{1,2}))?$", re.IGNORECASE)


def parse_event_argument(value: str) -> tuple[str, Optional[int]]:
    """
    Split ``"British Grand Prix [R12]"`` or ``"British Grand Prix R12"`` into
    its name and round.

    Returns:
        (name, round) with round None when the value has no round suffix
    """
    match = _EVENT_ARG.match(value.strip())
    name = match.group(1).strip()
    digits = match.group(2) or match.group(3)
    round_number = int(digits) if digits else None
    return name, round_number


def print_catalog() -> None:
    info = get_database_info()
    size = info.get("file_size_mb", 0)
    print(f"Database: {info['database_path']} ({size} MB)\n")
    events = list_events_with_counts()
    if not events:
        print("Catalog is empty")
        return
    print(f"{'Round':>5}  {'Event':<30} {'Country':<22} {'Sessions':>8} {'Streams':>8}")
    for event in events:
        print(
            f"{event['round']:>5}  {event['name']:<30} {event['country']:<22} "
            f"{event['session_count']:>8} {event['stream_count']:>8}"
        )


def run_reset(args, logger) -> None:
    if args.reset_all:
        counts = reset_all()
        print(
            f"✓ Deleted {counts['events']} events, {counts['sessions']} sessions, "
            f"{counts['links']} links and {counts['posts']} processed posts"
        )
    elif args.reset_cache:
        deleted = delete_ledger_entries()
        print(f"✓ Deleted {deleted} processed posts")
    else:
        name, round_number = parse_event_argument(args.reset_event)
        if round_number is None:
            deleted = delete_ledger_entries(name=name)
            if deleted == 0:
                print(f"No processed posts found for '{name}'", file=sys.stderr)
                logger.warning(f"Reset matched no processed posts for {name!r}")
            else:
                print(f"✓ Deleted {deleted} processed posts for {name}")
        else:
            counts = reset_event(name, round_number)
            print(
                f"✓ Reset {name} (R{round_number}): {counts['posts']} posts, "
                f"{counts['events']} event, {counts['sessions']} sessions, "
                f"{counts['links']} links"
            )
    logger.info("Reset completed")


def main():
    """
    Entry point for the ingestion CLI.

    Runs one ingestion pass by default, or one of the maintenance commands
    (--init-db, --list, --reset-*). Exits with code 0 on success, 1 on error,
    or 130 when interrupted by the user.
    """
    parser = argparse.ArgumentParser(
        description="Ingest Formula 1 session releases into the stream catalog",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m src.pipeline                                   # One pass
  python -m src.pipeline --max-events 1 --verbose          # Newest event only
  python -m src.pipeline --reset-event "Monaco Grand Prix [R8]"
        """,
    )
    parser.add_argument(
        "--max-events", type=int, help="Maximum number of events to process"
    )

    commands = parser.add_mutually_exclusive_group()
    commands.add_argument(
        "--init-db", action="store_true", help="Create the catalog tables and exit"
    )
    commands.add_argument(
        "--list", action="store_true", help="List stored events with counts and exit"
    )
    commands.add_argument(
        "--reset-cache",
        action="store_true",
        help="Delete every processed-post entry so all posts are reprocessed",
    )
    commands.add_argument(
        "--reset-event",
        type=str,
        metavar="NAME[ [Rn]]",
        help="Reset one event: with a round, delete the event and its posts; "
        "without, delete its processed posts only",
    )
    commands.add_argument(
        "--reset-all", action="store_true", help="Delete all events, sessions, links and posts"
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Detailed console output"
    )

    args = parser.parse_args()

    if args.max_events is not None and args.max_events <= 0:
        parser.error("--max-events must be positive")

    logger = setup_logging(
        logger_name="pipeline",
        log_file="logs/pipeline.log",
        verbose=args.verbose,
    )
    for name in ("feed", "resolver", "database"):
        setup_logging(logger_name=name, log_file=f"logs/{name}.log", verbose=args.verbose)

    try:
        if args.init_db:
            if not init_database():
                print("✗ Database initialization failed", file=sys.stderr)
                sys.exit(1)
            print("✓ Database tables created")
            sys.exit(0)

        if args.list:
            print_catalog()
            sys.exit(0)

        if args.reset_cache or args.reset_all or args.reset_event:
            run_reset(args, logger)
            sys.exit(0)

        logger.info("=" * 80)
        logger.info("Ingestion pass started")
        if args.max_events:
            logger.info(f"Limited to {args.max_events} events")
        logger.info("=" * 80)

        summary = fetch_and_process(max_events=args.max_events)

        print("\n" + "=" * 80)
        print(
            f"✓ PASS COMPLETED: {summary.posts_fetched} posts, {summary.groups} events, "
            f"{summary.groups_processed} processed"
        )
        for outcome, count in sorted(summary.outcomes.items(), key=lambda i: i[0].value):
            print(f"  {outcome.value:<18} {count}")
        if summary.stopped_early:
            name, round_number = summary.stopped_at
            print(f"  stopped at {name} (R{round_number}), already complete")
        print("=" * 80)
        if summary.errors > 0:
            print("Check logs/pipeline.log for detailed error information")
        sys.exit(0 if summary.errors == 0 else 1)

    except KeyboardInterrupt:
        print("\nPass interrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Pipeline execution failed: {e}")
        print(f"\n✗ PIPELINE FAILED: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
