#!/usr/bin/env python3
"""
Feed preview.

Fetches the author's submissions and prints what the parser extracts from
each one. Nothing is resolved or written to the database.

    python -m src.ingestion
    python -m src.ingestion --max-pages 2 --days 14
    python -m src.ingestion --limit 10
"""

import argparse
import sys

from src.ingestion.reddit_feed import (
    FeedAuthError,
    RedditAuth,
    RedditCredentials,
    RedditFeedClient,
)
from src.logger import setup_logging
from src.parser import (
    classify_quality,
    extract_download_reference,
    extract_event_from_title,
    extract_sessions,
)
from src.pipeline.config import PipelineConfig


def main():
    """
    Preview the feed: fetch posts and print event, quality, session count and
    whether a magnet link was found. Exits 0 on success, 1 on error, 130 when
    interrupted.
    """
    parser = argparse.ArgumentParser(
        description="Preview the Formula 1 posts the next ingestion pass would see",
    )
    parser.add_argument("--author", type=str, help="Override FEED_AUTHOR")
    parser.add_argument("--days", type=int, help="Override FETCH_LOOKBACK_DAYS")
    parser.add_argument("--max-pages", type=int, help="Override FETCH_MAX_PAGES")
    parser.add_argument("--limit", type=int, help="Stop after this many posts")
    parser.add_argument(
        "--verbose", action="store_true", help="Detailed console output"
    )
    args = parser.parse_args()

    logger = setup_logging(
        logger_name="feed", log_file="logs/feed.log", verbose=args.verbose
    )

    config = PipelineConfig.from_env()
    try:
        client = RedditFeedClient(
            RedditAuth(RedditCredentials.from_env()),
            author=args.author or config.feed_author,
            max_pages=args.max_pages or config.fetch_max_pages,
            page_delay=config.fetch_page_delay,
            lookback_days=args.days or config.fetch_lookback_days,
            max_posts=args.limit,
        )
        posts = client.fetch_posts()
    except KeyboardInterrupt:
        print("\nPreview interrupted by user")
        sys.exit(130)
    except FeedAuthError as e:
        print(f"Reddit authentication failed: {e}")
        logger.error(f"Reddit authentication failed: {e}")
        sys.exit(1)

    for post in posts:
        event = extract_event_from_title(post.title)
        label = f"{event.name} R{event.round}" if event else "?"
        sessions = extract_sessions(post.body)
        has_reference = extract_download_reference(post.body) is not None
        print(
            f"{post.id}  {label:<32} {classify_quality(post.title).value:<8} "
            f"{len(sessions)} sessions  magnet={'yes' if has_reference else 'no'}"
        )
    print(f"\n{len(posts)} posts, {len(client.races_seen)} unique races")
    sys.exit(0)


if __name__ == "__main__":
    main()
