"""
Ingestion package for the session catalog.

Reads the release author's Reddit submissions. The feed is the only input of
the pipeline; parsing, resolution and persistence happen in src.pipeline.

Modules:
    reddit_feed: OAuth token holder and paginated submissions client

Usage:
    # Preview what the next pass would see, without touching the database
    python -m src.ingestion --verbose
"""

from .reddit_feed import (
    FeedAuthError,
    FeedPost,
    RedditAuth,
    RedditCredentials,
    RedditFeedClient,
)

__all__ = [
    "FeedAuthError",
    "FeedPost",
    "RedditAuth",
    "RedditCredentials",
    "RedditFeedClient",
]
