"""
Configuration settings for the ingestion pipeline.

This module defines the PipelineConfig dataclass with the feed, resolver and
skip-policy parameters. Values come from environment variables, loaded from
.env by python-dotenv.
"""

import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables at module import time
load_dotenv()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value not in (None, "") else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value not in (None, "") else default


@dataclass
class PipelineConfig:
    """Configuration for one ingestion pass"""

    # Feed
    feed_author: str = "egortech"
    fetch_lookback_days: int = 90  # ~3 months
    fetch_max_pages: int = 20
    fetch_page_delay: float = 1.0  # Reddit allows 60 requests per minute

    # Resolver
    realdebrid_api_key: Optional[str] = None
    resolver_max_attempts: int = 6
    resolver_poll_interval: float = 10.0

    # Skip policy
    skip_cooldown_minutes: float = 30

    # Catalog
    stream_source: str = "Sky F1"

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Build a config from the current environment."""
        load_dotenv()
        return cls(
            feed_author=os.getenv("FEED_AUTHOR", "egortech"),
            fetch_lookback_days=_env_int("FETCH_LOOKBACK_DAYS", 90),
            fetch_max_pages=_env_int("FETCH_MAX_PAGES", 20),
            fetch_page_delay=_env_float("FETCH_PAGE_DELAY", 1.0),
            realdebrid_api_key=os.getenv("REALDEBRID_API_KEY"),
            resolver_max_attempts=_env_int("RESOLVER_MAX_ATTEMPTS", 6),
            resolver_poll_interval=_env_float("RESOLVER_POLL_INTERVAL", 10.0),
            skip_cooldown_minutes=_env_float("SKIP_COOLDOWN_MINUTES", 30),
            stream_source=os.getenv("STREAM_SOURCE", "Sky F1"),
        )

    def validate(self) -> List[str]:
        """
        Validate configuration and return any error messages.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        if not self.realdebrid_api_key:
            errors.append("REALDEBRID_API_KEY is required to resolve magnet links")

        if self.fetch_lookback_days <= 0:
            errors.append("FETCH_LOOKBACK_DAYS must be positive")

        if self.fetch_max_pages <= 0:
            errors.append("FETCH_MAX_PAGES must be positive")

        if self.resolver_max_attempts <= 0:
            errors.append("RESOLVER_MAX_ATTEMPTS must be positive")

        if self.resolver_poll_interval < 0 or self.fetch_page_delay < 0:
            errors.append("Delays must not be negative")

        if self.skip_cooldown_minutes < 0:
            errors.append("SKIP_COOLDOWN_MINUTES must not be negative")

        return errors
