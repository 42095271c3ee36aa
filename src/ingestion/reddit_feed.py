"""
Reddit submissions feed for the release author.

RedditAuth holds the OAuth password-grant token with its expiry.
RedditFeedClient pages through the author's submissions, newest first, and
keeps the Formula 1 posts that fall inside the lookback window.

Usage:
    auth = RedditAuth(RedditCredentials.from_env())
    posts = RedditFeedClient(auth).fetch_posts()
"""

import os
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

import requests
from dotenv import load_dotenv

from src.logger import setup_logging, log_with_timer
from src.parser import extract_event_from_title, is_formula_one_post


logger = setup_logging(logger_name="feed", log_file="logs/feed.log")

TOKEN_URL = "https://www.reddit.com/api/v1/access_token"
API_BASE_URL = "https://oauth.reddit.com"
DEFAULT_AUTHOR = "egortech"
DEFAULT_USER_AGENT = "f1-session-catalog/0.1"
TOKEN_REFRESH_BUFFER = 5 * 60
DEFAULT_TOKEN_LIFETIME = 3600
MAX_CONSECUTIVE_EMPTY_PAGES = 2
REQUEST_TIMEOUT = 30


class FeedAuthError(Exception):
    """The feed refused our credentials, even after a token refresh."""


@dataclass
class RedditCredentials:
    client_id: str
    client_secret: str
    username: str
    password: str
    user_agent: str = DEFAULT_USER_AGENT

    @classmethod
    def from_env(cls) -> "RedditCredentials":
        load_dotenv()
        return cls(
            client_id=os.getenv("REDDIT_CLIENT_ID", ""),
            client_secret=os.getenv("REDDIT_CLIENT_SECRET", ""),
            username=os.getenv("REDDIT_USERNAME", ""),
            password=os.getenv("REDDIT_PASSWORD", ""),
            user_agent=os.getenv("REDDIT_USER_AGENT", DEFAULT_USER_AGENT),
        )


class RedditAuth:
    """
    OAuth token holder.

    The token is refreshed when it is missing, when fewer than five minutes of
    its lifetime remain, or when the caller forces it after a 401.
    """

    def __init__(
        self,
        credentials: RedditCredentials,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.credentials = credentials
        self.session = session or requests.Session()
        self.clock = clock
        self.token: Optional[str] = None
        self.expires_at: float = 0.0

    def is_valid(self) -> bool:
        return (
            self.token is not None
            and self.clock() < self.expires_at - TOKEN_REFRESH_BUFFER
        )

    def invalidate(self) -> None:
        self.token = None
        self.expires_at = 0.0

    def get_token(self, force_refresh: bool = False) -> str:
        """
        Return a usable access token, requesting a new one if needed.

        Raises:
            FeedAuthError: If the token endpoint rejects the credentials or
                cannot be reached
        """
        if not force_refresh and self.is_valid():
            return self.token

        creds = self.credentials
        try:
            response = self.session.post(
                TOKEN_URL,
                auth=(creds.client_id, creds.client_secret),
                data={
                    "grant_type": "password",
                    "username": creds.username,
                    "password": creds.password,
                },
                headers={"User-Agent": creds.user_agent},
                timeout=REQUEST_TIMEOUT,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            self.invalidate()
            raise FeedAuthError(f"Could not obtain Reddit token: {e}") from e

        token = payload.get("access_token")
        if not token:
            self.invalidate()
            raise FeedAuthError(
                f"Reddit token response has no access_token: {payload.get('error', payload)}"
            )

        self.token = token
        self.expires_at = self.clock() + int(
            payload.get("expires_in", DEFAULT_TOKEN_LIFETIME)
        )
        logger.info("Obtained Reddit OAuth token")
        return self.token


@dataclass
class FeedPost:
    """A submission as the pipeline sees it."""

    id: str
    title: str
    url: str
    author: str
    created_utc: int
    selftext: str = ""
    selftext_html: str = ""

    @property
    def body(self) -> str:
        """Rendered HTML when available, plain text otherwise."""
        return self.selftext_html or self.selftext

    @classmethod
    def from_listing(cls, data: dict[str, Any]) -> "FeedPost":
        return cls(
            id=data["id"],
            title=data.get("title") or "",
            url=f"https://reddit.com{data.get('permalink', '')}",
            author=data.get("author") or "",
            created_utc=int(data.get("created_utc") or 0),
            selftext=data.get("selftext") or "",
            selftext_html=data.get("selftext_html") or "",
        )


class RedditFeedClient:
    """
    Paginated reader of one author's submissions.

    Paging stops after two consecutive pages without a matching post, when
    the listing has no next cursor, when a page reaches posts older than the
    lookback window, or after ``max_pages`` requests.
    """

    def __init__(
        self,
        auth: RedditAuth,
        session: Optional[requests.Session] = None,
        author: str = DEFAULT_AUTHOR,
        page_size: int = 100,
        max_pages: int = 20,
        page_delay: float = 1.0,
        error_backoff: float = 5.0,
        lookback_days: int = 90,
        max_posts: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self.auth = auth
        self.session = session or auth.session
        self.author = author
        self.page_size = page_size
        self.max_pages = max_pages
        self.page_delay = page_delay
        self.error_backoff = error_backoff
        self.lookback_days = lookback_days
        self.max_posts = max_posts
        self.sleep = sleep
        self.clock = clock
        self.races_seen: set[tuple[str, int]] = set()

    @property
    def listing_url(self) -> str:
        return f"{API_BASE_URL}/user/{self.author}/submitted"

    def _get_page(self, after: Optional[str]) -> dict[str, Any]:
        """
        Fetch one listing page, refreshing the token once on a 401.

        Raises:
            FeedAuthError: On a second consecutive 401
            requests.RequestException: On any other transport or HTTP error
        """
        params = {"limit": self.page_size, "raw_json": 1}
        if after:
            params["after"] = after

        for attempt in range(2):
            token = self.auth.get_token(force_refresh=attempt > 0)
            response = self.session.get(
                self.listing_url,
                params=params,
                headers={
                    "Authorization": f"bearer {token}",
                    "User-Agent": self.auth.credentials.user_agent,
                },
                timeout=REQUEST_TIMEOUT,
            )
            if response.status_code == 401:
                logger.warning("Reddit returned 401, refreshing token")
                continue
            response.raise_for_status()
            return response.json()

        self.auth.invalidate()
        raise FeedAuthError("Reddit rejected a freshly refreshed token")

    def _track_race(self, post: FeedPost) -> None:
        event = extract_event_from_title(post.title)
        if event is not None:
            self.races_seen.add((event.name, event.round))

    @log_with_timer(logger_name="feed")
    def fetch_posts(self) -> list[FeedPost]:
        """
        Collect matching posts, newest first.

        Returns:
            FeedPost list; empty when the feed has nothing inside the window

        Raises:
            FeedAuthError: When authentication fails; aborts the pass
        """
        boundary = self.clock() - self.lookback_days * 24 * 60 * 60
        posts: list[FeedPost] = []
        after: Optional[str] = None
        empty_pages = 0
        page_count = 0

        while page_count < self.max_pages:
            if self.max_posts is not None and len(posts) >= self.max_posts:
                break
            page_count += 1
            logger.debug(f"Fetching page {page_count} of {self.listing_url}")

            try:
                payload = self._get_page(after)
            except requests.RequestException as e:
                logger.error(f"Error fetching page {page_count}: {e}")
                self.sleep(self.error_backoff)
                continue

            children = (payload.get("data") or {}).get("children")
            if not children:
                logger.info("No more posts found")
                break

            candidates = [
                FeedPost.from_listing(child["data"])
                for child in children
                if is_formula_one_post((child.get("data") or {}).get("title"))
            ]
            page_posts = [p for p in candidates if p.created_utc >= boundary]

            if not page_posts:
                empty_pages += 1
                logger.info(
                    f"Found 0 Formula 1 posts on page {page_count} "
                    f"({empty_pages} consecutive empty pages)"
                )
                if empty_pages >= MAX_CONSECUTIVE_EMPTY_PAGES or candidates:
                    break
            else:
                empty_pages = 0
                for post in page_posts:
                    self._track_race(post)
                posts.extend(page_posts)
                logger.info(
                    f"Found {len(page_posts)} Formula 1 posts on page {page_count} "
                    f"({len(self.races_seen)} unique races)"
                )
                if min(p.created_utc for p in candidates) < boundary:
                    logger.info(f"Reached the {self.lookback_days} day limit")
                    break

            after = (payload.get("data") or {}).get("after")
            if not after:
                logger.info("No more pages available")
                break
            self.sleep(self.page_delay)

        if self.max_posts is not None:
            posts = posts[: self.max_posts]
        logger.info(f"Fetched {len(posts)} Formula 1 posts from u/{self.author}")
        return posts
