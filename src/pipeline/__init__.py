"""
Session catalog ingestion pipeline.

One pass fetches the release author's posts, groups them by Grand Prix, and
takes each post through parsing, link resolution and persistence:
    1. Feed (src.ingestion)
    2. Parsing (src.parser)
    3. Resolution (src.resolver)
    4. Catalog and ledger (src.db)

Usage:
    # CLI interface
    python -m src.pipeline
    python -m src.pipeline --max-events 2

    # Programmatic interface
    from src.pipeline import fetch_and_process
    summary = fetch_and_process(max_events=1)
"""

__version__ = "0.1.0"

from .config import PipelineConfig
from .orchestrator import (
    EventGroup,
    PassAlreadyRunningError,
    PassSummary,
    StoreUnavailableError,
    fetch_and_process,
    group_posts_by_event,
    pass_guard,
    should_stop_at,
)
from .stages import (
    PostOutcome,
    PostResult,
    apply_season_rollover,
    build_session_graph,
    is_event_complete_for_quality,
    parse_post,
    process_post,
)

__all__ = [
    "PipelineConfig",
    # Pass orchestration
    "EventGroup",
    "PassAlreadyRunningError",
    "PassSummary",
    "StoreUnavailableError",
    "fetch_and_process",
    "group_posts_by_event",
    "pass_guard",
    "should_stop_at",
    # Per-post processing
    "PostOutcome",
    "PostResult",
    "apply_season_rollover",
    "build_session_graph",
    "is_event_complete_for_quality",
    "parse_post",
    "process_post",
]
