"""
Content parsing for feed posts.

Pure functions, no I/O:
- titles.py: event, round, quality tier and season year from a post title
- content.py: session list and magnet link from a post body
- sessions.py: session classification rules and weekend-format requirements
"""

from .content import (
    ParsedSession,
    decode_entities,
    extract_download_reference,
    extract_sessions,
    find_contents_section,
    parse_session_line,
)
from .sessions import (
    SESSION_RULES,
    SessionCategory,
    WeekendFormat,
    classify_session_name,
    detect_weekend_format,
    has_all_required_sessions,
    is_blocklisted,
    match_stream_file,
    required_sessions,
)
from .titles import (
    GRAND_PRIX_ROSTER,
    EventInfo,
    Quality,
    classify_quality,
    extract_event_from_title,
    extract_year_from_title,
    is_formula_one_post,
)

__all__ = [
    "ParsedSession",
    "decode_entities",
    "extract_download_reference",
    "extract_sessions",
    "find_contents_section",
    "parse_session_line",
    "SESSION_RULES",
    "SessionCategory",
    "WeekendFormat",
    "classify_session_name",
    "detect_weekend_format",
    "has_all_required_sessions",
    "is_blocklisted",
    "match_stream_file",
    "required_sessions",
    "GRAND_PRIX_ROSTER",
    "EventInfo",
    "Quality",
    "classify_quality",
    "extract_event_from_title",
    "extract_year_from_title",
    "is_formula_one_post",
]
