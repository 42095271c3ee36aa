"""
Session classification and weekend-format rules.

Session names come from free text ("Free Practice One", "FP1", "Sprint Quali")
and from resolved filenames ("Formula.1.2025.R06.Miami.Sprint.Qualifying.mkv").
Both are normalized and run through the same ordered rule table, so the
category a post announces and the file that ends up attached to it agree.

Rules are evaluated top to bottom and the first predicate that accepts the
name wins. A name containing a blocklisted term is rejected before any rule.
"""

import re
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence


class SessionCategory(str, Enum):
    """Canonical session categories. Values are the names stored in the catalog."""

    PRACTICE_ONE = "Free Practice One"
    PRACTICE_TWO = "Free Practice Two"
    PRACTICE_THREE = "Free Practice Three"
    SPRINT_QUALIFYING = "Sprint Qualifying"
    SPRINT = "Sprint"
    QUALIFYING = "Qualifying"
    RACE = "Race"


class WeekendFormat(str, Enum):
    CONVENTIONAL = "conventional"
    SPRINT = "sprint"


# Shows and extras that mention session words but are not sessions
BLOCKLIST = (
    re.compile(r"\bnotebook\b"),
    re.compile(r"\bted\b"),
    re.compile(r"\bpre ?quali(fying)?\b"),
    re.compile(r"\bpost ?quali(fying)?\b"),
    re.compile(r"\bpre ?race\b"),
    re.compile(r"\bpost ?race\b"),
    re.compile(r"\bbuild ?up\b"),
    re.compile(r"\bhighlights\b"),
)

_SEPARATORS = re.compile(r"[._\-]+")
_WHITESPACE = re.compile(r"\s+")


def normalize_name(name: str) -> str:
    """Lowercase and turn '.', '_' and '-' separators into single spaces."""
    return _WHITESPACE.sub(" ", _SEPARATORS.sub(" ", name.lower())).strip()


def _practice(word: str, digit: str) -> Callable[[str], bool]:
    pattern = re.compile(rf"\bpractice {word}\b|\bpractice {digit}\b|\bfp{digit}\b")
    return lambda n: bool(pattern.search(n))


def _is_sprint_qualifying(n: str) -> bool:
    return (
        "sprint qualifying" in n
        or "sprint quali" in n
        or "sprint shootout" in n
        or re.search(r"\bsq\b", n) is not None
    )


def _is_sprint(n: str) -> bool:
    return "sprint" in n and "qualifying" not in n and "race" not in n


def _is_qualifying(n: str) -> bool:
    return ("qualifying" in n or "quali" in n) and "sprint" not in n


def _is_race(n: str) -> bool:
    return "race" in n and "sprint" not in n


# Order matters: sprint qualifying must be tested before plain sprint
SESSION_RULES: tuple[tuple[SessionCategory, Callable[[str], bool]], ...] = (
    (SessionCategory.PRACTICE_ONE, _practice("one", "1")),
    (SessionCategory.PRACTICE_TWO, _practice("two", "2")),
    (SessionCategory.PRACTICE_THREE, _practice("three", "3")),
    (SessionCategory.SPRINT_QUALIFYING, _is_sprint_qualifying),
    (SessionCategory.SPRINT, _is_sprint),
    (SessionCategory.QUALIFYING, _is_qualifying),
    (SessionCategory.RACE, _is_race),
)

SPRINT_REQUIRED = (
    SessionCategory.PRACTICE_ONE,
    SessionCategory.SPRINT_QUALIFYING,
    SessionCategory.SPRINT,
    SessionCategory.QUALIFYING,
    SessionCategory.RACE,
)

CONVENTIONAL_REQUIRED = (
    SessionCategory.PRACTICE_ONE,
    SessionCategory.PRACTICE_TWO,
    SessionCategory.PRACTICE_THREE,
    SessionCategory.QUALIFYING,
    SessionCategory.RACE,
)


def is_blocklisted(name: str) -> bool:
    normalized = normalize_name(name)
    return any(pattern.search(normalized) for pattern in BLOCKLIST)


def classify_session_name(name: str) -> Optional[SessionCategory]:
    """
    Map a session name to its canonical category.

    Args:
        name: Raw session name or filename

    Returns:
        The first category whose rule accepts the name, or None when the name
        is blocklisted or matches no rule.

    Example:
        >>> classify_session_name("Free Practice One")
        <SessionCategory.PRACTICE_ONE: 'Free Practice One'>
        >>> classify_session_name("Sprint Race") is None
        True
    """
    if is_blocklisted(name):
        return None
    normalized = normalize_name(name)
    for category, predicate in SESSION_RULES:
        if predicate(normalized):
            return category
    return None


def detect_weekend_format(categories: Iterable[SessionCategory]) -> WeekendFormat:
    """Sprint format needs both sprint sessions; everything else is conventional."""
    present = set(categories)
    if {SessionCategory.SPRINT_QUALIFYING, SessionCategory.SPRINT} <= present:
        return WeekendFormat.SPRINT
    return WeekendFormat.CONVENTIONAL


def required_sessions(weekend_format: WeekendFormat) -> tuple[SessionCategory, ...]:
    if weekend_format == WeekendFormat.SPRINT:
        return SPRINT_REQUIRED
    return CONVENTIONAL_REQUIRED


def has_all_required_sessions(session_names: Sequence[str]) -> bool:
    """
    Check that a list of session names covers the weekend's required sessions.

    Names are classified with the same rules as the content parser, the weekend
    format is inferred from the resulting categories, and every category that
    format requires must be present.
    """
    categories = {
        category
        for category in (classify_session_name(n) for n in session_names)
        if category is not None
    }
    required = required_sessions(detect_weekend_format(categories))
    return all(category in categories for category in required)


def match_stream_file(files: Sequence, category: SessionCategory):
    """
    Pick the resolved file that belongs to a session category.

    Files are any objects with a ``filename`` attribute. Returns the first file
    whose filename classifies to ``category``, or None.
    """
    for stream_file in files:
        filename = getattr(stream_file, "filename", None) or ""
        stem = filename.rsplit(".", 1)[0] if "." in filename else filename
        if classify_session_name(stem) == category:
            return stream_file
    return None
