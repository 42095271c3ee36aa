"""
Post body parsing: session list and download reference.

Post bodies arrive either as rendered HTML (``selftext_html``) or as plain
markdown text (``selftext``). Both go through BeautifulSoup's ``html.parser``,
which leaves plain text untouched and flattens HTML to its text nodes while
keeping the line breaks between block elements.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from bs4 import BeautifulSoup

from .sessions import SessionCategory, classify_session_name


logger = logging.getLogger("parser")

CONTAINS_LABEL = "Contains:"
MIN_SECTION_LENGTH = 50
MIN_LINE_LENGTH = 10

# Lines carrying these labels describe the release, not a session
NON_SESSION_LABELS = (
    "Contains:",
    "Quality:",
    "Container:",
    "Video:",
    "Audio:",
    "magnet:",
    "Torrent Link",
)

ENTITIES = (
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#x27;", "'"),
    ("&#39;", "'"),
    ("&nbsp;", " "),
    ("&amp;", "&"),
)

_SECTION_TO_BREAK = re.compile(r"(?i:contains:)[\s\S]*?(?=\n\s*\n|\n[A-Z]|\Z)")
_SECTION_TO_LINK = re.compile(r"(?i:contains:)[\s\S]*?(?=magnet:|Torrent Link|\Z)")
_TAG = re.compile(r"<[^>]*>")
_LIST_MARKER = re.compile(r"^[*+-]\s+")
_SESSION_LINE = re.compile(r"^(.+?)\s*\(([^)]+)\)\s*\(([^)]+)\)$")
_MAGNET = re.compile(r"magnet:\?[^\s\"'<>]+")
_TRAILING_MARKUP = re.compile(r"</[^>]*>.*$")


@dataclass(frozen=True)
class ParsedSession:
    """A session line found in a post body."""

    category: SessionCategory
    raw_name: str
    date: str
    duration: str


def decode_entities(text: str) -> str:
    """Decode the fixed set of HTML entities seen in post bodies."""
    for entity, char in ENTITIES:
        text = text.replace(entity, char)
    return text


def _to_soup(text: str) -> BeautifulSoup:
    return BeautifulSoup(text, "html.parser")


def _list_items_after_label(soup: BeautifulSoup) -> str:
    """Join the first run of sibling <li> items that follows the label."""
    label_node = soup.find(string=re.compile(re.escape(CONTAINS_LABEL), re.I))
    if label_node is None:
        return ""
    first_item = label_node.find_next("li")
    if first_item is None:
        return ""
    items = [first_item] + first_item.find_next_siblings("li")
    return "\n".join(item.get_text().strip() for item in items)


def find_contents_section(text: str) -> str:
    """
    Locate the "Contains:" section of a post body.

    Three strategies are tried in order and the next one only runs when the
    previous result is shorter than MIN_SECTION_LENGTH:
        1. label up to a blank line or a line starting with a capital letter
        2. label up to the magnet link / "Torrent Link" label
        3. the list items following the label element in the HTML tree

    Returns:
        The section text, or "" when no strategy yields a usable section.
    """
    soup = _to_soup(text)
    plain = soup.get_text()

    section = ""
    for pattern in (_SECTION_TO_BREAK, _SECTION_TO_LINK):
        match = pattern.search(plain)
        if match:
            section = match.group(0)
        if len(section) >= MIN_SECTION_LENGTH:
            return section

    section = _list_items_after_label(soup)
    if len(section) >= MIN_SECTION_LENGTH:
        return section
    return ""


def _candidate_lines(section: str) -> list[str]:
    lines = []
    for line in section.split("\n"):
        line = line.strip()
        if not line or any(label in line for label in NON_SESSION_LABELS):
            continue
        if "(" in line and ")" in line and len(line) > MIN_LINE_LENGTH:
            lines.append(line)
    return lines


def parse_session_line(line: str) -> Optional[ParsedSession]:
    """
    Parse one ``<name> (<date>) (<duration>)`` line.

    Markup tags and a leading markdown list marker (``*``, ``-``, ``+``) are
    stripped first.

    Returns None when the line does not have that exact shape or when the name
    is not an allowed session.
    """
    clean_line = decode_entities(_TAG.sub("", line)).strip()
    clean_line = _LIST_MARKER.sub("", clean_line)
    match = _SESSION_LINE.match(clean_line)
    if not match:
        return None

    raw_name, date, duration = (group.strip() for group in match.groups())
    category = classify_session_name(raw_name)
    if category is None:
        logger.debug(f"Ignoring non-session line: {clean_line!r}")
        return None
    return ParsedSession(
        category=category, raw_name=raw_name, date=date, duration=duration
    )


def extract_sessions(text: str) -> list[ParsedSession]:
    """
    Extract the ordered list of sessions announced in a post body.

    Args:
        text: Post body, HTML or plain text

    Returns:
        Sessions in order of appearance. Duplicated categories are all kept.

    Example:
        >>> body = "Contains:\\nQualifying (05.07.2025) (1:05:00)\\nRace (06.07.2025) (1:40:00)"
        >>> [s.category.name for s in extract_sessions(body)]
        ['QUALIFYING', 'RACE']
    """
    if not text:
        return []

    section = find_contents_section(text)
    if not section:
        return []

    sessions = []
    for line in _candidate_lines(section):
        parsed = parse_session_line(line)
        if parsed is not None:
            sessions.append(parsed)
    return sessions


def extract_download_reference(text: str) -> Optional[str]:
    """
    Extract the magnet link from a post body.

    A link attribute (``<a href="magnet:...">``) wins over a magnet found in
    the text. Only the first occurrence is returned.

    Returns:
        The magnet URI, or None when the post carries none.
    """
    if not text:
        return None

    soup = _to_soup(text)
    anchor = soup.find("a", href=re.compile(r"^magnet:"))
    if anchor is not None:
        return anchor["href"]

    match = _MAGNET.search(soup.get_text())
    if not match:
        match = _MAGNET.search(text)
    if not match:
        return None
    return decode_entities(_TRAILING_MARKUP.sub("", match.group(0)))
