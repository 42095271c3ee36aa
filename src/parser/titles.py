"""
Post title parsing: Grand Prix, round, quality tier and season year.

Titles look like
``"Formula 1 2025 British Grand Prix R12 - Full Event SkyF1HD 1080p"``.
"""

import re
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional


class Quality(str, Enum):
    """Quality tiers. Values are the strings stored in the catalog."""

    FOUR_K = "4K"
    FULL_HD = "1080p"
    UNKNOWN = "Unknown"


FOUR_K_MARKERS = ("4K", "2160p", "UHD")
FULL_HD_MARKERS = ("1080p", "FHD", "SkyF1HD")


@dataclass(frozen=True)
class GrandPrix:
    name: str
    round: int
    country: str
    aliases: tuple[str, ...] = ()


@dataclass(frozen=True)
class EventInfo:
    """Event identity extracted from a post title."""

    name: str
    round: int
    country: str


# One entry per calendar round. Order is the match order.
GRAND_PRIX_ROSTER = (
    GrandPrix("Bahrain Grand Prix", 1, "Bahrain", ("Bahrain GP",)),
    GrandPrix(
        "Saudi Arabian Grand Prix",
        2,
        "Saudi Arabia",
        ("Saudi Arabia Grand Prix", "Saudi GP", "Jeddah Grand Prix", "Jeddah GP"),
    ),
    GrandPrix(
        "Australian Grand Prix",
        3,
        "Australia",
        ("Australia Grand Prix", "Australia GP", "Melbourne Grand Prix", "Melbourne GP"),
    ),
    GrandPrix(
        "Japanese Grand Prix",
        4,
        "Japan",
        ("Japan Grand Prix", "Japan GP", "Suzuka Grand Prix", "Suzuka GP"),
    ),
    GrandPrix(
        "Chinese Grand Prix",
        5,
        "China",
        ("China Grand Prix", "China GP", "Shanghai Grand Prix", "Shanghai GP"),
    ),
    GrandPrix("Miami Grand Prix", 6, "United States", ("Miami GP",)),
    GrandPrix(
        "Emilia Romagna Grand Prix",
        7,
        "Italy",
        (
            "Emilia Romagna GP",
            "Imola Grand Prix",
            "Imola GP",
            "San Marino Grand Prix",
            "San Marino GP",
        ),
    ),
    GrandPrix("Monaco Grand Prix", 8, "Monaco", ("Monaco GP",)),
    GrandPrix(
        "Spanish Grand Prix",
        9,
        "Spain",
        ("Spain Grand Prix", "Spain GP", "Barcelona Grand Prix", "Barcelona GP"),
    ),
    GrandPrix(
        "Canadian Grand Prix",
        10,
        "Canada",
        ("Canada Grand Prix", "Canada GP", "Montreal Grand Prix", "Montreal GP"),
    ),
    GrandPrix(
        "Austrian Grand Prix",
        11,
        "Austria",
        ("Austria Grand Prix", "Austria GP", "Red Bull Ring Grand Prix", "Red Bull Ring GP"),
    ),
    GrandPrix(
        "British Grand Prix",
        12,
        "United Kingdom",
        (
            "UK Grand Prix",
            "UK GP",
            "United Kingdom Grand Prix",
            "United Kingdom GP",
            "Silverstone Grand Prix",
            "Silverstone GP",
            "British GP",
        ),
    ),
    GrandPrix(
        "Hungarian Grand Prix",
        13,
        "Hungary",
        ("Hungary Grand Prix", "Hungary GP", "Budapest Grand Prix", "Budapest GP"),
    ),
    GrandPrix(
        "Belgian Grand Prix",
        14,
        "Belgium",
        (
            "Belgium Grand Prix",
            "Belgium GP",
            "Spa Grand Prix",
            "Spa GP",
            "Spa-Francorchamps Grand Prix",
            "Spa-Francorchamps GP",
        ),
    ),
    GrandPrix(
        "Dutch Grand Prix",
        15,
        "Netherlands",
        (
            "Netherlands Grand Prix",
            "Netherlands GP",
            "Zandvoort Grand Prix",
            "Zandvoort GP",
            "Dutch GP",
        ),
    ),
    GrandPrix(
        "Italian Grand Prix",
        16,
        "Italy",
        ("Italy Grand Prix", "Italy GP", "Monza Grand Prix", "Monza GP", "Italian GP"),
    ),
    GrandPrix(
        "Azerbaijan Grand Prix",
        17,
        "Azerbaijan",
        ("Azerbaijan GP", "Baku Grand Prix", "Baku GP"),
    ),
    GrandPrix("Singapore Grand Prix", 18, "Singapore", ("Singapore GP",)),
    GrandPrix(
        "United States Grand Prix",
        19,
        "United States",
        (
            "US Grand Prix",
            "US GP",
            "USA Grand Prix",
            "USA GP",
            "Austin Grand Prix",
            "Austin GP",
            "United States GP",
        ),
    ),
    GrandPrix(
        "Mexican Grand Prix",
        20,
        "Mexico",
        ("Mexico Grand Prix", "Mexico GP", "Mexican States Grand Prix", "Mexican GP"),
    ),
    GrandPrix(
        "Brazilian Grand Prix",
        21,
        "Brazil",
        (
            "Brazil Grand Prix",
            "Brazil GP",
            "Sao Paulo Grand Prix",
            "Sao Paulo GP",
            "São Paulo Grand Prix",
            "São Paulo GP",
            "Brazilian GP",
        ),
    ),
    GrandPrix(
        "Las Vegas Grand Prix",
        22,
        "United States",
        ("Las Vegas GP", "Vegas Grand Prix", "Vegas GP"),
    ),
    GrandPrix("Qatar Grand Prix", 23, "Qatar", ("Qatar GP",)),
    GrandPrix(
        "Abu Dhabi Grand Prix",
        24,
        "United Arab Emirates",
        ("Abu Dhabi GP", "UAE Grand Prix", "UAE GP", "Yas Marina Grand Prix", "Yas Marina GP"),
    ),
)

_ROUND = re.compile(r"\bR(\d{1,2})\b", re.IGNORECASE)
_YEAR = re.compile(r"\b(20\d{2})\b")
_SUFFIX = re.compile(r"\s+(grand prix|gp)$")


def _short_form(name: str) -> str:
    return _SUFFIX.sub("", name.lower()).strip()


def _matches(title_lower: str, name: str) -> bool:
    """Full names match as substrings; short forms only as whole words."""
    if name.lower() in title_lower:
        return True
    short = _short_form(name)
    for candidate in {short, short.replace(" ", "")}:
        if candidate and re.search(rf"\b{re.escape(candidate)}\b", title_lower):
            return True
    return False


def extract_event_from_title(title: str) -> Optional[EventInfo]:
    """
    Match a post title against the Grand Prix roster.

    An explicit round token (``R12``) overrides the roster's round number.

    Returns:
        EventInfo for the first roster entry whose name or alias appears in
        the title, or None when the title is not about a known Grand Prix.

    Example:
        >>> extract_event_from_title("Formula 1 2025 British Grand Prix R12 - Full Event SkyF1HD 1080p")
        EventInfo(name='British Grand Prix', round=12, country='United Kingdom')
    """
    if not title:
        return None

    title_lower = title.lower()
    round_match = _ROUND.search(title)
    explicit_round = int(round_match.group(1)) if round_match else None

    for grand_prix in GRAND_PRIX_ROSTER:
        names = (grand_prix.name,) + grand_prix.aliases
        if any(_matches(title_lower, name) for name in names):
            return EventInfo(
                name=grand_prix.name,
                round=explicit_round or grand_prix.round,
                country=grand_prix.country,
            )
    return None


def classify_quality(title: str) -> Quality:
    """4K markers are checked before 1080p markers."""
    if any(marker in title for marker in FOUR_K_MARKERS):
        return Quality.FOUR_K
    if any(marker in title for marker in FULL_HD_MARKERS):
        return Quality.FULL_HD
    return Quality.UNKNOWN


def extract_year_from_title(title: str, today: Optional[date] = None) -> int:
    """Season year from the title, defaulting to the current year."""
    match = _YEAR.search(title or "")
    if match:
        return int(match.group(1))
    return (today or date.today()).year


def is_formula_one_post(title: Optional[str]) -> bool:
    """Titles the ingestion keeps."""
    return bool(title) and title.startswith("Formula 1")
