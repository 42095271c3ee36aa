"""Session classification rules, blocklist and weekend-format requirements."""

from types import SimpleNamespace

import pytest

from src.parser import (
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


@pytest.mark.parametrize(
    "name, expected",
    [
        ("Free Practice One", SessionCategory.PRACTICE_ONE),
        ("Free Practice 2", SessionCategory.PRACTICE_TWO),
        ("FP3", SessionCategory.PRACTICE_THREE),
        ("Sprint Qualifying", SessionCategory.SPRINT_QUALIFYING),
        ("Sprint Shootout", SessionCategory.SPRINT_QUALIFYING),
        ("Sprint", SessionCategory.SPRINT),
        ("Qualifying", SessionCategory.QUALIFYING),
        ("Race", SessionCategory.RACE),
    ],
)
def test_classify_known_sessions(name, expected):
    assert classify_session_name(name) == expected


def test_rule_table_order_is_fixed():
    """Sprint qualifying is tested before sprint, sprint before qualifying."""
    order = [category for category, _ in SESSION_RULES]
    assert order == [
        SessionCategory.PRACTICE_ONE,
        SessionCategory.PRACTICE_TWO,
        SessionCategory.PRACTICE_THREE,
        SessionCategory.SPRINT_QUALIFYING,
        SessionCategory.SPRINT,
        SessionCategory.QUALIFYING,
        SessionCategory.RACE,
    ]


@pytest.mark.parametrize(
    "name",
    [
        "Ted's Qualifying Notebook",
        "Pre-Race Show",
        "Post Race Analysis",
        "Post Qualifying Show",
        "Post-Quali Reaction",
        "Qualifying Build Up",
        "Race Highlights",
    ],
)
def test_blocklist_wins_over_rules(name):
    """Names that would match a rule are rejected when blocklisted."""
    assert is_blocklisted(name)
    assert classify_session_name(name) is None


def test_blocklist_is_word_bounded():
    assert not is_blocklisted("United States Race")
    assert classify_session_name("United States Race") == SessionCategory.RACE


def test_sprint_race_is_not_a_session():
    assert classify_session_name("Sprint Race") is None


def test_unknown_name_is_dropped():
    assert classify_session_name("Drivers Press Conference") is None


def test_classification_is_deterministic():
    names = ["Free Practice One", "Sprint", "Qualifying", "Ted's Notebook", "Race"]
    assert [classify_session_name(n) for n in names] == [
        classify_session_name(n) for n in names
    ]


def test_detect_sprint_format_needs_both_sprint_sessions():
    assert (
        detect_weekend_format(
            [SessionCategory.SPRINT_QUALIFYING, SessionCategory.SPRINT]
        )
        == WeekendFormat.SPRINT
    )
    assert detect_weekend_format([SessionCategory.SPRINT]) == WeekendFormat.CONVENTIONAL


def test_required_sessions_per_format():
    assert set(required_sessions(WeekendFormat.SPRINT)) == {
        SessionCategory.PRACTICE_ONE,
        SessionCategory.SPRINT_QUALIFYING,
        SessionCategory.SPRINT,
        SessionCategory.QUALIFYING,
        SessionCategory.RACE,
    }
    assert SessionCategory.PRACTICE_THREE in required_sessions(WeekendFormat.CONVENTIONAL)


def test_has_all_required_sessions_sprint_weekend():
    names = ["Free Practice One", "Sprint Qualifying", "Sprint", "Qualifying", "Race"]
    assert has_all_required_sessions(names)


def test_has_all_required_sessions_missing_practice():
    names = ["Free Practice One", "Free Practice Two", "Qualifying", "Race"]
    assert not has_all_required_sessions(names)


def test_match_stream_file_by_filename():
    files = [
        SimpleNamespace(filename="Formula.1.2025.R06.Miami.Sprint.Qualifying.SkyF1HD.1080p.mkv"),
        SimpleNamespace(filename="Formula.1.2025.R06.Miami.Sprint.SkyF1HD.1080p.mkv"),
        SimpleNamespace(filename="Formula.1.2025.R06.Miami.Race.SkyF1HD.1080p.mkv"),
    ]
    assert match_stream_file(files, SessionCategory.SPRINT) is files[1]
    assert match_stream_file(files, SessionCategory.SPRINT_QUALIFYING) is files[0]
    assert match_stream_file(files, SessionCategory.RACE) is files[2]


def test_match_stream_file_has_no_fallback():
    files = [SimpleNamespace(filename="Formula.1.2025.R06.Miami.Race.SkyF1HD.1080p.mkv")]
    assert match_stream_file(files, SessionCategory.QUALIFYING) is None


def test_match_stream_file_skips_post_qualifying_show():
    files = [
        SimpleNamespace(
            filename="Formula.1.2025.R12.British.Grand.Prix.Post.Qualifying.Show.SkyF1HD.1080p.mkv"
        ),
        SimpleNamespace(filename="Formula.1.2025.R12.British.Grand.Prix.Qualifying.SkyF1HD.1080p.mkv"),
        SimpleNamespace(filename="Formula.1.2025.R12.British.Grand.Prix.Post.Race.Show.SkyF1HD.1080p.mkv"),
        SimpleNamespace(filename="Formula.1.2025.R12.British.Grand.Prix.Race.SkyF1HD.1080p.mkv"),
    ]
    assert match_stream_file(files, SessionCategory.QUALIFYING) is files[1]
    assert match_stream_file(files, SessionCategory.RACE) is files[3]
