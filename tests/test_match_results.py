"""
Unit tests for match result classification, match cards and form.
"""
import pytest

from proclubs.match_results import (
    DRAW,
    LOSS,
    WIN,
    build_match_card,
    classify_match_result,
    club_form,
    last_match_card,
    top_scorer,
)


def make_match(home_goals, away_goals, home_extra=None, timestamp=1700000000, match_id="m1"):
    home = {"goals": home_goals, **(home_extra or {})}
    return {
        "matchId": match_id,
        "timestamp": timestamp,
        "clubs": {
            "1": home,
            "2": {"goals": away_goals, "details": {"name": "Rivals FC"}},
        },
    }


@pytest.mark.parametrize("home, away, expected", [
    ("3", "1", WIN),
    ("0", "2", LOSS),
    (4, 4, DRAW),
])
def test_goals_decide_result(home, away, expected):
    assert classify_match_result(make_match(home, away), "1") == expected


def test_goals_override_categorical_fields():
    """An awarded 3-0 is a win even if EA flags it as a loss"""
    match = make_match("3", "0", {"result": "2", "losses": "1"})
    assert classify_match_result(match, "1") == WIN


def test_opponent_perspective():
    match = make_match("3", "1")
    assert classify_match_result(match, "2") == LOSS
    assert classify_match_result(match, 2) == LOSS


def test_level_friendly_is_draw():
    match = make_match("1", "1", {"matchType": "5", "result": "1"})
    assert classify_match_result(match, "1") == DRAW


@pytest.mark.parametrize("code, expected", [("1", WIN), ("2", LOSS), ("0", DRAW)])
def test_level_goals_use_result_code(code, expected):
    assert classify_match_result(make_match("0", "0", {"result": code}), "1") == expected


@pytest.mark.parametrize("flags, expected", [
    ({"wins": "1"}, WIN),
    ({"losses": "1"}, LOSS),
    ({"ties": "1"}, DRAW),
    ({}, DRAW),
])
def test_level_goals_use_outcome_flags(flags, expected):
    assert classify_match_result(make_match("2", "2", flags), "1") == expected


def test_missing_goals_count_as_zero():
    match = {"clubs": {"1": {"result": "1"}, "2": {}}}
    assert classify_match_result(match, "1") == WIN


def test_opponent_goals_fall_back_to_goals_against():
    match = {"clubs": {"1": {"goals": "1", "goalsAgainst": "2"}}}
    assert classify_match_result(match, "1") == LOSS


def test_club_not_in_match_returns_none():
    assert classify_match_result(make_match("1", "0"), "99") is None
    assert classify_match_result(None, "1") is None


def test_match_card():
    match = make_match("2", "1")
    match["players"] = {"1": {
        "a": {"playername": "Defender", "goals": "0", "mom": "1"},
        "b": {"playername": "Striker", "goals": "2", "mom": "0"},
    }}
    card = build_match_card(match, "1")
    assert card["score"] == "2-1"
    assert card["result"] == WIN
    assert card["opponentId"] == "2"
    assert card["opponentName"] == "Rivals FC"
    assert card["date"] == "Nov 14, 2023"
    assert card["topScorer"]["playername"] == "Striker"
    assert card["manOfTheMatch"]["playername"] == "Defender"


def test_match_card_requires_both_sides():
    assert build_match_card({"clubs": {"1": {"goals": "1"}}}, "1") is None


def test_top_scorer_first_listed_wins_ties():
    players = [{"n": "a", "goals": "1"}, {"n": "b", "goals": "1"}]
    assert top_scorer(players)["n"] == "a"
    assert top_scorer([]) is None


def test_club_form_is_oldest_to_newest():
    matches = [
        make_match("1", "0", timestamp=300, match_id="newest"),
        make_match("0", "1", timestamp=100, match_id="oldest"),
        make_match("2", "2", timestamp=200, match_id="middle"),
        {"clubs": {}, "matchId": "undated"},
    ]
    assert club_form(matches, "1") == [LOSS, DRAW, WIN]
    assert club_form(matches, "1", limit=1) == [WIN]


def test_last_match_card_picks_newest():
    matches = [
        make_match("0", "1", timestamp=100, match_id="old"),
        make_match("5", "0", timestamp=900, match_id="new"),
    ]
    assert last_match_card(matches, "1")["matchId"] == "new"
    assert last_match_card([], "1") is None
