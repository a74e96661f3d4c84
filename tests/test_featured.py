"""
Daily homepage rotation: seeded shuffle, divisions and card building.
"""
from unittest.mock import patch

from proclubs import featured
from proclubs.api_client import EAUpstreamError


IDS = [str(i) for i in range(40)]


def test_shuffle_is_stable_for_a_day():
    first = featured.shuffle_with_daily_seed(IDS, day=20000)
    assert first == featured.shuffle_with_daily_seed(IDS, day=20000)
    assert sorted(first, key=int) == IDS
    assert first != IDS


def test_shuffle_changes_with_day_and_offset():
    today = featured.shuffle_with_daily_seed(IDS, day=20000)
    assert featured.shuffle_with_daily_seed(IDS, day=20001) != today
    assert featured.shuffle_with_daily_seed(IDS, seed_offset=999, day=20000) != today


def test_daily_random_sequence():
    rand = featured.DailyRandom(0)
    assert rand() == 49297 / 233280
    values = [rand() for _ in range(50)]
    assert all(0 <= v < 1 for v in values)


def test_divisions():
    assert featured.division_for_skill_rating(2150) == "Elite"
    assert featured.division_for_skill_rating(1800) == "Div 1"
    assert featured.division_for_skill_rating(1799) == "Div 2"
    assert featured.division_for_skill_rating(1400) == "Div 3"
    assert featured.division_for_skill_rating(1250) == "Div 4"
    assert featured.division_for_skill_rating(900) == "Div 5"


def test_main_stat_by_position():
    assert featured.main_stat_for_position({"position": "ST", "goals": 12}) == {"label": "Goals", "value": "12"}
    assert featured.main_stat_for_position({"pos": "midfielder", "assists": "7"})["label"] == "Assists"
    assert featured.main_stat_for_position({"position": "CB", "stats": {"tacklesMade": 30}}) == {
        "label": "Tackles", "value": "30"
    }
    assert featured.main_stat_for_position({"proPos": "GK"}) == {"label": "Clean Sheets", "value": "0"}
    assert featured.main_stat_for_position({}) == {"label": "Goals", "value": "0"}


def test_featured_clubs_merge_info_and_stats():
    info = {"1": {"name": "One", "teamId": 5}}
    stats = [{"skillRating": "1850", "wins": "10"}]
    with patch("proclubs.featured.api_client.get_club_info", return_value=info), \
            patch("proclubs.featured.api_client.get_club_stats", return_value=stats):
        clubs = featured.get_featured_clubs(count=3, club_ids=["1"], day=1)
    assert clubs == [{
        "clubId": "1",
        "name": "One",
        "division": "Div 1",
        "skillRating": 1850,
        "badgeUrl": featured.get_club_badge_url({"teamId": 5}),
    }]


def test_featured_clubs_skip_unrated_and_failing():
    def info(club_id, platform):
        if club_id == "bad":
            raise EAUpstreamError(500, "down")
        return {club_id: {"name": club_id, "skillRating": "0" if club_id == "unrated" else "2100"}}

    with patch("proclubs.featured.api_client.get_club_info", side_effect=info), \
            patch("proclubs.featured.api_client.get_club_stats", side_effect=EAUpstreamError(503, "busy")):
        clubs = featured.get_featured_clubs(count=5, club_ids=["bad", "unrated", "good"], day=3)
    assert [c["clubId"] for c in clubs] == ["good"]
    assert clubs[0]["division"] == "Elite"


def test_featured_clubs_respect_count():
    with patch("proclubs.featured.api_client.get_club_info", side_effect=lambda cid, p: {cid: {"skillRating": 1500}}), \
            patch("proclubs.featured.api_client.get_club_stats", return_value=None):
        clubs = featured.get_featured_clubs(count=2, club_ids=IDS, day=7)
    assert len(clubs) == 2


def test_featured_players_card():
    members = {"members": [{"name": "Ace Striker", "ratingAve": "7.8", "favoritePosition": "forward", "goals": "20"}]}
    with patch("proclubs.featured.api_client.get_club_members", return_value=members) as mock_members:
        players = featured.get_featured_players(count=1, club_ids=["9"], day=5)
    mock_members.assert_called_once_with("9", featured.settings.default_platform, scope="career")
    assert players == [{
        "clubId": "9",
        "playerName": "Ace Striker",
        "position": "forward",
        "mainStat": {"label": "Goals", "value": "20"},
        "avgRating": 7.8,
        "url": f"/player/9/Ace%20Striker?platform={featured.settings.default_platform}",
    }]


def test_featured_players_skip_unrated():
    members = [{"name": "Bench", "ratingAve": "0"}]
    with patch("proclubs.featured.api_client.get_club_members", return_value=members):
        assert featured.get_featured_players(count=1, club_ids=["9"], day=5) == []


def test_nothing_configured():
    assert featured.get_featured_clubs(club_ids=[]) == []
    assert featured.get_featured_players(club_ids=[]) == []
