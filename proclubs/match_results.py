"""
Match outcome classification for a viewing club.

Goal difference is authoritative. EA's categorical fields (matchType,
result, wins/losses/ties flags) are only consulted when the goals are level,
which keeps forfeits and awarded scores (e.g. 3-0) correct.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from proclubs.formatting import format_date
from proclubs.utils.helpers import first_present, parse_optional_int

logger = logging.getLogger("match_results")

WIN = "W"
DRAW = "D"
LOSS = "L"

FRIENDLY_MATCH_TYPE = "5"
RESULT_CODES = {"1": WIN, "2": LOSS, "0": DRAW}


def _clubs(match: Any) -> Dict[str, Any]:
    if not isinstance(match, dict):
        return {}
    clubs = match.get("clubs")
    return clubs if isinstance(clubs, dict) else {}


def _opponent(clubs: Dict[str, Any], club_id: str) -> Tuple[Optional[str], Optional[Dict[str, Any]]]:
    for other_id, other in clubs.items():
        if str(other_id) != club_id:
            return str(other_id), other if isinstance(other, dict) else None
    return None, None


def _goals(club: Dict[str, Any]) -> Optional[int]:
    return parse_optional_int(first_present(club, "goals", "score", "gf"))


def _goal_pair(club: Dict[str, Any], opponent: Optional[Dict[str, Any]]) -> Tuple[int, int]:
    goals_for = _goals(club) or 0
    goals_against = _goals(opponent) if opponent else None
    if goals_against is None:
        goals_against = parse_optional_int(first_present(club, "goalsAgainst", "ga")) or 0
    return goals_for, goals_against


def _str(value: Any) -> str:
    return "" if value is None else str(value)


def classify_match_result(match: Any, club_id: Any) -> Optional[str]:
    """
    Classify a match as W/D/L for club_id.

    Returns None when the club is not part of the match.
    """
    clubs = _clubs(match)
    key = str(club_id)
    club = clubs.get(key)
    if not isinstance(club, dict):
        return None

    _, opponent = _opponent(clubs, key)
    goals_for, goals_against = _goal_pair(club, opponent)

    if goals_for > goals_against:
        return WIN
    if goals_for < goals_against:
        return LOSS

    # Level on goals: fall back to EA's categorical fields
    if _str(club.get("matchType")) == FRIENDLY_MATCH_TYPE:
        return DRAW

    code = _str(club.get("result"))
    if code in RESULT_CODES:
        return RESULT_CODES[code]

    if _str(club.get("wins")) == "1":
        return WIN
    if _str(club.get("losses")) == "1":
        return LOSS
    if _str(club.get("ties")) == "1":
        return DRAW

    return DRAW


def _match_players(match: Dict[str, Any], club_id: str) -> List[Dict[str, Any]]:
    players = match.get("players") if isinstance(match.get("players"), dict) else {}
    club_players = players.get(club_id)
    if not isinstance(club_players, dict):
        club = _clubs(match).get(club_id)
        club_players = club.get("players") if isinstance(club, dict) else None
    if not isinstance(club_players, dict):
        return []
    return [p for p in club_players.values() if isinstance(p, dict)]


def top_scorer(players: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Player with the most goals; the first listed wins ties."""
    best = None
    best_goals = 0
    for player in players:
        goals = parse_optional_int(player.get("goals")) or 0
        if best is None or goals > best_goals:
            best, best_goals = player, goals
    return best


def man_of_the_match(players: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    for player in players:
        if _str(player.get("mom")) == "1":
            return player
    return None


def build_match_card(match: Any, club_id: Any) -> Optional[Dict[str, Any]]:
    """
    Summary card for one match from the viewing club's side.

    Returns None when either side of the fixture is missing.
    """
    clubs = _clubs(match)
    key = str(club_id)
    club = clubs.get(key)
    opponent_id, opponent = _opponent(clubs, key)
    if not isinstance(club, dict) or opponent is None:
        return None

    goals_for, goals_against = _goal_pair(club, opponent)
    players = _match_players(match, key)
    opponent_details = opponent.get("details") if isinstance(opponent.get("details"), dict) else {}

    return {
        "matchId": _str(first_present(match, "matchId", "id")) or None,
        "timestamp": parse_optional_int(match.get("timestamp")),
        "date": format_date(match.get("timestamp")),
        "opponentId": opponent_id,
        "opponentName": opponent_details.get("name") or opponent.get("name"),
        "goalsFor": goals_for,
        "goalsAgainst": goals_against,
        "score": f"{goals_for}-{goals_against}",
        "result": classify_match_result(match, key),
        "topScorer": top_scorer(players),
        "manOfTheMatch": man_of_the_match(players),
    }


def sort_newest_first(matches: List[Any]) -> List[Dict[str, Any]]:
    """Drop matches without a timestamp and order newest first."""
    dated = [
        m for m in matches
        if isinstance(m, dict) and parse_optional_int(m.get("timestamp"))
    ]
    return sorted(dated, key=lambda m: parse_optional_int(m.get("timestamp")), reverse=True)


def club_form(matches: List[Any], club_id: Any, limit: int = 5) -> List[str]:
    """
    Form guide for the last `limit` matches, oldest to newest.
    """
    form = []
    for match in sort_newest_first(matches)[:limit]:
        result = classify_match_result(match, club_id)
        if result is not None:
            form.append(result)
    form.reverse()
    return form


def last_match_card(matches: List[Any], club_id: Any) -> Optional[Dict[str, Any]]:
    """Card for the most recent match, if any."""
    ordered = sort_newest_first(matches)
    if not ordered:
        return None
    return build_match_card(ordered[0], club_id)
