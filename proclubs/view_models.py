"""
View Models for EA Pro Clubs payloads
Mapping layer that converts raw EA responses into stable records.

EA's API has no schema: numbers arrive as strings or numbers, the same
attribute hides under several names, and the envelope around a list
changes between endpoints. Everything downstream consumes these payloads,
never raw EA JSON. None of the functions here raise on malformed input.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from proclubs.formatting import (
    format_division,
    format_result,
    get_division_badge_url,
    get_division_name,
    get_reputation_name,
)
from proclubs.utils.helpers import (
    first_present,
    first_truthy,
    parse_optional_float,
    parse_optional_int,
)

logger = logging.getLogger("view_models")


# =============================================================================
# MEMBERS
# =============================================================================

# Canonical output key -> raw EA aliases, first present wins
MEMBER_INT_ALIASES: Dict[str, tuple] = {
    "appearances": ("gamesPlayed", "appearances", "apps"),
    "goals": ("goals",),
    "assists": ("assists",),
    "cleanSheets": ("cleanSheets", "cleansheet"),
    "saves": ("saves",),
    "wins": ("wins", "gamesWon"),
    "losses": ("losses", "gamesLost"),
    "draws": ("draws", "gamesDraw"),
}

MEMBER_CANONICAL_KEYS = {
    "personaId", "name", "ratingAve", "pos", "proPos", *MEMBER_INT_ALIASES,
}

# Nested stat blocks some member endpoints return per scope
SCOPE_STAT_BLOCKS = {
    "club": ("clubStats", "clubTotalStats"),
    "career": ("careerStats", "careerTotalStats"),
}


def _stat(value: Any) -> Optional[int]:
    # Zero and unparsable both collapse to None
    parsed = parse_optional_int(value)
    return parsed or None


def _rating(value: Any) -> Optional[float]:
    parsed = parse_optional_float(value)
    return parsed or None


def _persona_id(row: Dict[str, Any]) -> Optional[str]:
    persona = row.get("persona")
    nested = persona.get("id") if isinstance(persona, dict) else None
    raw = first_present(row, "personaId", "id", "playerId")
    if raw is None:
        raw = nested
    if raw is None:
        return None
    return str(raw) or None


@dataclass
class NormalizedMember:
    """
    One player's stats within a club or career scope.

    Absent stats are None rather than 0 so callers can fall back to other
    field names. Raw keys outside the canonical set are kept in `extra`.
    """
    name: str = "Unknown"
    persona_id: Optional[str] = None
    appearances: Optional[int] = None
    goals: Optional[int] = None
    assists: Optional[int] = None
    clean_sheets: Optional[int] = None
    saves: Optional[int] = None
    wins: Optional[int] = None
    losses: Optional[int] = None
    draws: Optional[int] = None
    rating_ave: Optional[float] = None
    pos: Optional[str] = None
    pro_pos: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, row: Dict[str, Any], scope: str = "club") -> "NormalizedMember":
        """Map one raw EA member row."""
        stats = dict(row)
        for block_name in SCOPE_STAT_BLOCKS.get(scope, ()):
            block = row.get(block_name)
            if isinstance(block, dict):
                stats.update(block)
                break

        ints = {
            key: _stat(first_present(stats, *aliases))
            for key, aliases in MEMBER_INT_ALIASES.items()
        }

        return cls(
            name=str(first_truthy(row, "personaName", "name", "memberName") or "Unknown"),
            persona_id=_persona_id(row),
            appearances=ints["appearances"],
            goals=ints["goals"],
            assists=ints["assists"],
            clean_sheets=ints["cleanSheets"],
            saves=ints["saves"],
            wins=ints["wins"],
            losses=ints["losses"],
            draws=ints["draws"],
            rating_ave=_rating(first_present(stats, "ratingAve", "rating")),
            pos=first_truthy(stats, "pos", "favoritePosition"),
            pro_pos=stats.get("proPos"),
            extra={k: v for k, v in row.items() if k not in MEMBER_CANONICAL_KEYS},
        )

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a canonical or passthrough field by its EA name."""
        return self.to_dict().get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        """Wire record: passthrough keys first, canonical keys on top."""
        result = dict(self.extra)
        result.update({
            "personaId": self.persona_id,
            "name": self.name,
            "appearances": self.appearances,
            "goals": self.goals,
            "assists": self.assists,
            "cleanSheets": self.clean_sheets,
            "saves": self.saves,
            "wins": self.wins,
            "losses": self.losses,
            "draws": self.draws,
            "ratingAve": self.rating_ave,
            "pos": self.pos,
            "proPos": self.pro_pos,
        })
        return result


def _member_rows(data: Any) -> List[Any]:
    """Unwrap the member list from any envelope EA has used."""
    if isinstance(data, list):
        return data
    if not isinstance(data, dict):
        return []

    possible = data.get("members")
    if possible is None:
        possible = data.get("players")
    if possible is None:
        possible = data

    if isinstance(possible, list):
        return possible
    if isinstance(possible, dict):
        return list(possible.values())
    return []


def normalize_members(data: Any, scope: str = "club") -> List[NormalizedMember]:
    """
    Normalize any EA member shape into one consistent list.

    Supported shapes: bare list, {id: member} map, {"members": [...]},
    {"players": [...]}. Anything else yields an empty list.
    """
    members = []
    skipped = 0
    for row in _member_rows(data):
        if not isinstance(row, dict):
            skipped += 1
            continue
        members.append(NormalizedMember.from_raw(row, scope=scope))

    if skipped:
        logger.debug(f"Skipped {skipped} non-object member rows")
    return members


def find_member(data: Any, persona_id: Any) -> Optional[Dict[str, Any]]:
    """Find one raw member by persona id in any member shape."""
    target = str(persona_id)
    for row in _member_rows(data):
        if not isinstance(row, dict):
            continue
        candidate = first_truthy(row, "personaId", "id", "playerId")
        if candidate is not None and str(candidate) == target:
            return row
    return None


# =============================================================================
# CLUBS
# =============================================================================

def extract_club_info(data: Any, club_id: Any) -> Optional[Any]:
    """
    Extract one club record from a response keyed by club id, wrapped in a
    list, nested under "club", or flat. Returns None when there is nothing.
    """
    if not data:
        return None

    key = str(club_id)
    if isinstance(data, dict) and data.get(key):
        return data[key]
    if isinstance(data, list):
        return data[0]
    if isinstance(data, dict) and data.get("club"):
        return data["club"]
    return data


@dataclass
class ClubStatsSummary:
    """Aggregate record computed from an overallStats row."""
    wins: int
    draws: int
    losses: int
    total_matches: int
    win_percent: str
    draw_percent: str
    loss_percent: str
    goals_scored: int
    goals_conceded: int
    goal_difference: int

    @classmethod
    def from_raw(cls, stats: Any) -> "ClubStatsSummary":
        stats = stats if isinstance(stats, dict) else {}

        def pick(*keys: str) -> int:
            # EA mixes "0" and 0 with missing keys; first truthy alias wins
            return parse_optional_int(first_truthy(stats, *keys)) or 0

        wins = pick("wins")
        draws = pick("ties", "draws")
        losses = pick("losses")
        total = wins + draws + losses
        goals_scored = pick("goals", "goalsFor")
        goals_conceded = pick("goalsAgainst", "ga")

        def percent(count: int) -> str:
            if total == 0:
                return "0.0"
            return f"{count / total * 100:.1f}"

        return cls(
            wins=wins,
            draws=draws,
            losses=losses,
            total_matches=total,
            win_percent=percent(wins),
            draw_percent=percent(draws),
            loss_percent=percent(losses),
            goals_scored=goals_scored,
            goals_conceded=goals_conceded,
            goal_difference=goals_scored - goals_conceded,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "wins": self.wins,
            "draws": self.draws,
            "losses": self.losses,
            "totalMatches": self.total_matches,
            "winPercent": self.win_percent,
            "drawPercent": self.draw_percent,
            "lossPercent": self.loss_percent,
            "goalsScored": self.goals_scored,
            "goalsConceded": self.goals_conceded,
            "goalDifference": self.goal_difference,
        }


def summarize_club_stats(stats: Any) -> ClubStatsSummary:
    """Compute W/D/L totals and percentages from a club stats row."""
    return ClubStatsSummary.from_raw(stats)


@dataclass
class ClubSearchResult:
    """A club returned by the leaderboard search endpoint."""
    club_id: str
    name: str
    platform: str

    @classmethod
    def from_raw(cls, row: Any, platform: str) -> Optional["ClubSearchResult"]:
        if not isinstance(row, dict):
            return None
        club_info = row.get("clubInfo") if isinstance(row.get("clubInfo"), dict) else {}

        club_id = first_present(row, "clubId")
        if club_id is None:
            club_id = club_info.get("clubId")
        if club_id is None:
            club_id = row.get("id")

        name = first_present(row, "clubName")
        if name is None:
            name = club_info.get("name")
        if name is None:
            name = row.get("name")

        club_id = "" if club_id is None else str(club_id)
        name = "Unknown" if name is None else str(name)
        if not club_id or name == "Unknown":
            return None
        return cls(club_id=club_id, name=name, platform=platform)

    def to_dict(self) -> Dict[str, Any]:
        return {"clubId": self.club_id, "name": self.name, "platform": self.platform}


def normalize_club_search(data: Any, platform: str) -> List[ClubSearchResult]:
    """Map a leaderboard search response (list or map) to club results."""
    if isinstance(data, list):
        rows = data
    elif isinstance(data, dict):
        rows = list(data.values())
    else:
        rows = []

    results = []
    for row in rows:
        club = ClubSearchResult.from_raw(row, platform)
        if club is not None:
            results.append(club)
    return results


# =============================================================================
# LEADERBOARD STANDING
# =============================================================================

RECENT_MATCH_KEYS = tuple(f"recentMatch{i}" for i in range(5))


def _division_card(division: Any) -> Optional[Dict[str, Any]]:
    if not division:
        return None
    return {
        "division": parse_optional_int(division),
        "name": get_division_name(division),
        "label": format_division(division),
        "badgeUrl": get_division_badge_url(division),
    }


def club_standing(data: Any, club_id: Any) -> Optional[Dict[str, Any]]:
    """
    Find one club in an all-time leaderboard search response and describe
    its standing: rank, skill rating, current/best division, reputation and
    recent results. Returns None when the club is not in the response.
    """
    if isinstance(data, list):
        rows = data
    elif isinstance(data, dict):
        rows = list(data.values())
    else:
        return None

    key = str(club_id)
    entry = next((r for r in rows if isinstance(r, dict) and str(r.get("clubId")) == key), None)
    if entry is None:
        return None

    return {
        "clubId": key,
        "rank": parse_optional_int(entry.get("rank")),
        "skillRating": parse_optional_int(first_truthy(entry, "skillRating", "skillrating")),
        "currentDivision": _division_card(entry.get("currentDivision")),
        "bestDivision": _division_card(entry.get("bestDivision")),
        "reputation": get_reputation_name(entry.get("reputationtier")),
        "recentResults": [format_result(str(entry[k])) for k in RECENT_MATCH_KEYS if entry.get(k)],
    }


# =============================================================================
# MATCHES
# =============================================================================

@dataclass
class MatchClubPayload:
    """One side of a fixture."""
    club_id: str
    name: Optional[str]
    goals: Optional[int]
    goals_against: Optional[int]
    result: Optional[str]
    players: List[Dict[str, Any]]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "clubId": self.club_id,
            "name": self.name,
            "goals": self.goals,
            "goalsAgainst": self.goals_against,
            "result": self.result,
            "players": self.players,
        }


@dataclass
class MatchPayload:
    """
    Stable payload for a single fixture.
    timestamp is UNIX seconds, exactly as EA sends it.
    """
    match_id: Optional[str]
    timestamp: Optional[int]
    match_type: str
    clubs: List[MatchClubPayload]

    @classmethod
    def from_raw(cls, match: Any) -> Optional["MatchPayload"]:
        """Map raw EA match data; returns None for non-object input."""
        if not isinstance(match, dict):
            return None

        clubs_raw = match.get("clubs") if isinstance(match.get("clubs"), dict) else {}
        players_raw = match.get("players") if isinstance(match.get("players"), dict) else {}

        clubs = []
        for club_id, club in clubs_raw.items():
            club = club if isinstance(club, dict) else {}
            details = club.get("details") if isinstance(club.get("details"), dict) else {}

            club_players = club.get("players")
            if not isinstance(club_players, dict):
                club_players = players_raw.get(club_id)
            players = list(club_players.values()) if isinstance(club_players, dict) else []

            clubs.append(MatchClubPayload(
                club_id=str(club_id),
                name=first_truthy(club, "name", "clubName") or details.get("name"),
                goals=parse_optional_int(first_present(club, "goals", "score", "gf")),
                goals_against=parse_optional_int(first_present(club, "goalsAgainst", "ga")),
                result=club.get("result"),
                players=[p for p in players if isinstance(p, dict)],
            ))

        match_id = first_truthy(match, "matchId", "id")
        return cls(
            match_id=str(match_id) if match_id is not None else None,
            timestamp=parse_optional_int(first_truthy(match, "timestamp", "timeAgo")),
            match_type=str(match.get("matchType") or "unknown"),
            clubs=clubs,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matchId": self.match_id,
            "timestamp": self.timestamp,
            "matchType": self.match_type,
            "clubs": [c.to_dict() for c in self.clubs],
        }


def normalize_match(match: Any) -> Optional[Dict[str, Any]]:
    """Dict form of MatchPayload.from_raw."""
    payload = MatchPayload.from_raw(match)
    return payload.to_dict() if payload else None


def match_list(data: Any) -> List[Dict[str, Any]]:
    """Unwrap a matches response: bare list or {"matches": [...]}."""
    if isinstance(data, dict):
        data = data.get("matches")
    if not isinstance(data, list):
        return []
    return [m for m in data if isinstance(m, dict)]
