"""
Homepage rotation: featured clubs and players.

Picks change once per UTC day. The shuffle uses a small LCG seeded by the
day number so every process shows the same selection all day.
"""
import logging
import time
from typing import Any, Dict, List, Optional, Sequence, TypeVar
from urllib.parse import quote

import requests

from proclubs import api_client
from proclubs.api_client import EAUpstreamError
from proclubs.formatting import get_club_badge_url
from proclubs.utils.helpers import first_truthy, parse_optional_float, parse_optional_int
from proclubs.view_models import extract_club_info
from config.settings import settings

logger = logging.getLogger("featured")

T = TypeVar("T")

SECONDS_PER_DAY = 60 * 60 * 24
PLAYER_SEED_OFFSET = 999
PLAYER_PICK_SEED_OFFSET = 12345
CANDIDATES_PER_SECTION = 15

# (minimum skill rating, label), highest first
SKILL_RATING_DIVISIONS = [
    (2000, "Elite"),
    (1800, "Div 1"),
    (1600, "Div 2"),
    (1400, "Div 3"),
    (1200, "Div 4"),
]

FORWARD_POSITIONS = {"ST", "CF", "LW", "RW"}
MIDFIELD_POSITIONS = {"CAM", "CM", "CDM", "LM", "RM"}
DEFENDER_POSITIONS = {"CB", "LB", "RB", "LWB", "RWB"}


def current_day() -> int:
    return int(time.time() // SECONDS_PER_DAY)


class DailyRandom:
    """Linear congruential generator; returns floats in [0, 1)."""

    def __init__(self, seed: int):
        self.seed = seed

    def __call__(self) -> float:
        self.seed = (self.seed * 9301 + 49297) % 233280
        return self.seed / 233280


def shuffle_with_daily_seed(items: Sequence[T], seed_offset: int = 0, day: Optional[int] = None) -> List[T]:
    """Fisher-Yates shuffle that is stable for a given day and offset."""
    arr = list(items)
    rand = DailyRandom((current_day() if day is None else day) + seed_offset)
    for i in range(len(arr) - 1, 0, -1):
        j = int(rand() * (i + 1))
        arr[i], arr[j] = arr[j], arr[i]
    return arr


def division_for_skill_rating(skill_rating: int) -> str:
    for minimum, label in SKILL_RATING_DIVISIONS:
        if skill_rating >= minimum:
            return label
    return "Div 5"


def main_stat_for_position(player: Dict[str, Any]) -> Dict[str, str]:
    """Headline stat for a player card, chosen by position."""
    pos = str(first_truthy(player, "position", "pos", "favoritePosition", "proPos") or "")
    lowered, upper = pos.lower(), pos.upper()
    stats = player.get("stats") if isinstance(player.get("stats"), dict) else {}

    def value(key: str) -> str:
        return str(player.get(key) or stats.get(key) or 0)

    if lowered == "forward" or upper in FORWARD_POSITIONS:
        return {"label": "Goals", "value": value("goals")}
    if lowered == "midfielder" or upper in MIDFIELD_POSITIONS:
        return {"label": "Assists", "value": value("assists")}
    if lowered == "defender" or upper in DEFENDER_POSITIONS:
        return {"label": "Tackles", "value": value("tacklesMade")}
    if lowered == "goalkeeper" or upper == "GK":
        return {"label": "Clean Sheets", "value": value("cleanSheets")}
    return {"label": "Goals", "value": str(player.get("goals") or 0)}


def _load_club(club_id: str, platform: str) -> Optional[Dict[str, Any]]:
    """Club info merged with its overall stats; stats are optional."""
    info = extract_club_info(api_client.get_club_info(club_id, platform), club_id)
    if not isinstance(info, dict):
        return None

    try:
        stats = extract_club_info(api_client.get_club_stats(club_id, platform), club_id)
    except (EAUpstreamError, requests.RequestException) as e:
        logger.warning(f"Club stats fetch failed for {club_id}, using info only: {e}")
        stats = None

    merged = dict(info)
    if isinstance(stats, dict):
        merged.update(stats)
    return merged


def get_featured_clubs(
    count: Optional[int] = None,
    club_ids: Optional[List[str]] = None,
    day: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """
    Today's featured clubs. Clubs without a skill rating or that fail to
    load are skipped.
    """
    count = count or settings.featured_club_count
    club_ids = settings.featured_club_ids if club_ids is None else club_ids
    platform = settings.default_platform
    if not club_ids:
        logger.warning("No featured club ids configured")
        return []

    candidates = shuffle_with_daily_seed(club_ids, 0, day)[:CANDIDATES_PER_SECTION]
    results = []
    for club_id in candidates:
        if len(results) >= count:
            break
        try:
            club = _load_club(club_id, platform)
        except (EAUpstreamError, requests.RequestException) as e:
            logger.error(f"Failed to fetch featured club {club_id}: {e}")
            continue
        if club is None:
            continue

        skill_rating = parse_optional_int(first_truthy(club, "skillRating", "rating")) or 0
        if skill_rating == 0:
            logger.info(f"Skipping featured club {club_id} - no skill rating")
            continue

        results.append({
            "clubId": str(club_id),
            "name": first_truthy(club, "clubName", "name") or f"Club {club_id}",
            "division": division_for_skill_rating(skill_rating),
            "skillRating": skill_rating,
            "badgeUrl": get_club_badge_url(club),
        })

    logger.info(f"Featured clubs: {len(results)} of {len(candidates)} candidates")
    return results


def _member_list(data: Any) -> List[Dict[str, Any]]:
    if isinstance(data, list):
        rows = data
    elif isinstance(data, dict):
        rows = data.get("members") or data.get("data") or []
    else:
        rows = []
    return [r for r in rows if isinstance(r, dict)]


def get_featured_players(
    count: Optional[int] = None,
    club_ids: Optional[List[str]] = None,
    day: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """
    Today's featured players: one random member from each of a different
    slice of clubs than the featured clubs use.
    """
    count = count or settings.featured_club_count
    club_ids = settings.featured_club_ids if club_ids is None else club_ids
    platform = settings.default_platform
    if not club_ids:
        return []

    day = current_day() if day is None else day
    shuffled = shuffle_with_daily_seed(club_ids, PLAYER_SEED_OFFSET, day)
    candidates = shuffled[CANDIDATES_PER_SECTION:CANDIDATES_PER_SECTION * 2] or shuffled[:CANDIDATES_PER_SECTION]
    pick = DailyRandom(day + PLAYER_PICK_SEED_OFFSET)

    results = []
    for club_id in candidates:
        if len(results) >= count:
            break
        try:
            members = _member_list(api_client.get_club_members(club_id, platform, scope="career"))
        except (EAUpstreamError, requests.RequestException) as e:
            logger.error(f"Failed to fetch players for featured club {club_id}: {e}")
            continue
        if not members:
            continue

        player = members[int(pick() * len(members))]
        name = first_truthy(player, "name", "playerName", "playername") or "Unknown"
        rating = parse_optional_float(first_truthy(player, "ratingAve", "avgRating", "rating")) or 0.0
        if rating == 0:
            logger.info(f"Skipping featured player {name} from club {club_id} - no rating")
            continue

        results.append({
            "clubId": str(club_id),
            "playerName": name,
            "position": first_truthy(player, "position", "pos", "favoritePosition") or "ANY",
            "mainStat": main_stat_for_position(player),
            "avgRating": rating,
            "url": f"/player/{club_id}/{quote(name, safe='')}?platform={platform}",
        })

    return results
