"""
TTL configuration and EA path-to-category mapping.
"""
from typing import Any, Dict, Tuple

from .core import DataCategory


# Seconds; stale_ttl is how long past fresh_ttl data may still be served
# while a background refresh runs
TTL_CONFIG: Dict[DataCategory, Dict[str, Any]] = {
    DataCategory.CLUB_METADATA: {"fresh_ttl": 300, "stale_ttl": 300, "allow_swr": True},
    DataCategory.CLUB_STATS: {"fresh_ttl": 300, "stale_ttl": 300, "allow_swr": True},
    DataCategory.MATCHES: {"fresh_ttl": 300, "stale_ttl": 300, "allow_swr": True},
    DataCategory.MEMBERS: {"fresh_ttl": 300, "stale_ttl": 300, "allow_swr": True},
    DataCategory.PLAYER: {"fresh_ttl": 300, "stale_ttl": 300, "allow_swr": True},
    DataCategory.SEARCH: {"fresh_ttl": 120, "stale_ttl": 120, "allow_swr": False},
    DataCategory.PROXY: {"fresh_ttl": 120, "stale_ttl": 120, "allow_swr": False},
}

# Matched against the EA path after /api, longest prefix first
PATH_CATEGORIES = [
    ("/fc/allTimeLeaderboard/search", DataCategory.SEARCH),
    ("/fc/members/search", DataCategory.SEARCH),
    ("/fc/players/search", DataCategory.SEARCH),
    ("/fc/search/members", DataCategory.SEARCH),
    ("/fc/clubs/info", DataCategory.CLUB_METADATA),
    ("/fc/clubs/overallStats", DataCategory.CLUB_STATS),
    ("/fc/club/playoffAchievements", DataCategory.CLUB_STATS),
    ("/fc/clubs/matches", DataCategory.MATCHES),
    ("/fc/members", DataCategory.MEMBERS),
]


def get_ttl_for_category(category: DataCategory) -> Tuple[int, int, bool]:
    """
    Returns:
        (fresh_ttl, stale_ttl, allow_swr)
    """
    config = TTL_CONFIG.get(category, TTL_CONFIG[DataCategory.PROXY])
    return config["fresh_ttl"], config.get("stale_ttl", 0), config.get("allow_swr", False)


def get_category_for_endpoint(path: str, params: Dict[str, Any]) -> DataCategory:
    """
    Category for an EA path + query params.

    Member lookups keyed by personaId belong to the persona candidate
    chain rather than a club roster.
    """
    for prefix, category in PATH_CATEGORIES:
        if path.startswith(prefix):
            if category is DataCategory.MEMBERS and params.get("personaId"):
                return DataCategory.PLAYER
            return category
    return DataCategory.PROXY
