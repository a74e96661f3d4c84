"""
Core cache data structures.
"""
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class DataCategory(Enum):
    """Kinds of EA data, each with its own freshness window."""
    CLUB_METADATA = "club_metadata"   # names, crests, kits
    CLUB_STATS = "club_stats"         # overallStats, leaderboard, achievements
    MATCHES = "matches"
    MEMBERS = "members"
    PLAYER = "player"                 # persona lookups via candidate endpoints
    SEARCH = "search"
    PROXY = "proxy"                   # raw passthrough of arbitrary EA URLs


class CacheSource(Enum):
    """Where the served data came from."""
    FRESH = "fresh"
    STALE = "stale"
    UPSTREAM = "upstream"


@dataclass
class CacheEntry:
    """
    A cached EA payload with its freshness windows.
    """
    data: Any
    stored_at: float
    ttl_seconds: int
    stale_ttl_seconds: int = 0
    category: DataCategory = DataCategory.PROXY

    @property
    def age_seconds(self) -> float:
        return time.monotonic() - self.stored_at

    @property
    def is_fresh(self) -> bool:
        return self.age_seconds < self.ttl_seconds

    @property
    def is_usable_stale(self) -> bool:
        """Past its TTL but inside the stale-while-revalidate window."""
        age = self.age_seconds
        return self.ttl_seconds <= age < self.ttl_seconds + self.stale_ttl_seconds


@dataclass
class CacheMeta:
    """
    Metadata about one cache access.
    """
    last_updated: str
    cache_source: str
    category: Optional[str] = None
    ttl_seconds: Optional[int] = None
    age_seconds: Optional[float] = None

    @classmethod
    def now(cls, source: "CacheSource", **kwargs) -> "CacheMeta":
        stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        return cls(last_updated=stamp, cache_source=source.value, **kwargs)

    def to_dict(self) -> dict:
        result = {
            "lastUpdated": self.last_updated,
            "cacheSource": self.cache_source,
        }
        if self.category:
            result["_debug"] = {
                "category": self.category,
                "ttl": self.ttl_seconds,
                "age": round(self.age_seconds, 1) if self.age_seconds else None,
            }
        return result
