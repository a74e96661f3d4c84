"""
Response caching for EA calls: per-endpoint TTLs, request coalescing and
stale-while-revalidate.
"""
from .core import CacheEntry, CacheMeta, CacheSource, DataCategory
from .ttl_policies import TTL_CONFIG, get_ttl_for_category, get_category_for_endpoint
from .coalescer import RequestCoalescer
from .manager import CacheManager, get_cache_manager

__all__ = [
    "CacheEntry",
    "CacheMeta",
    "CacheSource",
    "DataCategory",
    "TTL_CONFIG",
    "get_ttl_for_category",
    "get_category_for_endpoint",
    "RequestCoalescer",
    "CacheManager",
    "get_cache_manager",
]
