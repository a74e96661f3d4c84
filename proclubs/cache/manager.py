"""
Cache orchestration for EA responses: per-category TTL, coalescing and
stale-while-revalidate.
"""
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional, Tuple

from .coalescer import RequestCoalescer
from .core import CacheEntry, CacheMeta, CacheSource, DataCategory
from .ttl_policies import get_category_for_endpoint, get_ttl_for_category

logger = logging.getLogger("cache.manager")


class CacheManager:
    """
    In-process cache in front of the EA API.

    - Fresh entries are served directly
    - Stale entries in categories that allow it are served while a
      background thread refetches
    - Misses and expired entries go upstream through the coalescer
    - Failed fetches are never cached
    """

    def __init__(self, max_revalidation_workers: int = 4, coalesce_timeout: float = 30.0):
        self._cache: Dict[str, CacheEntry] = {}
        self._cache_lock = threading.RLock()
        self._coalescer = RequestCoalescer(timeout=coalesce_timeout)

        self._revalidation_pool = ThreadPoolExecutor(
            max_workers=max_revalidation_workers,
            thread_name_prefix="ea-revalidate",
        )
        self._revalidating: set = set()
        self._revalidating_lock = threading.Lock()

        self._stats = {"hits_fresh": 0, "hits_stale": 0, "misses": 0, "revalidations": 0}

    def get(
        self,
        cache_key: str,
        fetch_fn: Callable[[], Any],
        path: str,
        params: Dict[str, Any],
        force_refresh: bool = False,
    ) -> Tuple[Any, CacheMeta]:
        """
        Get data for an EA path from cache or upstream.

        Returns:
            (data, cache_meta) tuple
        """
        category = get_category_for_endpoint(path, params)
        fresh_ttl, stale_ttl, allow_swr = get_ttl_for_category(category)

        entry = None
        if not force_refresh:
            with self._cache_lock:
                entry = self._cache.get(cache_key)

        if entry is not None and entry.is_fresh:
            logger.debug(f"CACHE HIT (fresh): {cache_key} [age={entry.age_seconds:.1f}s]")
            self._stats["hits_fresh"] += 1
            return entry.data, self._meta(CacheSource.FRESH, category, fresh_ttl, entry.age_seconds)

        if entry is not None and entry.is_usable_stale and allow_swr:
            logger.info(f"CACHE HIT (stale, revalidating): {cache_key} [age={entry.age_seconds:.1f}s]")
            self._revalidate_in_background(cache_key, fetch_fn, fresh_ttl, stale_ttl, category)
            self._stats["hits_stale"] += 1
            return entry.data, self._meta(CacheSource.STALE, category, fresh_ttl, entry.age_seconds)

        if force_refresh:
            logger.info(f"FORCE REFRESH: {cache_key}")
        elif entry is None:
            logger.info(f"CACHE MISS: {cache_key}")
        else:
            logger.info(f"CACHE EXPIRED: {cache_key} [age={entry.age_seconds:.1f}s]")

        data = self._coalescer.get_or_fetch(cache_key, fetch_fn)
        self._store(cache_key, data, fresh_ttl, stale_ttl, category)
        self._stats["misses"] += 1
        return data, self._meta(CacheSource.UPSTREAM, category, fresh_ttl, 0)

    def fetch_uncached(self, cache_key: str, fetch_fn: Callable[[], Any]) -> Tuple[Any, CacheMeta]:
        """Bypass storage but still share concurrent identical requests."""
        data = self._coalescer.get_or_fetch(cache_key, fetch_fn)
        return data, CacheMeta.now(CacheSource.UPSTREAM)

    def _store(
        self,
        cache_key: str,
        data: Any,
        fresh_ttl: int,
        stale_ttl: int,
        category: DataCategory,
    ) -> None:
        entry = CacheEntry(
            data=data,
            stored_at=time.monotonic(),
            ttl_seconds=fresh_ttl,
            stale_ttl_seconds=stale_ttl,
            category=category,
        )
        with self._cache_lock:
            self._cache[cache_key] = entry

    def _revalidate_in_background(
        self,
        cache_key: str,
        fetch_fn: Callable[[], Any],
        fresh_ttl: int,
        stale_ttl: int,
        category: DataCategory,
    ) -> None:
        with self._revalidating_lock:
            if cache_key in self._revalidating:
                return
            self._revalidating.add(cache_key)

        def revalidate():
            try:
                data = self._coalescer.get_or_fetch(f"{cache_key}:revalidate", fetch_fn)
                self._store(cache_key, data, fresh_ttl, stale_ttl, category)
                self._stats["revalidations"] += 1
            except Exception as e:
                # Keep serving the stale copy until it expires
                logger.warning(f"Background revalidation failed: {cache_key} - {e}")
            finally:
                with self._revalidating_lock:
                    self._revalidating.discard(cache_key)

        self._revalidation_pool.submit(revalidate)

    def _meta(self, source: CacheSource, category: DataCategory, ttl: int, age: float) -> CacheMeta:
        return CacheMeta.now(source, category=category.value, ttl_seconds=ttl, age_seconds=age)

    def clear(self) -> int:
        """Drop every entry; returns how many were removed."""
        with self._cache_lock:
            count = len(self._cache)
            self._cache.clear()
        logger.info(f"Cleared {count} cache entries")
        return count

    def get_stats(self) -> Dict[str, Any]:
        with self._cache_lock:
            hits = self._stats["hits_fresh"] + self._stats["hits_stale"]
            total = hits + self._stats["misses"]
            return {
                "entries": len(self._cache),
                **self._stats,
                "hit_rate_percent": round(hits / total * 100, 1) if total else 0,
                "coalescer": self._coalescer.get_stats(),
                "revalidating_count": len(self._revalidating),
            }


_cache_manager: Optional[CacheManager] = None


def get_cache_manager() -> CacheManager:
    """Get or create the process-wide cache manager."""
    global _cache_manager
    if _cache_manager is None:
        _cache_manager = CacheManager()
    return _cache_manager
