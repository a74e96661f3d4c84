"""Per-client rate limiting for write and search endpoints."""

import logging
import random
from dataclasses import dataclass
from threading import Lock
from time import time
from typing import Callable, Dict, Optional, Protocol, Tuple

from fastapi import HTTPException, Request

from config.settings import settings

logger = logging.getLogger("rate_limit")

# Chance per request that expired windows are swept from the store
CLEANUP_PROBABILITY = 0.01


class RateLimitStore(Protocol):
    """Backing store for fixed-window counters."""

    def hit(self, key: str, window_seconds: int, now: float) -> Tuple[int, float]:
        """Count one request for key; returns (count, reset_time)."""
        ...

    def cleanup(self, now: float) -> int:
        ...


class InMemoryRateLimitStore:
    """
    Fixed-window counters in a dict, guarded by one lock.

    Each key holds {count, reset_time}. A request after reset_time starts a
    fresh window. Expired keys are swept on roughly 1% of hits.
    """

    def __init__(self, random_fn: Callable[[], float] = random.random):
        self._windows: Dict[str, Dict[str, float]] = {}
        self._lock = Lock()
        self._random = random_fn

    def hit(self, key: str, window_seconds: int, now: float) -> Tuple[int, float]:
        with self._lock:
            if self._random() < CLEANUP_PROBABILITY:
                self._sweep(now)

            entry = self._windows.get(key)
            if entry is None or now > entry["reset_time"]:
                entry = {"count": 0, "reset_time": now + window_seconds}
                self._windows[key] = entry

            entry["count"] += 1
            return int(entry["count"]), entry["reset_time"]

    def cleanup(self, now: float) -> int:
        with self._lock:
            return self._sweep(now)

    def _sweep(self, now: float) -> int:
        expired = [k for k, v in self._windows.items() if now > v["reset_time"]]
        for key in expired:
            del self._windows[key]
        if expired:
            logger.debug(f"Swept {len(expired)} expired rate limit windows")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)


@dataclass
class RateLimitResult:
    success: bool
    limit: int
    remaining: int
    reset_time: float

    @property
    def retry_after(self) -> int:
        return max(1, int(self.reset_time - time()) + 1)

    def headers(self) -> Dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(self.reset_time)),
        }
        if not self.success:
            headers["Retry-After"] = str(self.retry_after)
        return headers


class RateLimiter:
    """
    Fixed-window limiter: at most `limit` requests per `window` seconds
    per identifier (client IP).
    """

    def __init__(
        self,
        store: RateLimitStore,
        limit: int,
        window: int,
        clock: Callable[[], float] = time,
    ):
        self.store = store
        self.limit = limit
        self.window = window
        self._clock = clock

    def check(self, identifier: str) -> RateLimitResult:
        count, reset_time = self.store.hit(identifier, self.window, self._clock())
        return RateLimitResult(
            success=count <= self.limit,
            limit=self.limit,
            remaining=max(0, self.limit - count),
            reset_time=reset_time,
        )

    def enforce(self, request: Request) -> RateLimitResult:
        """
        FastAPI-facing check.

        Raises:
            HTTPException: 429 with rate limit headers
        """
        client_ip = get_client_ip(request)
        result = self.check(client_ip)
        if not result.success:
            logger.warning(f"Rate limit exceeded for {client_ip} on {request.url.path}")
            raise HTTPException(
                status_code=429,
                detail="Too many requests. Please try again later.",
                headers=result.headers(),
            )
        return result


def get_client_ip(request: Request) -> str:
    """
    Client IP behind a proxy: first X-Forwarded-For hop, then X-Real-IP,
    then the socket peer.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host
    return "127.0.0.1"


_write_limiter: Optional[RateLimiter] = None
_search_limiter: Optional[RateLimiter] = None


def get_write_limiter() -> RateLimiter:
    """Limiter for claim and vote submissions."""
    global _write_limiter
    if _write_limiter is None:
        _write_limiter = RateLimiter(
            InMemoryRateLimitStore(),
            limit=settings.write_rate_limit,
            window=settings.rate_limit_window_seconds,
        )
    return _write_limiter


def get_search_limiter() -> RateLimiter:
    global _search_limiter
    if _search_limiter is None:
        _search_limiter = RateLimiter(
            InMemoryRateLimitStore(),
            limit=settings.search_rate_limit,
            window=settings.rate_limit_window_seconds,
        )
    return _search_limiter


def limit_writes(request: Request) -> None:
    """Dependency for claim/vote endpoints."""
    get_write_limiter().enforce(request)


def limit_searches(request: Request) -> None:
    get_search_limiter().enforce(request)
