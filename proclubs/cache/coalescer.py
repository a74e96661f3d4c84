"""
Request coalescing for EA calls.

EA rate limits aggressively, so concurrent requests for the same URL share
a single upstream call.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger("cache.coalescer")


@dataclass
class _Pending:
    done: threading.Event = field(default_factory=threading.Event)
    result: Any = None
    error: Optional[BaseException] = None
    waiters: int = 0


class RequestCoalescer:
    """
    The first caller for a key runs fetch_fn; callers arriving while it is
    in flight block on the same Event and receive the same result or error.
    """

    def __init__(self, timeout: float = 30.0):
        self._pending: Dict[str, _Pending] = {}
        self._lock = threading.Lock()
        self._timeout = timeout

    def get_or_fetch(self, key: str, fetch_fn: Callable[[], Any]) -> Any:
        """
        Raises:
            TimeoutError: waiting on another caller's fetch took too long
            Exception: whatever fetch_fn raised
        """
        with self._lock:
            pending = self._pending.get(key)
            leader = pending is None
            if leader:
                pending = _Pending()
                self._pending[key] = pending
            else:
                pending.waiters += 1

        if leader:
            try:
                pending.result = fetch_fn()
            except Exception as e:
                pending.error = e
                logger.warning(f"Upstream fetch failed for {key}: {e}")
            finally:
                pending.done.set()
                with self._lock:
                    self._pending.pop(key, None)
        else:
            logger.debug(f"Joining in-flight fetch for {key} (waiters: {pending.waiters})")
            if not pending.done.wait(timeout=self._timeout):
                raise TimeoutError(f"Fetch for {key} timed out after {self._timeout}s")

        if pending.error is not None:
            raise pending.error
        return pending.result

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "active_requests": len(self._pending),
                "active_keys": list(self._pending),
            }
