"""TTL cache for dependency check outcomes, shared by concurrent checks.

A miss registers a ``Future`` for its key before fetching; concurrent
requests for the same key wait on that future instead of fetching again.
The lock only guards the dictionaries, never a fetch, so unrelated keys
proceed independently.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass

from cascade.core.config import DEFAULT_CACHE_TTL_SECONDS
from cascade.core.result import Err, Ok, Result
from cascade.services.checker.model import CacheKey, CheckError, CheckSource

__all__ = ["CacheStats", "CheckCache"]

type Fetch = Callable[[], Result[bool, CheckError]]


@dataclass(frozen=True, slots=True)
class CacheStats:
    hits: int
    misses: int
    size: int

    @property
    def total(self) -> int:
        return self.hits + self.misses


@dataclass(frozen=True, slots=True)
class _Entry:
    up_to_date: bool
    expires_at: float


class CheckCache:
    def __init__(
        self,
        *,
        ttl: float = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[CacheKey, _Entry] = {}
        self._inflight: dict[CacheKey, Future[Result[bool, CheckError]]] = {}
        self._hits = 0
        self._misses = 0

    def get_or_fetch(
        self,
        key: CacheKey,
        fetch: Fetch,
        *,
        timeout: float | None = None,
    ) -> tuple[Result[bool, CheckError], CheckSource]:
        """Return the cached outcome for ``key`` or compute it exactly once.

        Failed fetches are handed to every waiter but never stored, so the
        next request after an error fetches again.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                if self._clock() < entry.expires_at:
                    self._hits += 1
                    return Ok(entry.up_to_date), "cache"
                del self._entries[key]

            future = self._inflight.get(key)
            owner = future is None
            if future is None:
                future = Future()
                self._inflight[key] = future
                self._misses += 1
            else:
                # Served by another caller's fetch.
                self._hits += 1

        if not owner:
            try:
                return future.result(timeout=timeout), "cache"
            except FutureTimeoutError:
                return Err(CheckError(kind="timeout", message="timed out waiting for shared check")), "cache"

        try:
            result = fetch()
        except BaseException as e:
            with self._lock:
                self._inflight.pop(key, None)
            future.set_exception(e)
            raise

        with self._lock:
            if isinstance(result, Ok):
                self._entries[key] = _Entry(result.value, self._clock() + self._ttl)
            self._inflight.pop(key, None)
        future.set_result(result)
        return result, "fresh"

    def prune(self) -> int:
        """Drop expired entries; return how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.expires_at <= now]
            for k in expired:
                del self._entries[k]
        return len(expired)

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(hits=self._hits, misses=self._misses, size=len(self._entries))
