"""
In-process quote cache and per-source rate limiting.

QuoteCache is a bounded LRU store with an absolute TTL plus per-read
freshness windows. Expired entries are kept (not deleted on read) so that
get_stale can serve them when every upstream source fails.
"""

import logging
import time
from collections import OrderedDict
from typing import Any, Callable, Optional

from tradefolio.config.settings import Settings
from tradefolio.domain.models import CacheEntry, RateLimitWindow
from tradefolio.domain.views import CacheStats, RateLimitStatus

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 500
DEFAULT_TTL_SECONDS = 300
DEFAULT_WINDOW_SECONDS = 60

Clock = Callable[[], float]


class QuoteCache:
    """
    LRU key/value cache with freshness checks and stale reads.

    Keys are plain strings ("quote:<ID>", "search:<source>:<QUERY>",
    "indices:all"). Every successful read moves the entry to the
    most-recently-used end; inserting beyond max_entries evicts the
    least-recently-used entry.
    """

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Clock = time.monotonic,
    ):
        self._max_entries = max_entries
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._hits = 0
        self._misses = 0

    def get(self, key: str, max_age: Optional[float] = None) -> Optional[Any]:
        """
        Return the cached value if it is fresh, else None.

        Fresh means younger than both max_age (when given) and the cache TTL.
        A stale entry is left in place for get_stale.
        """
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None

        limit = self._ttl if max_age is None else min(max_age, self._ttl)
        if not entry.is_fresh(self._clock(), limit):
            self._misses += 1
            return None

        self._entries.move_to_end(key)
        self._hits += 1
        return entry.value

    def get_stale(self, key: str) -> Optional[Any]:
        """Return the cached value regardless of age, else None."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        self._entries.move_to_end(key)
        logger.warning(
            "Serving stale cache entry %s (age %.0fs, source %s)",
            key,
            entry.age(self._clock()),
            entry.source,
        )
        return entry.value

    def get_entry(self, key: str) -> Optional[CacheEntry]:
        """Return the raw entry without touching recency or counters."""
        return self._entries.get(key)

    def set(self, key: str, value: Any, source: Optional[str] = None) -> None:
        """Insert or replace a value, stamped with the current clock reading."""
        self._entries[key] = CacheEntry(value=value, captured_at=self._clock(), source=source)
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted cache entry %s", evicted)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()
        self._hits = 0
        self._misses = 0

    def stats(self) -> CacheStats:
        return CacheStats(
            size=len(self._entries),
            max_size=self._max_entries,
            hits=self._hits,
            misses=self._misses,
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries


class RateLimiter:
    """
    Fixed-window request counter per source.

    Sources without a configured limit are always allowed.
    """

    def __init__(
        self,
        limits: dict[str, int],
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Clock = time.monotonic,
    ):
        self._limits = dict(limits)
        self._window = window_seconds
        self._clock = clock
        self._windows: dict[str, RateLimitWindow] = {}

    def check(self, source: str) -> bool:
        """Consume one request for source; return False if its window is exhausted."""
        max_requests = self._limits.get(source)
        if max_requests is None:
            return True

        now = self._clock()
        window = self._windows.get(source)
        if window is None:
            window = RateLimitWindow(max_requests=max_requests, window_seconds=self._window)
            window.restart(now)
            self._windows[source] = window
        elif window.is_expired(now):
            window.restart(now)

        if window.requests >= window.max_requests:
            logger.warning(
                "Rate limit reached for %s (%d/%d), resets in %.0fs",
                source,
                window.requests,
                window.max_requests,
                window.reset_at - now,
            )
            return False

        window.requests += 1
        return True

    def status(self, source: str) -> RateLimitStatus:
        """Remaining requests and seconds until the window resets."""
        max_requests = self._limits.get(source)
        if max_requests is None:
            return RateLimitStatus(source=source, available=0, reset_in=0.0, limited=False)

        now = self._clock()
        window = self._windows.get(source)
        if window is None or window.is_expired(now):
            return RateLimitStatus(source=source, available=max_requests, reset_in=0.0)
        return RateLimitStatus(
            source=source,
            available=window.available,
            reset_in=max(0.0, window.reset_at - now),
        )

    def sources(self) -> list[str]:
        return sorted(self._limits)

    def reset(self) -> None:
        self._windows.clear()


class ResolverContext:
    """
    Cache and rate limiter shared by every resolver call in a process.

    Built once (normally by AppContext) and injected; nothing is persisted
    across restarts.
    """

    def __init__(self, cache: QuoteCache, rate_limiter: RateLimiter):
        self.cache = cache
        self.rate_limiter = rate_limiter

    @classmethod
    def from_settings(cls, settings: Settings, clock: Clock = time.monotonic) -> "ResolverContext":
        return cls(
            cache=QuoteCache(
                max_entries=settings.quote_cache_max_entries,
                ttl_seconds=settings.quote_cache_ttl_seconds,
                clock=clock,
            ),
            rate_limiter=RateLimiter(
                limits=settings.rate_limits_per_minute,
                window_seconds=settings.rate_limit_window_seconds,
                clock=clock,
            ),
        )

    def reset(self) -> None:
        self.cache.clear()
        self.rate_limiter.reset()
