"""In-process cache and rate-limit records."""

from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class CacheEntry:
    """
    A cached value stamped with the clock reading at capture time.

    Staleness never invalidates the value: an old entry stays readable
    through QuoteCache.get_stale until the LRU bound evicts it.
    """

    value: Any
    captured_at: float
    source: Optional[str] = None

    def age(self, now: float) -> float:
        return now - self.captured_at

    def is_fresh(self, now: float, max_age: float) -> bool:
        return self.age(now) <= max_age


@dataclass
class RateLimitWindow:
    """Fixed request window for one source."""

    max_requests: int
    window_seconds: float
    requests: int = 0
    reset_at: float = 0.0

    def is_expired(self, now: float) -> bool:
        return now > self.reset_at

    def restart(self, now: float) -> None:
        self.requests = 0
        self.reset_at = now + self.window_seconds

    @property
    def available(self) -> int:
        return max(0, self.max_requests - self.requests)
