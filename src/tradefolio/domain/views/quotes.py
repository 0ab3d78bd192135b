"""View models for cache and rate-limit observability."""

from dataclasses import dataclass


@dataclass
class CacheStats:
    """Snapshot of quote cache usage."""

    size: int
    max_size: int
    hits: int = 0
    misses: int = 0

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0


@dataclass
class RateLimitStatus:
    """Remaining budget for one source in its current window."""

    source: str
    available: int
    reset_in: float
    limited: bool = True
