"""Service layer - business logic orchestration."""

from tradefolio.services.portfolio_engine import PortfolioEngine
from tradefolio.services.quote_cache import QuoteCache, RateLimiter, ResolverContext
from tradefolio.services.quote_resolver import (
    QuoteResolver,
    deduplicate_results,
    rank_results,
)

__all__ = [
    "PortfolioEngine",
    "QuoteCache",
    "RateLimiter",
    "ResolverContext",
    "QuoteResolver",
    "deduplicate_results",
    "rank_results",
]
