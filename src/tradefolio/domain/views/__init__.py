"""View models for service outputs."""

from tradefolio.domain.views.portfolio import (
    Position,
    PositionWithPrice,
    TotalsOptions,
    PortfolioTotals,
    LotCloseResult,
)
from tradefolio.domain.views.quotes import CacheStats, RateLimitStatus

__all__ = [
    "Position",
    "PositionWithPrice",
    "TotalsOptions",
    "PortfolioTotals",
    "LotCloseResult",
    "CacheStats",
    "RateLimitStatus",
]
