"""Domain models package."""

from tradefolio.domain.models.enums import TradeDirection, SourceName, DerivativeKind
from tradefolio.domain.models.trade import Trade, InstrumentMeta
from tradefolio.domain.models.quote import Quote, SearchResult, MarketIndex
from tradefolio.domain.models.cache import CacheEntry, RateLimitWindow

__all__ = [
    "TradeDirection",
    "SourceName",
    "DerivativeKind",
    "Trade",
    "InstrumentMeta",
    "Quote",
    "SearchResult",
    "MarketIndex",
    "CacheEntry",
    "RateLimitWindow",
]
