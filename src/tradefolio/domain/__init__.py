"""Domain layer - pure business models with no external dependencies."""

from tradefolio.domain.models import (
    TradeDirection,
    SourceName,
    Trade,
    InstrumentMeta,
    Quote,
    SearchResult,
    MarketIndex,
)

__all__ = [
    "TradeDirection",
    "SourceName",
    "Trade",
    "InstrumentMeta",
    "Quote",
    "SearchResult",
    "MarketIndex",
]
