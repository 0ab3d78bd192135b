"""Pydantic schemas for API request/response."""

from tradefolio.api.schemas.quotes import (
    QuoteResponse,
    BatchQuoteRequest,
    BatchQuoteResponse,
    SearchResultResponse,
    SearchResponse,
    MarketIndexResponse,
    RateLimitStatusResponse,
    CacheStatsResponse,
    QuoteStatusResponse,
)
from tradefolio.api.schemas.portfolio import (
    TradeRequest,
    InstrumentRequest,
    TotalsOptionsRequest,
    PortfolioRequest,
    PositionResponse,
    TotalsResponse,
    PositionsResponse,
)

__all__ = [
    "QuoteResponse",
    "BatchQuoteRequest",
    "BatchQuoteResponse",
    "SearchResultResponse",
    "SearchResponse",
    "MarketIndexResponse",
    "RateLimitStatusResponse",
    "CacheStatsResponse",
    "QuoteStatusResponse",
    "TradeRequest",
    "InstrumentRequest",
    "TotalsOptionsRequest",
    "PortfolioRequest",
    "PositionResponse",
    "TotalsResponse",
    "PositionsResponse",
]
