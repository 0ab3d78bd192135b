"""Pydantic schemas for quote endpoints."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class QuoteResponse(BaseModel):
    """Response schema for a single quote."""

    model_config = {"from_attributes": True}

    identifier: str
    price: Decimal
    currency: str
    as_of: datetime
    source: str
    symbol: Optional[str] = None
    isin: Optional[str] = None
    name: Optional[str] = None
    previous_close: Optional[Decimal] = None


class BatchQuoteRequest(BaseModel):
    """Request schema for batch price resolution."""

    identifiers: list[str] = Field(..., min_length=1, max_length=200)
    preferred: dict[str, str] = Field(
        default_factory=dict,
        description="identifier -> source that priced it before",
    )
    force: bool = Field(default=False, description="Bypass the cache")

    @field_validator("identifiers")
    @classmethod
    def strip_identifiers(cls, v: list[str]) -> list[str]:
        return [i.strip().upper() for i in v if i and i.strip()]


class BatchQuoteResponse(BaseModel):
    """Response schema for batch price resolution."""

    quotes: dict[str, QuoteResponse]
    missing: list[str]


class SearchResultResponse(BaseModel):
    """Response schema for a single search hit."""

    model_config = {"from_attributes": True}

    identifier: str
    symbol: str
    name: str
    exchange: str
    currency: str
    relevance: int
    source: str
    isin: Optional[str] = None
    current_price: Optional[Decimal] = None


class SearchResponse(BaseModel):
    """Response schema for instrument search."""

    query: str
    source: Optional[str] = None
    results: list[SearchResultResponse]
    count: int


class MarketIndexResponse(BaseModel):
    """Response schema for one market index."""

    model_config = {"from_attributes": True}

    symbol: str
    name: str
    price: Decimal
    change: Decimal
    change_percent: Decimal
    currency: str
    source: str


class RateLimitStatusResponse(BaseModel):
    """Response schema for one source's rate-limit budget."""

    model_config = {"from_attributes": True}

    source: str
    available: int
    reset_in: float
    limited: bool


class CacheStatsResponse(BaseModel):
    """Response schema for cache statistics."""

    size: int
    max_size: int
    hits: int
    misses: int
    hit_rate: float


class QuoteStatusResponse(BaseModel):
    """Response schema for cache and rate-limit status."""

    cache: CacheStatsResponse
    rate_limits: list[RateLimitStatusResponse]
