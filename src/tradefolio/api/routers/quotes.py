"""Quote, search and market index endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from tradefolio.api.deps import get_quote_resolver
from tradefolio.api.schemas import (
    BatchQuoteRequest,
    BatchQuoteResponse,
    CacheStatsResponse,
    MarketIndexResponse,
    QuoteResponse,
    QuoteStatusResponse,
    RateLimitStatusResponse,
    SearchResponse,
    SearchResultResponse,
)
from tradefolio.core.exceptions import QuoteUnavailableError
from tradefolio.services import QuoteResolver

router = APIRouter(prefix="/quotes", tags=["quotes"])


@router.get("/search", response_model=SearchResponse)
async def search_instruments(
    query: str = Query(..., description="ISIN, ticker, name or crypto symbol"),
    source: Optional[str] = Query(None, description="Source to search (default: highest priority)"),
    resolver: QuoteResolver = Depends(get_quote_resolver),
) -> SearchResponse:
    """Search one source; priced hits first, then by relevance."""
    results = await resolver.resolve_search(query, source=source)
    default = resolver.default_search_source
    return SearchResponse(
        query=query.strip(),
        source=source.strip().lower() if source else (default.name if default else None),
        results=[SearchResultResponse.model_validate(r) for r in results],
        count=len(results),
    )


@router.get("/indices", response_model=list[MarketIndexResponse])
async def get_market_indices(
    force: bool = Query(False, description="Bypass the cache"),
    resolver: QuoteResolver = Depends(get_quote_resolver),
) -> list[MarketIndexResponse]:
    """Get market index levels for the dashboard."""
    indices = await resolver.resolve_indices(force=force)
    return [MarketIndexResponse.model_validate(i) for i in indices]


@router.get("/status", response_model=QuoteStatusResponse)
def get_quote_status(
    resolver: QuoteResolver = Depends(get_quote_resolver),
) -> QuoteStatusResponse:
    """Cache usage and remaining rate-limit budget per source."""
    stats = resolver.cache_stats()
    return QuoteStatusResponse(
        cache=CacheStatsResponse(
            size=stats.size,
            max_size=stats.max_size,
            hits=stats.hits,
            misses=stats.misses,
            hit_rate=stats.hit_rate,
        ),
        rate_limits=[
            RateLimitStatusResponse.model_validate(s) for s in resolver.rate_limit_status()
        ],
    )


@router.post("/batch", response_model=BatchQuoteResponse)
async def resolve_batch(
    data: BatchQuoteRequest,
    resolver: QuoteResolver = Depends(get_quote_resolver),
) -> BatchQuoteResponse:
    """Resolve many identifiers at once; unresolved ones are listed as missing."""
    quotes = await resolver.resolve_batch(data.identifiers, preferred=data.preferred, force=data.force)
    return BatchQuoteResponse(
        quotes={k: QuoteResponse.model_validate(q) for k, q in quotes.items()},
        missing=[i for i in dict.fromkeys(data.identifiers) if i not in quotes],
    )


@router.get("/{identifier}", response_model=QuoteResponse)
async def get_quote(
    identifier: str,
    resolver: QuoteResolver = Depends(get_quote_resolver),
) -> QuoteResponse:
    """Resolve a single identifier (ISIN, ticker or crypto symbol)."""
    quote = await resolver.resolve_quote(identifier)
    if quote is None:
        raise QuoteUnavailableError(identifier.strip().upper())
    return QuoteResponse.model_validate(quote)
