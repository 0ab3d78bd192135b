"""Finnhub quote source (global equities, API key required)."""

import asyncio
import logging
from typing import Any, Optional

import httpx

from tradefolio.core.exceptions import QuoteSourceError
from tradefolio.core.timezone import from_timestamp, now_local
from tradefolio.domain.models import Quote, SearchResult, SourceName
from tradefolio.providers.identifiers import (
    currency_for_symbol,
    finnhub_supports,
    is_isin,
    normalize_identifier,
    to_price,
)
from tradefolio.providers.quote_source import HttpQuoteSource

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://finnhub.io/api/v1"
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_SECONDS = 1.0
SEARCH_RESULT_LIMIT = 10


class FinnhubSource(HttpQuoteSource):
    """
    Finnhub /quote and /search endpoints.

    ISINs are resolved to a symbol through /search; the mapping is kept for
    the lifetime of the source. Timeouts, 429 and 5xx are retried with a
    linearly growing delay.
    """

    name = SourceName.FINNHUB.value
    priority = 3

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: Optional[str],
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 10.0,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS,
    ):
        super().__init__(client, base_url, timeout_seconds)
        self._api_key = api_key
        self._max_retries = max(1, max_retries)
        self._retry_delay = retry_delay_seconds
        self._isin_symbols: dict[str, str] = {}
        if not api_key:
            logger.info("Finnhub API key not configured; source disabled")

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    def supports(self, identifier: str) -> bool:
        return self.enabled and finnhub_supports(identifier)

    async def _request(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        """GET with the API token, retrying retryable failures."""
        params = {**(params or {}), "token": self._api_key}
        attempt = 1
        while True:
            try:
                return await self._get_json(path, params=params)
            except QuoteSourceError as exc:
                if not exc.retryable or attempt >= self._max_retries:
                    raise
                logger.warning(
                    "Finnhub %s (%s), retrying (%d/%d)",
                    path,
                    exc.code,
                    attempt,
                    self._max_retries,
                )
                await asyncio.sleep(self._retry_delay * attempt)
                attempt += 1

    async def symbol_for_isin(self, isin: str) -> Optional[str]:
        isin = normalize_identifier(isin)
        if isin in self._isin_symbols:
            return self._isin_symbols[isin]
        data = await self._request("/search", {"q": isin})
        for item in (data or {}).get("result") or []:
            symbol = item.get("symbol")
            if symbol:
                self._isin_symbols[isin] = symbol
                return symbol
        return None

    async def fetch_quote(self, identifier: str) -> Optional[Quote]:
        identifier = normalize_identifier(identifier)
        isin = None
        symbol = identifier
        if is_isin(identifier):
            isin = identifier
            symbol = await self.symbol_for_isin(identifier)
            if symbol is None:
                logger.info("No Finnhub symbol for ISIN %s", identifier)
                return None

        data = await self._request("/quote", {"symbol": symbol})
        price = to_price((data or {}).get("c"))
        if price is None or price <= 0:
            # c == 0 is Finnhub's way of saying "no data"
            logger.debug("No Finnhub data for %s", symbol)
            return None

        timestamp = data.get("t")
        return Quote(
            identifier=identifier,
            price=price,
            currency=currency_for_symbol(symbol),
            as_of=from_timestamp(timestamp) if timestamp else now_local(),
            source=self.name,
            symbol=symbol,
            isin=isin,
            high=to_price(data.get("h")),
            low=to_price(data.get("l")),
            previous_close=to_price(data.get("pc")),
        )

    async def search(self, query: str) -> list[SearchResult]:
        if not self.enabled:
            return []
        query = query.strip()
        query_isin = normalize_identifier(query) if is_isin(query) else None
        data = await self._request("/search", {"q": query})
        results = []
        for index, item in enumerate(((data or {}).get("result") or [])[:SEARCH_RESULT_LIMIT]):
            symbol = item.get("symbol")
            if not symbol:
                continue
            results.append(
                SearchResult(
                    identifier=query_isin or symbol,
                    symbol=symbol,
                    name=item.get("description") or symbol,
                    exchange=item.get("type") or "Stock",
                    currency=currency_for_symbol(symbol),
                    relevance=70 - index * 2,
                    source=self.name,
                    isin=query_isin,
                )
            )
        return results

