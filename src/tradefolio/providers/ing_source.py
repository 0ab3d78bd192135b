"""ING Wertpapiere quote source (European ISINs, derivatives and certificates)."""

import logging
from typing import Any, Optional

import httpx

from tradefolio.core.exceptions import QuoteSourceError
from tradefolio.core.timezone import now_local
from tradefolio.domain.models import Quote, SearchResult, SourceName
from tradefolio.providers.identifiers import (
    DerivativeInfo,
    extract_best_price,
    extract_derivative_info,
    ing_supports,
    is_isin,
    normalize_identifier,
    to_price,
)
from tradefolio.providers.quote_source import HttpQuoteSource, USER_AGENT

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://component-api.wertpapiere.ing.de/api/v1"
DEFAULT_BATCH_LIMIT = 5
SEARCH_PAGE_SIZE = 20
EXCHANGE_LABEL = "ING Wertpapiere"


class IngSource(HttpQuoteSource):
    """
    ING instrument-header API.

    No API key and no batch endpoint: batches are fetched one ISIN at a
    time and capped at batch_limit identifiers per call.
    """

    name = SourceName.ING.value
    priority = 2

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 10.0,
        batch_limit: int = DEFAULT_BATCH_LIMIT,
        currency: str = "EUR",
    ):
        super().__init__(client, base_url, timeout_seconds)
        self._batch_limit = batch_limit
        self._currency = currency

    def _headers(self) -> dict[str, str]:
        return {
            "User-Agent": USER_AGENT,
            "Origin": "https://wertpapiere.ing.de",
            "Referer": "https://wertpapiere.ing.de/",
            "Accept": "application/json",
        }

    def supports(self, identifier: str) -> bool:
        return ing_supports(identifier)

    async def fetch_instrument_header(self, isin: str) -> Optional[dict[str, Any]]:
        """Raw instrument header, or None when ING has no price fields for it."""
        isin = normalize_identifier(isin)
        data = await self._get_json(f"/components/instrumentheader/{isin}")
        if not isinstance(data, dict):
            return None
        if not (data.get("price") or data.get("bid") or data.get("ask")):
            logger.debug("No price data from ING for %s", isin)
            return None
        return data

    async def fetch_quote(self, identifier: str) -> Optional[Quote]:
        isin = normalize_identifier(identifier)
        data = await self.fetch_instrument_header(isin)
        if data is None:
            return None
        price = extract_best_price(data.get("price"), data.get("bid"), data.get("ask"))
        if price is None:
            return None
        return Quote(
            identifier=isin,
            price=price,
            currency=data.get("currency") or self._currency,
            as_of=now_local(),
            source=self.name,
            isin=isin,
            symbol=data.get("wkn"),
            name=data.get("name"),
            bid=to_price(data.get("bid")),
            ask=to_price(data.get("ask")),
        )

    async def fetch_batch(self, identifiers: list[str]) -> dict[str, Quote]:
        if len(identifiers) > self._batch_limit:
            logger.info(
                "ING batch limited to %d of %d identifiers", self._batch_limit, len(identifiers)
            )
        return await super().fetch_batch(identifiers[: self._batch_limit])

    async def fetch_derivative_info(self, isin: str) -> Optional[DerivativeInfo]:
        """Derivative attributes (type, leverage, knock-out) for an ISIN."""
        data = await self.fetch_instrument_header(isin)
        if data is None:
            return None
        return extract_derivative_info(data)

    async def search(self, query: str) -> list[SearchResult]:
        query = query.strip()
        if is_isin(query):
            return await self._search_isin(normalize_identifier(query))

        data = await self._get_json(
            "/components/search/stocks",
            params={"searchTerm": query, "pageNumber": 0, "pageSize": SEARCH_PAGE_SIZE},
        )
        items = (data or {}).get("resultList") or []
        results = []
        for index, item in enumerate(items):
            isin = item.get("isin") or None
            symbol = item.get("wkn") or isin
            if not symbol:
                continue
            results.append(
                SearchResult(
                    identifier=isin or symbol,
                    symbol=symbol,
                    name=item.get("name") or symbol,
                    exchange=EXCHANGE_LABEL,
                    currency=item.get("currency") or self._currency,
                    relevance=90 - index * 3,
                    source=self.name,
                    isin=isin,
                    current_price=extract_best_price(item.get("price")),
                )
            )
        return results

    async def _search_isin(self, isin: str) -> list[SearchResult]:
        try:
            quote = await self.fetch_quote(isin)
        except QuoteSourceError as exc:
            logger.info("ING ISIN lookup for %s failed: %s", isin, exc)
            return []
        if quote is None:
            return []
        return [
            SearchResult(
                identifier=isin,
                symbol=quote.symbol or isin,
                name=quote.name or "Wertpapier",
                exchange=EXCHANGE_LABEL,
                currency=quote.currency,
                relevance=95,
                source=self.name,
                isin=isin,
                current_price=quote.price,
            )
        ]
