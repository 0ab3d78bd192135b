"""Coingecko quote source (cryptocurrencies, no API key)."""

import logging
from typing import Optional

import httpx

from tradefolio.core.timezone import now_local
from tradefolio.domain.models import Quote, SearchResult, SourceName
from tradefolio.providers.identifiers import (
    coingecko_id,
    extract_crypto_symbol,
    is_crypto_symbol,
    normalize_identifier,
    to_price,
)
from tradefolio.providers.quote_source import HttpQuoteSource

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.coingecko.com/api/v3"
SEARCH_RESULT_LIMIT = 10
EXCHANGE_LABEL = "Cryptocurrency"


class CoingeckoSource(HttpQuoteSource):
    """Coingecko simple/price and search endpoints, priced in one fiat currency."""

    name = SourceName.COINGECKO.value
    priority = 4

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 10.0,
        batch_timeout_seconds: float = 15.0,
        currency: str = "EUR",
    ):
        super().__init__(client, base_url, timeout_seconds)
        self._batch_timeout = batch_timeout_seconds
        self._currency = currency.upper()

    def supports(self, identifier: str) -> bool:
        return is_crypto_symbol(identifier)

    def _headers(self) -> dict[str, str]:
        return {"Accept": "application/json"}

    async def _simple_prices(self, coin_ids: list[str], timeout: float) -> dict:
        data = await self._get_json(
            "/simple/price",
            params={"ids": ",".join(coin_ids), "vs_currencies": self._currency.lower()},
            timeout=timeout,
        )
        return data if isinstance(data, dict) else {}

    def _quote(self, identifier: str, coin_id: str, data: dict) -> Optional[Quote]:
        price = to_price((data.get(coin_id) or {}).get(self._currency.lower()))
        if price is None or price <= 0:
            return None
        return Quote(
            identifier=identifier,
            price=price,
            currency=self._currency,
            as_of=now_local(),
            source=self.name,
            symbol=extract_crypto_symbol(identifier),
            name=coin_id,
        )

    async def fetch_quote(self, identifier: str) -> Optional[Quote]:
        identifier = normalize_identifier(identifier)
        coin_id = coingecko_id(identifier)
        if coin_id is None:
            logger.debug("Unknown crypto symbol: %s", identifier)
            return None
        data = await self._simple_prices([coin_id], self._timeout)
        return self._quote(identifier, coin_id, data)

    async def fetch_batch(self, identifiers: list[str]) -> dict[str, Quote]:
        """One simple/price call for every recognised identifier."""
        ids_by_identifier = {}
        for identifier in identifiers:
            coin_id = coingecko_id(identifier)
            if coin_id:
                ids_by_identifier[identifier] = coin_id
        if not ids_by_identifier:
            return {}

        coin_ids = list(dict.fromkeys(ids_by_identifier.values()))
        data = await self._simple_prices(coin_ids, self._batch_timeout)

        result = {}
        for identifier, coin_id in ids_by_identifier.items():
            quote = self._quote(identifier, coin_id, data)
            if quote is not None:
                result[identifier] = quote
        return result

    async def search(self, query: str) -> list[SearchResult]:
        data = await self._get_json("/search", params={"query": query.strip()})
        coins = ((data or {}).get("coins") or [])[:SEARCH_RESULT_LIMIT]
        results = []
        for index, coin in enumerate(coins):
            symbol = (coin.get("symbol") or "").upper()
            if not symbol:
                continue
            results.append(
                SearchResult(
                    identifier=symbol,
                    symbol=symbol,
                    name=coin.get("name") or symbol,
                    exchange=EXCHANGE_LABEL,
                    currency=self._currency,
                    relevance=100 - index * 5,
                    source=self.name,
                )
            )
        return results
