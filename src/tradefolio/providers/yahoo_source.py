"""
Yahoo Finance quote source via yfinance.

yfinance is blocking, so every call runs in a worker thread bounded by
asyncio.wait_for. Per-symbol failures degrade to "no quote" rather than
failing the whole batch.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Any, Optional

from tradefolio.core.exceptions import QuoteSourceError
from tradefolio.core.timezone import now_local
from tradefolio.domain.models import MarketIndex, Quote, SearchResult, SourceName
from tradefolio.providers.identifiers import (
    currency_for_symbol,
    is_isin,
    isin_to_yahoo_symbol,
    normalize_identifier,
    to_price,
    yahoo_supports,
)
from tradefolio.providers.quote_source import BaseQuoteSource

logger = logging.getLogger(__name__)


# Lazy import so tests can patch before import
def _get_yf():
    import yfinance as yf
    return yf


DEFAULT_FETCH_TIMEOUT_SECONDS = 10
SEARCH_RESULT_LIMIT = 10

MARKET_INDICES: list[tuple[str, str]] = [
    ("^GSPC", "S&P 500"),
    ("URTH", "MSCI World"),
    ("^NDX", "Nasdaq 100"),
    ("^DJI", "Dow Jones"),
    ("^GDAXI", "DAX 40"),
    ("^STOXX50E", "Euro Stoxx 50"),
    ("^FTSE", "FTSE 100"),
    ("^N225", "Nikkei 225"),
    ("^HSI", "Hang Seng"),
    ("^FCHI", "CAC 40"),
    ("^SSMI", "Swiss Market"),
    ("^AXJO", "ASX 200"),
    ("000001.SS", "Shanghai Comp"),
    ("^KS11", "KOSPI"),
    ("^RUT", "Russell 2000"),
    ("FTSEMIB.MI", "FTSE MIB"),
    ("^GSPTSE", "TSX Composite"),
]


def _info_for(symbol: str, tickers_obj) -> Optional[dict]:
    """Return the yfinance info dict for one symbol of a Tickers object, or None."""
    try:
        ticker = tickers_obj.tickers.get(symbol)
        if ticker is None:
            return None
        info = ticker.info
        return info if isinstance(info, dict) else None
    except Exception as exc:
        # yfinance raises a grab bag of errors for delisted/unknown symbols
        logger.debug("yfinance info failed for %s: %s", symbol, exc)
        return None


def _price_from_info(info: dict) -> Optional[Decimal]:
    # Price: currentPrice preferred, then regularMarketPrice
    price = info.get("currentPrice")
    if price is None:
        price = info.get("regularMarketPrice")
    return to_price(price)


def _fetch_infos_impl(symbols: list[str]) -> dict[str, Optional[dict]]:
    """Call yfinance and return dict symbol -> info (or None). No cache."""
    if not symbols:
        return {}
    yf = _get_yf()
    tickers = yf.Tickers(" ".join(symbols))
    return {sym: _info_for(sym, tickers) for sym in symbols}


def _search_impl(query: str, limit: int) -> list[dict]:
    yf = _get_yf()
    search = yf.Search(query, max_results=limit)
    quotes = getattr(search, "quotes", None) or []
    return [q for q in quotes if isinstance(q, dict)]


class YahooSource(BaseQuoteSource):
    """Yahoo Finance through yfinance; priority 1 for listed equities."""

    name = SourceName.YAHOO.value
    priority = 1

    def __init__(self, timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS):
        self._timeout = timeout_seconds

    def supports(self, identifier: str) -> bool:
        return yahoo_supports(identifier)

    def yahoo_symbol(self, identifier: str) -> Optional[str]:
        identifier = normalize_identifier(identifier)
        if is_isin(identifier):
            return isin_to_yahoo_symbol(identifier)
        return identifier

    async def _run(self, func, *args) -> Any:
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise QuoteSourceError(
                f"yfinance timed out after {self._timeout}s",
                source=self.name,
                code="TIMEOUT",
                retryable=True,
            ) from exc

    def _to_quote(self, identifier: str, symbol: str, info: Optional[dict]) -> Optional[Quote]:
        if not info:
            return None
        price = _price_from_info(info)
        if price is None or price <= 0:
            return None
        name = (info.get("longName") or info.get("shortName") or "").strip() or symbol
        return Quote(
            identifier=identifier,
            price=price,
            currency=info.get("currency") or currency_for_symbol(symbol),
            as_of=now_local(),
            source=self.name,
            symbol=symbol,
            isin=identifier if is_isin(identifier) else None,
            name=name,
            bid=to_price(info.get("bid")),
            ask=to_price(info.get("ask")),
            high=to_price(info.get("dayHigh")),
            low=to_price(info.get("dayLow")),
            previous_close=to_price(
                info.get("previousClose") or info.get("regularMarketPreviousClose")
            ),
        )

    async def fetch_quote(self, identifier: str) -> Optional[Quote]:
        identifier = normalize_identifier(identifier)
        symbol = self.yahoo_symbol(identifier)
        if symbol is None:
            logger.debug("Cannot map %s to a Yahoo symbol", identifier)
            return None
        infos = await self._run(_fetch_infos_impl, [symbol])
        return self._to_quote(identifier, symbol, infos.get(symbol))

    async def fetch_batch(self, identifiers: list[str]) -> dict[str, Quote]:
        """One yf.Tickers call for the whole group."""
        symbols: dict[str, str] = {}
        for identifier in identifiers:
            symbol = self.yahoo_symbol(identifier)
            if symbol is not None:
                symbols[normalize_identifier(identifier)] = symbol
        if not symbols:
            return {}

        infos = await self._run(_fetch_infos_impl, list(dict.fromkeys(symbols.values())))
        result = {}
        for identifier, symbol in symbols.items():
            quote = self._to_quote(identifier, symbol, infos.get(symbol))
            if quote is not None:
                result[identifier] = quote
        return result

    async def search(self, query: str) -> list[SearchResult]:
        query = query.strip()
        query_isin = normalize_identifier(query) if is_isin(query) else None
        hits = await self._run(_search_impl, query, SEARCH_RESULT_LIMIT)

        results = []
        for index, hit in enumerate(hits[:SEARCH_RESULT_LIMIT]):
            symbol = hit.get("symbol")
            if not symbol:
                continue
            results.append(
                SearchResult(
                    identifier=query_isin or symbol,
                    symbol=symbol,
                    name=hit.get("longname") or hit.get("shortname") or symbol,
                    exchange=hit.get("exchDisp") or hit.get("exchange") or "Yahoo",
                    currency=currency_for_symbol(symbol),
                    relevance=90 if query_isin else 80 - index * 3,
                    source=self.name,
                    isin=query_isin,
                )
            )
        return results

    async def fetch_indices(self) -> list[MarketIndex]:
        """Level and daily change for the dashboard's market indices."""
        symbols = [symbol for symbol, _ in MARKET_INDICES]
        infos = await self._run(_fetch_infos_impl, symbols)

        indices = []
        for symbol, label in MARKET_INDICES:
            info = infos.get(symbol)
            price = to_price(info.get("regularMarketPrice")) if info else None
            if price is None or price <= 0:
                logger.info("No index level for %s (%s)", label, symbol)
                continue
            previous = to_price(
                info.get("regularMarketPreviousClose") or info.get("previousClose")
            )
            change = price - previous if previous else Decimal("0")
            change_pct = info.get("regularMarketChangePercent")
            if change_pct is not None:
                change_pct = Decimal(str(change_pct)).quantize(Decimal("0.01"))
            elif previous:
                change_pct = (change / previous * 100).quantize(Decimal("0.01"))
            else:
                change_pct = Decimal("0")
            indices.append(
                MarketIndex(
                    symbol=symbol,
                    name=label,
                    price=price,
                    change=change,
                    change_percent=change_pct,
                    currency=info.get("currency") or "USD",
                    source=self.name,
                )
            )
        return indices
