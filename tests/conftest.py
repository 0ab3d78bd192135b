"""
Pytest configuration and fixtures for tradefolio tests.

This module provides:
- Time helpers for the local timezone and a controllable clock
- Scriptable fake quote sources
- Trade / instrument factory helpers
- Resolver, engine and API client fixtures
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Iterable, Optional

import pytest
from fastapi.testclient import TestClient

from tradefolio.app_context import AppContext, set_app_context
from tradefolio.config.settings import Settings, reset_settings
from tradefolio.core.timezone import LOCAL_TZ
from tradefolio.domain.models import (
    InstrumentMeta,
    MarketIndex,
    Quote,
    SearchResult,
    Trade,
    TradeDirection,
)
from tradefolio.main import app
from tradefolio.providers import BaseQuoteSource, StubQuoteSource
from tradefolio.services import (
    PortfolioEngine,
    QuoteCache,
    QuoteResolver,
    RateLimiter,
    ResolverContext,
)


# =============================================================================
# TIME HELPERS
# =============================================================================


def local_datetime(
    year: int,
    month: int,
    day: int,
    hour: int = 10,
    minute: int = 0,
    second: int = 0,
) -> datetime:
    """Create a localized datetime in the local timezone."""
    return LOCAL_TZ.localize(datetime(year, month, day, hour, minute, second))


class FakeClock:
    """Monotonic clock the test advances by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fixed_now() -> datetime:
    """Fixed 'now' timestamp for deterministic tests."""
    return local_datetime(2024, 6, 15, 14, 30, 0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# QUOTE SOURCE FAKES
# =============================================================================


def make_quote(
    identifier: str,
    price: str,
    source: str = "fake",
    currency: str = "EUR",
) -> Quote:
    return Quote(
        identifier=identifier,
        price=Decimal(price),
        currency=currency,
        as_of=local_datetime(2024, 6, 15, 16, 0, 0),
        source=source,
        symbol=identifier,
    )


def make_result(
    symbol: str,
    relevance: int,
    price: Optional[str] = None,
    source: str = "fake",
    isin: Optional[str] = None,
) -> SearchResult:
    return SearchResult(
        identifier=isin or symbol,
        symbol=symbol,
        name=f"{symbol} Corp",
        exchange="TEST",
        currency="EUR",
        relevance=relevance,
        source=source,
        isin=isin,
        current_price=Decimal(price) if price is not None else None,
    )


class FakeSource(BaseQuoteSource):
    """
    Scriptable quote source.

    Prices are served from a fixed dict; `fail` makes every call raise;
    call lists record what the resolver asked for.
    """

    def __init__(
        self,
        name: str,
        priority: int,
        prices: Optional[dict[str, str]] = None,
        supported: Optional[Iterable[str]] = None,
        fail: bool = False,
        search_results: Optional[list[SearchResult]] = None,
        indices: Optional[list[MarketIndex]] = None,
    ):
        self.name = name
        self.priority = priority
        self._prices = {k.upper(): v for k, v in (prices or {}).items()}
        self._supported = {s.upper() for s in supported} if supported is not None else None
        self.fail = fail
        self._search_results = search_results or []
        self._indices = indices
        self.quote_calls: list[str] = []
        self.batch_calls: list[list[str]] = []
        self.search_calls: list[str] = []

    def supports(self, identifier: str) -> bool:
        if self._supported is None:
            return True
        return identifier.upper() in self._supported

    def set_price(self, identifier: str, price: Optional[str]) -> None:
        if price is None:
            self._prices.pop(identifier.upper(), None)
        else:
            self._prices[identifier.upper()] = price

    async def fetch_quote(self, identifier: str) -> Optional[Quote]:
        self.quote_calls.append(identifier)
        if self.fail:
            raise ConnectionError(f"{self.name} unavailable")
        price = self._prices.get(identifier.upper())
        if price is None:
            return None
        return make_quote(identifier, price, source=self.name)

    async def fetch_batch(self, identifiers: list[str]) -> dict[str, Quote]:
        self.batch_calls.append(list(identifiers))
        if self.fail:
            raise ConnectionError(f"{self.name} unavailable")
        return {
            i: make_quote(i, self._prices[i.upper()], source=self.name)
            for i in identifiers
            if i.upper() in self._prices
        }

    async def search(self, query: str) -> list[SearchResult]:
        self.search_calls.append(query)
        if self.fail:
            raise ConnectionError(f"{self.name} unavailable")
        return list(self._search_results)


class FakeIndexSource(FakeSource):
    """FakeSource that also publishes market indices."""

    async def fetch_indices(self) -> list[MarketIndex]:
        if self.fail:
            raise ConnectionError(f"{self.name} unavailable")
        return list(self._indices or [])


# =============================================================================
# RESOLVER FIXTURES
# =============================================================================


@pytest.fixture
def resolver_context(clock) -> ResolverContext:
    """Cache + rate limiter driven by the fake clock."""
    return ResolverContext(
        cache=QuoteCache(max_entries=500, ttl_seconds=300, clock=clock),
        rate_limiter=RateLimiter(limits={}, window_seconds=60, clock=clock),
    )


@pytest.fixture
def make_resolver(resolver_context) -> Callable[..., QuoteResolver]:
    """Factory for resolvers over a list of sources sharing one context."""

    def _make(sources, context: Optional[ResolverContext] = None, **kwargs) -> QuoteResolver:
        return QuoteResolver(sources, context or resolver_context, **kwargs)

    return _make


# =============================================================================
# LEDGER HELPERS
# =============================================================================


_trade_counter = {"n": 0}


def make_trade(
    direction: str,
    quantity: str,
    price: str,
    fees: str = "0",
    instrument_id: str = "inst-1",
    executed_at: Optional[datetime] = None,
    trade_id: Optional[str] = None,
) -> Trade:
    """Create a Trade with sequential ids and timestamps."""
    _trade_counter["n"] += 1
    n = _trade_counter["n"]
    return Trade(
        trade_id=trade_id or f"t-{n}",
        instrument_id=instrument_id,
        direction=TradeDirection(direction),
        quantity=Decimal(quantity),
        price=Decimal(price),
        fees=Decimal(fees),
        executed_at=executed_at or local_datetime(2024, 1, 2) + timedelta(minutes=n),
    )


def make_meta(
    instrument_id: str = "inst-1",
    symbol: str = "AAPL",
    isin: Optional[str] = None,
    group_id: Optional[str] = None,
    price_source: Optional[str] = None,
) -> InstrumentMeta:
    return InstrumentMeta(
        instrument_id=instrument_id,
        symbol=symbol,
        isin=isin,
        name=f"{symbol} Inc.",
        group_id=group_id,
        price_source=price_source,
    )


def assert_decimal_equal(
    actual: Decimal,
    expected: Decimal,
    tolerance: Decimal = Decimal("0.01"),
) -> None:
    """Assert two Decimals are equal within tolerance."""
    diff = abs(actual - expected)
    assert diff <= tolerance, f"Expected {expected}, got {actual} (diff={diff})"


@pytest.fixture
def portfolio_engine() -> PortfolioEngine:
    return PortfolioEngine()


# =============================================================================
# API FIXTURES
# =============================================================================


@pytest.fixture
def api_sources() -> list:
    """Sources the API client resolves against (stub without random prices)."""
    return [StubQuoteSource(generate_unknown=False)]


@pytest.fixture
def app_context(api_sources) -> AppContext:
    reset_settings()
    context = AppContext(settings=Settings(use_stub_quotes=True), sources=api_sources)
    set_app_context(context)
    yield context
    set_app_context(None)


@pytest.fixture
def client(app_context) -> TestClient:
    """Provide FastAPI test client bound to a stub-backed AppContext."""
    with TestClient(app) as c:
        yield c
