"""Stub quote source for offline/testing use."""

import random
from decimal import Decimal
from typing import Optional

from tradefolio.core.timezone import now_local
from tradefolio.domain.models import MarketIndex, Quote, SearchResult, SourceName
from tradefolio.providers.identifiers import normalize_identifier
from tradefolio.providers.quote_source import BaseQuoteSource


# Deterministic fake prices for common identifiers: (price, previous close, name)
_STUB_PRICES: dict[str, tuple[Decimal, Decimal, str]] = {
    "AAPL": (Decimal("185.50"), Decimal("184.25"), "Apple Inc."),
    "MSFT": (Decimal("378.25"), Decimal("376.80"), "Microsoft Corporation"),
    "TSLA": (Decimal("248.75"), Decimal("250.10"), "Tesla Inc."),
    "SAP.DE": (Decimal("162.40"), Decimal("161.90"), "SAP SE"),
    "DE0007164600": (Decimal("162.40"), Decimal("161.90"), "SAP SE"),
    "US0378331005": (Decimal("185.50"), Decimal("184.25"), "Apple Inc."),
    "BTC": (Decimal("61250.00"), Decimal("60400.00"), "Bitcoin"),
    "ETH": (Decimal("3120.50"), Decimal("3098.00"), "Ethereum"),
}

_STUB_INDICES: list[tuple[str, str, Decimal, Decimal]] = [
    ("^GSPC", "S&P 500", Decimal("5432.10"), Decimal("5410.00")),
    ("^GDAXI", "DAX 40", Decimal("18250.00"), Decimal("18302.50")),
]


class StubQuoteSource(BaseQuoteSource):
    """
    Stub source with deterministic fake data for offline operation.

    Uses predefined prices for common identifiers; generates seeded random
    prices for unknown ones when `generate_unknown` is set.
    """

    name = SourceName.STUB.value
    priority = 99

    def __init__(self, seed: int = 42, generate_unknown: bool = True, currency: str = "EUR"):
        """Initialize with optional random seed for reproducibility."""
        self._rng = random.Random(seed)
        self._generate_unknown = generate_unknown
        self._currency = currency
        self._generated: dict[str, Decimal] = {}

    def supports(self, identifier: str) -> bool:
        return self._generate_unknown or normalize_identifier(identifier) in _STUB_PRICES

    def _price_for(self, identifier: str) -> Optional[tuple[Decimal, Optional[Decimal], str]]:
        if identifier in _STUB_PRICES:
            return _STUB_PRICES[identifier]
        if not self._generate_unknown:
            return None
        if identifier not in self._generated:
            base_price = Decimal(str(50 + self._rng.random() * 200))
            self._generated[identifier] = base_price.quantize(Decimal("0.01"))
        return self._generated[identifier], None, identifier

    async def fetch_quote(self, identifier: str) -> Optional[Quote]:
        identifier = normalize_identifier(identifier)
        entry = self._price_for(identifier)
        if entry is None:
            return None
        price, prev_close, name = entry
        return Quote(
            identifier=identifier,
            price=price,
            currency=self._currency,
            as_of=now_local(),
            source=self.name,
            symbol=identifier,
            name=name,
            previous_close=prev_close,
        )

    async def search(self, query: str) -> list[SearchResult]:
        needle = query.strip().lower()
        results = []
        for identifier, (price, _, name) in _STUB_PRICES.items():
            if needle in identifier.lower() or needle in name.lower():
                results.append(
                    SearchResult(
                        identifier=identifier,
                        symbol=identifier,
                        name=name,
                        exchange="Stub",
                        currency=self._currency,
                        relevance=80 - len(results) * 3,
                        source=self.name,
                        current_price=price,
                    )
                )
        return results

    async def fetch_indices(self) -> list[MarketIndex]:
        return [
            MarketIndex(
                symbol=symbol,
                name=label,
                price=price,
                change=price - previous,
                change_percent=((price - previous) / previous * 100).quantize(Decimal("0.01")),
                currency="USD",
                source=self.name,
            )
            for symbol, label, price, previous in _STUB_INDICES
        ]
