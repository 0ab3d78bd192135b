"""Quote and search result models produced by quote sources."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class Quote:
    """
    Price snapshot for one instrument from one source.

    Never mutated; a newer Quote supersedes an older one in the cache.
    """

    identifier: str
    price: Decimal
    currency: str
    as_of: datetime
    source: str
    symbol: Optional[str] = None
    isin: Optional[str] = None
    name: Optional[str] = None
    bid: Optional[Decimal] = None
    ask: Optional[Decimal] = None
    high: Optional[Decimal] = None
    low: Optional[Decimal] = None
    previous_close: Optional[Decimal] = None

    @property
    def has_price(self) -> bool:
        return self.price is not None and self.price > 0

    @property
    def change_percent(self) -> Optional[Decimal]:
        """Percent change against the previous close, if known."""
        if not self.previous_close:
            return None
        return (self.price - self.previous_close) / self.previous_close * 100


@dataclass(frozen=True)
class SearchResult:
    """One hit from an instrument search."""

    identifier: str
    symbol: str
    name: str
    exchange: str
    currency: str
    relevance: int
    source: str
    isin: Optional[str] = None
    current_price: Optional[Decimal] = None

    @property
    def has_price(self) -> bool:
        return self.current_price is not None and self.current_price > 0

    @property
    def dedupe_key(self) -> str:
        """Key under which results from different sources are merged."""
        return (self.isin or self.symbol).upper()


@dataclass(frozen=True)
class MarketIndex:
    """A market index level for the dashboard index strip."""

    symbol: str
    name: str
    price: Decimal
    change: Decimal
    change_percent: Decimal
    currency: str
    source: str
