"""Trade and instrument domain models."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from tradefolio.core.timezone import to_local
from tradefolio.domain.models.enums import TradeDirection


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps floats like 0.1 from leaking binary noise into the ledger
    return Decimal(str(value))


@dataclass(frozen=True)
class Trade:
    """
    A recorded execution (source of truth for positions).

    - quantity is always positive; direction says which way it went
    - fees default to zero
    - lot fields (is_closed, closed_at, sell_price, realized_pnl,
      parent_trade_id) are only set when a BUY lot was closed or split
    """

    trade_id: str
    instrument_id: str
    direction: TradeDirection
    quantity: Decimal
    price: Decimal
    executed_at: datetime
    fees: Decimal = field(default_factory=lambda: Decimal("0"))
    portfolio_id: Optional[str] = None
    is_closed: bool = False
    closed_at: Optional[datetime] = None
    sell_price: Optional[Decimal] = None
    realized_pnl: Optional[Decimal] = None
    parent_trade_id: Optional[str] = None
    original_quantity: Optional[Decimal] = None

    def __post_init__(self) -> None:
        if isinstance(self.direction, str):
            object.__setattr__(self, "direction", TradeDirection(self.direction.upper()))
        object.__setattr__(self, "quantity", _to_decimal(self.quantity))
        object.__setattr__(self, "price", _to_decimal(self.price))
        object.__setattr__(self, "fees", _to_decimal(self.fees or 0))
        # Naive timestamps are taken as local time
        object.__setattr__(self, "executed_at", to_local(self.executed_at))
        if self.closed_at is not None:
            object.__setattr__(self, "closed_at", to_local(self.closed_at))
        if self.sell_price is not None:
            object.__setattr__(self, "sell_price", _to_decimal(self.sell_price))
        if self.realized_pnl is not None:
            object.__setattr__(self, "realized_pnl", _to_decimal(self.realized_pnl))
        if self.original_quantity is not None:
            object.__setattr__(self, "original_quantity", _to_decimal(self.original_quantity))

    @property
    def is_buy(self) -> bool:
        return self.direction == TradeDirection.BUY

    @property
    def is_partial_sale(self) -> bool:
        """Return True if this lot was split off a larger BUY."""
        return self.parent_trade_id is not None


@dataclass
class InstrumentMeta:
    """Descriptive data for an instrument referenced by trades."""

    instrument_id: str
    symbol: str
    isin: Optional[str] = None
    name: Optional[str] = None
    group_id: Optional[str] = None
    group_name: Optional[str] = None
    group_color: Optional[str] = None
    # Source that last priced this instrument successfully
    price_source: Optional[str] = None

    @property
    def quote_identifier(self) -> str:
        """Identifier used for price lookups (ISIN preferred)."""
        return (self.isin or self.symbol).strip().upper()
