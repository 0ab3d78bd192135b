"""View models for positions and portfolio totals."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from tradefolio.domain.models import Trade


def _zero() -> Decimal:
    return Decimal("0")


@dataclass
class Position:
    """
    Holding derived from replaying one instrument's trades.

    IMPORTANT: Never edit directly; always rebuild from trades.
    """

    instrument_id: str
    symbol: str
    quantity: Decimal
    avg_cost: Decimal
    total_cost: Decimal
    realized_pnl: Decimal
    total_fees: Decimal
    first_buy_date: datetime
    last_trade_date: datetime
    is_closed: bool
    isin: Optional[str] = None
    name: Optional[str] = None
    group_id: Optional[str] = None
    group_name: Optional[str] = None
    group_color: Optional[str] = None
    # A sell exceeded the open quantity and was clamped to zero
    clamped: bool = False


@dataclass
class PositionWithPrice(Position):
    """Position valued at a current market price."""

    current_price: Decimal = field(default_factory=_zero)
    current_value: Decimal = field(default_factory=_zero)
    unrealized_pnl: Decimal = field(default_factory=_zero)
    unrealized_pnl_percent: Decimal = field(default_factory=_zero)
    total_pnl: Decimal = field(default_factory=_zero)
    total_pnl_percent: Decimal = field(default_factory=_zero)
    price_source: Optional[str] = None


@dataclass
class TotalsOptions:
    """Filters applied before aggregating totals."""

    open_only: bool = False
    closed_only: bool = False
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    group_ids: Optional[list[str]] = None


@dataclass
class PortfolioTotals:
    """Aggregated figures across a set of positions."""

    total_invested: Decimal = field(default_factory=_zero)
    current_value: Decimal = field(default_factory=_zero)
    unrealized_pnl: Decimal = field(default_factory=_zero)
    realized_pnl: Decimal = field(default_factory=_zero)
    total_pnl: Decimal = field(default_factory=_zero)
    total_fees: Decimal = field(default_factory=_zero)
    return_percent: Decimal = field(default_factory=_zero)
    # Sum of positive per-position total P&L only; losses contribute zero
    profit_only_sum: Decimal = field(default_factory=_zero)
    winning_positions: int = 0
    losing_positions: int = 0
    position_count: int = 0


@dataclass
class LotCloseResult:
    """Outcome of closing (all or part of) an open BUY lot."""

    closed_lot: Trade
    remaining_lot: Optional[Trade] = None

    @property
    def is_partial(self) -> bool:
        return self.remaining_lot is not None
