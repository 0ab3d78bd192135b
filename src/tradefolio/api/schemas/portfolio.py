"""Pydantic schemas for portfolio endpoints."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from tradefolio.domain.models.enums import TradeDirection


class TradeRequest(BaseModel):
    """A recorded trade as sent by the client."""

    trade_id: str
    instrument_id: str
    direction: TradeDirection
    quantity: Decimal = Field(..., gt=0)
    price: Decimal = Field(..., ge=0)
    fees: Decimal = Field(default=Decimal("0"), ge=0)
    executed_at: datetime
    portfolio_id: Optional[str] = None


class InstrumentRequest(BaseModel):
    """Instrument metadata as sent by the client."""

    instrument_id: str
    symbol: str = Field(..., max_length=40)
    isin: Optional[str] = Field(default=None, max_length=12)
    name: Optional[str] = None
    group_id: Optional[str] = None
    group_name: Optional[str] = None
    group_color: Optional[str] = None
    price_source: Optional[str] = None

    @field_validator("symbol", "isin")
    @classmethod
    def uppercase_identifier(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v else None


class TotalsOptionsRequest(BaseModel):
    """Filters applied to totals."""

    open_only: bool = False
    closed_only: bool = False
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    group_ids: Optional[list[str]] = None


class PortfolioRequest(BaseModel):
    """Trades plus metadata; prices are resolved for anything not supplied."""

    trades: list[TradeRequest]
    instruments: list[InstrumentRequest]
    prices: dict[str, Decimal] = Field(
        default_factory=dict,
        description="instrument_id -> price, skips resolution for those instruments",
    )
    options: Optional[TotalsOptionsRequest] = None
    now: Optional[datetime] = Field(default=None, description="Override 'now' for month-to-date")


class PositionResponse(BaseModel):
    """Response schema for a single valued position."""

    model_config = {"from_attributes": True}

    instrument_id: str
    symbol: str
    isin: Optional[str] = None
    name: Optional[str] = None
    quantity: Decimal
    avg_cost: Decimal
    total_cost: Decimal
    realized_pnl: Decimal
    total_fees: Decimal
    first_buy_date: datetime
    last_trade_date: datetime
    is_closed: bool
    clamped: bool
    group_id: Optional[str] = None
    group_name: Optional[str] = None
    group_color: Optional[str] = None
    current_price: Decimal
    current_value: Decimal
    unrealized_pnl: Decimal
    unrealized_pnl_percent: Decimal
    total_pnl: Decimal
    total_pnl_percent: Decimal
    price_source: Optional[str] = None


class TotalsResponse(BaseModel):
    """Response schema for aggregated totals."""

    model_config = {"from_attributes": True}

    total_invested: Decimal
    current_value: Decimal
    unrealized_pnl: Decimal
    realized_pnl: Decimal
    total_pnl: Decimal
    total_fees: Decimal
    return_percent: Decimal
    profit_only_sum: Decimal
    winning_positions: int
    losing_positions: int
    position_count: int


class PositionsResponse(BaseModel):
    """Response schema for positions listing."""

    positions: list[PositionResponse]
    totals: TotalsResponse
    unpriced: list[str] = Field(default_factory=list)
