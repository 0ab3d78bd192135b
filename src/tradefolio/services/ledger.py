"""
Decimal ledger: average-cost positions and P&L.

Pure functions over Trade and Position values. All arithmetic runs in a
local decimal context (20 significant digits, ROUND_HALF_UP) so results are
identical across runs and never pass through binary floats.
"""

import logging
import uuid
from dataclasses import fields, replace
from datetime import datetime
from decimal import Context, Decimal, ROUND_HALF_UP, localcontext
from typing import Iterable, Optional

from tradefolio.core.exceptions import ValidationError
from tradefolio.core.timezone import now_local, to_local
from tradefolio.domain.models import Trade, TradeDirection, InstrumentMeta
from tradefolio.domain.views import (
    Position,
    PositionWithPrice,
    PortfolioTotals,
    TotalsOptions,
    LotCloseResult,
)

logger = logging.getLogger(__name__)

LEDGER_PRECISION = 20
ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")

_LEDGER_CONTEXT = Context(prec=LEDGER_PRECISION, rounding=ROUND_HALF_UP)


def ledger_context():
    """Context manager applying the ledger's decimal precision and rounding."""
    return localcontext(_LEDGER_CONTEXT)


def to_decimal(value) -> Decimal:
    """Convert a number to Decimal without picking up binary float noise."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _safe_ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    if denominator == 0:
        return ZERO
    return numerator / denominator


# =============================================================================
# POSITION BUILDING
# =============================================================================


def build_position(trades: Iterable[Trade], meta: Optional[InstrumentMeta] = None) -> Position:
    """
    Replay one instrument's trades into a Position (average-cost method).

    Trades are sorted by executed_at (stable for equal timestamps).
    BUY adds price*qty + fees to total_cost. SELL realizes
    (price - avg_cost)*qty - fees against the pre-sell average and removes
    avg_cost*qty from total_cost. A SELL larger than the open quantity is
    clamped to zero and flagged on the position.
    """
    ordered = sorted(trades, key=lambda t: t.executed_at)
    if not ordered:
        raise ValidationError("Cannot build a position without trades")

    instrument_ids = {t.instrument_id for t in ordered}
    if len(instrument_ids) > 1:
        raise ValidationError(
            f"Trades span multiple instruments: {', '.join(sorted(instrument_ids))}"
        )
    instrument_id = ordered[0].instrument_id

    quantity = ZERO
    total_cost = ZERO
    realized = ZERO
    total_fees = ZERO
    first_buy_date: Optional[datetime] = None
    last_trade_date: Optional[datetime] = None
    clamped = False

    with ledger_context():
        for trade in ordered:
            if trade.direction == TradeDirection.BUY:
                total_cost += trade.price * trade.quantity + trade.fees
                quantity += trade.quantity
                if first_buy_date is None:
                    first_buy_date = trade.executed_at
            else:
                avg = _safe_ratio(total_cost, quantity)
                realized += (trade.price - avg) * trade.quantity - trade.fees
                total_cost -= avg * trade.quantity
                quantity -= trade.quantity

                if quantity < 0 or total_cost < 0:
                    logger.warning(
                        "Sell of %s exceeds open quantity for %s (trade %s); clamping to zero",
                        trade.quantity,
                        instrument_id,
                        trade.trade_id,
                    )
                    clamped = True
                    quantity = max(quantity, ZERO)
                    total_cost = max(total_cost, ZERO)

            total_fees += trade.fees
            last_trade_date = trade.executed_at

        avg_cost = _safe_ratio(total_cost, quantity)

    return Position(
        instrument_id=instrument_id,
        symbol=meta.symbol if meta else instrument_id,
        isin=meta.isin if meta else None,
        name=meta.name if meta else None,
        quantity=quantity,
        avg_cost=avg_cost,
        total_cost=total_cost,
        realized_pnl=realized,
        total_fees=total_fees,
        first_buy_date=first_buy_date or last_trade_date,
        last_trade_date=last_trade_date,
        is_closed=quantity == 0,
        group_id=meta.group_id if meta else None,
        group_name=meta.group_name if meta else None,
        group_color=meta.group_color if meta else None,
        clamped=clamped,
    )


# =============================================================================
# VALUATION
# =============================================================================


def compute_pnl(
    position: Position,
    current_price,
    price_source: Optional[str] = None,
) -> PositionWithPrice:
    """Value a position at current_price."""
    price = to_decimal(current_price)
    base = {f.name: getattr(position, f.name) for f in fields(Position)}

    with ledger_context():
        current_value = price * position.quantity
        unrealized = (price - position.avg_cost) * position.quantity
        unrealized_pct = _safe_ratio(price - position.avg_cost, position.avg_cost) * HUNDRED
        total_pnl = position.realized_pnl + unrealized
        total_pnl_pct = (
            _safe_ratio(total_pnl, position.total_cost + position.realized_pnl) * HUNDRED
        )

    return PositionWithPrice(
        **base,
        current_price=price,
        current_value=current_value,
        unrealized_pnl=unrealized,
        unrealized_pnl_percent=unrealized_pct,
        total_pnl=total_pnl,
        total_pnl_percent=total_pnl_pct,
        price_source=price_source,
    )


def _matches(position: PositionWithPrice, options: TotalsOptions) -> bool:
    if options.open_only and position.is_closed:
        return False
    if options.closed_only and not position.is_closed:
        return False
    if options.date_from and position.last_trade_date < to_local(options.date_from):
        return False
    if options.date_to and position.last_trade_date > to_local(options.date_to):
        return False
    if options.group_ids is not None and position.group_id not in options.group_ids:
        return False
    return True


def compute_totals(
    positions: Iterable[PositionWithPrice],
    options: Optional[TotalsOptions] = None,
) -> PortfolioTotals:
    """
    Aggregate valued positions after applying the filters in options.

    profit_only_sum adds only positive per-position total P&L; a position
    with exactly zero total P&L is neither winning nor losing.
    """
    options = options or TotalsOptions()
    totals = PortfolioTotals()

    with ledger_context():
        for position in positions:
            if not _matches(position, options):
                continue
            totals.position_count += 1
            totals.total_invested += position.total_cost
            totals.current_value += position.current_value
            totals.unrealized_pnl += position.unrealized_pnl
            totals.realized_pnl += position.realized_pnl
            totals.total_fees += position.total_fees
            if position.total_pnl > 0:
                totals.profit_only_sum += position.total_pnl
                totals.winning_positions += 1
            elif position.total_pnl < 0:
                totals.losing_positions += 1

        totals.total_pnl = totals.realized_pnl + totals.unrealized_pnl
        totals.return_percent = (
            _safe_ratio(totals.total_pnl, totals.total_invested + totals.realized_pnl) * HUNDRED
        )

    return totals


# =============================================================================
# LOT CLOSING
# =============================================================================


def close_lot(
    lot: Trade,
    sell_quantity,
    sell_price,
    fees=ZERO,
    closed_at: Optional[datetime] = None,
) -> LotCloseResult:
    """
    Close all or part of an open BUY lot.

    A full close returns the lot marked closed. A partial close splits off a
    new closed lot for the sold quantity (linked through parent_trade_id) and
    returns the original shrunk to the remaining quantity. Buy fees are split
    pro rata between the two lots; sell fees are charged to the closed one.
    """
    sell_quantity = to_decimal(sell_quantity)
    sell_price = to_decimal(sell_price)
    fees = to_decimal(fees)
    closed_at = closed_at or now_local()

    if lot.direction != TradeDirection.BUY:
        raise ValidationError(f"Only BUY lots can be closed: {lot.trade_id}")
    if lot.is_closed:
        raise ValidationError(f"Lot already closed: {lot.trade_id}")
    if sell_quantity <= 0:
        raise ValidationError("Sell quantity must be positive")
    if sell_quantity > lot.quantity:
        raise ValidationError(
            f"Cannot sell {sell_quantity} from lot {lot.trade_id} holding {lot.quantity}"
        )
    if sell_price < 0:
        raise ValidationError("Sell price cannot be negative")

    with ledger_context():
        if sell_quantity == lot.quantity:
            realized = (sell_price - lot.price) * sell_quantity - fees
            closed = replace(
                lot,
                is_closed=True,
                closed_at=closed_at,
                sell_price=sell_price,
                realized_pnl=realized,
            )
            logger.info("Closed lot %s: realized %s", lot.trade_id, realized)
            return LotCloseResult(closed_lot=closed)

        sold_fees = (lot.fees * sell_quantity / lot.quantity).quantize(CENT)
        realized = (sell_price - lot.price) * sell_quantity - fees
        closed = replace(
            lot,
            trade_id=f"{lot.trade_id}-partial-{uuid.uuid4().hex[:8]}",
            quantity=sell_quantity,
            fees=sold_fees,
            is_closed=True,
            closed_at=closed_at,
            sell_price=sell_price,
            realized_pnl=realized,
            parent_trade_id=lot.trade_id,
            original_quantity=None,
        )
        remaining = replace(
            lot,
            quantity=lot.quantity - sell_quantity,
            fees=lot.fees - sold_fees,
            original_quantity=lot.original_quantity or lot.quantity,
        )

    logger.info(
        "Partially closed lot %s: sold %s, %s remaining, realized %s",
        lot.trade_id,
        sell_quantity,
        remaining.quantity,
        realized,
    )
    return LotCloseResult(closed_lot=closed, remaining_lot=remaining)
