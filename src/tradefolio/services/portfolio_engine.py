"""Portfolio engine for deriving positions and totals from trade history."""

import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from tradefolio.core.timezone import now_local, start_of_month, to_local
from tradefolio.domain.models import InstrumentMeta, Quote, Trade
from tradefolio.domain.views import (
    LotCloseResult,
    PortfolioTotals,
    Position,
    PositionWithPrice,
    TotalsOptions,
)
from tradefolio.services import ledger

logger = logging.getLogger(__name__)

# Prices keyed by instrument_id; plain Decimals or Quotes are accepted
PriceMap = dict[str, object]


class PortfolioEngine:
    """
    Engine for computing portfolio state from trades.

    Positions are never stored or edited; they are rebuilt by replaying the
    full trade history on every call. Prices come from the caller (normally
    the quote resolver); the engine never talks to quote sources.
    """

    def build_positions_from_trades(
        self,
        trades: Iterable[Trade],
        instrument_meta: dict[str, InstrumentMeta],
    ) -> dict[str, Position]:
        """
        Group trades by instrument and replay each group.

        Instruments without metadata are skipped.
        """
        by_instrument: dict[str, list[Trade]] = defaultdict(list)
        for trade in trades:
            by_instrument[trade.instrument_id].append(trade)

        positions: dict[str, Position] = {}
        for instrument_id, instrument_trades in by_instrument.items():
            meta = instrument_meta.get(instrument_id)
            if meta is None:
                logger.warning(
                    "Skipping %d trades for %s: no instrument metadata",
                    len(instrument_trades),
                    instrument_id,
                )
                continue
            positions[instrument_id] = ledger.build_position(instrument_trades, meta)
        return positions

    def price_positions(
        self,
        positions: dict[str, Position],
        prices: PriceMap,
    ) -> list[PositionWithPrice]:
        """
        Value every position.

        An open position without a price is valued at its average cost so it
        shows no paper gain or loss; closed positions need no price.
        """
        priced = []
        for instrument_id, position in positions.items():
            price, source = _unpack_price(prices.get(instrument_id))
            if price is None:
                if not position.is_closed:
                    logger.info("No price for %s; valuing at average cost", instrument_id)
                price = position.avg_cost
            priced.append(ledger.compute_pnl(position, price, price_source=source))
        return priced

    def positions_with_prices(
        self,
        trades: Iterable[Trade],
        instrument_meta: dict[str, InstrumentMeta],
        prices: PriceMap,
    ) -> list[PositionWithPrice]:
        """Build and value positions in one step."""
        positions = self.build_positions_from_trades(trades, instrument_meta)
        return self.price_positions(positions, prices)

    def compute_totals(
        self,
        positions: Iterable[PositionWithPrice],
        options: Optional[TotalsOptions] = None,
    ) -> PortfolioTotals:
        return ledger.compute_totals(positions, options)

    def totals_for_range(
        self,
        trades: Iterable[Trade],
        instrument_meta: dict[str, InstrumentMeta],
        prices: PriceMap,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        options: Optional[TotalsOptions] = None,
    ) -> PortfolioTotals:
        """
        Totals for positions whose last trade falls inside [date_from, date_to].

        Positions are rebuilt from the full history so that cost basis is
        correct; only the filter is range-bound.
        """
        options = options or TotalsOptions()
        options = TotalsOptions(
            open_only=options.open_only,
            closed_only=options.closed_only,
            date_from=to_local(date_from) if date_from else options.date_from,
            date_to=to_local(date_to) if date_to else options.date_to,
            group_ids=options.group_ids,
        )
        positions = self.positions_with_prices(trades, instrument_meta, prices)
        return ledger.compute_totals(positions, options)

    def month_to_date_totals(
        self,
        trades: Iterable[Trade],
        instrument_meta: dict[str, InstrumentMeta],
        prices: PriceMap,
        now: Optional[datetime] = None,
    ) -> PortfolioTotals:
        """Totals for positions last traded since the start of the current month."""
        now = to_local(now) if now else now_local()
        return self.totals_for_range(
            trades,
            instrument_meta,
            prices,
            date_from=start_of_month(now),
            date_to=now,
        )

    def close_lot(
        self,
        lot: Trade,
        sell_quantity,
        sell_price,
        fees=Decimal("0"),
        closed_at: Optional[datetime] = None,
    ) -> LotCloseResult:
        """Close all or part of an open BUY lot (see ledger.close_lot)."""
        return ledger.close_lot(lot, sell_quantity, sell_price, fees=fees, closed_at=closed_at)

    @staticmethod
    def quote_identifiers(instrument_meta: dict[str, InstrumentMeta]) -> dict[str, list[str]]:
        """Map quote identifier -> instrument_ids priced by it (several may share an ISIN)."""
        mapping: dict[str, list[str]] = {}
        for instrument_id, meta in instrument_meta.items():
            mapping.setdefault(meta.quote_identifier, []).append(instrument_id)
        return mapping

    @staticmethod
    def preferred_sources(instrument_meta: dict[str, InstrumentMeta]) -> dict[str, str]:
        """Map quote identifier -> source that last priced the instrument."""
        return {
            meta.quote_identifier: meta.price_source
            for meta in instrument_meta.values()
            if meta.price_source
        }


def _unpack_price(value) -> tuple[Optional[Decimal], Optional[str]]:
    if value is None:
        return None, None
    if isinstance(value, Quote):
        return value.price, value.source
    return ledger.to_decimal(value), None
