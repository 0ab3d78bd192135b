"""Portfolio valuation endpoints.

Trades and instrument metadata are supplied by the caller (persistence lives
elsewhere); prices not supplied are resolved through the quote resolver.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from tradefolio.api.deps import get_portfolio_engine, get_quote_resolver
from tradefolio.api.schemas import (
    PortfolioRequest,
    PositionResponse,
    PositionsResponse,
    TotalsOptionsRequest,
    TotalsResponse,
)
from tradefolio.core.timezone import to_local
from tradefolio.domain.models import InstrumentMeta, Trade
from tradefolio.domain.views import TotalsOptions
from tradefolio.services import PortfolioEngine, QuoteResolver

router = APIRouter(prefix="/portfolio", tags=["portfolio"])


def _to_domain(data: PortfolioRequest) -> tuple[list[Trade], dict[str, InstrumentMeta]]:
    trades = [
        Trade(
            trade_id=t.trade_id,
            instrument_id=t.instrument_id,
            direction=t.direction,
            quantity=t.quantity,
            price=t.price,
            fees=t.fees,
            executed_at=to_local(t.executed_at),
            portfolio_id=t.portfolio_id,
        )
        for t in data.trades
    ]
    meta = {
        i.instrument_id: InstrumentMeta(
            instrument_id=i.instrument_id,
            symbol=i.symbol,
            isin=i.isin,
            name=i.name,
            group_id=i.group_id,
            group_name=i.group_name,
            group_color=i.group_color,
            price_source=i.price_source,
        )
        for i in data.instruments
    }
    return trades, meta


def _to_options(options: Optional[TotalsOptionsRequest]) -> TotalsOptions:
    if options is None:
        return TotalsOptions()
    return TotalsOptions(
        open_only=options.open_only,
        closed_only=options.closed_only,
        date_from=to_local(options.date_from) if options.date_from else None,
        date_to=to_local(options.date_to) if options.date_to else None,
        group_ids=options.group_ids,
    )


async def _resolve_prices(
    data: PortfolioRequest,
    trades: list[Trade],
    meta: dict[str, InstrumentMeta],
    engine: PortfolioEngine,
    resolver: QuoteResolver,
) -> tuple[dict[str, object], list[str]]:
    """Supplied prices plus resolved quotes for open positions lacking one."""
    prices: dict[str, object] = dict(data.prices)
    positions = engine.build_positions_from_trades(trades, meta)
    needed = {
        instrument_id: meta[instrument_id]
        for instrument_id, position in positions.items()
        if not position.is_closed and instrument_id not in prices
    }
    if not needed:
        return prices, []

    by_identifier = engine.quote_identifiers(needed)
    quotes = await resolver.resolve_batch(
        list(by_identifier), preferred=engine.preferred_sources(needed)
    )
    for identifier, instrument_ids in by_identifier.items():
        if identifier in quotes:
            for instrument_id in instrument_ids:
                prices[instrument_id] = quotes[identifier]

    unpriced = sorted(i for i in needed if i not in prices)
    return prices, unpriced


@router.post("/positions", response_model=PositionsResponse)
async def get_positions(
    data: PortfolioRequest,
    engine: PortfolioEngine = Depends(get_portfolio_engine),
    resolver: QuoteResolver = Depends(get_quote_resolver),
) -> PositionsResponse:
    """Build positions from trades, price them, and aggregate totals."""
    trades, meta = _to_domain(data)
    prices, unpriced = await _resolve_prices(data, trades, meta, engine, resolver)

    positions = engine.positions_with_prices(trades, meta, prices)
    totals = engine.compute_totals(positions, _to_options(data.options))

    return PositionsResponse(
        positions=[PositionResponse.model_validate(p) for p in positions],
        totals=TotalsResponse.model_validate(totals),
        unpriced=unpriced,
    )


@router.post("/totals", response_model=TotalsResponse)
async def get_totals(
    data: PortfolioRequest,
    engine: PortfolioEngine = Depends(get_portfolio_engine),
    resolver: QuoteResolver = Depends(get_quote_resolver),
) -> TotalsResponse:
    """Aggregate totals with optional filters (open/closed, date range, groups)."""
    trades, meta = _to_domain(data)
    prices, _ = await _resolve_prices(data, trades, meta, engine, resolver)
    positions = engine.positions_with_prices(trades, meta, prices)
    return TotalsResponse.model_validate(engine.compute_totals(positions, _to_options(data.options)))


@router.post("/month-to-date", response_model=TotalsResponse)
async def get_month_to_date(
    data: PortfolioRequest,
    engine: PortfolioEngine = Depends(get_portfolio_engine),
    resolver: QuoteResolver = Depends(get_quote_resolver),
) -> TotalsResponse:
    """Totals for positions last traded in the current month."""
    trades, meta = _to_domain(data)
    prices, _ = await _resolve_prices(data, trades, meta, engine, resolver)
    totals = engine.month_to_date_totals(trades, meta, prices, now=data.now)
    return TotalsResponse.model_validate(totals)
