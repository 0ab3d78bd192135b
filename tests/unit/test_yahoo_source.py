"""
Tests for YahooSource: info parsing, ISIN mapping, batching, search, indices.
Uses mocks to avoid hitting Yahoo Finance.
"""
import time
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from tradefolio.core.exceptions import QuoteSourceError
from tradefolio.providers import YahooSource
from tradefolio.providers.yahoo_source import _fetch_infos_impl, _info_for, _price_from_info


def _mock_yf(infos: dict) -> MagicMock:
    mock_yf = MagicMock()
    mock_tickers = MagicMock()
    mock_tickers.tickers = {symbol: MagicMock(info=info) for symbol, info in infos.items()}
    mock_yf.Tickers.return_value = mock_tickers
    return mock_yf


# -----------------------------------------------------------------------------
# Module helpers
# -----------------------------------------------------------------------------


class TestInfoHelpers:
    """_info_for and _price_from_info tolerate missing or broken data."""

    def test_missing_ticker_returns_none(self):
        tickers = MagicMock()
        tickers.tickers = {}
        assert _info_for("UNKNOWN", tickers) is None

    def test_non_dict_info_returns_none(self):
        tickers = MagicMock()
        tickers.tickers = {"Z": MagicMock(info=None)}
        assert _info_for("Z", tickers) is None

    def test_current_price_preferred(self):
        assert _price_from_info({"currentPrice": 180.0, "regularMarketPrice": 1}) == Decimal("180.00")

    def test_fallback_regular_market_price(self):
        assert _price_from_info({"regularMarketPrice": 22.0}) == Decimal("22.00")

    def test_empty_symbols(self):
        assert _fetch_infos_impl([]) == {}


# -----------------------------------------------------------------------------
# YahooSource with mocked yfinance
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
@patch("tradefolio.providers.yahoo_source._get_yf")
async def test_fetch_quote_maps_isin_to_symbol(mock_get_yf):
    """An ISIN is looked up under its Yahoo symbol and keeps the ISIN as identifier."""
    mock_get_yf.return_value = _mock_yf({
        "SAP.DE": {
            "currentPrice": 162.4,
            "currency": "EUR",
            "longName": "SAP SE",
            "previousClose": 161.9,
        },
    })

    quote = await YahooSource().fetch_quote("de0007164600")

    mock_get_yf.return_value.Tickers.assert_called_once_with("SAP.DE")
    assert quote.identifier == "DE0007164600"
    assert quote.isin == "DE0007164600"
    assert quote.symbol == "SAP.DE"
    assert quote.price == Decimal("162.40")
    assert quote.previous_close == Decimal("161.90")
    assert quote.name == "SAP SE"
    assert quote.source == "yahoo"


@pytest.mark.asyncio
@patch("tradefolio.providers.yahoo_source._get_yf")
async def test_fetch_quote_infers_currency_and_name(mock_get_yf):
    mock_get_yf.return_value = _mock_yf({"VOD.L": {"regularMarketPrice": 72.5}})

    quote = await YahooSource().fetch_quote("VOD.L")

    assert quote.currency == "GBP"
    assert quote.name == "VOD.L"


@pytest.mark.asyncio
@patch("tradefolio.providers.yahoo_source._get_yf")
async def test_unmappable_isin_skips_yfinance(mock_get_yf):
    quote = await YahooSource().fetch_quote("US9999999999")

    assert quote is None
    mock_get_yf.assert_not_called()


@pytest.mark.asyncio
@patch("tradefolio.providers.yahoo_source._get_yf")
async def test_zero_price_is_no_quote(mock_get_yf):
    mock_get_yf.return_value = _mock_yf({"AAPL": {"currentPrice": 0}})

    assert await YahooSource().fetch_quote("AAPL") is None


@pytest.mark.asyncio
@patch("tradefolio.providers.yahoo_source._get_yf")
async def test_fetch_batch_single_call(mock_get_yf):
    """One Tickers call serves the whole batch; symbols without info are omitted."""
    mock_get_yf.return_value = _mock_yf({
        "AAPL": {"currentPrice": 180.0, "longName": "Apple Inc."},
        "MSFT": {"currentPrice": 400.0, "longName": "Microsoft Corporation"},
    })

    quotes = await YahooSource().fetch_batch(["AAPL", "MSFT", "GONE"])

    mock_get_yf.return_value.Tickers.assert_called_once_with("AAPL MSFT GONE")
    assert set(quotes) == {"AAPL", "MSFT"}
    assert quotes["MSFT"].price == Decimal("400.00")


@pytest.mark.asyncio
@patch("tradefolio.providers.yahoo_source._get_yf")
async def test_search(mock_get_yf):
    mock_search = MagicMock()
    mock_search.quotes = [
        {"symbol": "AAPL", "longname": "Apple Inc.", "exchDisp": "NASDAQ"},
        {"symbol": "APC.DE", "shortname": "APPLE INC", "exchange": "GER"},
        {"shortname": "no symbol"},
    ]
    mock_get_yf.return_value.Search.return_value = mock_search

    results = await YahooSource().search("apple")

    assert [r.symbol for r in results] == ["AAPL", "APC.DE"]
    assert [r.relevance for r in results] == [80, 77]
    assert results[0].exchange == "NASDAQ"
    assert results[1].currency == "EUR"
    assert results[1].isin is None


@pytest.mark.asyncio
@patch("tradefolio.providers.yahoo_source._get_yf")
async def test_search_by_isin(mock_get_yf):
    mock_search = MagicMock()
    mock_search.quotes = [{"symbol": "SAP.DE", "longname": "SAP SE"}]
    mock_get_yf.return_value.Search.return_value = mock_search

    results = await YahooSource().search("DE0007164600")

    assert results[0].identifier == "DE0007164600"
    assert results[0].isin == "DE0007164600"
    assert results[0].relevance == 90


@pytest.mark.asyncio
@patch("tradefolio.providers.yahoo_source._get_yf")
async def test_fetch_indices(mock_get_yf):
    """Indices without a level are skipped; change is computed from previous close."""
    mock_get_yf.return_value = _mock_yf({
        "^GSPC": {
            "regularMarketPrice": 5432.1,
            "regularMarketPreviousClose": 5410.0,
            "currency": "USD",
        },
        "^GDAXI": {
            "regularMarketPrice": 18250.0,
            "previousClose": 18302.5,
            "regularMarketChangePercent": -0.2868,
            "currency": "EUR",
        },
    })

    indices = await YahooSource().fetch_indices()

    by_symbol = {i.symbol: i for i in indices}
    assert set(by_symbol) == {"^GSPC", "^GDAXI"}
    assert by_symbol["^GSPC"].change == Decimal("22.10")
    assert by_symbol["^GSPC"].change_percent == Decimal("0.41")
    assert by_symbol["^GDAXI"].change == Decimal("-52.50")
    assert by_symbol["^GDAXI"].change_percent == Decimal("-0.29")
    assert by_symbol["^GDAXI"].name == "DAX 40"


@pytest.mark.asyncio
@patch("tradefolio.providers.yahoo_source._get_yf")
async def test_timeout_raises_source_error(mock_get_yf):
    def slow_tickers(_symbols):
        time.sleep(0.5)
        return MagicMock(tickers={})

    mock_get_yf.return_value.Tickers.side_effect = slow_tickers

    with pytest.raises(QuoteSourceError) as exc_info:
        await YahooSource(timeout_seconds=0.05).fetch_quote("AAPL")

    assert exc_info.value.code == "TIMEOUT"
    assert exc_info.value.retryable is True


def test_supports():
    source = YahooSource()

    assert source.supports("AAPL") is True
    assert source.supports("DE0007164600") is True
    assert source.supports("BTC") is False
