"""Quote sources module."""

from tradefolio.providers.quote_source import QuoteSource, BaseQuoteSource, HttpQuoteSource
from tradefolio.providers.yahoo_source import YahooSource
from tradefolio.providers.ing_source import IngSource
from tradefolio.providers.finnhub_source import FinnhubSource
from tradefolio.providers.coingecko_source import CoingeckoSource
from tradefolio.providers.stub_provider import StubQuoteSource

__all__ = [
    "QuoteSource",
    "BaseQuoteSource",
    "HttpQuoteSource",
    "YahooSource",
    "IngSource",
    "FinnhubSource",
    "CoingeckoSource",
    "StubQuoteSource",
]
