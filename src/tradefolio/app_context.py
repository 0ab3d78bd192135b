"""Application context for in-process service management.

Provides a centralized way to access all services without HTTP.
Owns the shared httpx client and the resolver context (cache + rate
limiter), so both live exactly as long as the process.
"""

import logging
from typing import Optional

import httpx

from tradefolio.config.settings import Settings, get_settings
from tradefolio.providers import (
    CoingeckoSource,
    FinnhubSource,
    IngSource,
    QuoteSource,
    StubQuoteSource,
    YahooSource,
)
from tradefolio.services import PortfolioEngine, QuoteResolver, ResolverContext

logger = logging.getLogger(__name__)


class AppContext:
    """
    Application context providing in-process access to all services.

    Services are built lazily on first access and reused afterwards.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        sources: Optional[list[QuoteSource]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize application context.

        Args:
            settings: Optional settings. If not provided, uses global settings.
            sources: Optional quote sources overriding the configured set.
            http_client: Optional shared client (tests pass one with a mock transport).
        """
        self._settings = settings
        self._sources = sources
        self._http_client = http_client
        self._owns_client = http_client is None

        self._resolver_context: Optional[ResolverContext] = None
        self._resolver: Optional[QuoteResolver] = None
        self._portfolio_engine: Optional[PortfolioEngine] = None

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get the shared httpx.AsyncClient (created on first use)."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.settings.source_timeout_seconds),
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
                follow_redirects=True,
            )
            self._owns_client = True
        return self._http_client

    def build_sources(self) -> list[QuoteSource]:
        """Instantiate the configured quote sources."""
        settings = self.settings
        if settings.use_stub_quotes:
            logger.info("Using stub quote source")
            return [StubQuoteSource(currency=settings.quote_currency)]

        client = self.http_client
        return [
            YahooSource(timeout_seconds=settings.source_timeout_seconds),
            IngSource(
                client,
                base_url=settings.ing_base_url,
                timeout_seconds=settings.source_timeout_seconds,
                batch_limit=settings.ing_batch_limit,
                currency=settings.quote_currency,
            ),
            FinnhubSource(
                client,
                api_key=settings.finnhub_api_key,
                base_url=settings.finnhub_base_url,
                timeout_seconds=settings.source_timeout_seconds,
                max_retries=settings.finnhub_max_retries,
                retry_delay_seconds=settings.finnhub_retry_delay_seconds,
            ),
            CoingeckoSource(
                client,
                base_url=settings.coingecko_base_url,
                timeout_seconds=settings.source_timeout_seconds,
                batch_timeout_seconds=settings.batch_timeout_seconds,
                currency=settings.quote_currency,
            ),
        ]

    @property
    def resolver_context(self) -> ResolverContext:
        """Get the process-wide cache and rate limiter."""
        if self._resolver_context is None:
            self._resolver_context = ResolverContext.from_settings(self.settings)
        return self._resolver_context

    @property
    def resolver(self) -> QuoteResolver:
        """Get the QuoteResolver instance."""
        if self._resolver is None:
            sources = self._sources if self._sources is not None else self.build_sources()
            self._resolver = QuoteResolver.from_settings(
                sources, self.resolver_context, self.settings
            )
        return self._resolver

    @property
    def portfolio(self) -> PortfolioEngine:
        """Get the PortfolioEngine instance."""
        if self._portfolio_engine is None:
            self._portfolio_engine = PortfolioEngine()
        return self._portfolio_engine

    async def aclose(self) -> None:
        """Clean up resources."""
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
        self._http_client = None
        self._resolver = None


# Global application context
_app_context: Optional[AppContext] = None


def get_app_context() -> AppContext:
    """Get or create the global application context."""
    global _app_context
    if _app_context is None:
        _app_context = AppContext()
    return _app_context


def set_app_context(context: Optional[AppContext]) -> None:
    """Set (or clear) the global application context."""
    global _app_context
    _app_context = context
