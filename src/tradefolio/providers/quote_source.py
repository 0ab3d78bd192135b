"""Quote source protocol and shared base classes."""

import logging
from typing import Any, Optional, Protocol, runtime_checkable

import httpx

from tradefolio.core.exceptions import QuoteSourceError
from tradefolio.domain.models import Quote, SearchResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
USER_AGENT = "Mozilla/5.0"


@runtime_checkable
class QuoteSource(Protocol):
    """
    Protocol for upstream quote sources.

    Implementations convert provider payloads into Quote / SearchResult.
    Soft failure is signalled by returning None (or an empty collection) or
    by raising; the resolver catches every exception and moves on.
    """

    name: str
    priority: int

    def supports(self, identifier: str) -> bool:
        """Cheap, offline check whether this source can handle identifier."""
        ...

    async def fetch_quote(self, identifier: str) -> Optional[Quote]:
        """Fetch a single quote; None when the source has no price."""
        ...

    async def fetch_batch(self, identifiers: list[str]) -> dict[str, Quote]:
        """
        Fetch quotes for several identifiers.

        Returns dict mapping identifier -> Quote. Missing identifiers are
        omitted from the result.
        """
        ...

    async def search(self, query: str) -> list[SearchResult]:
        """Search instruments by free text, ticker or ISIN."""
        ...


class BaseQuoteSource:
    """Default batch behaviour: one fetch_quote per identifier, in order."""

    name = "base"
    priority = 100

    def supports(self, identifier: str) -> bool:
        return False

    async def fetch_quote(self, identifier: str) -> Optional[Quote]:
        return None

    async def fetch_batch(self, identifiers: list[str]) -> dict[str, Quote]:
        result: dict[str, Quote] = {}
        for identifier in identifiers:
            try:
                quote = await self.fetch_quote(identifier)
            except QuoteSourceError as exc:
                logger.warning("%s batch item %s failed: %s", self.name, identifier, exc)
                continue
            if quote is not None and quote.has_price:
                result[identifier] = quote
        return result

    async def search(self, query: str) -> list[SearchResult]:
        return []

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name} priority={self.priority}>"


class HttpQuoteSource(BaseQuoteSource):
    """Base for sources reached over HTTP with a shared httpx.AsyncClient."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds

    def _headers(self) -> dict[str, str]:
        return {"User-Agent": USER_AGENT, "Accept": "application/json"}

    async def _get_json(
        self,
        path: str,
        params: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        GET base_url + path and decode JSON.

        Transport errors, timeouts and non-2xx responses are raised as
        QuoteSourceError; 429 and 5xx are marked retryable.
        """
        url = f"{self._base_url}{path}"
        try:
            response = await self._client.get(
                url,
                params=params,
                headers=self._headers(),
                timeout=httpx.Timeout(timeout or self._timeout),
            )
        except httpx.TimeoutException as exc:
            raise QuoteSourceError(
                f"Timeout calling {path}", source=self.name, code="TIMEOUT", retryable=True
            ) from exc
        except httpx.HTTPError as exc:
            raise QuoteSourceError(
                f"Network error calling {path}: {exc}",
                source=self.name,
                code="NETWORK_ERROR",
                retryable=True,
            ) from exc

        if response.status_code == 401:
            raise QuoteSourceError(
                "Invalid API key", source=self.name, code="UNAUTHORIZED", status_code=401
            )
        if response.status_code == 429:
            raise QuoteSourceError(
                "Rate limit exceeded",
                source=self.name,
                code="RATE_LIMITED",
                status_code=429,
                retryable=True,
            )
        if response.status_code >= 400:
            raise QuoteSourceError(
                f"HTTP {response.status_code} from {path}",
                source=self.name,
                code="HTTP_ERROR",
                status_code=response.status_code,
                retryable=response.status_code >= 500,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise QuoteSourceError(
                f"Invalid JSON from {path}", source=self.name, code="BAD_PAYLOAD"
            ) from exc
