"""
Waterfall quote resolution across prioritized sources.

For a single identifier: fresh cache hit, else each eligible source in
static priority order (skipping rate-limited ones) until one returns a
positive price, else the stale cache entry, else None. Batches are grouped
per source and fetched concurrently. Searches are merged, deduplicated and
ranked. Upstream failures never reach the caller.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Any, Awaitable, Iterable, Optional

from tradefolio.config.settings import Settings
from tradefolio.core.exceptions import ValidationError
from tradefolio.domain.models import MarketIndex, Quote, SearchResult
from tradefolio.domain.views import CacheStats, RateLimitStatus
from tradefolio.providers.identifiers import normalize_identifier
from tradefolio.providers.quote_source import QuoteSource
from tradefolio.services.quote_cache import ResolverContext

logger = logging.getLogger(__name__)

INDICES_CACHE_KEY = "indices:all"


def quote_cache_key(identifier: str) -> str:
    return f"quote:{identifier}"


def search_cache_key(source: str, query: str) -> str:
    return f"search:{source}:{query.upper()}"


def deduplicate_results(results: Iterable[SearchResult]) -> list[SearchResult]:
    """
    Collapse results sharing an ISIN (or, lacking one, a ticker).

    The entry with the highest relevance wins; on a tie the first one seen
    is kept.
    """
    best: dict[str, SearchResult] = {}
    for result in results:
        key = result.dedupe_key
        existing = best.get(key)
        if existing is None or result.relevance > existing.relevance:
            best[key] = result
    return list(best.values())


def rank_results(results: Iterable[SearchResult]) -> list[SearchResult]:
    """Priced results first, then by relevance descending (stable)."""
    return sorted(results, key=lambda r: (not r.has_price, -r.relevance))


class QuoteResolver:
    """
    Resolves prices and searches over a fixed set of quote sources.

    Sources are ordered once by their static priority. The ResolverContext
    (cache + rate limiter) is shared by all calls.
    """

    def __init__(
        self,
        sources: Iterable[QuoteSource],
        context: ResolverContext,
        quote_max_age: float = 60,
        search_max_age: float = 300,
        indices_max_age: float = 300,
        source_timeout: float = 10.0,
        batch_timeout: float = 15.0,
        search_price_limit: int = 10,
        search_result_limit: int = 15,
        search_min_query_length: int = 2,
    ):
        self._sources: list[QuoteSource] = sorted(sources, key=lambda s: s.priority)
        self._context = context
        self._quote_max_age = quote_max_age
        self._search_max_age = search_max_age
        self._indices_max_age = indices_max_age
        self._source_timeout = source_timeout
        self._batch_timeout = batch_timeout
        self._search_price_limit = search_price_limit
        self._search_result_limit = search_result_limit
        self._search_min_query_length = search_min_query_length

    @classmethod
    def from_settings(
        cls,
        sources: Iterable[QuoteSource],
        context: ResolverContext,
        settings: Settings,
    ) -> "QuoteResolver":
        return cls(
            sources,
            context,
            quote_max_age=settings.quote_max_age_seconds,
            search_max_age=settings.search_max_age_seconds,
            indices_max_age=settings.indices_max_age_seconds,
            source_timeout=settings.source_timeout_seconds,
            batch_timeout=settings.batch_timeout_seconds,
            search_price_limit=settings.search_price_lookup_limit,
            search_result_limit=settings.search_result_limit,
            search_min_query_length=settings.search_min_query_length,
        )

    @property
    def sources(self) -> list[QuoteSource]:
        return list(self._sources)

    @property
    def context(self) -> ResolverContext:
        return self._context

    def source(self, name: Optional[str]) -> Optional[QuoteSource]:
        if not name:
            return None
        name = name.strip().lower()
        for source in self._sources:
            if source.name == name:
                return source
        return None

    @property
    def default_search_source(self) -> Optional[QuoteSource]:
        """Source searched when no source is named (highest priority)."""
        return self._sources[0] if self._sources else None

    @staticmethod
    def _supports(source: QuoteSource, identifier: str) -> bool:
        try:
            return bool(source.supports(identifier))
        except Exception as exc:
            logger.warning("%s.supports(%s) raised: %s", source.name, identifier, exc)
            return False

    def eligible_sources(self, identifier: str) -> list[QuoteSource]:
        """Sources that claim support for identifier, in priority order."""
        return [source for source in self._sources if self._supports(source, identifier)]

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _cache_get(self, key: str, max_age: float) -> Optional[Any]:
        try:
            return self._context.cache.get(key, max_age=max_age)
        except Exception as exc:
            logger.warning("Cache read for %s failed, treating as miss: %s", key, exc)
            return None

    def _cache_get_stale(self, key: str) -> Optional[Any]:
        try:
            return self._context.cache.get_stale(key)
        except Exception as exc:
            logger.warning("Stale cache read for %s failed: %s", key, exc)
            return None

    def _cache_set(self, key: str, value: Any, source: str) -> None:
        try:
            self._context.cache.set(key, value, source=source)
        except Exception as exc:
            logger.warning("Cache write for %s failed: %s", key, exc)

    async def _bounded(self, source: QuoteSource, what: str, call: Awaitable, timeout: float) -> Any:
        """
        Await one upstream call with a timeout.

        Any failure is logged and turned into None so the caller can move on.
        """
        try:
            return await asyncio.wait_for(call, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("%s timed out after %ss (%s)", source.name, timeout, what)
        except Exception as exc:
            logger.warning("%s failed (%s): %s", source.name, what, exc)
        return None

    # =========================================================================
    # SINGLE QUOTE
    # =========================================================================

    async def resolve_quote(self, identifier: str) -> Optional[Quote]:
        """
        Resolve one identifier through the waterfall.

        Returns None only when no source succeeds and nothing (not even a
        stale entry) is cached.
        """
        identifier = normalize_identifier(identifier)
        if not identifier:
            return None
        key = quote_cache_key(identifier)

        cached = self._cache_get(key, self._quote_max_age)
        if cached is not None:
            return cached

        for source in self.eligible_sources(identifier):
            if not self._context.rate_limiter.check(source.name):
                logger.info("Skipping %s for %s: rate limited", source.name, identifier)
                continue

            quote = await self._bounded(
                source, f"quote {identifier}", source.fetch_quote(identifier), self._source_timeout
            )
            if quote is None or not quote.has_price:
                logger.debug("%s had no price for %s", source.name, identifier)
                continue

            self._cache_set(key, quote, source.name)
            logger.debug("Resolved %s via %s: %s", identifier, source.name, quote.price)
            return quote

        stale = self._cache_get_stale(key)
        if stale is not None:
            return stale

        logger.info("No quote available for %s", identifier)
        return None

    # =========================================================================
    # BATCH
    # =========================================================================

    def _group_by_source(
        self,
        identifiers: list[str],
        preferred: dict[str, str],
    ) -> dict[str, tuple[QuoteSource, list[str]]]:
        groups: dict[str, tuple[QuoteSource, list[str]]] = {}
        for identifier in identifiers:
            source = self.source(preferred.get(identifier))
            if source is None or not self._supports(source, identifier):
                eligible = self.eligible_sources(identifier)
                source = eligible[0] if eligible else None
            if source is None:
                logger.info("No source supports %s", identifier)
                continue
            groups.setdefault(source.name, (source, []))[1].append(identifier)
        return groups

    async def _fetch_group(self, source: QuoteSource, identifiers: list[str]) -> dict[str, Quote]:
        if not self._context.rate_limiter.check(source.name):
            logger.info(
                "Skipping batch of %d on %s: rate limited", len(identifiers), source.name
            )
            return {}
        quotes = await self._bounded(
            source,
            f"batch of {len(identifiers)}",
            source.fetch_batch(identifiers),
            self._batch_timeout,
        )
        return quotes or {}

    async def resolve_batch(
        self,
        identifiers: Iterable[str],
        preferred: Optional[dict[str, str]] = None,
        force: bool = False,
    ) -> dict[str, Quote]:
        """
        Resolve many identifiers with one fetch_batch per source.

        Identifiers are grouped by their preferred source (when it supports
        them) or else their best eligible source; groups run concurrently.
        force skips the cache read. Identifiers nobody could price are
        absent from the result; there is no stale fallback here.
        """
        wanted = list(dict.fromkeys(normalize_identifier(i) for i in identifiers if i and i.strip()))
        preferred = {normalize_identifier(k): v for k, v in (preferred or {}).items()}

        result: dict[str, Quote] = {}
        missing: list[str] = []
        for identifier in wanted:
            cached = None if force else self._cache_get(quote_cache_key(identifier), self._quote_max_age)
            if cached is not None:
                result[identifier] = cached
            else:
                missing.append(identifier)

        if not missing:
            return result

        groups = self._group_by_source(missing, preferred)
        fetched = await asyncio.gather(
            *(self._fetch_group(source, ids) for source, ids in groups.values())
        )

        for (source, ids), quotes in zip(groups.values(), fetched):
            requested = set(ids)
            for identifier, quote in quotes.items():
                identifier = normalize_identifier(identifier)
                if identifier not in requested or quote is None or not quote.has_price:
                    continue
                self._cache_set(quote_cache_key(identifier), quote, source.name)
                result[identifier] = quote

        unresolved = [i for i in missing if i not in result]
        if unresolved:
            logger.info("Batch left %d unresolved: %s", len(unresolved), ", ".join(unresolved))
        return result

    # =========================================================================
    # SEARCH
    # =========================================================================

    def _lookup_key(self, source: QuoteSource, result: SearchResult) -> Optional[str]:
        for candidate in (result.symbol, result.identifier):
            if candidate and self._supports(source, candidate):
                return normalize_identifier(candidate)
        return None

    async def _fill_prices(self, source: QuoteSource, results: list[SearchResult]) -> list[SearchResult]:
        """Price the top unpriced results with one fetch_batch call."""
        keys: dict[int, str] = {}
        for index, result in enumerate(results[: self._search_price_limit]):
            if result.has_price:
                continue
            key = self._lookup_key(source, result)
            if key:
                keys[index] = key
        if not keys:
            return results
        if not self._context.rate_limiter.check(source.name):
            logger.info("Skipping price lookup on %s: rate limited", source.name)
            return results

        quotes = await self._bounded(
            source,
            f"search prices for {len(keys)}",
            source.fetch_batch(list(dict.fromkeys(keys.values()))),
            self._batch_timeout,
        ) or {}

        filled = list(results)
        for index, key in keys.items():
            quote = quotes.get(key)
            if quote is not None and quote.has_price:
                filled[index] = _with_price(filled[index], quote)
        return filled

    async def _search_source(self, source: QuoteSource, query: str) -> list[SearchResult]:
        key = search_cache_key(source.name, query)
        cached = self._cache_get(key, self._search_max_age)
        if cached is not None:
            return cached

        if not self._context.rate_limiter.check(source.name):
            logger.info("Skipping search on %s: rate limited", source.name)
            return self._cache_get_stale(key) or []

        results = await self._bounded(
            source, f"search {query!r}", source.search(query), self._source_timeout
        )
        if results is None:
            return self._cache_get_stale(key) or []

        results = await self._fill_prices(source, list(results))
        self._cache_set(key, results, source.name)
        return results

    async def resolve_search(self, query: str, source: Optional[str] = None) -> list[SearchResult]:
        """
        Search the named source, or the highest-priority one, then dedupe and rank.

        At most one source is queried per call. Queries shorter than the
        minimum length return an empty list.
        """
        query = (query or "").strip()
        if len(query) < self._search_min_query_length:
            return []

        if source:
            selected = self.source(source)
            if selected is None:
                raise ValidationError(f"Unknown quote source: {source}")
        else:
            selected = self.default_search_source
            if selected is None:
                return []

        results = await self._search_source(selected, query)
        ranked = rank_results(deduplicate_results(results))
        return ranked[: self._search_result_limit]

    # =========================================================================
    # MARKET INDICES
    # =========================================================================

    async def resolve_indices(self, force: bool = False) -> list[MarketIndex]:
        """Market index levels from the first source that publishes them."""
        if not force:
            cached = self._cache_get(INDICES_CACHE_KEY, self._indices_max_age)
            if cached is not None:
                return cached

        for source in self._sources:
            fetch_indices = getattr(source, "fetch_indices", None)
            if fetch_indices is None:
                continue
            if not self._context.rate_limiter.check(source.name):
                logger.info("Skipping indices on %s: rate limited", source.name)
                continue
            indices = await self._bounded(source, "indices", fetch_indices(), self._batch_timeout)
            if indices:
                self._cache_set(INDICES_CACHE_KEY, indices, source.name)
                return indices

        return self._cache_get_stale(INDICES_CACHE_KEY) or []

    # =========================================================================
    # OBSERVABILITY
    # =========================================================================

    def rate_limit_status(self) -> list[RateLimitStatus]:
        return [self._context.rate_limiter.status(s.name) for s in self._sources]

    def cache_stats(self) -> CacheStats:
        return self._context.cache.stats()


def _with_price(result: SearchResult, quote: Quote) -> SearchResult:
    return replace(result, current_price=quote.price, currency=quote.currency or result.currency)
