"""
Discovery engine: fan a search out over providers and merge the results.

Without a type filter every provider runs concurrently and each is bounded
by its own timeout. A provider that fails or times out contributes an
empty bucket. Buckets are interleaved round-robin in a fixed priority
order so no single provider dominates the first page.
"""

import asyncio
from collections.abc import Awaitable, Callable, Mapping

import structlog

from signal_digest.discovery.config import DiscoveryConfig
from signal_digest.discovery.providers import DiscoveryProviders
from signal_digest.discovery.racing import interleave
from signal_digest.discovery.schemas import SearchResult
from signal_digest.errors import InvalidSearchType
from signal_digest.ingestion.schemas import SourceType
from signal_digest.observability.metrics import get_metrics

logger = structlog.get_logger(__name__)

Provider = Callable[[str], Awaitable[list[SearchResult]]]

# Interleave priority: blog/newsletter hits first, then social handles
PROVIDER_ORDER = ("blog", "social", "channel", "podcast", "reddit", "news")

# type filter -> provider name
TYPE_TO_PROVIDER: dict[str, str] = {
    "youtube": "channel",
    "podcast": "podcast",
    "reddit": "reddit",
    "news": "news",
    "blog": "blog",
    "rss": "blog",
    "twitter": "social",
    "instagram": "social",
}

# Social results are narrowed to the requested platform
_SOCIAL_FILTERS = {
    "twitter": SourceType.TWITTER,
    "instagram": SourceType.INSTAGRAM,
}


class DiscoveryEngine:
    """
    Multi-provider source search.

    Usage:
        engine = DiscoveryEngine()
        results = await engine.search("semiconductors")
        tweets = await engine.search("@karpathy", type_filter="twitter")
    """

    def __init__(
        self,
        providers: Mapping[str, Provider] | None = None,
        config: DiscoveryConfig | None = None,
    ):
        """
        Args:
            providers: Provider callables keyed by name (see PROVIDER_ORDER).
                Defaults to the network-backed DiscoveryProviders.
            config: Discovery configuration
        """
        self._config = config or DiscoveryConfig()
        if providers is None:
            adapters = DiscoveryProviders(self._config)
            providers = {
                "blog": adapters.search_blogs,
                "social": adapters.search_social,
                "channel": adapters.search_channels,
                "podcast": adapters.search_podcasts,
                "reddit": adapters.search_reddit,
                "news": adapters.search_news,
            }
        self._providers = dict(providers)

    async def search(self, query: str, type_filter: str | None = None) -> list[SearchResult]:
        """
        Search for candidate sources.

        Args:
            query: Free-text query or handle
            type_filter: Optional source type; ``None`` or ``"all"`` runs every provider

        Returns:
            Results, interleaved across providers when unfiltered

        Raises:
            InvalidSearchType: Unknown type filter
        """
        if not type_filter or type_filter == "all":
            return await self._search_all(query)

        provider_name = TYPE_TO_PROVIDER.get(type_filter)
        if provider_name is None:
            raise InvalidSearchType(type_filter)

        results = await self._run_provider(provider_name, query)

        wanted = _SOCIAL_FILTERS.get(type_filter)
        if wanted is not None:
            results = [r for r in results if r.type == wanted]
        return results

    async def _search_all(self, query: str) -> list[SearchResult]:
        names = [name for name in PROVIDER_ORDER if name in self._providers]
        buckets = await asyncio.gather(*(self._run_provider(name, query) for name in names))
        merged = interleave(buckets)

        logger.info(
            "Discovery search complete",
            query=query,
            results=len(merged),
            buckets={name: len(bucket) for name, bucket in zip(names, buckets)},
        )
        return merged

    async def _run_provider(self, name: str, query: str) -> list[SearchResult]:
        """One provider, time-bounded; any failure becomes an empty bucket."""
        provider = self._providers.get(name)
        if provider is None:
            return []

        metrics = get_metrics()
        try:
            results = await asyncio.wait_for(
                provider(query),
                timeout=self._config.provider_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("Discovery provider timed out", provider=name, query=query)
            metrics.record_discovery(name, "error")
            return []
        except Exception as e:
            logger.warning(
                "Discovery provider failed",
                provider=name,
                query=query,
                error=str(e),
            )
            metrics.record_discovery(name, "error")
            return []

        metrics.record_discovery(name, "ok" if results else "empty")
        return list(results)[: self._config.results_per_provider]
