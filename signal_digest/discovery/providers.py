"""
Discovery providers: free-text query -> candidate sources.

Each provider is independent and may raise on upstream failure; the
engine converts failures into empty buckets. Providers:

- channels: video platform channel search (page scrape)
- podcasts: podcast directory search
- reddit: subreddit search
- news: synthesized news-search RSS query (no I/O)
- blogs: feed directory search, falling back to a newsletter guess
- social: direct profile lookup plus bridge races
"""

import asyncio
import logging
import re
from urllib.parse import quote, urlparse

import feedparser

from signal_digest.discovery.config import DiscoveryConfig
from signal_digest.discovery.racing import first_success
from signal_digest.discovery.schemas import SearchResult
from signal_digest.ingestion import syndication
from signal_digest.ingestion.feed_fetcher import FEED_ACCEPT
from signal_digest.ingestion.http_client import HTTPClient, RetryConfig
from signal_digest.ingestion.schemas import SourceType

logger = logging.getLogger(__name__)

_CHANNEL_RENDERER = re.compile(
    r'"channelRenderer":\{"channelId":"(UC[\w-]+)","title":\{"simpleText":"([^"]+)"\}'
    r'.*?"thumbnails":\[\{"url":"([^"]+)"'
)

# Channel-only filter for the results page
_CHANNEL_FILTER = "EgIQAg%253D%253D"

TWITTER_BRIDGES = (
    "https://nitter.privacydev.net/{handle}/rss",
    "https://nitter.poast.org/{handle}/rss",
    "https://nitter.lucabased.xyz/{handle}/rss",
    "https://rsshub.app/twitter/user/{handle}",
)

INSTAGRAM_BRIDGES = (
    "https://rsshub.app/instagram/user/{handle}",
    "https://rsshub.feeddd.org/instagram/user/{handle}",
    "https://pixelfed.social/users/{handle}.atom",
)

TWITTER_ICON = "https://abs.twimg.com/favicons/twitter.ico"
INSTAGRAM_ICON = "https://www.instagram.com/static/images/ico/favicon.ico/36b3ee2d91ed.ico"

_DIRECTORY_SKIP = ("youtube.com", "reddit.com", "itunes.apple.com")


def normalize_handle(query: str) -> str | None:
    """A social handle from a query, or None if the query cannot be one."""
    handle = query.strip().removeprefix("@")
    if " " in handle or len(handle) < 2:
        return None
    return handle


def infer_directory_type(feed_url: str, website: str, description: str) -> SourceType:
    """Source type for a feed directory hit, from its URL and metadata."""
    if "substack.com" in feed_url:
        return SourceType.SUBSTACK
    if "medium.com" in feed_url:
        return SourceType.MEDIUM
    if "nitter" in feed_url or "twitter.com" in website or "x.com" in website:
        return SourceType.TWITTER
    if "rsshub" in feed_url and ("instagram" in feed_url or "instagram.com" in website):
        return SourceType.INSTAGRAM
    if "newsletter" in description.lower():
        return SourceType.NEWSLETTER
    return SourceType.RSS


def is_feed_document(body: str) -> bool:
    """True if feedparser recognizes the body as RSS/Atom or finds entries."""
    parsed = feedparser.parse(body)
    return bool(parsed.get("version")) or bool(parsed.get("entries"))


class DiscoveryProviders:
    """
    The provider adapters behind the discovery engine.

    Every call opens its own short-lived client without retries; discovery
    favours a fast partial answer over a slow complete one.
    """

    def __init__(self, config: DiscoveryConfig | None = None):
        self._config = config or DiscoveryConfig()
        self._retry = RetryConfig(max_retries=0)

    @property
    def config(self) -> DiscoveryConfig:
        return self._config

    def _client(self, timeout: float) -> HTTPClient:
        return HTTPClient(self._retry, timeout=timeout)

    async def search_channels(self, query: str) -> list[SearchResult]:
        url = (
            f"https://www.youtube.com/results?search_query={quote(query)}"
            f"&sp={_CHANNEL_FILTER}"
        )
        async with self._client(self._config.provider_timeout_seconds) as client:
            response = await client.get(url)

        results: list[SearchResult] = []
        seen: set[str] = set()
        for channel_id, title, thumb_url in _CHANNEL_RENDERER.findall(response.text):
            if channel_id in seen:
                continue
            seen.add(channel_id)

            if thumb_url.startswith("//"):
                thumb_url = "https:" + thumb_url

            results.append(
                SearchResult(
                    title=title,
                    description="YouTube Channel",
                    url=f"https://www.youtube.com/feeds/videos.xml?channel_id={channel_id}",
                    type=SourceType.YOUTUBE,
                    thumbnail=thumb_url,
                )
            )
            if len(results) >= self._config.results_per_provider:
                break

        return results

    async def search_podcasts(self, query: str) -> list[SearchResult]:
        async with self._client(self._config.provider_timeout_seconds) as client:
            response = await client.get(
                "https://itunes.apple.com/search",
                params={
                    "media": "podcast",
                    "term": query,
                    "limit": self._config.results_per_provider,
                },
            )

        results = []
        for item in response.json().get("results", []):
            feed_url = item.get("feedUrl")
            if not feed_url:
                continue
            results.append(
                SearchResult(
                    title=item.get("collectionName") or "Podcast",
                    description=item.get("artistName") or "",
                    url=feed_url,
                    type=SourceType.PODCAST,
                    thumbnail=item.get("artworkUrl100") or "",
                )
            )
        return results[: self._config.results_per_provider]

    async def search_reddit(self, query: str) -> list[SearchResult]:
        async with self._client(self._config.provider_timeout_seconds) as client:
            response = await client.get(
                "https://www.reddit.com/subreddits/search.json",
                params={"q": query, "limit": self._config.results_per_provider},
            )

        results = []
        for child in response.json().get("data", {}).get("children", []):
            data = child.get("data", {})
            path = data.get("url")
            if not path:
                continue
            results.append(
                SearchResult(
                    title=data.get("display_name_prefixed") or f"r/{data.get('display_name', '')}",
                    description=data.get("public_description") or f"Subreddit for {query}",
                    url=f"https://www.reddit.com{path}.rss",
                    type=SourceType.REDDIT,
                    thumbnail=data.get("icon_img") or "",
                )
            )
        return results[: self._config.results_per_provider]

    async def search_news(self, query: str) -> list[SearchResult]:
        topic = quote(query)
        return [
            SearchResult(
                title=f"{query} News (Google News)",
                description=f"Top stories for {query}",
                url=f"https://news.google.com/rss/search?q={topic}&hl=en-US&gl=US&ceid=US:en",
                type=SourceType.NEWS,
            )
        ]

    async def search_blogs(self, query: str) -> list[SearchResult]:
        """Feed directory search; tries ``<query>.substack.com`` when it finds nothing."""
        results: list[SearchResult] = []

        try:
            results = await self._search_directory(query)
        except Exception as e:
            logger.info(f"Feed directory search failed for {query!r}, trying fallback: {e}")

        if not results:
            guessed = await self._guess_substack(query)
            if guessed:
                results.append(guessed)

        return results

    async def _search_directory(self, query: str) -> list[SearchResult]:
        async with self._client(self._config.directory_timeout_seconds) as client:
            response = await client.get(
                self._config.directory_url,
                params={
                    "query": query,
                    "count": self._config.directory_request_count,
                    "locale": "en",
                },
            )

        results = []
        for feed in response.json().get("results", []) or []:
            feed_url = (feed.get("feedId") or "").replace("feed/", "", 1)
            if not feed_url or any(host in feed_url for host in _DIRECTORY_SKIP):
                continue

            website = feed.get("website") or ""
            description = feed.get("description") or ""

            thumbnail = feed.get("iconUrl") or feed.get("visualUrl") or ""
            if not thumbnail and website:
                host = urlparse(website).hostname
                if host:
                    thumbnail = f"https://www.google.com/s2/favicons?domain={host}&sz=64"

            results.append(
                SearchResult(
                    title=feed.get("title") or "Unknown Feed",
                    description=description or website,
                    url=feed_url,
                    type=infer_directory_type(feed_url, website, description),
                    thumbnail=thumbnail,
                )
            )
            if len(results) >= self._config.results_per_provider:
                break

        return results

    async def _guess_substack(self, query: str) -> SearchResult | None:
        slug = re.sub(r"\s+", "", query.lower())
        if not slug:
            return None
        base = f"https://{slug}.substack.com"

        try:
            async with self._client(self._config.substack_lookup_timeout_seconds) as client:
                await client.head(base)
        except Exception as e:
            logger.debug(f"Substack lookup failed for {base}: {e}")
            return None

        return SearchResult(
            title=query,
            description="Substack Newsletter",
            url=f"{base}/feed",
            type=SourceType.SUBSTACK,
            thumbnail=f"https://www.google.com/s2/favicons?domain={slug}.substack.com&sz=64",
        )

    # ── Social ────────────────────────────────────────────

    async def search_social(self, query: str) -> list[SearchResult]:
        """
        Handle lookup across social platforms.

        Runs the direct profile lookup and both bridge races concurrently.
        A direct hit is preferred over a bridge for the same platform.
        """
        handle = normalize_handle(query)
        if handle is None:
            return []

        profile, twitter_bridge, instagram_bridge = await asyncio.gather(
            self.lookup_profile(handle),
            self.race_bridges(TWITTER_BRIDGES, handle),
            self.race_bridges(INSTAGRAM_BRIDGES, handle),
            return_exceptions=True,
        )

        results = []
        if isinstance(profile, SearchResult):
            results.append(profile)
        elif isinstance(twitter_bridge, str):
            results.append(
                SearchResult(
                    title=f"@{handle} (Twitter)",
                    description="Twitter Feed via Bridge",
                    url=twitter_bridge,
                    type=SourceType.TWITTER,
                    thumbnail=TWITTER_ICON,
                )
            )

        if isinstance(instagram_bridge, str):
            results.append(
                SearchResult(
                    title=f"@{handle} (Instagram)",
                    description="Instagram Feed via Bridge",
                    url=instagram_bridge,
                    type=SourceType.INSTAGRAM,
                    thumbnail=INSTAGRAM_ICON,
                )
            )

        return results

    async def lookup_profile(self, handle: str) -> SearchResult | None:
        """Direct lookup through the public syndication timeline."""
        endpoint = syndication.syndication_endpoint(handle)
        try:
            async with self._client(self._config.profile_timeout_seconds) as client:
                response = await client.get(endpoint)
            tweets = syndication.extract_tweets(response.text)
        except Exception as e:
            logger.debug(f"Profile lookup failed for @{handle}: {e}")
            return None

        if not tweets:
            return None

        profile = syndication.profile_from_tweets(tweets, handle) or {}
        return SearchResult(
            title=f"@{profile.get('screen_name') or handle} (Twitter)",
            description=profile.get("description") or profile.get("name") or "Twitter profile",
            url=endpoint,
            type=SourceType.TWITTER,
            thumbnail=profile.get("profile_image_url_https") or TWITTER_ICON,
        )

    async def check_bridge(self, url: str) -> str | None:
        """The URL if it answers with a parseable feed document, else None."""
        async with self._client(self._config.bridge_timeout_seconds) as client:
            response = await client.get(url, headers={"Accept": FEED_ACCEPT})
        return url if is_feed_document(response.text) else None

    async def race_bridges(self, templates: tuple[str, ...], handle: str) -> str | None:
        """First mirrored bridge to serve a valid feed for ``handle``."""
        urls = [template.format(handle=handle) for template in templates]
        return await first_success(
            [lambda url=url: self.check_bridge(url) for url in urls],
            timeout=self._config.bridge_timeout_seconds,
        )
