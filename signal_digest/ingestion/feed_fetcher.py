"""
Feed fetcher: one source endpoint -> normalized ContentItems.

Handles:
- RSS/Atom parsing via feedparser
- Web pages that are not feeds, through one hop of
  ``<link rel="alternate">`` autodiscovery
- Social syndication endpoints (see ``syndication``)
- HTML description cleanup and thumbnail extraction

Fetching never raises for network or parse failures. ``fetch_source``
reports the failure in its FetchOutcome; ``fetch`` just returns an empty
list. Either way the failure is logged and counted.
"""

import asyncio
import calendar
import html
import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any
from urllib.parse import urljoin

import feedparser
import httpx
from bs4 import BeautifulSoup

from signal_digest.errors import FetchFailure
from signal_digest.ingestion import syndication
from signal_digest.ingestion.config import FetchConfig
from signal_digest.ingestion.http_client import HTTPClient, RetryConfig
from signal_digest.ingestion.schemas import ContentItem, SourceType
from signal_digest.observability.metrics import get_metrics

logger = logging.getLogger(__name__)

FEED_ACCEPT = "application/rss+xml, application/atom+xml, application/xml, text/xml;q=0.9, */*;q=0.8"

_FEED_LINK_TYPES = {
    "application/rss+xml",
    "application/atom+xml",
    "application/xml",
    "text/xml",
}

_IMG_SRC = re.compile(r"""<img[^>]+src=["']([^"']+)["']""", re.IGNORECASE)

_DATE_FIELDS = ("published", "updated", "created")


@dataclass
class FetchOutcome:
    """Items from one source plus the side-channel status of the fetch."""

    endpoint: str
    items: list[ContentItem] = field(default_factory=list)
    ok: bool = True
    error: str | None = None
    elapsed: float = 0.0


@dataclass
class FeedPreview:
    """Feed title, artwork and the first few items, for showing a source before it is added."""

    endpoint: str
    title: str | None = None
    image: str | None = None
    items: list[ContentItem] = field(default_factory=list)
    ok: bool = True
    error: str | None = None


def feed_image(feed_meta: dict[str, Any]) -> str | None:
    """Channel artwork (RSS ``<image>`` or ``itunes:image``), if the feed declares one."""
    image = feed_meta.get("image") or {}
    return image.get("href") or image.get("url") or None


def clean_html(html_content: str) -> str:
    """
    Extract clean text from HTML content.

    Args:
        html_content: Raw HTML string

    Returns:
        Clean text content
    """
    if not html_content:
        return ""

    soup = BeautifulSoup(html_content, "html.parser")

    for element in soup(["script", "style", "nav", "footer", "header"]):
        element.decompose()

    text = soup.get_text(separator=" ")
    text = html.unescape(text)
    text = re.sub(r"\s+", " ", text)

    return text.strip()


def parse_entry_date(entry: dict[str, Any], now: datetime | None = None) -> datetime | None:
    """
    Publish date of a feed entry.

    The first date field present decides. No date field at all means the
    entry is treated as published ``now``; a date that is present but cannot
    be parsed yields None so the aggregator drops the item.
    """
    for name in _DATE_FIELDS:
        raw = entry.get(name)
        if not raw:
            continue

        parsed = entry.get(f"{name}_parsed")
        if parsed:
            return datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)

        try:
            value = parsedate_to_datetime(raw)
        except (TypeError, ValueError):
            try:
                value = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
            except ValueError:
                logger.debug(f"Unparseable date {raw!r}")
                return None

        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value

    return now or datetime.now(timezone.utc)


def _entry_description_html(entry: dict[str, Any]) -> str:
    # media:description (video feeds), encoded content, then summary
    media_description = entry.get("media_description")
    if media_description:
        return media_description

    content = entry.get("content")
    if content:
        value = content[0].get("value", "")
        if value:
            return value

    return entry.get("summary", "") or entry.get("description", "") or ""


def _entry_thumbnail(entry: dict[str, Any], body_html: str, base_url: str) -> str:
    thumbnail = ""

    media_thumbnail = entry.get("media_thumbnail")
    if media_thumbnail:
        thumbnail = media_thumbnail[0].get("url", "")

    if not thumbnail:
        for enclosure in entry.get("enclosures", []):
            if enclosure.get("type", "").startswith("image") and enclosure.get("href"):
                thumbnail = enclosure["href"]
                break

    if not thumbnail:
        for media in entry.get("media_content", []):
            if media.get("medium") == "image" and media.get("url"):
                thumbnail = media["url"]
                break

    if not thumbnail and body_html:
        m = _IMG_SRC.search(body_html)
        if m:
            thumbnail = m.group(1)

    # Relative paths are common on bridge instances
    if thumbnail and not thumbnail.startswith(("http://", "https://")):
        thumbnail = urljoin(base_url, thumbnail)

    return thumbnail


def _looks_like_html(response: httpx.Response) -> bool:
    head = response.text[:500].lstrip().lower()
    if head.startswith("<?xml") or "<rss" in head or "<feed" in head:
        return False
    content_type = response.headers.get("content-type", "").lower()
    return "html" in content_type or head.startswith(("<!doctype html", "<html"))


def discover_feed_link(page_html: str, page_url: str) -> str | None:
    """First ``<link rel="alternate">`` feed reference on an HTML page."""
    soup = BeautifulSoup(page_html, "html.parser")
    for link in soup.find_all("link", rel="alternate"):
        link_type = (link.get("type") or "").lower()
        href = link.get("href")
        if href and link_type in _FEED_LINK_TYPES:
            return urljoin(page_url, href)
    return None


class FeedFetcher:
    """
    Fetches and normalizes one source at a time.

    A short-lived HTTP client is opened per call; callers fan out by
    running ``fetch_source`` concurrently.
    """

    def __init__(self, config: FetchConfig | None = None):
        self._config = config or FetchConfig()
        self._retry = RetryConfig(
            max_retries=self._config.max_retries,
            base_delay=self._config.retry_base_delay,
        )

    @property
    def config(self) -> FetchConfig:
        return self._config

    async def fetch(
        self,
        endpoint: str,
        declared_type: SourceType,
        display_name: str,
        timeout: float | None = None,
    ) -> list[ContentItem]:
        """Items for one source; empty on any failure."""
        outcome = await self.fetch_source(endpoint, declared_type, display_name, timeout)
        return outcome.items

    async def fetch_source(
        self,
        endpoint: str,
        declared_type: SourceType,
        display_name: str,
        timeout: float | None = None,
    ) -> FetchOutcome:
        """
        Fetch one source, bounded by ``timeout``.

        Args:
            endpoint: Feed endpoint (or web page for low-confidence sources)
            declared_type: Source type stamped onto every item
            display_name: Source name stamped onto every item
            timeout: Wall-clock budget; defaults to ``FetchConfig.timeout_seconds``

        Returns:
            FetchOutcome with ``ok=False`` and an error message on failure
        """
        budget = timeout or self._config.timeout_seconds
        started = time.perf_counter()

        try:
            items = await asyncio.wait_for(
                self._fetch_items(endpoint, declared_type, display_name),
                timeout=budget,
            )
            outcome = FetchOutcome(endpoint=endpoint, items=items)
        except asyncio.TimeoutError:
            outcome = FetchOutcome(
                endpoint=endpoint,
                ok=False,
                error=f"timed out after {budget:.1f}s",
            )
        except Exception as e:
            outcome = FetchOutcome(endpoint=endpoint, ok=False, error=str(e) or type(e).__name__)

        outcome.elapsed = time.perf_counter() - started
        get_metrics().record_fetch(declared_type.value, outcome.ok, outcome.elapsed)

        if outcome.ok:
            logger.debug(f"Fetched {len(outcome.items)} items from {display_name}")
        else:
            logger.warning(f"Feed fetch failed for {display_name} ({endpoint}): {outcome.error}")

        return outcome

    async def preview(
        self,
        endpoint: str,
        declared_type: SourceType,
        display_name: str,
        limit: int = 3,
        timeout: float | None = None,
    ) -> FeedPreview:
        """
        Feed title, artwork and up to ``limit`` items for one endpoint.

        Like ``fetch_source`` this never raises; a failed preview has
        ``ok=False`` and no items.
        """
        budget = timeout or self._config.timeout_seconds
        try:
            return await asyncio.wait_for(
                self._preview(endpoint, declared_type, display_name, limit),
                timeout=budget,
            )
        except asyncio.TimeoutError:
            error = f"timed out after {budget:.1f}s"
        except Exception as e:
            error = str(e) or type(e).__name__

        logger.info(f"No preview for {endpoint}: {error}")
        return FeedPreview(endpoint=endpoint, ok=False, error=error)

    async def _preview(
        self,
        endpoint: str,
        declared_type: SourceType,
        display_name: str,
        limit: int,
    ) -> FeedPreview:
        if syndication.is_syndication_endpoint(endpoint):
            items = await self._fetch_timeline(endpoint, declared_type, display_name)
            return FeedPreview(endpoint=endpoint, items=items[:limit])

        feed = self._parse_feed(await self._fetch_document(endpoint), endpoint)
        meta = feed.get("feed", {})
        title = (meta.get("title") or "").strip() or None
        items = self._items_from_feed(feed, endpoint, declared_type, display_name)
        return FeedPreview(
            endpoint=endpoint,
            title=title,
            image=feed_image(meta),
            items=items[:limit],
        )

    async def _fetch_items(
        self,
        endpoint: str,
        declared_type: SourceType,
        display_name: str,
    ) -> list[ContentItem]:
        if syndication.is_syndication_endpoint(endpoint):
            return await self._fetch_timeline(endpoint, declared_type, display_name)
        document = await self._fetch_document(endpoint)
        return self.parse_document(document, endpoint, declared_type, display_name)

    async def _fetch_timeline(
        self,
        endpoint: str,
        declared_type: SourceType,
        display_name: str,
    ) -> list[ContentItem]:
        handle = syndication.handle_from_endpoint(endpoint)
        if not handle:
            raise FetchFailure(endpoint, "no handle in syndication endpoint")
        async with HTTPClient(self._retry, timeout=self._config.request_timeout_seconds) as client:
            response = await client.get(endpoint)
        items = syndication.parse_timeline(response.text, handle, display_name, declared_type)
        return items[: self._config.max_items_per_source]

    async def _fetch_document(self, endpoint: str) -> str:
        """Body of the feed behind ``endpoint``, following autodiscovery from HTML pages."""
        async with HTTPClient(self._retry, timeout=self._config.request_timeout_seconds) as client:
            response = await client.get(endpoint, headers={"Accept": FEED_ACCEPT})

            if _looks_like_html(response):
                feed_url = None
                if self._config.follow_autodiscovery:
                    feed_url = discover_feed_link(response.text, str(response.url))
                if not feed_url:
                    raise FetchFailure(endpoint, "page has no discoverable feed")
                logger.debug(f"Autodiscovered feed {feed_url} for {endpoint}")
                response = await client.get(feed_url, headers={"Accept": FEED_ACCEPT})

        return response.text

    def parse_document(
        self,
        document: str,
        endpoint: str,
        declared_type: SourceType,
        display_name: str,
    ) -> list[ContentItem]:
        """
        Parse an RSS/Atom document into ContentItems.

        Raises:
            FetchFailure: The document is neither a feed nor has entries
        """
        return self._items_from_feed(
            self._parse_feed(document, endpoint), endpoint, declared_type, display_name
        )

    @staticmethod
    def _parse_feed(document: str, endpoint: str) -> feedparser.FeedParserDict:
        feed = feedparser.parse(document)
        if not feed.get("entries") and not feed.get("version"):
            raise FetchFailure(endpoint, "response is not a feed document")
        return feed

    def _items_from_feed(
        self,
        feed: feedparser.FeedParserDict,
        endpoint: str,
        declared_type: SourceType,
        display_name: str,
    ) -> list[ContentItem]:
        now = datetime.now(timezone.utc)
        return [
            self._to_item(entry, endpoint, declared_type, display_name, now)
            for entry in feed.get("entries", [])[: self._config.max_items_per_source]
        ]

    def _to_item(
        self,
        entry: dict[str, Any],
        endpoint: str,
        declared_type: SourceType,
        display_name: str,
        now: datetime,
    ) -> ContentItem:
        link = entry.get("link") or endpoint
        body_html = _entry_description_html(entry)

        description = clean_html(body_html)
        if len(description) > self._config.max_description_chars:
            description = description[: self._config.max_description_chars].rstrip() + "..."

        return ContentItem(
            title=(entry.get("title") or "").strip() or "Untitled",
            description=description,
            link=link,
            published_at=parse_entry_date(entry, now),
            source_name=display_name,
            source_type=declared_type,
            thumbnail=_entry_thumbnail(entry, body_html, link),
        )
