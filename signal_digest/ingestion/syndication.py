"""
Social profile syndication reader.

The public timeline-profile syndication page embeds its data as a
``__NEXT_DATA__`` JSON blob. Tweets and retweets in that blob are turned
into ContentItems; the embedding user doubles as the profile used by the
discovery engine's direct handle lookup.
"""

import json
import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

from bs4 import BeautifulSoup

from signal_digest.ingestion.schemas import ContentItem, SourceType

logger = logging.getLogger(__name__)

SYNDICATION_BASE = "https://syndication.twitter.com/srv/timeline-profile/screen-name/"


def syndication_endpoint(handle: str) -> str:
    """Timeline-profile syndication URL for a handle (leading @ stripped)."""
    return f"{SYNDICATION_BASE}{handle.lstrip('@')}"


def is_syndication_endpoint(url: str) -> bool:
    return "syndication.twitter.com" in url or "twitter.com/srv/timeline" in url


def handle_from_endpoint(url: str) -> str | None:
    _, sep, tail = url.partition("screen-name/")
    if not sep:
        return None
    handle = tail.split("/")[0].split("?")[0]
    return handle or None


def extract_tweets(page_html: str) -> list[dict[str, Any]]:
    """
    Pull raw tweet dicts out of a syndication page.

    Returns an empty list when the page has no ``__NEXT_DATA__`` script.

    Raises:
        ValueError: The embedded blob is not valid JSON
    """
    soup = BeautifulSoup(page_html, "html.parser")
    script = soup.find("script", id="__NEXT_DATA__")
    if script is None or not script.string:
        logger.warning("No __NEXT_DATA__ found in syndication response")
        return []

    data = json.loads(script.string)
    entries = (
        data.get("props", {}).get("pageProps", {}).get("timeline", {}).get("entries", [])
    )

    tweets = []
    for entry in entries:
        tweet = (entry.get("content") or {}).get("tweet")
        if entry.get("type") == "tweet" and tweet:
            tweets.append(tweet)
    return tweets


def profile_from_tweets(tweets: list[dict[str, Any]], handle: str) -> dict[str, Any] | None:
    """The timeline owner's user record, if any tweet is authored by them."""
    for tweet in tweets:
        user = tweet.get("user") or {}
        if user.get("screen_name", "").lower() == handle.lower():
            return user
    return None


def _parse_created_at(value: str | None) -> datetime | None:
    if not value:
        return datetime.now(timezone.utc)
    try:
        # "Wed Oct 10 20:19:24 +0000 2018"
        return datetime.strptime(value, "%a %b %d %H:%M:%S %z %Y")
    except ValueError:
        pass
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    # RFC 2822 "-0000" means UTC with unknown origin; parsedate returns it naive
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _first_media_url(tweet: dict[str, Any]) -> str:
    media = (tweet.get("extended_entities") or {}).get("media") or (
        tweet.get("entities") or {}
    ).get("media") or []
    return media[0].get("media_url_https", "") if media else ""


def tweet_to_item(
    tweet: dict[str, Any],
    handle: str,
    source_name: str,
    source_type: SourceType = SourceType.TWITTER,
) -> ContentItem:
    """Normalize one tweet; retweets are shown through the original post."""
    user = tweet.get("user") or {}
    original = tweet.get("retweeted_status")
    display = original or tweet

    author = user.get("name") or handle
    if original:
        original_author = (original.get("user") or {}).get("name", "")
        title = f"Retweet by {author} (Original: {original_author})"
    else:
        title = f"Tweet from {author}"

    return ContentItem(
        title=title,
        description=display.get("full_text") or display.get("text") or "",
        link=f"https://twitter.com/{user.get('screen_name') or handle}/status/{tweet.get('id_str', '')}",
        published_at=_parse_created_at(tweet.get("created_at")),
        source_name=source_name,
        source_type=source_type,
        thumbnail=_first_media_url(display),
    )


def parse_timeline(
    page_html: str,
    handle: str,
    source_name: str,
    source_type: SourceType = SourceType.TWITTER,
) -> list[ContentItem]:
    """Syndication page -> ContentItems, newest entries as served."""
    return [
        tweet_to_item(tweet, handle, source_name, source_type)
        for tweet in extract_tweets(page_html)
    ]
