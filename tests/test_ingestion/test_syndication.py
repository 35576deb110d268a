"""Tests for the social syndication timeline reader."""

import json
from datetime import datetime, timezone

import pytest

from signal_digest.ingestion.aggregator import merge_items
from signal_digest.ingestion.schemas import AggregationWindow, SourceType
from signal_digest.ingestion.syndication import (
    extract_tweets,
    handle_from_endpoint,
    is_syndication_endpoint,
    parse_timeline,
    profile_from_tweets,
    syndication_endpoint,
)
from tests.conftest import NOW, make_item


def _tweet(id_str: str = "1001", text: str = "Shipping the new release today", **kwargs) -> dict:
    tweet = {
        "id_str": id_str,
        "full_text": text,
        "created_at": "Mon Mar 02 05:00:00 +0000 2026",
        "user": {
            "screen_name": "karpathy",
            "name": "Andrej Karpathy",
            "description": "Building stuff",
            "profile_image_url_https": "https://pbs.twimg.com/profile.jpg",
        },
    }
    tweet.update(kwargs)
    return tweet


def _page(entries: list[dict]) -> str:
    data = {"props": {"pageProps": {"timeline": {"entries": entries}}}}
    return (
        "<html><body>"
        f'<script id="__NEXT_DATA__" type="application/json">{json.dumps(data)}</script>'
        "</body></html>"
    )


class TestEndpoints:
    def test_endpoint_strips_at(self):
        assert syndication_endpoint("@karpathy").endswith("/screen-name/karpathy")

    def test_round_trip_handle(self):
        endpoint = syndication_endpoint("karpathy")

        assert is_syndication_endpoint(endpoint)
        assert handle_from_endpoint(endpoint) == "karpathy"

    def test_handle_missing(self):
        assert handle_from_endpoint("https://example.com/feed") is None
        assert not is_syndication_endpoint("https://example.com/feed")


class TestExtractTweets:
    def test_only_tweet_entries(self):
        page = _page([
            {"type": "tweet", "content": {"tweet": _tweet("1")}},
            {"type": "cursor", "content": {}},
            {"type": "tweet", "content": {"tweet": _tweet("2")}},
        ])

        tweets = extract_tweets(page)

        assert [t["id_str"] for t in tweets] == ["1", "2"]

    def test_missing_script_returns_empty(self):
        assert extract_tweets("<html><body>Nothing here</body></html>") == []

    def test_invalid_json_raises(self):
        page = '<script id="__NEXT_DATA__">{not json</script>'
        with pytest.raises(ValueError):
            extract_tweets(page)

    def test_profile_from_tweets(self):
        profile = profile_from_tweets([_tweet()], "KARPATHY")
        assert profile["name"] == "Andrej Karpathy"

        assert profile_from_tweets([_tweet()], "someoneelse") is None


class TestParseTimeline:
    def test_plain_tweet(self):
        items = parse_timeline(_page([{"type": "tweet", "content": {"tweet": _tweet()}}]),
                               "karpathy", "@karpathy")

        assert len(items) == 1
        item = items[0]
        assert item.title == "Tweet from Andrej Karpathy"
        assert item.description == "Shipping the new release today"
        assert item.link == "https://twitter.com/karpathy/status/1001"
        assert item.published_at == datetime(2026, 3, 2, 5, 0, tzinfo=timezone.utc)
        assert item.source_type == SourceType.TWITTER
        assert item.source_name == "@karpathy"

    def test_retweet_uses_original(self):
        original = _tweet(
            "900",
            "Original thought",
            user={"screen_name": "ylecun", "name": "Yann LeCun"},
            extended_entities={"media": [{"media_url_https": "https://pbs.twimg.com/a.jpg"}]},
        )
        retweet = _tweet("1002", "RT @ylecun: Original thought", retweeted_status=original)

        items = parse_timeline(_page([{"type": "tweet", "content": {"tweet": retweet}}]),
                               "karpathy", "@karpathy")

        assert items[0].title == "Retweet by Andrej Karpathy (Original: Yann LeCun)"
        assert items[0].description == "Original thought"
        assert items[0].thumbnail == "https://pbs.twimg.com/a.jpg"

    def test_missing_created_at_is_now(self):
        tweet = _tweet()
        del tweet["created_at"]

        before = datetime.now(timezone.utc)
        items = parse_timeline(_page([{"type": "tweet", "content": {"tweet": tweet}}]),
                               "karpathy", "@karpathy")

        assert items[0].published_at >= before

    def test_unparseable_created_at_is_none(self):
        tweet = _tweet(created_at="yesterday-ish")

        items = parse_timeline(_page([{"type": "tweet", "content": {"tweet": tweet}}]),
                               "karpathy", "@karpathy")

        assert items[0].published_at is None

    def test_rfc2822_unknown_offset_is_utc(self):
        tweet = _tweet(created_at="Mon, 06 Jan 2025 08:00:00 -0000")

        items = parse_timeline(_page([{"type": "tweet", "content": {"tweet": tweet}}]),
                               "karpathy", "@karpathy")

        assert items[0].published_at == datetime(2025, 1, 6, 8, 0, tzinfo=timezone.utc)

    def test_unknown_offset_tweet_merges_with_feed_items(self):
        tweet = _tweet(created_at="Mon, 02 Mar 2026 01:00:00 -0000")
        tweets = parse_timeline(_page([{"type": "tweet", "content": {"tweet": tweet}}]),
                                "karpathy", "@karpathy")
        feed_item = make_item("From a feed", hours_ago=2)

        merged = merge_items([tweets, [feed_item]], AggregationWindow(lookback_days=1), NOW)

        assert merged[0].title == "From a feed"
        assert len(merged) == 2
