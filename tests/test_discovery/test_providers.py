"""Tests for the discovery provider adapters (HTTP mocked with respx)."""

import json

import httpx
import pytest
import respx

from signal_digest.discovery.config import DiscoveryConfig
from signal_digest.discovery.providers import (
    INSTAGRAM_BRIDGES,
    TWITTER_BRIDGES,
    DiscoveryProviders,
    infer_directory_type,
    is_feed_document,
    normalize_handle,
)
from signal_digest.ingestion.schemas import SourceType

FEED_BODY = """<?xml version="1.0"?>
<rss version="2.0"><channel><title>Bridge</title>
<item><title>Hello</title><link>https://example.com/1</link></item>
</channel></rss>"""

DIRECTORY_URL = "https://directory.example.com/search"


def _providers(**overrides) -> DiscoveryProviders:
    config = DiscoveryConfig(directory_url=DIRECTORY_URL, **overrides)
    return DiscoveryProviders(config)


class TestHelpers:
    def test_normalize_handle(self):
        assert normalize_handle("@karpathy") == "karpathy"
        assert normalize_handle("  sama ") == "sama"
        assert normalize_handle("two words") is None
        assert normalize_handle("@a") is None

    def test_infer_directory_type(self):
        assert infer_directory_type("https://x.substack.com/feed", "", "") == SourceType.SUBSTACK
        assert infer_directory_type("https://medium.com/feed/@a", "", "") == SourceType.MEDIUM
        assert infer_directory_type("https://nitter.net/a/rss", "", "") == SourceType.TWITTER
        assert (
            infer_directory_type("https://blog.example.com/rss", "", "A weekly Newsletter")
            == SourceType.NEWSLETTER
        )
        assert infer_directory_type("https://blog.example.com/rss", "", "") == SourceType.RSS

    def test_is_feed_document(self):
        assert is_feed_document(FEED_BODY)
        assert not is_feed_document("<html><body>Rate limited</body></html>")


class TestNews:
    @pytest.mark.asyncio
    async def test_news_query_needs_no_io(self):
        results = await _providers().search_news("ai chips")

        assert len(results) == 1
        assert results[0].type == SourceType.NEWS
        assert "q=ai%20chips" in results[0].url


class TestPodcasts:
    @pytest.mark.asyncio
    @respx.mock(assert_all_called=False)
    async def test_parses_directory_results(self, respx_mock):
        respx_mock.get("https://itunes.apple.com/search").mock(
            return_value=httpx.Response(200, json={"results": [
                {"collectionName": "Chip Talk", "artistName": "Ann", "feedUrl": "https://pod.example.com/rss"},
                {"collectionName": "No Feed"},
            ]})
        )

        results = await _providers().search_podcasts("chips")

        assert [r.title for r in results] == ["Chip Talk"]
        assert results[0].type == SourceType.PODCAST
        assert results[0].description == "Ann"


class TestReddit:
    @pytest.mark.asyncio
    @respx.mock(assert_all_called=False)
    async def test_subreddit_feed_urls(self, respx_mock):
        respx_mock.get("https://www.reddit.com/subreddits/search.json").mock(
            return_value=httpx.Response(200, json={"data": {"children": [
                {"data": {"url": "/r/hardware/", "display_name_prefixed": "r/hardware"}},
            ]}})
        )

        results = await _providers().search_reddit("hardware")

        assert results[0].url == "https://www.reddit.com/r/hardware/.rss"
        assert results[0].description == "Subreddit for hardware"

    @pytest.mark.asyncio
    @respx.mock(assert_all_called=False)
    async def test_upstream_error_propagates(self, respx_mock):
        respx_mock.get("https://www.reddit.com/subreddits/search.json").mock(
            return_value=httpx.Response(403)
        )

        with pytest.raises(Exception):
            await _providers().search_reddit("hardware")


class TestBlogs:
    @pytest.mark.asyncio
    @respx.mock(assert_all_called=False)
    async def test_directory_results_skip_other_providers(self, respx_mock):
        respx_mock.get(DIRECTORY_URL).mock(
            return_value=httpx.Response(200, json={"results": [
                {"feedId": "feed/https://www.youtube.com/feeds/videos.xml?channel_id=UC1", "title": "Video"},
                {
                    "feedId": "feed/https://semi.substack.com/feed",
                    "title": "Semi",
                    "website": "https://semi.substack.com",
                },
            ]})
        )

        results = await _providers().search_blogs("semi")

        assert [r.title for r in results] == ["Semi"]
        assert results[0].type == SourceType.SUBSTACK
        assert results[0].url == "https://semi.substack.com/feed"
        assert "semi.substack.com" in results[0].thumbnail

    @pytest.mark.asyncio
    @respx.mock(assert_all_called=False)
    async def test_falls_back_to_newsletter_guess(self, respx_mock):
        respx_mock.get(DIRECTORY_URL).mock(return_value=httpx.Response(500))
        respx_mock.head("https://chipletter.substack.com").mock(return_value=httpx.Response(200))

        results = await _providers().search_blogs("Chip Letter")

        assert len(results) == 1
        assert results[0].url == "https://chipletter.substack.com/feed"
        assert results[0].type == SourceType.SUBSTACK

    @pytest.mark.asyncio
    @respx.mock(assert_all_called=False)
    async def test_nothing_found(self, respx_mock):
        respx_mock.get(DIRECTORY_URL).mock(return_value=httpx.Response(200, json={"results": []}))
        respx_mock.head("https://nothing.substack.com").mock(return_value=httpx.Response(404))

        assert await _providers().search_blogs("nothing") == []


class TestSocial:
    @pytest.mark.asyncio
    @respx.mock(assert_all_called=False)
    async def test_bridge_race_returns_valid_feed(self, respx_mock):
        handle = "someone"
        urls = [t.format(handle=handle) for t in TWITTER_BRIDGES]
        respx_mock.get(urls[0]).mock(return_value=httpx.Response(200, text="<html>blocked</html>"))
        respx_mock.get(urls[1]).mock(return_value=httpx.Response(503))
        respx_mock.get(urls[2]).mock(return_value=httpx.Response(200, text=FEED_BODY))
        respx_mock.get(urls[3]).mock(side_effect=httpx.ConnectError("down"))

        winner = await _providers().race_bridges(TWITTER_BRIDGES, handle)

        assert winner == urls[2]

    @pytest.mark.asyncio
    @respx.mock(assert_all_called=False)
    async def test_bridge_race_all_fail(self, respx_mock):
        for template in INSTAGRAM_BRIDGES:
            respx_mock.get(template.format(handle="nobody")).mock(return_value=httpx.Response(404))

        assert await _providers().race_bridges(INSTAGRAM_BRIDGES, "nobody") is None

    @pytest.mark.asyncio
    async def test_multiword_query_is_not_a_handle(self):
        assert await _providers().search_social("two words") == []

    @pytest.mark.asyncio
    @respx.mock(assert_all_called=False)
    async def test_direct_profile_preferred_over_bridge(self, respx_mock):
        tweet = {
            "id_str": "1",
            "full_text": "hello",
            "created_at": "Mon Mar 02 05:00:00 +0000 2026",
            "user": {"screen_name": "someone", "name": "Some One"},
        }
        page = (
            '<html><script id="__NEXT_DATA__" type="application/json">'
            + json.dumps({"props": {"pageProps": {"timeline": {"entries": [
                {"type": "tweet", "content": {"tweet": tweet}}
            ]}}}})
            + "</script></html>"
        )
        respx_mock.get(url__startswith="https://syndication.twitter.com/").mock(
            return_value=httpx.Response(200, text=page)
        )
        for template in TWITTER_BRIDGES:
            respx_mock.get(template.format(handle="someone")).mock(
                return_value=httpx.Response(200, text=FEED_BODY)
            )
        for template in INSTAGRAM_BRIDGES:
            respx_mock.get(template.format(handle="someone")).mock(return_value=httpx.Response(404))

        results = await _providers().search_social("@someone")

        assert len(results) == 1
        assert results[0].title == "@someone (Twitter)"
        assert results[0].url.startswith("https://syndication.twitter.com/")
        assert results[0].description == "Some One"
