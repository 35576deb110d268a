"""Tests for source detection and subscriber source endpoints."""

from signal_digest.ingestion.feed_fetcher import FeedPreview
from signal_digest.ingestion.schemas import SourceType
from signal_digest.subscribers.schemas import Subscriber
from tests.conftest import make_item, make_source, make_subscriber

EMAIL = "reader@example.com"


class TestDetect:
    def test_recognized_url(self, client):
        response = client.get(
            "/sources/detect", params={"url": "https://www.reddit.com/r/hardware/"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["detected"] is True
        assert data["source"]["type"] == "reddit"
        assert data["source"]["feed_url"] == "https://www.reddit.com/r/hardware/.rss"
        assert data["can_preview"] is False
        assert data["sample_items"] == []

    def test_unusable_url(self, client, mock_fetcher):
        data = client.get("/sources/detect", params={"url": "not a url"}).json()

        assert data == {"detected": False, "source": None, "sample_items": [], "can_preview": False}
        mock_fetcher.preview.assert_not_awaited()

    def test_feed_title_and_samples(self, client, mock_fetcher):
        mock_fetcher.preview.side_effect = None
        mock_fetcher.preview.return_value = FeedPreview(
            endpoint="https://www.reddit.com/r/hardware/.rss",
            title="Hardware News & Discussion",
            items=[make_item("First"), make_item("Second", hours_ago=2)],
        )

        data = client.get(
            "/sources/detect", params={"url": "https://www.reddit.com/r/hardware/"}
        ).json()

        assert data["source"]["name"] == "Hardware News & Discussion"
        assert data["can_preview"] is True
        assert [s["title"] for s in data["sample_items"]] == ["First", "Second"]
        endpoint, declared_type, _ = mock_fetcher.preview.await_args.args
        assert endpoint == "https://www.reddit.com/r/hardware/.rss"
        assert declared_type == SourceType.REDDIT
        assert mock_fetcher.preview.await_args.kwargs["limit"] == 3


class TestFavicons:
    def test_single_url_falls_back_to_host_icon(self, client):
        response = client.post("/sources/favicons", json={"url": "https://www.reddit.com/r/hardware/"})

        assert response.status_code == 200
        assert response.json() == {
            "favicons": {
                "https://www.reddit.com/r/hardware/": "https://www.google.com/s2/favicons?domain=www.reddit.com&sz=64"
            }
        }

    def test_batch_uses_feed_artwork(self, client, mock_fetcher):
        mock_fetcher.preview.side_effect = lambda endpoint, *args, **kwargs: FeedPreview(
            endpoint=endpoint, image="https://cdn.example.com/cover.jpg"
        )

        data = client.post(
            "/sources/favicons",
            json={"urls": ["https://example.com/feed", "https://www.reddit.com/r/hardware/"]},
        ).json()

        assert set(data["favicons"].values()) == {"https://cdn.example.com/cover.jpg"}

    def test_requires_url_or_urls(self, client):
        assert client.post("/sources/favicons", json={}).status_code == 422


class TestListSources:
    def test_lists_all_sources(self, client, mock_subscriber_repo):
        mock_subscriber_repo.get.return_value = make_subscriber(
            sources=[make_source("One"), make_source("Two", "https://two.example.com/rss", enabled=False)]
        )

        response = client.get(f"/subscribers/{EMAIL}/sources")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert [s["enabled"] for s in data["sources"]] == [True, False]

    def test_unknown_subscriber_is_404(self, client):
        assert client.get(f"/subscribers/{EMAIL}/sources").status_code == 404


class TestAddSource:
    def test_creates_subscriber_and_source(self, client, mock_subscriber_repo):
        response = client.post(
            f"/subscribers/{EMAIL}/sources",
            json={"url": "https://www.reddit.com/r/hardware/"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["type"] == "reddit"
        assert data["feed_endpoint"] == "https://www.reddit.com/r/hardware/.rss"
        assert data["enabled"] is True

        created: Subscriber = mock_subscriber_repo.upsert.await_args.args[0]
        assert created.email == EMAIL
        assert created.tier == "trial"
        email, source = mock_subscriber_repo.add_source.await_args.args
        assert email == EMAIL
        assert source.id == data["id"]

    def test_existing_subscriber_not_recreated(self, client, mock_subscriber_repo):
        mock_subscriber_repo.get.return_value = make_subscriber()

        response = client.post(
            f"/subscribers/{EMAIL}/sources",
            json={"url": "https://www.reddit.com/r/hardware/", "name": "Hardware talk"},
        )

        assert response.status_code == 201
        assert response.json()["name"] == "Hardware talk"
        mock_subscriber_repo.upsert.assert_not_awaited()

    def test_duplicate_returns_existing_source(self, client, mock_subscriber_repo):
        existing = make_source(
            "Hardware", "https://www.reddit.com/r/hardware/.rss", type=SourceType.REDDIT
        )
        mock_subscriber_repo.get.return_value = make_subscriber(sources=[existing])
        mock_subscriber_repo.add_source.return_value = False
        mock_subscriber_repo.list_sources.return_value = [make_source(), existing]

        response = client.post(
            f"/subscribers/{EMAIL}/sources",
            json={"url": "https://www.reddit.com/r/hardware/"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["added"] is False
        assert data["id"] == existing.id
        assert data["name"] == "Hardware"

    def test_new_source_is_flagged_added(self, client):
        response = client.post(
            f"/subscribers/{EMAIL}/sources",
            json={"url": "https://www.reddit.com/r/hardware/"},
        )

        assert response.json()["added"] is True

    def test_unclassifiable_url_is_422(self, client, mock_subscriber_repo):
        response = client.post(f"/subscribers/{EMAIL}/sources", json={"url": "not a url"})

        assert response.status_code == 422
        mock_subscriber_repo.add_source.assert_not_awaited()


class TestUpdateAndRemove:
    def test_toggle_enabled(self, client, mock_subscriber_repo):
        response = client.patch(f"/subscribers/{EMAIL}/sources/src-1", json={"enabled": False})

        assert response.status_code == 200
        assert response.json() == {"id": "src-1", "enabled": False}
        mock_subscriber_repo.set_source_enabled.assert_awaited_once_with(EMAIL, "src-1", False)

    def test_toggle_unknown_is_404(self, client, mock_subscriber_repo):
        mock_subscriber_repo.set_source_enabled.return_value = False

        response = client.patch(f"/subscribers/{EMAIL}/sources/nope", json={"enabled": True})

        assert response.status_code == 404

    def test_remove(self, client, mock_subscriber_repo):
        response = client.delete(f"/subscribers/{EMAIL}/sources/src-1")

        assert response.status_code == 204
        mock_subscriber_repo.remove_source.assert_awaited_once_with(EMAIL, "src-1")

    def test_remove_unknown_is_404(self, client, mock_subscriber_repo):
        mock_subscriber_repo.remove_source.return_value = False

        assert client.delete(f"/subscribers/{EMAIL}/sources/nope").status_code == 404
