"""Tests for starter pack and recommendation endpoints."""

from tests.conftest import make_source, make_subscriber

EMAIL = "reader@example.com"


class TestStarterPacks:
    def test_lists_packs(self, client):
        response = client.get("/starter-packs")

        assert response.status_code == 200
        packs = response.json()["packs"]
        assert len(packs) == 6
        assert all(p["sources"] for p in packs)


class TestRecommendations:
    def test_unknown_subscriber_gets_starter_packs(self, client):
        data = client.get(f"/subscribers/{EMAIL}/recommendations").json()

        assert data["mode"] == "starter"
        assert len(data["packs"]) == 6
        assert data["sources"] == []

    def test_subscriber_without_sources_gets_starter_packs(self, client, mock_subscriber_repo):
        mock_subscriber_repo.get.return_value = make_subscriber(sources=[])

        assert client.get(f"/subscribers/{EMAIL}/recommendations").json()["mode"] == "starter"

    def test_contextual_skips_followed(self, client, mock_subscriber_repo):
        mock_subscriber_repo.get.return_value = make_subscriber(
            sources=[
                make_source(
                    "Hacker News",
                    "https://news.ycombinator.com/rss",
                    original_url="https://news.ycombinator.com",
                )
            ]
        )

        data = client.get(f"/subscribers/{EMAIL}/recommendations").json()

        assert data["mode"] == "contextual"
        assert data["packs"] == []
        assert len(data["sources"]) == 6
        assert "tech_hn" not in {s["id"] for s in data["sources"]}

    def test_repository_error_falls_back_to_starter(self, client, mock_subscriber_repo):
        mock_subscriber_repo.get.side_effect = Exception("connection reset")

        response = client.get(f"/subscribers/{EMAIL}/recommendations")

        assert response.status_code == 200
        assert response.json()["mode"] == "starter"
