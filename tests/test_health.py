"""
Tests for health endpoints.
"""

from app.api.endpoints import health


class TestHealth:
    def test_liveness(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_detailed_reports_database_and_redis(self, client, monkeypatch, fake_redis):
        monkeypatch.setattr(health, "get_redis", lambda: fake_redis)
        data = client.get("/health/detailed").json()

        assert data["status"] == "healthy"
        assert data["checks"]["database"]["status"] == "healthy"
        assert data["checks"]["redis"]["status"] == "healthy"

    def test_detailed_reports_redis_outage(self, client, monkeypatch):
        class DownRedis:
            def ping(self):
                raise ConnectionError("refused")

        monkeypatch.setattr(health, "get_redis", lambda: DownRedis())
        data = client.get("/health/detailed").json()

        assert data["status"] == "unhealthy"
        assert data["checks"]["redis"]["status"] == "unhealthy"
