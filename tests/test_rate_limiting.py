"""
Tests for per-IP rate limiting on /api/.
"""

import pytest
from fastapi.testclient import TestClient

from crm.config import DatabaseConfig, LoggingConfig, RateLimitConfig, Settings
from crm.main import create_app
from crm.storage import MemoryStore


def limited_settings(enabled: bool = True) -> Settings:
    return Settings(
        database=DatabaseConfig(type="memory"),
        rate_limit=RateLimitConfig(
            enabled=enabled,
            window_minutes=1,
            max_requests_development=2,
            max_requests_production=2,
        ),
        logging=LoggingConfig(json_output=False),
    )


@pytest.fixture
def limited_client():
    app = create_app(settings=limited_settings(), store=MemoryStore())
    with TestClient(app) as client:
        yield client


class TestRateLimiting:
    def test_requests_beyond_window_are_rejected(self, limited_client: TestClient):
        assert limited_client.get("/api/customers").status_code == 200
        assert limited_client.get("/api/customers").status_code == 200

        response = limited_client.get("/api/customers")

        assert response.status_code == 429
        assert response.json()["error"].startswith("Rate limit exceeded")
        assert "X-Request-ID" in response.headers

    def test_health_is_exempt(self, limited_client: TestClient):
        for _ in range(5):
            assert limited_client.get("/api/health").status_code == 200

        # Health checks did not consume the window
        assert limited_client.get("/api/customers").status_code == 200

    def test_metrics_is_exempt(self, limited_client: TestClient):
        for _ in range(5):
            assert limited_client.get("/metrics").status_code == 200

    def test_docs_are_exempt(self, limited_client: TestClient):
        for _ in range(5):
            assert limited_client.get("/openapi.json").status_code == 200

        assert limited_client.get("/api/customers").status_code == 200

    def test_rejection_is_counted(self, limited_client: TestClient):
        for _ in range(3):
            limited_client.get("/api/customers")

        metrics = limited_client.get("/metrics").text

        assert "crm_rate_limit_exceeded_total" in metrics

    def test_disabled_limiter_never_rejects(self):
        app = create_app(settings=limited_settings(enabled=False), store=MemoryStore())

        with TestClient(app) as client:
            for _ in range(5):
                assert client.get("/api/customers").status_code == 200

    def test_apps_do_not_share_windows(self):
        first = create_app(settings=limited_settings(), store=MemoryStore())
        second = create_app(settings=limited_settings(), store=MemoryStore())

        with TestClient(first) as first_client, TestClient(second) as second_client:
            first_client.get("/api/customers")
            first_client.get("/api/customers")

            assert first_client.get("/api/customers").status_code == 429
            assert second_client.get("/api/customers").status_code == 200
