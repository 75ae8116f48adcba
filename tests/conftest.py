"""
Pytest configuration and fixtures.

Provides shared fixtures for:
- Test settings (rate limiting off, console logging)
- Store instances (memory and SQLite, parametrized)
- FastAPI test client
- Factories for customers and addresses
"""

from collections.abc import Callable
from typing import Any

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from crm.config import DatabaseConfig, LoggingConfig, RateLimitConfig, Settings
from crm.main import create_app
from crm.storage import CustomerStore, MemoryStore, SQLiteStore


@pytest.fixture
def test_settings() -> Settings:
    """Settings for API tests: no rate limiting, readable logs."""
    return Settings(
        database=DatabaseConfig(type="memory"),
        rate_limit=RateLimitConfig(enabled=False),
        logging=LoggingConfig(level="INFO", json_output=False, colorized=False),
    )


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path) -> CustomerStore:
    """Fresh store per test, once per backend."""
    if request.param == "memory":
        return MemoryStore()
    return SQLiteStore(str(tmp_path / "crm.sqlite"))


@pytest_asyncio.fixture
async def initialized_store(store: CustomerStore):
    """Store with its schema created, closed after the test."""
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def client(test_settings: Settings, store: CustomerStore):
    """TestClient bound to a fresh app; the lifespan initializes the store."""
    app = create_app(settings=test_settings, store=store)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_customer(client: TestClient) -> Callable[..., dict[str, Any]]:
    """Create a customer through the API and return the response body."""
    counter = {"n": 0}

    def _make(**overrides) -> dict[str, Any]:
        counter["n"] += 1
        payload = {
            "name": f"Customer {counter['n']}",
            "email": f"customer{counter['n']}@example.com",
            "phone": "555-0100",
        }
        payload.update(overrides)
        response = client.post("/api/customers", json=payload)
        assert response.status_code == 201, response.text
        return response.json()

    return _make


@pytest.fixture
def make_address(client: TestClient) -> Callable[..., dict[str, Any]]:
    """Create an address for a customer through the API."""

    def _make(customer_id: int, **overrides) -> dict[str, Any]:
        payload = {
            "street": "1 Main St",
            "city": "Springfield",
            "state": "IL",
            "zip_code": "62701",
        }
        payload.update(overrides)
        response = client.post(f"/api/customers/{customer_id}/addresses", json=payload)
        assert response.status_code == 201, response.text
        return response.json()

    return _make
