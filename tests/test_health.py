"""Tests for health check endpoints."""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from starlette.requests import Request

from app.api.v1.endpoints import health
from app.config import settings
from app.main import app
from app.middleware.logging import redacted_query


@pytest_asyncio.fixture
async def bare_client() -> AsyncGenerator[AsyncClient, None]:
    """HTTP client without database or Redis overrides."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


def fake_check(result: bool):
    async def check() -> bool:
        return result

    return check


@pytest.mark.asyncio
async def test_health(bare_client: AsyncClient) -> None:
    response = await bare_client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == settings.app_name
    assert "timestamp" in data


@pytest.mark.asyncio
async def test_ping(bare_client: AsyncClient) -> None:
    response = await bare_client.get("/api/v1/ping")
    assert response.json() == {"message": "pong"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "db_ok,redis_ok,status_code,overall",
    [
        (True, True, 200, "healthy"),
        (True, False, 200, "degraded"),
        (False, True, 503, "degraded"),
    ],
)
async def test_detailed_health(
    bare_client: AsyncClient, monkeypatch, db_ok, redis_ok, status_code, overall
) -> None:
    monkeypatch.setattr(health, "check_database_connection", fake_check(db_ok))
    monkeypatch.setattr(health, "check_redis_connection", fake_check(redis_ok))

    response = await bare_client.get("/api/v1/health/detailed")

    assert response.status_code == status_code
    data = response.json()
    assert data["status"] == overall
    assert data["database"] == ("healthy" if db_ok else "unhealthy")
    assert data["redis"] == ("healthy" if redis_ok else "unhealthy")


@pytest.mark.asyncio
async def test_unknown_route_uses_error_envelope(bare_client: AsyncClient) -> None:
    response = await bare_client.get("/api/v1/nowhere")
    assert response.status_code == 404
    assert response.json()["path"] == "/api/v1/nowhere"


@pytest.mark.asyncio
async def test_request_id_is_echoed(bare_client: AsyncClient) -> None:
    response = await bare_client.get("/api/v1/ping", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"
    assert response.headers["X-Process-Time"].endswith("ms")

    generated = await bare_client.get("/api/v1/ping")
    assert len(generated.headers["X-Request-ID"]) == 32


def test_secret_query_params_are_redacted() -> None:
    request = Request(
        {
            "type": "http",
            "method": "POST",
            "path": "/api/v1/whatsapp/cron",
            "query_string": b"key=s3cret&limit=10",
            "headers": [],
        }
    )
    assert redacted_query(request) == "key=***&limit=10"
