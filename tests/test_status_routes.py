"""
Tests for Status API Routes.

Tests health check endpoints and provider status checks.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from fastapi.testclient import TestClient

from app.api import status_routes
from app.api.status_routes import (
    ProviderStatus,
    StatusLevel,
    calculate_overall_status,
    check_free_image_endpoint,
    check_postgresql,
    check_upstream_api,
)


def provider(level: StatusLevel) -> ProviderStatus:
    return ProviderStatus(status=level, latency_ms=10, last_check=datetime.now(UTC).isoformat())


class TestCalculateOverallStatus:
    """Tests for calculate_overall_status function."""

    def test_all_operational(self):
        """All providers operational returns operational."""
        providers = {"a": provider(StatusLevel.OPERATIONAL), "b": provider(StatusLevel.OPERATIONAL)}

        assert calculate_overall_status(providers) == StatusLevel.OPERATIONAL

    def test_degraded_wins_over_operational(self):
        providers = {"a": provider(StatusLevel.OPERATIONAL), "b": provider(StatusLevel.DEGRADED)}

        assert calculate_overall_status(providers) == StatusLevel.DEGRADED

    def test_outage_wins(self):
        providers = {"a": provider(StatusLevel.DEGRADED), "b": provider(StatusLevel.OUTAGE)}

        assert calculate_overall_status(providers) == StatusLevel.OUTAGE


class TestCheckPostgresql:
    """Tests for check_postgresql function."""

    @pytest.mark.asyncio
    async def test_postgresql_operational(self):
        """PostgreSQL check returns operational on success."""
        mock_db = AsyncMock()

        @asynccontextmanager
        async def mock_get_session() -> AsyncIterator[AsyncMock]:
            yield mock_db

        with patch("app.api.status_routes.get_session", mock_get_session):
            result = await check_postgresql()

        assert result.status == StatusLevel.OPERATIONAL
        assert result.latency_ms is not None
        mock_db.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_postgresql_outage_on_error(self):
        """PostgreSQL check returns outage on connection error."""

        @asynccontextmanager
        async def mock_get_session() -> AsyncIterator[AsyncMock]:
            raise ConnectionError("Cannot connect")
            yield  # noqa: unreachable

        with patch("app.api.status_routes.get_session", mock_get_session):
            result = await check_postgresql()

        assert result.status == StatusLevel.OUTAGE
        assert result.message == "Connection failed"


class TestCheckUpstreamApi:
    """Tests for check_upstream_api function."""

    @pytest.mark.asyncio
    async def test_not_configured(self, kie_client: AsyncMock):
        kie_client.is_configured = False

        result = await check_upstream_api(kie_client)

        assert result.status == StatusLevel.OUTAGE
        assert result.message == "API key not configured"
        kie_client.check_reachable.assert_not_called()

    @pytest.mark.asyncio
    async def test_reachable(self, kie_client: AsyncMock):
        kie_client.check_reachable.return_value = True

        result = await check_upstream_api(kie_client)

        assert result.status == StatusLevel.OPERATIONAL

    @pytest.mark.asyncio
    async def test_unreachable(self, kie_client: AsyncMock):
        kie_client.check_reachable.return_value = False

        result = await check_upstream_api(kie_client)

        assert result.status == StatusLevel.OUTAGE


class TestCheckFreeImageEndpoint:
    """Tests for check_free_image_endpoint function."""

    @pytest.mark.asyncio
    async def test_server_error_is_degraded(self):
        mock_client = AsyncMock()
        mock_client.head.return_value = httpx.Response(502)
        mock_client.__aenter__.return_value = mock_client

        with patch("app.api.status_routes.httpx.AsyncClient", return_value=mock_client):
            result = await check_free_image_endpoint()

        assert result.status == StatusLevel.DEGRADED
        assert result.message == "Unexpected status: 502"

    @pytest.mark.asyncio
    async def test_timeout_is_outage(self):
        mock_client = AsyncMock()
        mock_client.head.side_effect = httpx.ReadTimeout("slow")
        mock_client.__aenter__.return_value = mock_client

        with patch("app.api.status_routes.httpx.AsyncClient", return_value=mock_client):
            result = await check_free_image_endpoint()

        assert result.status == StatusLevel.OUTAGE
        assert result.message == "Timeout"


class TestHealthEndpoint:
    """Tests for GET /health."""

    def test_healthy(self, api_client: TestClient):
        response = api_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"

    def test_database_down(self, api_client: TestClient, db_session: AsyncMock):
        db_session.execute.side_effect = ConnectionError("Cannot connect")

        response = api_client.get("/health")

        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "unhealthy"
        assert body["database"] == "disconnected"


class TestStatusEndpoint:
    """Tests for GET /v1/status."""

    def test_aggregates_and_caches(self, api_client: TestClient):
        status_routes._status_cache.clear()
        checks = {
            "check_postgresql": AsyncMock(return_value=provider(StatusLevel.OPERATIONAL)),
            "check_upstream_api": AsyncMock(return_value=provider(StatusLevel.DEGRADED)),
            "check_free_image_endpoint": AsyncMock(return_value=provider(StatusLevel.OPERATIONAL)),
        }

        with patch.multiple("app.api.status_routes", **checks):
            first = api_client.get("/v1/status")
            second = api_client.get("/v1/status")

        status_routes._status_cache.clear()
        assert first.status_code == 200
        body = first.json()
        assert body["status"] == "degraded"
        assert set(body["providers"]) == {"postgresql", "upstream_api", "free_image"}
        assert second.json() == body
        checks["check_postgresql"].assert_awaited_once()
