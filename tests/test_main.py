"""
Tests for application wiring: error bodies, root and metrics endpoints.
"""

from unittest.mock import patch

from fastapi.testclient import TestClient


class TestErrorBodies:
    """All errors are rendered as {"error": ...}."""

    def test_unknown_route(self, api_client: TestClient) -> None:
        response = api_client.get("/api/nothing-here")

        assert response.status_code == 404
        assert response.json() == {"error": "Not Found"}

    def test_malformed_json_is_400(self, api_client: TestClient) -> None:
        response = api_client.post(
            "/api/generate",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Validation failed"

    def test_missing_field_listed(self, api_client: TestClient) -> None:
        response = api_client.post("/api/generate", json={"type": "image"})

        assert response.status_code == 400
        assert response.json() == {"error": "Validation failed", "details": ["prompt: Field required"]}


class TestServiceEndpoints:
    """Tests for root and metrics."""

    def test_root(self, api_client: TestClient) -> None:
        response = api_client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_metrics_exposed(self, api_client: TestClient) -> None:
        api_client.get("/")

        response = api_client.get("/metrics")

        assert response.status_code == 200
        assert "genstudio_http_requests_total" in response.text

    def test_metrics_disabled(self, api_client: TestClient) -> None:
        with patch("app.main.settings.metrics_enabled", False):
            response = api_client.get("/metrics")

        assert response.status_code == 404
        assert response.json() == {"error": "Metrics disabled"}
