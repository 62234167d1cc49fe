"""
Tests for reftrack/main.py - app factory, middleware, error envelope and lifespan.
"""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from reftrack.errors import RateLimitedError
from reftrack.main import _cors_origins, create_app, lifespan


def _make_mock_settings(**overrides):
    """Build a mock Settings object."""
    defaults = {
        "app_env": "test",
        "app_base_url": "http://localhost:8000",
        "log_level": "WARNING",
        "jwt_secret": "test_jwt_secret",
        "sendgrid_api_key": "SG.key",
        "sentry_dsn": "",
        "allowed_origins": "",
    }
    defaults.update(overrides)
    settings = MagicMock()
    for k, v in defaults.items():
        setattr(settings, k, v)
    return settings


class TestCreateApp:
    def test_returns_fastapi_instance(self):
        with (
            patch("reftrack.main.get_settings", return_value=_make_mock_settings()),
            patch("reftrack.main.configure_structured_logging") as mock_logging,
        ):
            app = create_app()

        assert isinstance(app, FastAPI)
        assert app.title == "Reftrack"
        mock_logging.assert_called_once_with("WARNING")

    def test_routes_registered(self):
        # Included routers may not be flattened into app.routes
        paths = set(create_app().openapi()["paths"])
        for expected in (
            "/api/track/referral",
            "/api/track/conversion",
            "/api/auth/login",
            "/api/admin/payouts",
            "/api/admin/partner-groups/{group_id}",
            "/api/affiliate/generate-code",
            "/health/ready",
        ):
            assert expected in paths
        assert "/scripts/reftrack-tracker.js" not in paths


class TestCorsOrigins:
    def test_dev_adds_localhost(self):
        origins = _cors_origins(_make_mock_settings(app_env="development"))
        assert "http://localhost:5173" in origins

    def test_configured_origins_deduplicated(self):
        origins = _cors_origins(_make_mock_settings(
            allowed_origins="https://admin.example.com, http://localhost:8000",
        ))
        assert origins == ["https://admin.example.com", "http://localhost:8000"]


class TestMiddleware:
    def test_correlation_id_generated(self):
        client = TestClient(create_app(), raise_server_exceptions=False)
        response = client.get("/health")
        assert len(response.headers["x-correlation-id"]) == 32

    def test_correlation_id_passed_through(self):
        client = TestClient(create_app(), raise_server_exceptions=False)
        response = client.get("/health", headers={"X-Correlation-ID": "abc123"})
        assert response.headers["x-correlation-id"] == "abc123"

    def test_tracker_script_served_with_open_cors(self):
        client = TestClient(create_app())
        response = client.get("/scripts/reftrack-tracker.js")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/javascript")
        assert response.headers["access-control-allow-origin"] == "*"
        assert "reftrack_ref" in response.text

    def test_admin_routes_not_open_cors(self):
        client = TestClient(create_app())
        response = client.options(
            "/api/admin/dashboard",
            headers={"Origin": "https://evil.example.com", "Access-Control-Request-Method": "GET"},
        )
        assert response.headers.get("access-control-allow-origin") != "*"


class TestErrorHandlers:
    def _app_raising(self, exc):
        app = create_app()

        @app.get("/boom")
        async def boom():
            raise exc

        return TestClient(app, raise_server_exceptions=False)

    def test_rate_limited_envelope(self):
        client = self._app_raising(RateLimitedError("Too many attempts", retry_after=30))
        response = client.get("/boom")
        assert response.status_code == 429
        assert response.headers["retry-after"] == "30"
        assert response.json() == {"success": False, "error": "Too many attempts"}

    def test_unhandled_error_is_generic_500(self):
        client = self._app_raising(RuntimeError("db password is hunter2"))
        response = client.get("/boom")
        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Internal server error"}


class TestLifespan:
    async def test_startup_and_shutdown(self):
        settings = _make_mock_settings(jwt_secret="", sendgrid_api_key="")
        with (
            patch("reftrack.main.get_settings", return_value=settings),
            patch("reftrack.main.close_redis", new_callable=AsyncMock) as mock_close,
            patch("reftrack.main.dispose_engine", new_callable=AsyncMock) as mock_dispose,
        ):
            async with lifespan(FastAPI()):
                mock_close.assert_not_awaited()

        mock_close.assert_awaited_once()
        mock_dispose.assert_awaited_once()

    async def test_sentry_initialized_when_configured(self):
        settings = _make_mock_settings(sentry_dsn="https://key@sentry.example.com/1")
        with (
            patch("reftrack.main.get_settings", return_value=settings),
            patch("reftrack.main.close_redis", new_callable=AsyncMock),
            patch("reftrack.main.dispose_engine", new_callable=AsyncMock),
            patch("sentry_sdk.init") as mock_init,
        ):
            async with lifespan(FastAPI()):
                pass

        assert mock_init.call_args.kwargs["environment"] == "test"
