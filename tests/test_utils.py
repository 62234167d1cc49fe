"""
Tests for reftrack utility modules: structured logging, the Redis pool and settings.
"""
import json
import logging
import sys
from unittest.mock import AsyncMock, patch

import pytest


# ---------------------------------------------------------------------------
# 1. reftrack/utils/logging.py
# ---------------------------------------------------------------------------


class TestMaskEmail:
    @pytest.mark.parametrize("email,expected", [
        ("jane@example.com", "jan***"),
        ("a@b.c", "a@b***"),
        ("", ""),
        (None, ""),
    ])
    def test_mask(self, email, expected):
        from reftrack.utils.logging import mask_email

        assert mask_email(email) == expected


class TestStructuredJsonFormatter:
    def test_includes_correlation_and_tracking_fields(self):
        from reftrack.utils.logging import StructuredJsonFormatter, set_correlation_id

        set_correlation_id("cid-123")
        record = logging.LogRecord("reftrack.test", logging.INFO, __file__, 1, "paid %d", (3,), None)
        record.payout_id = "p-1"

        entry = json.loads(StructuredJsonFormatter().format(record))

        assert entry["message"] == "paid 3"
        assert entry["correlation_id"] == "cid-123"
        assert entry["payout_id"] == "p-1"
        assert "affiliate_id" not in entry

    def test_exception_included(self):
        from reftrack.utils.logging import StructuredJsonFormatter

        try:
            raise ValueError("bad")
        except ValueError:
            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

        entry = json.loads(StructuredJsonFormatter().format(record))
        assert "ValueError: bad" in entry["exception"]

    def test_generate_correlation_id(self):
        from reftrack.utils.logging import generate_correlation_id

        a, b = generate_correlation_id(), generate_correlation_id()
        assert len(a) == 32 and a != b


# ---------------------------------------------------------------------------
# 2. reftrack/utils/redis_pool.py
# ---------------------------------------------------------------------------


class TestRedisPool:
    async def test_close_resets_client(self):
        import reftrack.utils.redis_pool as pool

        client = AsyncMock()
        pool._redis_client = client
        await pool.close_redis()

        client.aclose.assert_awaited_once()
        assert pool._redis_client is None

    async def test_close_swallows_errors(self):
        import reftrack.utils.redis_pool as pool

        client = AsyncMock()
        client.aclose.side_effect = ConnectionError("gone")
        pool._redis_client = client
        await pool.close_redis()
        assert pool._redis_client is None

    async def test_get_redis_is_cached(self):
        import reftrack.utils.redis_pool as pool

        pool._redis_client = None
        with patch("redis.asyncio.from_url") as mock_from_url:
            first = await pool.get_redis()
            second = await pool.get_redis()

        assert first is second
        mock_from_url.assert_called_once()
        pool._redis_client = None


# ---------------------------------------------------------------------------
# 3. reftrack/config.py
# ---------------------------------------------------------------------------


class TestSettings:
    def test_defaults_from_environment(self):
        from reftrack.config import Settings

        settings = Settings(_env_file=None)
        assert settings.app_secret_key == "test-secret-key"
        assert settings.default_currency == "USD"
        assert settings.tracking_rate_limit_per_minute == 120

    def test_token_secret_falls_back_to_app_secret(self):
        from reftrack.config import Settings

        assert Settings(_env_file=None).token_secret == "test-secret-key"
        assert Settings(_env_file=None, jwt_secret="jwt").token_secret == "jwt"

    def test_only_server_settings_are_exposed(self):
        from reftrack.config import Settings

        for unused in ("app_host", "app_port", "attribution_ttl_days"):
            assert unused not in Settings.model_fields
