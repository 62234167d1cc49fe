"""
TrackingClient tests. The reftrack server is replaced by httpx.MockTransport.
"""
import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from reftrack.tracking.client import (
    ATTRIBUTION_TTL_DAYS,
    COOKIE_NAME,
    TrackingClient,
    referral_code_from_url,
)
from reftrack.tracking.cookies import CookieStore

API_URL = "https://track.example.com"


def _client(handler, store=None):
    store = store if store is not None else CookieStore()
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TrackingClient("pk_test", API_URL, store, http_client=http), store


def _recorder(response_json, status_code=200):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(status_code, json=response_json)

    return handler, calls


class TestReferralCodeFromUrl:
    def test_ref_param(self):
        assert referral_code_from_url("https://shop.test/?ref=ABC") == "ABC"

    def test_priority_order(self):
        url = "https://shop.test/?affiliate=C&referral=B&ref=A"
        assert referral_code_from_url(url) == "A"

    def test_empty_param_skipped(self):
        assert referral_code_from_url("https://shop.test/?ref=&referral=B") == "B"

    def test_absent(self):
        assert referral_code_from_url("https://shop.test/pricing") is None


class TestInit:
    async def test_tracks_click_and_stores_code(self):
        handler, calls = _recorder({"success": True})
        client, store = _client(handler)

        code = await client.init("https://shop.test/?ref=JANEDO-AB12", referrer="https://blog.test")

        assert code == "JANEDO-AB12"
        assert store.get(COOKIE_NAME) == "JANEDO-AB12"
        assert len(calls) == 1
        request = calls[0]
        assert request.url == f"{API_URL}/api/track/referral"
        assert request.headers["X-API-Key"] == "pk_test"
        body = json.loads(request.content)
        assert body["referralCode"] == "JANEDO-AB12"
        assert body["referrer"] == "https://blog.test"
        assert "timestamp" in body

    async def test_failed_click_does_not_store(self):
        handler, _ = _recorder({"success": False, "error": "Invalid referral code"}, status_code=404)
        client, store = _client(handler)

        assert await client.init("https://shop.test/?ref=BOGUS") is None
        assert store.get(COOKIE_NAME) is None

    async def test_code_kept_for_thirty_days(self):
        now = [datetime(2024, 3, 1, tzinfo=timezone.utc)]
        handler, _ = _recorder({"success": True})
        client, store = _client(handler, CookieStore(clock=lambda: now[0]))

        await client.init("https://shop.test/?ref=CODE")

        now[0] += timedelta(days=ATTRIBUTION_TTL_DAYS) - timedelta(seconds=1)
        assert client.get_referral_code() == "CODE"
        now[0] += timedelta(seconds=1)
        assert client.get_referral_code() is None

    async def test_network_error_is_swallowed(self):
        def handler(request):
            raise httpx.ConnectError("boom")

        client, store = _client(handler)
        assert await client.init("https://shop.test/?ref=CODE") is None

    async def test_no_param_reads_stored_code_without_network(self):
        handler, calls = _recorder({"success": True})
        store = CookieStore()
        store.set(COOKIE_NAME, "STORED", 30)
        client, _ = _client(handler, store)

        assert await client.init("https://shop.test/checkout") == "STORED"
        assert calls == []


class TestTrackConversion:
    async def test_without_code_skips_server(self):
        handler, calls = _recorder({"success": True})
        client, _ = _client(handler)

        result = await client.track_conversion(email="buyer@example.com", amount=49.99)

        assert result == {"success": False, "error": "No referral code"}
        assert calls == []

    async def test_success_clears_code(self):
        handler, calls = _recorder({"success": True, "conversion": {"id": "c1"}})
        store = CookieStore()
        store.set(COOKIE_NAME, "JANEDO-AB12", 30)
        client, _ = _client(handler, store)

        result = await client.track_conversion(
            email="buyer@example.com", name="Buyer", amount=49.99, order_id="ord_1",
        )

        assert result["success"] is True
        assert store.get(COOKIE_NAME) is None
        body = json.loads(calls[0].content)
        assert calls[0].url == f"{API_URL}/api/track/conversion"
        assert body["referralCode"] == "JANEDO-AB12"
        assert body["customerEmail"] == "buyer@example.com"
        assert body["amount"] == 49.99
        assert body["currency"] == "USD"
        assert body["orderId"] == "ord_1"
        assert body["metadata"] == {}

    async def test_error_response_keeps_code(self):
        handler, _ = _recorder({"success": False, "error": "Affiliate is not active"}, status_code=403)
        store = CookieStore()
        store.set(COOKIE_NAME, "CODE", 30)
        client, _ = _client(handler, store)

        result = await client.track_conversion(email="buyer@example.com")

        assert result == {"success": False, "error": "Affiliate is not active"}
        assert store.get(COOKIE_NAME) == "CODE"

    async def test_non_json_error_is_normalized(self):
        def handler(request):
            return httpx.Response(502, text="Bad Gateway")

        store = CookieStore()
        store.set(COOKIE_NAME, "CODE", 30)
        client, _ = _client(handler, store)

        result = await client.track_conversion(email="buyer@example.com")
        assert result == {"success": False, "error": "HTTP 502"}
        assert store.get(COOKIE_NAME) == "CODE"

    async def test_network_error_returns_failure(self):
        def handler(request):
            raise httpx.ReadTimeout("slow")

        store = CookieStore()
        store.set(COOKIE_NAME, "CODE", 30)
        client, _ = _client(handler, store)

        result = await client.track_conversion(email="buyer@example.com")
        assert result["success"] is False
        assert store.get(COOKIE_NAME) == "CODE"


class TestCodeAccessors:
    def test_get_and_clear(self):
        store = CookieStore()
        store.set(COOKIE_NAME, "CODE", 30)
        client = TrackingClient("pk_test", API_URL, store)
        assert client.get_referral_code() == "CODE"
        client.clear_referral_code()
        assert client.get_referral_code() is None

    def test_api_key_required(self):
        with pytest.raises(ValueError):
            TrackingClient("", API_URL, CookieStore())
