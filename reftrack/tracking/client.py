"""
Server-side tracking client - the Python counterpart of reftrack-tracker.js.

Reads a referral code from the landing URL, reports the click, keeps the code
in a CookieStore for 30 days and reports the conversion later. Tracking must
never break the caller: every network or server error is logged and returned
as ``{"success": False, "error": ...}``.
"""
import logging
from datetime import datetime, timezone
from typing import Optional, Union
from urllib.parse import parse_qs, urlparse

import httpx

from reftrack.tracking.cookies import CookieStore

logger = logging.getLogger(__name__)

COOKIE_NAME = "reftrack_ref"
ATTRIBUTION_TTL_DAYS = 30
URL_PARAMS = ("ref", "referral", "affiliate")
TIMEOUT = 10.0


def referral_code_from_url(url: str) -> Optional[str]:
    """First non-empty of ?ref=, ?referral=, ?affiliate= (in that order)."""
    params = parse_qs(urlparse(url or "").query)
    for name in URL_PARAMS:
        for value in params.get(name, []):
            if value.strip():
                return value.strip()
    return None


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class TrackingClient:
    """Referral and conversion reporting against a reftrack server."""

    def __init__(
        self,
        api_key: str,
        api_url: str,
        store: CookieStore,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        if not api_key:
            raise ValueError("api_key is required")
        self.api_key = api_key
        self.api_url = api_url.rstrip("/")
        self.store = store
        self._http_client = http_client
        self._headers = {
            "X-API-Key": api_key,
            "Content-Type": "application/json",
        }

    async def _post(self, path: str, body: dict) -> dict:
        url = f"{self.api_url}{path}"
        if self._http_client is not None:
            response = await self._http_client.post(url, headers=self._headers, json=body)
        else:
            async with httpx.AsyncClient(timeout=TIMEOUT) as client:
                response = await client.post(url, headers=self._headers, json=body)
        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}
        if "success" not in data:
            data = {"success": False, "error": data.get("error") or f"HTTP {response.status_code}"}
        return data

    async def init(
        self,
        page_url: str,
        referrer: str = "",
        user_agent: str = "",
    ) -> Optional[str]:
        """Pick up a referral code from ``page_url``. Returns the code now in effect."""
        code = referral_code_from_url(page_url)
        if not code:
            return self.get_referral_code()

        body = {
            "referralCode": code,
            "url": page_url,
            "referrer": referrer,
            "userAgent": user_agent,
            "timestamp": _timestamp(),
        }
        try:
            data = await self._post("/api/track/referral", body)
        except httpx.HTTPError as e:
            logger.error("Error tracking referral %s: %s", code, str(e),
                         extra={"referral_code": code})
            return self.get_referral_code()

        if data.get("success"):
            self.store.set(COOKIE_NAME, code, ATTRIBUTION_TTL_DAYS)
            logger.info("Referral tracked", extra={"referral_code": code})
        else:
            logger.error("Failed to track referral %s: %s", code, data.get("error"),
                         extra={"referral_code": code})
        return self.get_referral_code()

    async def track_conversion(
        self,
        email: Optional[str] = None,
        name: Optional[str] = None,
        amount: Union[int, float, str] = 0,
        currency: str = "USD",
        order_id: Optional[str] = None,
        metadata: Optional[dict] = None,
        url: str = "",
    ) -> dict:
        code = self.get_referral_code()
        if not code:
            logger.warning("No referral code stored, conversion not tracked")
            return {"success": False, "error": "No referral code"}

        body = {
            "referralCode": code,
            "customerEmail": email,
            "customerName": name,
            "amount": amount or 0,
            "currency": currency or "USD",
            "orderId": order_id,
            "metadata": metadata or {},
            "url": url,
            "timestamp": _timestamp(),
        }
        try:
            data = await self._post("/api/track/conversion", body)
        except httpx.HTTPError as e:
            logger.error("Error tracking conversion: %s", str(e), extra={"referral_code": code})
            return {"success": False, "error": str(e)}

        if data.get("success"):
            self.store.delete(COOKIE_NAME)
        else:
            logger.error("Failed to track conversion: %s", data.get("error"),
                         extra={"referral_code": code})
        return data

    def get_referral_code(self) -> Optional[str]:
        return self.store.get(COOKIE_NAME) or None

    def clear_referral_code(self) -> None:
        self.store.delete(COOKIE_NAME)
