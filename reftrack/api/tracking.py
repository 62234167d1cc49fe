"""
Public tracking endpoints called by reftrack-tracker.js and TrackingClient.
Authenticated by the integration's public key in X-API-Key, rate limited per IP.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from reftrack.config import get_settings
from reftrack.database import get_db
from reftrack.errors import RateLimitedError
from reftrack.schemas.tracking import (
    ConversionRequest,
    ConversionResponse,
    ReferralClickRequest,
    ReferralClickResponse,
    affiliate_ref,
    conversion_summary,
)
from reftrack.services import tracking
from reftrack.utils.rate_limiter import check_tracking_rate_limit

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/track", tags=["tracking"])


async def _enforce_rate_limit(request: Request, api_key: str) -> None:
    client_ip = request.client.host if request.client else "unknown"
    allowed, retry_after = await check_tracking_rate_limit(
        client_ip, api_key, get_settings().tracking_rate_limit_per_minute,
    )
    if not allowed:
        raise RateLimitedError("Rate limit exceeded", retry_after or 60)


@router.post("/referral", response_model=ReferralClickResponse)
async def track_referral(
    payload: ReferralClickRequest,
    request: Request,
    x_api_key: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db),
):
    """Referral link click."""
    await tracking.verify_api_key(db, x_api_key)
    await _enforce_rate_limit(request, x_api_key)

    affiliate = await tracking.track_referral_click(db, payload)
    return ReferralClickResponse(affiliate=affiliate_ref(affiliate))


@router.post("/conversion", response_model=ConversionResponse)
async def track_conversion(
    payload: ConversionRequest,
    request: Request,
    x_api_key: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db),
):
    """Purchase by a referred customer."""
    await tracking.verify_api_key(db, x_api_key)
    await _enforce_rate_limit(request, x_api_key)

    conversion, affiliate = await tracking.track_conversion(
        db, payload, default_currency=get_settings().default_currency,
    )
    return ConversionResponse(
        conversion=conversion_summary(conversion),
        affiliate=affiliate_ref(affiliate),
    )
