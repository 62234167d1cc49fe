"""
Server side of referral tracking: API-key checks, click and conversion recording.

A click bumps the affiliate's click counter and logs a CLICK conversion.
A purchase finds or creates the Referral for the customer's email, then logs a
PURCHASE conversion. Amounts on this path are rounded half-up to cents.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from reftrack.errors import AuthenticationError, AuthorizationError, NotFoundError, ValidationError
from reftrack.models.affiliate import Affiliate
from reftrack.models.conversion import Conversion
from reftrack.models.integration import IntegrationSettings
from reftrack.models.referral import Referral
from reftrack.models.enums import (
    ConversionEventType,
    ConversionStatus,
    ReferralStatus,
)
from reftrack.schemas.tracking import ConversionRequest, ReferralClickRequest
from reftrack.services.commission import to_cents_rounded
from reftrack.utils.logging import mask_email

logger = logging.getLogger(__name__)

UNKNOWN_CUSTOMER_NAME = "Unknown Customer"


async def verify_api_key(db: AsyncSession, api_key: Optional[str]) -> IntegrationSettings:
    """Resolve the X-API-Key header to an active integration."""
    if not api_key:
        raise AuthenticationError("API key is required")

    result = await db.execute(
        select(IntegrationSettings).where(
            and_(
                IntegrationSettings.public_key == api_key,
                IntegrationSettings.is_active == True,  # noqa: E712
            )
        )
    )
    integration = result.scalar_one_or_none()
    if not integration:
        raise AuthenticationError("Invalid or inactive API key")
    return integration


async def resolve_active_affiliate(db: AsyncSession, referral_code: Optional[str]) -> Affiliate:
    """Look up the affiliate owning ``referral_code`` and require its user to be ACTIVE."""
    code = (referral_code or "").strip()
    if not code:
        raise ValidationError("Referral code is required")

    result = await db.execute(select(Affiliate).where(Affiliate.referral_code == code))
    affiliate = result.scalar_one_or_none()
    if not affiliate:
        raise NotFoundError("Invalid referral code")

    if not affiliate.user.is_active:
        raise AuthorizationError("Affiliate is not active")
    return affiliate


def _bump_counters(affiliate: Affiliate, **deltas: int) -> None:
    """In-database increments (SET col = col + n) so concurrent events don't lose updates.
    The touched attributes are expired after flush; refresh before reading them."""
    for name, delta in deltas.items():
        setattr(affiliate, name, getattr(Affiliate, name) + delta)


async def track_referral_click(
    db: AsyncSession,
    payload: ReferralClickRequest,
) -> Affiliate:
    """Record a referral-link click for the affiliate that owns the code."""
    affiliate = await resolve_active_affiliate(db, payload.referral_code)

    db.add(Conversion(
        affiliate_id=affiliate.id,
        referral_id=None,
        event_type=ConversionEventType.CLICK.value,
        amount_cents=0,
        status=ConversionStatus.APPROVED.value,
        event_metadata={
            "url": payload.url,
            "referrer": payload.referrer,
            "user_agent": payload.user_agent,
            "timestamp": payload.timestamp or datetime.now(timezone.utc).isoformat(),
        },
    ))
    _bump_counters(affiliate, total_clicks=1)
    await db.flush()

    logger.info(
        "Referral click tracked: affiliate=%s code=%s",
        str(affiliate.id)[:8], affiliate.referral_code,
        extra={"affiliate_id": str(affiliate.id), "referral_code": affiliate.referral_code},
    )
    return affiliate


async def find_or_create_referral(
    db: AsyncSession,
    affiliate: Affiliate,
    customer_email: Optional[str],
    customer_name: Optional[str],
    metadata: dict,
) -> Optional[Referral]:
    """
    The Referral for this customer, creating it (APPROVED) on the first conversion.
    An existing PENDING referral is approved and its metadata merged.
    Returns None when no email was supplied.
    """
    email = (customer_email or "").strip().lower()
    if not email:
        return None

    result = await db.execute(
        select(Referral).where(
            and_(Referral.lead_email == email, Referral.affiliate_id == affiliate.id)
        ).limit(1)
    )
    referral = result.scalar_one_or_none()

    if referral is None:
        referral = Referral(
            affiliate_id=affiliate.id,
            lead_email=email,
            lead_name=customer_name or UNKNOWN_CUSTOMER_NAME,
            status=ReferralStatus.APPROVED.value,
            extra_data=dict(metadata or {}),
        )
        referral.affiliate = affiliate
        db.add(referral)
        _bump_counters(affiliate, total_leads=1)
        await db.flush()
        logger.info("New lead from conversion: %s", mask_email(email),
                    extra={"affiliate_id": str(affiliate.id)})
    elif referral.status == ReferralStatus.PENDING.value:
        referral.status = ReferralStatus.APPROVED.value
        referral.extra_data = {**(referral.extra_data or {}), **(metadata or {})}

    return referral


async def record_purchase(
    db: AsyncSession,
    affiliate: Affiliate,
    referral: Optional[Referral],
    amount_cents: int,
    currency: str,
    status: str,
    event_metadata: dict,
) -> Conversion:
    """Append a PURCHASE event and add it to the affiliate's revenue total."""
    conversion = Conversion(
        affiliate_id=affiliate.id,
        referral_id=referral.id if referral else None,
        event_type=ConversionEventType.PURCHASE.value,
        amount_cents=amount_cents,
        currency=currency,
        status=status,
        event_metadata=event_metadata,
    )
    db.add(conversion)
    _bump_counters(affiliate, total_revenue_cents=amount_cents)
    await db.flush()
    return conversion


async def track_conversion(
    db: AsyncSession,
    payload: ConversionRequest,
    default_currency: str = "USD",
) -> tuple[Conversion, Affiliate]:
    """Record a purchase attributed to ``payload.referral_code``."""
    affiliate = await resolve_active_affiliate(db, payload.referral_code)

    amount_cents = to_cents_rounded(payload.amount or 0)
    metadata = dict(payload.metadata or {})

    referral = await find_or_create_referral(
        db, affiliate, payload.customer_email, payload.customer_name, metadata,
    )

    conversion = await record_purchase(
        db,
        affiliate,
        referral,
        amount_cents=amount_cents,
        currency=(payload.currency or default_currency).upper(),
        status=ConversionStatus.PENDING.value,
        event_metadata={
            "order_id": payload.order_id,
            "url": payload.url,
            "timestamp": payload.timestamp or datetime.now(timezone.utc).isoformat(),
            **metadata,
        },
    )

    logger.info(
        "Conversion tracked: conversion=%s affiliate=%s amount_cents=%d",
        str(conversion.id)[:8], str(affiliate.id)[:8], amount_cents,
        extra={"affiliate_id": str(affiliate.id), "referral_code": affiliate.referral_code},
    )
    return conversion, affiliate
