"""
Admin-side lead management: manual referral entry and status changes.
Tracked conversions create referrals through reftrack.services.tracking.
"""
import logging
from typing import Optional

from sqlalchemy import select, and_, desc
from sqlalchemy.ext.asyncio import AsyncSession

from reftrack.errors import ConflictError, NotFoundError, ValidationError
from reftrack.models.affiliate import Affiliate
from reftrack.models.enums import ReferralStatus
from reftrack.models.referral import Referral
from reftrack.schemas.admin import ReferralCreate, ReferralUpdate
from reftrack.services.transactions import parse_uuid
from reftrack.utils.logging import mask_email

logger = logging.getLogger(__name__)


def parse_referral_status(value: Optional[str]) -> str:
    try:
        return ReferralStatus((value or "").strip().upper()).value
    except ValueError:
        raise ValidationError(f"Invalid referral status: {value}")


async def list_referrals(
    db: AsyncSession,
    affiliate_id: Optional[str] = None,
    status: Optional[str] = None,
) -> list[Referral]:
    conditions = []
    if affiliate_id:
        conditions.append(Referral.affiliate_id == parse_uuid(affiliate_id, "affiliate id"))
    if status:
        conditions.append(Referral.status == parse_referral_status(status))

    query = select(Referral).order_by(desc(Referral.created_at))
    if conditions:
        query = query.where(and_(*conditions))
    result = await db.execute(query)
    return list(result.scalars().all())


async def create_referral(db: AsyncSession, payload: ReferralCreate) -> tuple[Referral, Affiliate]:
    affiliate = await db.get(Affiliate, parse_uuid(payload.affiliate_id, "affiliate id"))
    if not affiliate:
        raise NotFoundError("Affiliate not found")

    email = (payload.lead_email or "").strip().lower()
    name = (payload.lead_name or "").strip()
    if not email or "@" not in email:
        raise ValidationError("A valid lead email is required")
    if not name:
        raise ValidationError("Lead name is required")

    existing = await db.execute(
        select(Referral.id).where(
            and_(Referral.affiliate_id == affiliate.id, Referral.lead_email == email)
        ).limit(1)
    )
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("This lead is already attributed to the affiliate")

    status = parse_referral_status(payload.status) if payload.status else ReferralStatus.PENDING.value
    referral = Referral(
        affiliate_id=affiliate.id,
        lead_name=name,
        lead_email=email,
        status=status,
        extra_data=dict(payload.metadata or {}),
    )
    referral.affiliate = affiliate
    db.add(referral)
    affiliate.total_leads = Affiliate.total_leads + 1
    await db.flush()

    logger.info("Manual referral created: %s", mask_email(email),
                extra={"affiliate_id": str(affiliate.id)})
    return referral, affiliate


async def update_referral(db: AsyncSession, referral_id, payload: ReferralUpdate) -> Referral:
    referral = await db.get(Referral, parse_uuid(referral_id, "referral id"))
    if not referral:
        raise NotFoundError("Referral not found")

    if payload.status is not None:
        referral.status = parse_referral_status(payload.status)
    if payload.lead_name is not None:
        name = payload.lead_name.strip()
        if not name:
            raise ValidationError("Lead name is required")
        referral.lead_name = name
    if payload.metadata is not None:
        referral.extra_data = {**(referral.extra_data or {}), **payload.metadata}

    await db.flush()
    return referral
