"""
Affiliate accounts: sign-up, referral code provisioning and admin edits.
"""
import logging
from typing import Optional

import bcrypt
from sqlalchemy import select, desc, func
from sqlalchemy.ext.asyncio import AsyncSession

from reftrack.errors import ConflictError, NotFoundError, ValidationError
from reftrack.models.affiliate import Affiliate
from reftrack.models.conversion import Conversion
from reftrack.models.enums import Role, UserStatus
from reftrack.models.referral import Referral
from reftrack.models.user import User
from reftrack.schemas.admin import AffiliateUpdate
from reftrack.services.partner_groups import get_partner_group, get_default_group
from reftrack.services.referral_codes import generate_unique_code
from reftrack.services.transactions import parse_uuid
from reftrack.utils.logging import mask_email

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def parse_user_status(value: Optional[str]) -> str:
    try:
        return UserStatus((value or "").strip().upper()).value
    except ValueError:
        raise ValidationError(f"Invalid user status: {value}")


async def register_affiliate(
    db: AsyncSession,
    email: str,
    password: str,
    name: str,
) -> User:
    """
    Create a PENDING affiliate user with its Affiliate row and referral code.
    New affiliates join the default partner group if one exists.
    """
    email = (email or "").strip().lower()
    name = (name or "").strip()
    if not email or "@" not in email:
        raise ValidationError("A valid email is required")
    if not name:
        raise ValidationError("Name is required")
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    existing = await db.execute(select(User.id).where(User.email == email).limit(1))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("User already exists with this email")

    user = User(
        email=email,
        name=name,
        password_hash=hash_password(password),
        role=Role.AFFILIATE.value,
        status=UserStatus.PENDING.value,
    )
    default_group = await get_default_group(db)
    affiliate = Affiliate(
        referral_code=await generate_unique_code(db, name),
        partner_group_id=default_group.id if default_group else None,
        payout_details={},
        balance_cents=0,
    )
    affiliate.user = user
    affiliate.partner_group = default_group
    db.add(user)
    db.add(affiliate)
    await db.flush()

    logger.info("Affiliate registered: %s code=%s", mask_email(email), affiliate.referral_code,
                extra={"affiliate_id": str(affiliate.id)})
    return user


async def ensure_referral_code(db: AsyncSession, user: User) -> tuple[Affiliate, str]:
    """
    Give ``user`` an affiliate row and a referral code if missing.
    Returns (affiliate, message); an existing code is never replaced.
    """
    affiliate = user.affiliate
    if affiliate is None:
        affiliate = Affiliate(
            referral_code=await generate_unique_code(db, user.name),
            payout_details={},
            balance_cents=0,
        )
        affiliate.user = user
        affiliate.partner_group = None
        db.add(affiliate)
        await db.flush()
        return affiliate, "Affiliate profile created with referral code"

    if not (affiliate.referral_code or "").strip():
        affiliate.referral_code = await generate_unique_code(db, user.name)
        await db.flush()
        return affiliate, "Referral code generated"

    return affiliate, "Referral code already exists"


async def list_affiliates(db: AsyncSession, status: Optional[str] = None) -> list[Affiliate]:
    query = select(Affiliate).join(User, Affiliate.user_id == User.id).order_by(desc(Affiliate.created_at))
    if status:
        query = query.where(User.status == parse_user_status(status))
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_affiliate(db: AsyncSession, affiliate_id) -> Affiliate:
    affiliate = await db.get(Affiliate, parse_uuid(affiliate_id, "affiliate id"))
    if not affiliate:
        raise NotFoundError("Affiliate not found")
    return affiliate


async def update_affiliate(db: AsyncSession, affiliate_id, payload: AffiliateUpdate) -> Affiliate:
    """Assign or clear the partner group, and approve/suspend the affiliate's user."""
    affiliate = await get_affiliate(db, affiliate_id)

    if "partner_group_id" in payload.model_fields_set:
        if payload.partner_group_id:
            group = await get_partner_group(db, payload.partner_group_id)
            affiliate.partner_group_id = group.id
            affiliate.partner_group = group
        else:
            affiliate.partner_group_id = None
            affiliate.partner_group = None

    if payload.status is not None:
        affiliate.user.status = parse_user_status(payload.status)

    await db.flush()
    logger.info("Affiliate updated: group=%s status=%s",
                affiliate.partner_group_id, affiliate.user.status,
                extra={"affiliate_id": str(affiliate.id)})
    return affiliate


async def delete_affiliate(db: AsyncSession, affiliate_id) -> None:
    """Only affiliates with no tracked activity can be hard-deleted."""
    affiliate = await get_affiliate(db, affiliate_id)
    referrals = (await db.execute(
        select(func.count(Referral.id)).where(Referral.affiliate_id == affiliate.id)
    )).scalar() or 0
    events = (await db.execute(
        select(func.count(Conversion.id)).where(Conversion.affiliate_id == affiliate.id)
    )).scalar() or 0
    if referrals or events:
        raise ConflictError(
            "Cannot delete an affiliate with tracked referrals or events; deactivate the account instead"
        )
    await db.delete(affiliate)
    await db.flush()
