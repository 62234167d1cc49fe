"""
Admin partner management - partner groups (commission tiers), affiliates and
manually entered referrals.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from reftrack.api.auth import require_admin
from reftrack.database import get_db
from reftrack.schemas.admin import (
    AffiliateListResponse,
    AffiliateResponse,
    AffiliateUpdate,
    MessageResponse,
    PartnerGroupCreate,
    PartnerGroupListResponse,
    PartnerGroupResponse,
    PartnerGroupUpdate,
    ReferralCreate,
    ReferralListResponse,
    ReferralResponse,
    ReferralUpdate,
    affiliate_out,
    partner_group_out,
    referral_out,
)
from reftrack.schemas.auth import AuthSession
from reftrack.services import affiliates, partner_groups, referrals
from reftrack.services.commission import resolve_rate

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin", tags=["admin-partners"])


# === PARTNER GROUPS ===

@router.get("/partner-groups", response_model=PartnerGroupListResponse)
async def list_partner_groups(
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(require_admin),
):
    rows = await partner_groups.list_partner_groups(db)
    return PartnerGroupListResponse(
        partner_groups=[partner_group_out(group, count) for group, count in rows],
    )


@router.post("/partner-groups", response_model=PartnerGroupResponse, status_code=201)
async def create_partner_group(
    payload: PartnerGroupCreate,
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(require_admin),
):
    group = await partner_groups.create_partner_group(db, payload)
    return PartnerGroupResponse(
        message="Partner group created successfully",
        partner_group=partner_group_out(group, 0),
    )


@router.put("/partner-groups/{group_id}", response_model=PartnerGroupResponse)
async def update_partner_group(
    group_id: str,
    payload: PartnerGroupUpdate,
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(require_admin),
):
    group = await partner_groups.update_partner_group(db, group_id, payload)
    members = await partner_groups.count_members(db, group.id)
    return PartnerGroupResponse(
        message="Partner group updated successfully",
        partner_group=partner_group_out(group, members),
    )


@router.delete("/partner-groups/{group_id}", response_model=MessageResponse)
async def delete_partner_group(
    group_id: str,
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(require_admin),
):
    await partner_groups.delete_partner_group(db, group_id)
    return MessageResponse(message="Partner group deleted successfully")


# === AFFILIATES ===

@router.get("/affiliates", response_model=AffiliateListResponse)
async def list_affiliates(
    status: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(require_admin),
):
    rows = await affiliates.list_affiliates(db, status=status)
    return AffiliateListResponse(
        affiliates=[affiliate_out(a, resolve_rate(a.partner_group)) for a in rows],
    )


@router.put("/affiliates/{affiliate_id}", response_model=AffiliateResponse)
async def update_affiliate(
    affiliate_id: str,
    payload: AffiliateUpdate,
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(require_admin),
):
    """Assign a partner group (null removes it) and/or change the user's status."""
    affiliate = await affiliates.update_affiliate(db, affiliate_id, payload)
    return AffiliateResponse(
        message="Affiliate updated successfully",
        affiliate=affiliate_out(affiliate, resolve_rate(affiliate.partner_group)),
    )


@router.delete("/affiliates/{affiliate_id}", response_model=MessageResponse)
async def delete_affiliate(
    affiliate_id: str,
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(require_admin),
):
    await affiliates.delete_affiliate(db, affiliate_id)
    return MessageResponse(message="Affiliate deleted successfully")


# === REFERRALS ===

@router.get("/referrals", response_model=ReferralListResponse)
async def list_referrals(
    affiliate_id: Optional[str] = None,
    status: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(require_admin),
):
    rows = await referrals.list_referrals(db, affiliate_id=affiliate_id, status=status)
    return ReferralListResponse(
        referrals=[referral_out(r, r.affiliate.referral_code) for r in rows],
    )


@router.post("/referrals", response_model=ReferralResponse, status_code=201)
async def create_referral(
    payload: ReferralCreate,
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(require_admin),
):
    referral, affiliate = await referrals.create_referral(db, payload)
    return ReferralResponse(
        message="Referral created successfully",
        referral=referral_out(referral, affiliate.referral_code),
    )


@router.put("/referrals/{referral_id}", response_model=ReferralResponse)
async def update_referral(
    referral_id: str,
    payload: ReferralUpdate,
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(require_admin),
):
    referral = await referrals.update_referral(db, referral_id, payload)
    return ReferralResponse(
        message="Referral updated successfully",
        referral=referral_out(referral, referral.affiliate.referral_code),
    )
