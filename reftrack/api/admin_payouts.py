"""
Admin payouts - batch completed commissions and drive the payout lifecycle.
Affiliates are emailed when a payout is scheduled and when it completes, only
after the change is committed.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from reftrack.api.auth import require_admin
from reftrack.database import get_db
from reftrack.schemas.admin import (
    MessageResponse,
    PayoutCreate,
    PayoutListResponse,
    PayoutResponse,
    PayoutUpdate,
    payout_out,
)
from reftrack.schemas.auth import AuthSession
from reftrack.services import payouts
from reftrack.services.transactional_email import (
    send_payout_completed_email,
    send_payout_created_email,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin/payouts", tags=["admin-payouts"])


@router.get("", response_model=PayoutListResponse)
async def list_payouts(
    affiliate_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(require_admin),
):
    rows = await payouts.list_payouts(db, affiliate_id=affiliate_id)
    return PayoutListResponse(payouts=[payout_out(p, p.affiliate) for p in rows])


@router.post("", response_model=PayoutResponse, status_code=201)
async def create_payout(
    payload: PayoutCreate,
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(require_admin),
):
    payout, affiliate = await payouts.create_payout(
        db,
        payload.affiliate_id,
        payload.transaction_ids,
        method=payload.method,
        notes=payload.notes,
        created_by=admin.user_id,
    )
    # Emails go out only for committed payouts
    await db.commit()
    await send_payout_created_email(
        affiliate.user.email,
        affiliate.user.name,
        payout.amount_cents,
        payout.commission_count,
        payout.method,
    )
    return PayoutResponse(message="Payout created successfully", payout=payout_out(payout, affiliate))


@router.put("/{payout_id}", response_model=PayoutResponse)
async def update_payout(
    payout_id: str,
    payload: PayoutUpdate,
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(require_admin),
):
    payout, completed_now = await payouts.update_payout(
        db, payout_id, status=payload.status, method=payload.method, notes=payload.notes,
    )
    affiliate = payout.affiliate
    if completed_now:
        await db.commit()
        await send_payout_completed_email(
            affiliate.user.email,
            affiliate.user.name,
            payout.amount_cents,
            payout.method,
        )
    return PayoutResponse(message="Payout updated successfully", payout=payout_out(payout, affiliate))


@router.delete("/{payout_id}", response_model=MessageResponse)
async def delete_payout(
    payout_id: str,
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(require_admin),
):
    released = await payouts.delete_payout(db, payout_id)
    return MessageResponse(message=f"Payout deleted, {released} commission(s) released")
