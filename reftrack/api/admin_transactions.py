"""
Admin transaction ledger - manual payments against referrals.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from reftrack.api.auth import require_admin
from reftrack.config import get_settings
from reftrack.database import get_db
from reftrack.schemas.admin import (
    MessageResponse,
    TransactionCreate,
    TransactionListResponse,
    TransactionResponse,
    TransactionUpdate,
    transaction_out,
)
from reftrack.schemas.auth import AuthSession
from reftrack.services import transactions

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin/transactions", tags=["admin-transactions"])


@router.get("", response_model=TransactionListResponse)
async def list_transactions(
    referral_id: Optional[str] = None,
    affiliate_id: Optional[str] = None,
    status: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(require_admin),
):
    rows = await transactions.list_transactions(
        db, referral_id=referral_id, affiliate_id=affiliate_id, status=status,
    )
    return TransactionListResponse(transactions=[transaction_out(t) for t in rows])


@router.post("", response_model=TransactionResponse, status_code=201)
async def create_transaction(
    payload: TransactionCreate,
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(require_admin),
):
    """Record a payment; commission is computed from the affiliate's current rate."""
    txn = await transactions.create_transaction(
        db, payload, created_by=admin.user_id, currency=get_settings().default_currency,
    )
    return TransactionResponse(message="Transaction created successfully", transaction=transaction_out(txn))


@router.put("/{transaction_id}", response_model=TransactionResponse)
async def update_transaction(
    transaction_id: str,
    payload: TransactionUpdate,
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(require_admin),
):
    txn = await transactions.update_transaction(db, transaction_id, payload)
    return TransactionResponse(message="Transaction updated successfully", transaction=transaction_out(txn))


@router.delete("/{transaction_id}", response_model=MessageResponse)
async def delete_transaction(
    transaction_id: str,
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(require_admin),
):
    await transactions.delete_transaction(db, transaction_id)
    return MessageResponse(message="Transaction deleted successfully")
