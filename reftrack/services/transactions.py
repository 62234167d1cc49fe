"""
Transaction ledger - admin-entered payments with their commission.

Creation snapshots the commission rate from the affiliate's partner group and
floors the amount to cents. After that, only status and bookkeeping fields
change; amount, commission and rate are never recomputed.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, and_, desc
from sqlalchemy.ext.asyncio import AsyncSession

from reftrack.errors import ConflictError, NotFoundError, ValidationError
from reftrack.models.affiliate import Affiliate
from reftrack.models.enums import ConversionStatus, TransactionStatus
from reftrack.models.referral import Referral
from reftrack.models.transaction import Transaction
from reftrack.schemas.admin import TransactionCreate, TransactionUpdate
from reftrack.services.commission import compute_commission, to_cents_floored
from reftrack.services.tracking import record_purchase

logger = logging.getLogger(__name__)

# PAID is reserved for payout creation; it is never set by hand
MANUAL_STATUSES = {
    TransactionStatus.PENDING.value,
    TransactionStatus.COMPLETED.value,
    TransactionStatus.REFUNDED.value,
    TransactionStatus.FAILED.value,
}


def parse_uuid(value, label: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, AttributeError, TypeError):
        raise ValidationError(f"Invalid {label}")


def _manual_status(status: Optional[str]) -> str:
    normalized = (status or "").strip().upper()
    if normalized == TransactionStatus.PAID.value:
        raise ValidationError("Transactions are marked PAID by creating a payout")
    if normalized not in MANUAL_STATUSES:
        raise ValidationError(f"Invalid transaction status: {status}")
    return normalized


async def list_transactions(
    db: AsyncSession,
    referral_id: Optional[str] = None,
    affiliate_id: Optional[str] = None,
    status: Optional[str] = None,
) -> list[Transaction]:
    conditions = []
    if referral_id:
        conditions.append(Transaction.referral_id == parse_uuid(referral_id, "referral id"))
    if affiliate_id:
        conditions.append(Transaction.affiliate_id == parse_uuid(affiliate_id, "affiliate id"))
    if status:
        conditions.append(Transaction.status == status.upper())

    query = select(Transaction).order_by(desc(Transaction.created_at))
    if conditions:
        query = query.where(and_(*conditions))
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_transaction(db: AsyncSession, transaction_id) -> Transaction:
    txn = await db.get(Transaction, parse_uuid(transaction_id, "transaction id"))
    if not txn:
        raise NotFoundError("Transaction not found")
    return txn


async def create_transaction(
    db: AsyncSession,
    payload: TransactionCreate,
    created_by: Optional[uuid.UUID] = None,
    currency: str = "USD",
) -> Transaction:
    """
    Ledger a payment for a referral. The commission rate in effect right now is
    stored on the row, and a matching APPROVED purchase conversion is logged.
    """
    referral = await db.get(Referral, parse_uuid(payload.referral_id, "referral id"))
    if not referral:
        raise NotFoundError("Referral not found")

    affiliate = await db.get(Affiliate, referral.affiliate_id)
    if not affiliate:
        raise NotFoundError("Affiliate not found")

    quote = compute_commission(payload.amount, affiliate.partner_group, to_cents=to_cents_floored)
    if quote.amount_cents <= 0:
        raise ValidationError("Amount must be greater than zero")

    status = _manual_status(payload.status) if payload.status else TransactionStatus.COMPLETED.value

    txn = Transaction(
        referral_id=referral.id,
        affiliate_id=affiliate.id,
        customer_name=referral.lead_name,
        customer_email=referral.lead_email,
        amount_cents=quote.amount_cents,
        commission_cents=quote.commission_cents,
        commission_rate=quote.rate,
        status=status,
        description=payload.description,
        invoice_id=payload.invoice_id,
        payment_method=payload.payment_method,
        paid_at=payload.paid_at or datetime.now(timezone.utc),
        created_by=created_by,
    )
    # Set relationships directly so the response can be built without a lazy load
    txn.referral = referral
    txn.affiliate = affiliate
    db.add(txn)
    await db.flush()

    await record_purchase(
        db,
        affiliate,
        referral,
        amount_cents=quote.amount_cents,
        currency=currency,
        status=ConversionStatus.APPROVED.value,
        event_metadata={
            "transaction_id": str(txn.id),
            "commission_cents": quote.commission_cents,
            "commission_rate": quote.rate,
        },
    )

    logger.info(
        "Transaction created: amount_cents=%d commission_cents=%d rate=%.4f",
        quote.amount_cents, quote.commission_cents, quote.rate,
        extra={"transaction_id": str(txn.id), "affiliate_id": str(affiliate.id)},
    )
    return txn


async def update_transaction(
    db: AsyncSession,
    transaction_id,
    payload: TransactionUpdate,
) -> Transaction:
    """Update status and bookkeeping fields. PAID rows are locked to their payout."""
    txn = await get_transaction(db, transaction_id)
    fields = payload.model_fields_set

    if payload.status is not None:
        new_status = _manual_status(payload.status)
        if txn.status == TransactionStatus.PAID.value and new_status != txn.status:
            raise ConflictError("Transaction is part of a payout and cannot change status")
        txn.status = new_status

    if "description" in fields:
        txn.description = payload.description
    if "invoice_id" in fields:
        txn.invoice_id = payload.invoice_id
    if "payment_method" in fields:
        txn.payment_method = payload.payment_method
    if payload.paid_at is not None:
        txn.paid_at = payload.paid_at

    await db.flush()
    logger.info("Transaction updated: status=%s", txn.status,
                extra={"transaction_id": str(txn.id)})
    return txn


async def delete_transaction(db: AsyncSession, transaction_id) -> None:
    txn = await get_transaction(db, transaction_id)
    if txn.status == TransactionStatus.PAID.value or txn.payout_id is not None:
        raise ConflictError("Cannot delete a transaction that has been paid out")
    await db.delete(txn)
    await db.flush()
    logger.info("Transaction deleted", extra={"transaction_id": str(transaction_id)})
