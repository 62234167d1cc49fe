"""
Payout aggregation and payout status management.

create_payout batches COMPLETED transactions of one affiliate into a PENDING
payout and flips them to PAID. Validation is all-or-nothing, and the status flip
is a conditional UPDATE (only rows still COMPLETED and unassigned) whose row
count must match, so two overlapping payout requests cannot both claim the same
commission. Callers run this inside a single session transaction
(reftrack.database.get_db) so any error rolls back the payout row as well.

Payout lifecycle:
    PENDING -> PROCESSING -> COMPLETED
    PENDING | PROCESSING -> FAILED
COMPLETED and FAILED are terminal.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import select, and_, desc, update
from sqlalchemy.ext.asyncio import AsyncSession

from reftrack.errors import ConflictError, NotFoundError, ValidationError
from reftrack.models.affiliate import Affiliate
from reftrack.models.enums import PayoutStatus, TransactionStatus
from reftrack.models.payout import Payout, DEFAULT_PAYOUT_METHOD
from reftrack.models.transaction import Transaction
from reftrack.services.transactions import parse_uuid

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[PayoutStatus, frozenset[PayoutStatus]] = {
    PayoutStatus.PENDING: frozenset({PayoutStatus.PROCESSING, PayoutStatus.FAILED}),
    PayoutStatus.PROCESSING: frozenset({PayoutStatus.COMPLETED, PayoutStatus.FAILED}),
    PayoutStatus.COMPLETED: frozenset(),
    PayoutStatus.FAILED: frozenset(),
}

# Payouts in these states can be deleted; their transactions go back to COMPLETED
DELETABLE_STATUSES = {PayoutStatus.PENDING.value, PayoutStatus.FAILED.value}


def parse_payout_status(value: str) -> PayoutStatus:
    try:
        return PayoutStatus((value or "").strip().upper())
    except ValueError:
        raise ValidationError(f"Invalid payout status: {value}")


def check_transition(current: PayoutStatus, target: PayoutStatus) -> None:
    """Raise ValidationError unless current -> target is a defined transition."""
    if target == current:
        return
    if target not in ALLOWED_TRANSITIONS[current]:
        raise ValidationError(
            f"Cannot change payout status from {current.value} to {target.value}"
        )


def _dedupe_ids(transaction_ids: Iterable[str]) -> list[uuid.UUID]:
    parsed = [parse_uuid(tid, "transaction id") for tid in transaction_ids]
    if not parsed:
        raise ValidationError("At least one commission is required")
    if len(set(parsed)) != len(parsed):
        raise ValidationError("Duplicate commission ids in payout request")
    return parsed


async def _reload_transactions(db: AsyncSession, condition) -> list[uuid.UUID]:
    """Re-read matching transactions so in-session objects reflect a bulk UPDATE."""
    result = await db.execute(
        select(Transaction).where(condition).execution_options(populate_existing=True)
    )
    return [txn.id for txn in result.scalars().all()]


async def get_payout(db: AsyncSession, payout_id) -> Payout:
    payout = await db.get(Payout, parse_uuid(payout_id, "payout id"))
    if not payout:
        raise NotFoundError("Payout not found")
    return payout


async def list_payouts(db: AsyncSession, affiliate_id: Optional[str] = None) -> list[Payout]:
    query = select(Payout).order_by(desc(Payout.created_at))
    if affiliate_id:
        query = query.where(Payout.affiliate_id == parse_uuid(affiliate_id, "affiliate id"))
    result = await db.execute(query)
    return list(result.scalars().all())


async def create_payout(
    db: AsyncSession,
    affiliate_id,
    transaction_ids: Iterable[str],
    method: Optional[str] = None,
    notes: Optional[str] = None,
    created_by: Optional[uuid.UUID] = None,
) -> tuple[Payout, Affiliate]:
    """
    Create a PENDING payout over exactly ``transaction_ids``.

    Every id must exist, belong to the affiliate and be COMPLETED; otherwise
    ConflictError is raised before anything is written.
    """
    affiliate = await db.get(Affiliate, parse_uuid(affiliate_id, "affiliate id"))
    if not affiliate:
        raise NotFoundError("Affiliate not found")

    ids = _dedupe_ids(transaction_ids)

    result = await db.execute(
        select(Transaction).where(
            and_(
                Transaction.id.in_(ids),
                Transaction.affiliate_id == affiliate.id,
                Transaction.status == TransactionStatus.COMPLETED.value,
                Transaction.payout_id.is_(None),
            )
        )
    )
    eligible = list(result.scalars().all())
    if len(eligible) != len(ids):
        logger.warning(
            "Payout rejected: %d of %d commissions eligible",
            len(eligible), len(ids),
            extra={"affiliate_id": str(affiliate.id)},
        )
        raise ConflictError(
            "Some commissions are invalid or not eligible for payout", status_code=400,
        )

    total_cents = sum(txn.commission_cents for txn in eligible)
    payout = Payout(
        affiliate_id=affiliate.id,
        amount_cents=total_cents,
        commission_count=len(eligible),
        status=PayoutStatus.PENDING.value,
        method=method or DEFAULT_PAYOUT_METHOD,
        notes=notes or None,
        created_by=created_by,
    )
    payout.affiliate = affiliate
    db.add(payout)
    await db.flush()

    # Guarded flip: a concurrent payout that already took any of these rows
    # makes the row count come up short
    flipped = await db.execute(
        update(Transaction)
        .where(
            and_(
                Transaction.id.in_(ids),
                Transaction.affiliate_id == affiliate.id,
                Transaction.status == TransactionStatus.COMPLETED.value,
                Transaction.payout_id.is_(None),
            )
        )
        .values(
            status=TransactionStatus.PAID.value,
            payout_id=payout.id,
            updated_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
    if flipped.rowcount != len(ids):
        logger.error(
            "Payout aborted: flipped %d of %d commissions (concurrent payout?)",
            flipped.rowcount, len(ids),
            extra={"affiliate_id": str(affiliate.id), "payout_id": str(payout.id)},
        )
        raise ConflictError("Commissions changed while creating the payout; nothing was paid")
    await _reload_transactions(db, Transaction.id.in_(ids))

    logger.info(
        "Payout created: amount_cents=%d commissions=%d",
        total_cents, len(eligible),
        extra={"affiliate_id": str(affiliate.id), "payout_id": str(payout.id)},
    )
    return payout, affiliate


async def update_payout(
    db: AsyncSession,
    payout_id,
    status: Optional[str] = None,
    method: Optional[str] = None,
    notes: Optional[str] = None,
) -> tuple[Payout, bool]:
    """
    Apply a status transition and/or edit method/notes.

    Returns (payout, completed_now) where completed_now is True only when this
    call moved the payout into COMPLETED.
    """
    payout = await get_payout(db, payout_id)
    completed_now = False

    if status is not None:
        current = PayoutStatus(payout.status)
        target = parse_payout_status(status)
        check_transition(current, target)
        if target != current:
            payout.status = target.value
            if target is PayoutStatus.COMPLETED:
                payout.processed_at = datetime.now(timezone.utc)
                completed_now = True

    if method is not None:
        payout.method = method
    if notes is not None:
        payout.notes = notes

    await db.flush()
    logger.info("Payout updated: status=%s", payout.status,
                extra={"payout_id": str(payout.id)})
    return payout, completed_now


async def delete_payout(db: AsyncSession, payout_id) -> int:
    """
    Delete a PENDING or FAILED payout and release its commissions back to
    COMPLETED. Returns the number of released transactions.
    """
    payout = await get_payout(db, payout_id)
    if payout.status not in DELETABLE_STATUSES:
        raise ConflictError(f"Cannot delete a {payout.status} payout")

    released_ids = await _reload_transactions(db, Transaction.payout_id == payout.id)
    released = await db.execute(
        update(Transaction)
        .where(
            and_(
                Transaction.payout_id == payout.id,
                Transaction.status == TransactionStatus.PAID.value,
            )
        )
        .values(
            status=TransactionStatus.COMPLETED.value,
            payout_id=None,
            updated_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
    await db.delete(payout)
    await db.flush()
    await _reload_transactions(db, Transaction.id.in_(released_ids))

    logger.info("Payout deleted, %d commissions released", released.rowcount,
                extra={"payout_id": str(payout_id)})
    return released.rowcount
