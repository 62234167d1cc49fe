"""
Payout aggregation tests - eligibility, all-or-nothing creation, lifecycle, deletion.
"""
import uuid
from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from reftrack.database import Base
from reftrack.errors import ConflictError, NotFoundError, ValidationError
from reftrack.models.enums import PayoutStatus, TransactionStatus
from reftrack.models.payout import DEFAULT_PAYOUT_METHOD, Payout
from reftrack.models.transaction import Transaction
from reftrack.schemas.admin import TransactionCreate
from reftrack.services.payouts import (
    check_transition,
    create_payout,
    delete_payout,
    list_payouts,
    update_payout,
)
from reftrack.services.transactions import create_transaction
from factories import make_affiliate, make_referral


async def _commissions(db, amounts, statuses=None, affiliate=None):
    affiliate = affiliate or await make_affiliate(db)
    referral = await make_referral(db, affiliate, email=f"lead-{uuid.uuid4().hex[:6]}@example.com")
    txns = []
    for i, amount in enumerate(amounts):
        status = statuses[i] if statuses else None
        txns.append(await create_transaction(
            db, TransactionCreate(referral_id=str(referral.id), amount=amount, status=status),
        ))
    return affiliate, txns


async def _payout_count(db):
    return (await db.execute(select(func.count(Payout.id)))).scalar()


class TestCreatePayout:
    async def test_sums_commissions_and_marks_paid(self, db):
        affiliate, txns = await _commissions(db, [100, "49.99"])

        payout, returned = await create_payout(db, str(affiliate.id), [str(t.id) for t in txns])

        assert returned.id == affiliate.id
        assert payout.amount_cents == 2000 + 999
        assert payout.commission_count == 2
        assert payout.status == PayoutStatus.PENDING.value
        assert payout.method == DEFAULT_PAYOUT_METHOD
        for txn in txns:
            await db.refresh(txn)
            assert txn.status == TransactionStatus.PAID.value
            assert txn.payout_id == payout.id

    async def test_pending_commission_rejects_whole_request(self, db):
        affiliate, txns = await _commissions(db, [10, 20], statuses=["PENDING", "COMPLETED"])

        with pytest.raises(ConflictError, match="not eligible") as exc_info:
            await create_payout(db, str(affiliate.id), [str(t.id) for t in txns])

        assert exc_info.value.status_code == 400
        assert await _payout_count(db) == 0
        for txn in txns:
            await db.refresh(txn)
        assert [t.status for t in txns] == ["PENDING", "COMPLETED"]

    async def test_other_affiliates_commission_rejected(self, db):
        affiliate, _ = await _commissions(db, [10])
        other = await make_affiliate(db, code="OTHER-0001", email="other@example.com")
        _, foreign = await _commissions(db, [10], affiliate=other)

        with pytest.raises(ConflictError):
            await create_payout(db, str(affiliate.id), [str(foreign[0].id)])

    async def test_already_paid_commission_rejected(self, db):
        affiliate, txns = await _commissions(db, [10])
        await create_payout(db, str(affiliate.id), [str(txns[0].id)])

        with pytest.raises(ConflictError):
            await create_payout(db, str(affiliate.id), [str(txns[0].id)])
        assert await _payout_count(db) == 1

    async def test_empty_and_duplicate_ids(self, db):
        affiliate, txns = await _commissions(db, [10])
        with pytest.raises(ValidationError, match="At least one"):
            await create_payout(db, str(affiliate.id), [])
        with pytest.raises(ValidationError, match="Duplicate"):
            await create_payout(db, str(affiliate.id), [str(txns[0].id)] * 2)

    async def test_unknown_affiliate(self, db):
        with pytest.raises(NotFoundError):
            await create_payout(db, str(uuid.uuid4()), [str(uuid.uuid4())])


class TestTransitions:
    @pytest.mark.parametrize("current,target", [
        (PayoutStatus.PENDING, PayoutStatus.PROCESSING),
        (PayoutStatus.PROCESSING, PayoutStatus.COMPLETED),
        (PayoutStatus.PENDING, PayoutStatus.FAILED),
        (PayoutStatus.PROCESSING, PayoutStatus.FAILED),
        (PayoutStatus.COMPLETED, PayoutStatus.COMPLETED),
    ])
    def test_allowed(self, current, target):
        check_transition(current, target)

    @pytest.mark.parametrize("current,target", [
        (PayoutStatus.PENDING, PayoutStatus.COMPLETED),
        (PayoutStatus.COMPLETED, PayoutStatus.PENDING),
        (PayoutStatus.FAILED, PayoutStatus.PROCESSING),
        (PayoutStatus.PROCESSING, PayoutStatus.PENDING),
    ])
    def test_rejected(self, current, target):
        with pytest.raises(ValidationError):
            check_transition(current, target)


class TestUpdatePayout:
    async def test_full_lifecycle_stamps_processed_at(self, db):
        affiliate, txns = await _commissions(db, [10])
        payout, _ = await create_payout(db, str(affiliate.id), [str(txns[0].id)])

        payout, completed = await update_payout(db, str(payout.id), status="processing")
        assert payout.status == PayoutStatus.PROCESSING.value
        assert completed is False
        assert payout.processed_at is None

        payout, completed = await update_payout(db, str(payout.id), status="COMPLETED")
        assert completed is True
        assert payout.processed_at is not None

        _, completed = await update_payout(db, str(payout.id), status="COMPLETED")
        assert completed is False

    async def test_skipping_processing_rejected(self, db):
        affiliate, txns = await _commissions(db, [10])
        payout, _ = await create_payout(db, str(affiliate.id), [str(txns[0].id)])

        with pytest.raises(ValidationError):
            await update_payout(db, str(payout.id), status="COMPLETED")

    async def test_unknown_status(self, db):
        affiliate, txns = await _commissions(db, [10])
        payout, _ = await create_payout(db, str(affiliate.id), [str(txns[0].id)])

        with pytest.raises(ValidationError, match="Invalid payout status"):
            await update_payout(db, str(payout.id), status="LOST")

    async def test_edit_method_and_notes(self, db):
        affiliate, txns = await _commissions(db, [10])
        payout, _ = await create_payout(db, str(affiliate.id), [str(txns[0].id)])

        payout, _ = await update_payout(db, str(payout.id), method="PayPal", notes="batch 7")
        assert payout.method == "PayPal"
        assert payout.notes == "batch 7"


class TestDeletePayout:
    async def test_pending_payout_releases_commissions(self, db):
        affiliate, txns = await _commissions(db, [10, 20])
        payout, _ = await create_payout(db, str(affiliate.id), [str(t.id) for t in txns])

        released = await delete_payout(db, str(payout.id))

        assert released == 2
        assert await _payout_count(db) == 0
        for txn in txns:
            await db.refresh(txn)
            assert txn.status == TransactionStatus.COMPLETED.value
            assert txn.payout_id is None

    async def test_released_commissions_can_be_paid_again(self, db):
        affiliate, txns = await _commissions(db, [10])
        payout, _ = await create_payout(db, str(affiliate.id), [str(txns[0].id)])
        await delete_payout(db, str(payout.id))

        again, _ = await create_payout(db, str(affiliate.id), [str(txns[0].id)])
        assert again.amount_cents == 200

    async def test_completed_payout_cannot_be_deleted(self, db):
        affiliate, txns = await _commissions(db, [10])
        payout, _ = await create_payout(db, str(affiliate.id), [str(txns[0].id)])
        await update_payout(db, str(payout.id), status="PROCESSING")
        await update_payout(db, str(payout.id), status="COMPLETED")

        with pytest.raises(ConflictError):
            await delete_payout(db, str(payout.id))

    async def test_list_filters_by_affiliate(self, db):
        affiliate, txns = await _commissions(db, [10])
        await create_payout(db, str(affiliate.id), [str(txns[0].id)])

        assert len(await list_payouts(db, affiliate_id=str(affiliate.id))) == 1
        assert await list_payouts(db, affiliate_id=str(uuid.uuid4())) == []


class TestOverlappingPayouts:
    """Two sessions on one file-backed database racing for the same commission."""

    @pytest.fixture
    async def session_factory(self, tmp_path):
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'payouts.db'}")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        await engine.dispose()

    async def test_rival_payout_between_check_and_flip_aborts(self, session_factory):
        async with session_factory() as setup:
            affiliate, txns = await _commissions(setup, [10, 20])
            await setup.commit()
        affiliate_id = str(affiliate.id)
        first_id, second_id = (str(t.id) for t in txns)

        async with session_factory() as session_a, session_factory() as session_b:
            flush_a = session_a.flush
            rival_done = []

            async def flush_after_rival(*args, **kwargs):
                # Session B claims the second commission once A has validated both
                if not rival_done:
                    rival_done.append(await create_payout(session_b, affiliate_id, [second_id]))
                    await session_b.commit()
                await flush_a(*args, **kwargs)

            with patch.object(session_a, "flush", flush_after_rival):
                with pytest.raises(ConflictError, match="nothing was paid") as exc_info:
                    await create_payout(session_a, affiliate_id, [first_id, second_id])
            await session_a.rollback()

        assert exc_info.value.status_code == 409
        rival_payout, _ = rival_done[0]

        async with session_factory() as check:
            payouts = (await check.execute(select(Payout))).scalars().all()
            assert [p.id for p in payouts] == [rival_payout.id]

            rows = await check.execute(
                select(Transaction.id, Transaction.status, Transaction.payout_id)
            )
            by_id = {str(row.id): row for row in rows}
        assert by_id[first_id].status == TransactionStatus.COMPLETED.value
        assert by_id[first_id].payout_id is None
        assert by_id[second_id].status == TransactionStatus.PAID.value
        assert by_id[second_id].payout_id == rival_payout.id
