"""
Transaction ledger tests - commission snapshot, status rules, deletion guards.
"""
import uuid

import pytest
from sqlalchemy import select

from reftrack.errors import ConflictError, NotFoundError, ValidationError
from reftrack.models.conversion import Conversion
from reftrack.models.enums import ConversionEventType, ConversionStatus, TransactionStatus
from reftrack.schemas.admin import TransactionCreate, TransactionUpdate, transaction_out
from reftrack.services.transactions import (
    create_transaction,
    delete_transaction,
    list_transactions,
    parse_uuid,
    update_transaction,
)
from factories import make_affiliate, make_partner_group, make_referral


async def _setup(db, group=None):
    affiliate = await make_affiliate(db, partner_group=group)
    referral = await make_referral(db, affiliate)
    return affiliate, referral


class TestParseUuid:
    def test_valid(self):
        value = uuid.uuid4()
        assert parse_uuid(str(value), "x") == value

    def test_invalid(self):
        with pytest.raises(ValidationError, match="Invalid referral id"):
            parse_uuid("not-a-uuid", "referral id")


class TestCreateTransaction:
    async def test_default_rate_floor_rounding(self, db):
        affiliate, referral = await _setup(db)

        txn = await create_transaction(db, TransactionCreate(referral_id=str(referral.id), amount=49.999))

        assert txn.amount_cents == 4999
        assert txn.commission_cents == 999
        assert txn.commission_rate == 0.2
        assert txn.status == TransactionStatus.COMPLETED.value
        assert txn.customer_email == referral.lead_email
        assert txn.paid_at is not None

    async def test_partner_group_rate_is_snapshotted(self, db):
        group = await make_partner_group(db, rate=0.25)
        _, referral = await _setup(db, group)

        txn = await create_transaction(db, TransactionCreate(referral_id=str(referral.id), amount=100))
        group.commission_rate = 0.5
        await db.flush()
        await db.refresh(txn)

        assert txn.commission_cents == 2500
        assert txn.commission_rate == 0.25

    async def test_logs_approved_purchase_and_revenue(self, db):
        affiliate, referral = await _setup(db)

        txn = await create_transaction(db, TransactionCreate(referral_id=str(referral.id), amount="20.00"))
        await db.refresh(affiliate)

        conversion = (await db.execute(select(Conversion))).scalar_one()
        assert conversion.event_type == ConversionEventType.PURCHASE.value
        assert conversion.status == ConversionStatus.APPROVED.value
        assert conversion.amount_cents == 2000
        assert conversion.event_metadata["transaction_id"] == str(txn.id)
        assert affiliate.total_revenue_cents == 2000

    async def test_zero_amount_rejected(self, db):
        _, referral = await _setup(db)
        with pytest.raises(ValidationError):
            await create_transaction(db, TransactionCreate(referral_id=str(referral.id), amount=0))

    async def test_unknown_referral(self, db):
        with pytest.raises(NotFoundError):
            await create_transaction(db, TransactionCreate(referral_id=str(uuid.uuid4()), amount=10))

    async def test_paid_status_not_allowed_manually(self, db):
        _, referral = await _setup(db)
        with pytest.raises(ValidationError):
            await create_transaction(
                db, TransactionCreate(referral_id=str(referral.id), amount=10, status="PAID"),
            )

    async def test_dto_includes_related_rows(self, db):
        _, referral = await _setup(db)
        txn = await create_transaction(db, TransactionCreate(referral_id=str(referral.id), amount=10))

        dto = transaction_out(txn).model_dump(by_alias=True)
        assert dto["amountCents"] == 1000
        assert dto["referral"]["leadEmail"] == "lead@example.com"
        assert dto["affiliate"]["referralCode"] == "JANEDO-AB12"
        assert dto["affiliate"]["partnerGroup"] == "Default"


class TestUpdateAndDelete:
    async def test_update_status_and_fields(self, db):
        _, referral = await _setup(db)
        txn = await create_transaction(db, TransactionCreate(referral_id=str(referral.id), amount=10))

        updated = await update_transaction(db, str(txn.id), TransactionUpdate(
            status="refunded", invoice_id="INV-9",
        ))

        assert updated.status == TransactionStatus.REFUNDED.value
        assert updated.invoice_id == "INV-9"
        assert updated.amount_cents == 1000

    async def test_paid_transaction_status_locked(self, db):
        _, referral = await _setup(db)
        txn = await create_transaction(db, TransactionCreate(referral_id=str(referral.id), amount=10))
        txn.status = TransactionStatus.PAID.value
        await db.flush()

        with pytest.raises(ConflictError):
            await update_transaction(db, str(txn.id), TransactionUpdate(status="COMPLETED"))

    async def test_delete(self, db):
        _, referral = await _setup(db)
        txn = await create_transaction(db, TransactionCreate(referral_id=str(referral.id), amount=10))

        await delete_transaction(db, str(txn.id))
        assert await list_transactions(db) == []

    async def test_paid_transaction_cannot_be_deleted(self, db):
        _, referral = await _setup(db)
        txn = await create_transaction(db, TransactionCreate(referral_id=str(referral.id), amount=10))
        txn.status = TransactionStatus.PAID.value
        await db.flush()

        with pytest.raises(ConflictError):
            await delete_transaction(db, str(txn.id))

    async def test_list_filters(self, db):
        affiliate, referral = await _setup(db)
        await create_transaction(db, TransactionCreate(referral_id=str(referral.id), amount=10))
        await create_transaction(
            db, TransactionCreate(referral_id=str(referral.id), amount=5, status="PENDING"),
        )

        assert len(await list_transactions(db, affiliate_id=str(affiliate.id))) == 2
        pending = await list_transactions(db, status="pending")
        assert [t.amount_cents for t in pending] == [500]
