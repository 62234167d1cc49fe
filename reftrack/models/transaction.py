"""
Transaction model - a realized payment tied to a referral, with its commission.

amount_cents is immutable after creation. commission_rate is the rate that
applied when the row was created; later partner-group edits never touch it.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Text, Float, BigInteger, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from reftrack.database import Base
from reftrack.models.enums import TransactionStatus


class Transaction(Base):
    __tablename__ = "transactions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    referral_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("referrals.id"), nullable=False
    )
    affiliate_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("affiliates.id"), nullable=False
    )
    payout_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("payouts.id"), nullable=True
    )

    customer_name: Mapped[Optional[str]] = mapped_column(String(255))
    customer_email: Mapped[Optional[str]] = mapped_column(String(255))

    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    commission_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    commission_rate: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TransactionStatus.PENDING.value
    )

    description: Mapped[Optional[str]] = mapped_column(Text)
    invoice_id: Mapped[Optional[str]] = mapped_column(String(100))
    payment_method: Mapped[Optional[str]] = mapped_column(String(50))
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )

    referral: Mapped["Referral"] = relationship(lazy="selectin")
    affiliate: Mapped["Affiliate"] = relationship(lazy="selectin")

    __table_args__ = (
        Index("ix_transactions_affiliate_status", "affiliate_id", "status"),
        Index("ix_transactions_referral", "referral_id"),
        Index("ix_transactions_payout", "payout_id"),
    )

    def __repr__(self) -> str:
        return f"<Transaction {self.amount_cents}c commission={self.commission_cents}c ({self.status})>"
