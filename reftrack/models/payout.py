"""
Payout model - a batched disbursement of COMPLETED commissions to one affiliate.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Text, Integer, BigInteger, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from reftrack.database import Base
from reftrack.models.enums import PayoutStatus

DEFAULT_PAYOUT_METHOD = "Bank Transfer"


class Payout(Base):
    __tablename__ = "payouts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    affiliate_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("affiliates.id"), nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    commission_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PayoutStatus.PENDING.value
    )
    method: Mapped[str] = mapped_column(String(50), nullable=False, default=DEFAULT_PAYOUT_METHOD)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    affiliate: Mapped["Affiliate"] = relationship(lazy="selectin")

    __table_args__ = (
        Index("ix_payouts_affiliate", "affiliate_id"),
        Index("ix_payouts_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Payout {self.amount_cents}c x{self.commission_count} ({self.status})>"
