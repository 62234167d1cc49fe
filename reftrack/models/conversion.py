"""
Conversion model - raw click/purchase event log used for analytics.
Independent of the Transaction ledger: nothing here is ever paid out.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, BigInteger, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column
from reftrack.database import Base
from reftrack.models.enums import ConversionStatus


class Conversion(Base):
    __tablename__ = "conversions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    affiliate_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("affiliates.id"), nullable=False
    )
    referral_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("referrals.id"), nullable=True
    )
    event_type: Mapped[str] = mapped_column(String(20), nullable=False)  # CLICK, PURCHASE
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ConversionStatus.PENDING.value
    )
    event_metadata: Mapped[Optional[dict]] = mapped_column(JSONB, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        Index("ix_conversions_affiliate_type", "affiliate_id", "event_type"),
        Index("ix_conversions_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Conversion {self.event_type} {self.amount_cents}c>"
