"""
Referral model - a lead (prospective customer) attributed to one affiliate.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from reftrack.database import Base
from reftrack.models.enums import ReferralStatus


class Referral(Base):
    __tablename__ = "referrals"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    affiliate_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("affiliates.id"), nullable=False
    )
    lead_name: Mapped[str] = mapped_column(String(255), nullable=False)
    lead_email: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ReferralStatus.PENDING.value
    )
    # Free-form; the dashboard reads "estimated_value" from here
    extra_data: Mapped[Optional[dict]] = mapped_column("metadata", JSONB, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )

    affiliate: Mapped["Affiliate"] = relationship(lazy="selectin")

    __table_args__ = (
        Index("ix_referrals_affiliate_email", "affiliate_id", "lead_email"),
        Index("ix_referrals_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Referral {self.lead_email} ({self.status})>"
