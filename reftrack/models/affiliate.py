"""
Affiliate model - a partner who refers customers and earns commission.
Running totals are denormalized counters updated by the tracking endpoints.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Integer, BigInteger, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from reftrack.database import Base


class Affiliate(Base):
    __tablename__ = "affiliates"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, unique=True
    )
    referral_code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    partner_group_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("partner_groups.id"), nullable=True
    )

    # Running totals
    total_clicks: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_leads: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_revenue_cents: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    balance_cents: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    payout_details: Mapped[Optional[dict]] = mapped_column(JSONB, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )

    user: Mapped["User"] = relationship(back_populates="affiliate", lazy="selectin")
    partner_group: Mapped[Optional["PartnerGroup"]] = relationship(lazy="selectin")

    __table_args__ = (
        Index("ix_affiliates_partner_group", "partner_group_id"),
    )

    def __repr__(self) -> str:
        return f"<Affiliate {self.referral_code}>"
