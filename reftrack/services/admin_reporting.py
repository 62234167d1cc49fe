"""
Admin reporting service - platform-wide metrics for the admin dashboard.
"""
import logging

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from reftrack.errors import ValidationError
from reftrack.models.affiliate import Affiliate
from reftrack.models.conversion import Conversion
from reftrack.models.enums import ConversionEventType, ReferralStatus, TransactionStatus
from reftrack.models.referral import Referral
from reftrack.models.transaction import Transaction
from reftrack.models.user import User
from reftrack.schemas.admin import DashboardStats
from reftrack.services.commission import commission_for, resolve_rate, to_cents_rounded

logger = logging.getLogger(__name__)


def estimated_value_cents(metadata) -> int:
    """Referral metadata ``estimated_value`` (currency units) in cents; 0 if absent or unusable."""
    value = (metadata or {}).get("estimated_value")
    if value is None or isinstance(value, bool):
        return 0
    try:
        return to_cents_rounded(value)
    except ValidationError:
        return 0


async def _estimates(db: AsyncSession) -> tuple[int, int]:
    """(estimated revenue, estimated commission) over non-canceled referrals."""
    result = await db.execute(
        select(Referral).where(
            Referral.status.not_in([ReferralStatus.CANCELED.value, ReferralStatus.REFUNDED.value])
        )
    )
    revenue = 0
    commission = 0
    for referral in result.scalars().all():
        cents = estimated_value_cents(referral.extra_data)
        if not cents:
            continue
        revenue += cents
        commission += commission_for(cents, resolve_rate(referral.affiliate.partner_group))
    return revenue, commission


async def get_dashboard_stats(db: AsyncSession) -> DashboardStats:
    total_affiliates = (await db.execute(select(func.count(Affiliate.id)))).scalar() or 0
    total_users = (await db.execute(select(func.count(User.id)))).scalar() or 0

    status_rows = await db.execute(
        select(Referral.status, func.count(Referral.id)).group_by(Referral.status)
    )
    referrals_by_status = {row[0]: row[1] for row in status_rows.all()}

    total_conversions = (await db.execute(
        select(func.count(Conversion.id)).where(
            Conversion.event_type == ConversionEventType.PURCHASE.value
        )
    )).scalar() or 0

    total_revenue = (await db.execute(
        select(func.coalesce(func.sum(Conversion.amount_cents), 0)).where(
            Conversion.event_type == ConversionEventType.PURCHASE.value
        )
    )).scalar() or 0

    pending_payout = (await db.execute(
        select(func.coalesce(func.sum(Transaction.commission_cents), 0)).where(
            and_(
                Transaction.status == TransactionStatus.COMPLETED.value,
                Transaction.payout_id.is_(None),
            )
        )
    )).scalar() or 0

    estimated_revenue, estimated_commission = await _estimates(db)

    return DashboardStats(
        total_affiliates=total_affiliates,
        total_users=total_users,
        total_referrals=sum(referrals_by_status.values()),
        total_conversions=total_conversions,
        pending_referrals=referrals_by_status.get(ReferralStatus.PENDING.value, 0),
        approved_referrals=referrals_by_status.get(ReferralStatus.APPROVED.value, 0),
        total_revenue=int(total_revenue),
        total_estimated_revenue=estimated_revenue,
        total_estimated_commission=estimated_commission,
        pending_payout_cents=int(pending_payout),
    )
