"""
Partner group management - commission tiers.

At most one group is the default; marking a group default clears the flag on
the others. A group cannot be deleted while affiliates still reference it.
Rate changes apply to future transactions only (rates are snapshotted).
"""
import logging
from typing import Optional

from sqlalchemy import select, func, desc, update
from sqlalchemy.ext.asyncio import AsyncSession

from reftrack.errors import ConflictError, NotFoundError, ValidationError
from reftrack.models.affiliate import Affiliate
from reftrack.models.partner_group import PartnerGroup
from reftrack.schemas.admin import PartnerGroupCreate, PartnerGroupUpdate
from reftrack.services.commission import validate_rate
from reftrack.services.transactions import parse_uuid

logger = logging.getLogger(__name__)


def validate_group_rate(rate) -> float:
    """Group rates live in (0, 1]; a zero-rate tier is rejected."""
    value = validate_rate(rate)
    if value <= 0:
        raise ValidationError("Commission rate must be greater than 0 and at most 1")
    return value


async def member_counts(db: AsyncSession) -> dict:
    """partner_group_id -> number of affiliates in it."""
    result = await db.execute(
        select(Affiliate.partner_group_id, func.count(Affiliate.id))
        .where(Affiliate.partner_group_id.is_not(None))
        .group_by(Affiliate.partner_group_id)
    )
    return {row[0]: row[1] for row in result.all()}


async def count_members(db: AsyncSession, group_id) -> int:
    result = await db.execute(
        select(func.count(Affiliate.id)).where(Affiliate.partner_group_id == group_id)
    )
    return result.scalar() or 0


async def list_partner_groups(db: AsyncSession) -> list[tuple[PartnerGroup, int]]:
    result = await db.execute(select(PartnerGroup).order_by(desc(PartnerGroup.created_at)))
    groups = list(result.scalars().all())
    counts = await member_counts(db)
    return [(group, counts.get(group.id, 0)) for group in groups]


async def get_partner_group(db: AsyncSession, group_id) -> PartnerGroup:
    group = await db.get(PartnerGroup, parse_uuid(group_id, "partner group id"))
    if not group:
        raise NotFoundError("Partner group not found")
    return group


async def get_default_group(db: AsyncSession) -> Optional[PartnerGroup]:
    result = await db.execute(
        select(PartnerGroup).where(PartnerGroup.is_default == True).limit(1)  # noqa: E712
    )
    return result.scalar_one_or_none()


async def _clear_default(db: AsyncSession, keep_id=None) -> None:
    stmt = update(PartnerGroup).where(PartnerGroup.is_default == True)  # noqa: E712
    if keep_id is not None:
        stmt = stmt.where(PartnerGroup.id != keep_id)
    await db.execute(
        stmt.values(is_default=False).execution_options(synchronize_session="fetch")
    )


def _clean_name(name: Optional[str]) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Partner group name is required")
    return cleaned


async def create_partner_group(db: AsyncSession, payload: PartnerGroupCreate) -> PartnerGroup:
    name = _clean_name(payload.name)
    rate = validate_group_rate(payload.commission_rate)

    if payload.is_default:
        await _clear_default(db)

    group = PartnerGroup(
        name=name,
        description=payload.description or None,
        commission_rate=rate,
        signup_url=payload.signup_url or None,
        is_default=bool(payload.is_default),
    )
    db.add(group)
    await db.flush()
    logger.info("Partner group created: %s rate=%.4f default=%s", name, rate, group.is_default)
    return group


async def update_partner_group(
    db: AsyncSession,
    group_id,
    payload: PartnerGroupUpdate,
) -> PartnerGroup:
    group = await get_partner_group(db, group_id)
    fields = payload.model_fields_set

    if payload.name is not None:
        group.name = _clean_name(payload.name)
    if payload.commission_rate is not None:
        group.commission_rate = validate_group_rate(payload.commission_rate)
    if "description" in fields:
        group.description = payload.description
    if "signup_url" in fields:
        group.signup_url = payload.signup_url
    if payload.is_default is not None:
        if payload.is_default:
            await _clear_default(db, keep_id=group.id)
        group.is_default = payload.is_default

    await db.flush()
    logger.info("Partner group updated: %s rate=%.4f", group.name, group.commission_rate)
    return group


async def delete_partner_group(db: AsyncSession, group_id) -> None:
    group = await get_partner_group(db, group_id)

    members = await count_members(db, group.id)
    if members > 0:
        raise ConflictError(
            f"Cannot delete partner group with {members} active member(s)",
            status_code=400,
        )

    await db.delete(group)
    await db.flush()
    logger.info("Partner group deleted: %s", group.name)
