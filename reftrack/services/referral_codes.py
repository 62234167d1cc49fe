"""
Referral code generation: first six letters of the partner's name, upper-cased,
plus a 4-character random suffix (e.g. "JANEDO-X7K2").
"""
import logging
import re
import secrets
import string
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from reftrack.models.affiliate import Affiliate

logger = logging.getLogger(__name__)

SUFFIX_ALPHABET = string.ascii_uppercase + string.digits
SUFFIX_LENGTH = 4
PREFIX_LENGTH = 6
MAX_ATTEMPTS = 10
FALLBACK_PREFIX = "REF"


def generate_referral_code(name: Optional[str]) -> str:
    prefix = re.sub(r"[^a-zA-Z]", "", name or "").upper()[:PREFIX_LENGTH] or FALLBACK_PREFIX
    suffix = "".join(secrets.choice(SUFFIX_ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"{prefix}-{suffix}"


async def generate_unique_code(db: AsyncSession, name: Optional[str]) -> str:
    """A code not yet used by any affiliate. Retries on collision."""
    for _ in range(MAX_ATTEMPTS):
        code = generate_referral_code(name)
        result = await db.execute(
            select(Affiliate.id).where(Affiliate.referral_code == code).limit(1)
        )
        if result.scalar_one_or_none() is None:
            return code
        logger.debug("Referral code collision on %s, retrying", code)
    raise RuntimeError("Could not generate a unique referral code")
