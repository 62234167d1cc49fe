"""
Affiliate self-service endpoints.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from reftrack.api.auth import require_affiliate
from reftrack.database import get_db
from reftrack.errors import NotFoundError
from reftrack.models.user import User
from reftrack.schemas.auth import AuthSession, GenerateCodeResponse
from reftrack.services.affiliates import ensure_referral_code

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/affiliate", tags=["affiliate"])


@router.post("/generate-code", response_model=GenerateCodeResponse)
async def generate_code(
    db: AsyncSession = Depends(get_db),
    session: AuthSession = Depends(require_affiliate),
):
    """Create the caller's affiliate profile or missing code. Existing codes are kept."""
    user = await db.get(User, session.user_id)
    if not user:
        raise NotFoundError("User not found")

    affiliate, message = await ensure_referral_code(db, user)
    logger.info("Referral code ensured: %s", message,
                extra={"affiliate_id": str(affiliate.id), "referral_code": affiliate.referral_code})
    return GenerateCodeResponse(message=message, referral_code=affiliate.referral_code)
