"""
Admin dashboard API - platform stats and tracking integration keys.
All endpoints require an ADMIN session.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from reftrack.api.auth import require_admin
from reftrack.database import get_db
from reftrack.schemas.admin import (
    DashboardResponse,
    IntegrationResponse,
    IntegrationUpdate,
    integration_out,
)
from reftrack.schemas.auth import AuthSession
from reftrack.services.admin_reporting import get_dashboard_stats
from reftrack.services.integration import generate_keys, get_integration, update_integration

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin", tags=["admin-dashboard"])


# === OVERVIEW ===

@router.get("/dashboard", response_model=DashboardResponse)
async def admin_dashboard(
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(require_admin),
):
    """Platform-wide counts, revenue and outstanding commissions."""
    return DashboardResponse(stats=await get_dashboard_stats(db))


# === INTEGRATION ===

@router.get("/integration", response_model=IntegrationResponse)
async def get_integration_settings(
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(require_admin),
):
    integration = await get_integration(db, admin.user_id)
    if not integration:
        return IntegrationResponse(message="No integration configured. Generate API keys to get started.")
    return IntegrationResponse(integration=integration_out(integration))


@router.put("/integration", response_model=IntegrationResponse)
async def update_integration_settings(
    payload: IntegrationUpdate,
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(require_admin),
):
    integration = await update_integration(db, admin.user_id, payload)
    return IntegrationResponse(
        message="Integration settings updated",
        integration=integration_out(integration),
    )


@router.post("/integration/generate-key", response_model=IntegrationResponse)
async def generate_integration_keys(
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(require_admin),
):
    """Issue a new public/secret key pair; the previous keys stop working immediately."""
    integration = await generate_keys(db, admin.user_id)
    logger.info("Integration keys regenerated by admin %s", str(admin.user_id)[:8])
    return IntegrationResponse(
        message="API keys generated successfully",
        integration=integration_out(integration),
    )
