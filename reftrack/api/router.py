"""
API router - aggregates all route modules.
"""
from fastapi import APIRouter
from reftrack.api.tracking import router as tracking_router
from reftrack.api.auth import router as auth_router
from reftrack.api.affiliate import router as affiliate_router
from reftrack.api.admin_dashboard import router as admin_dashboard_router
from reftrack.api.admin_partners import router as admin_partners_router
from reftrack.api.admin_payouts import router as admin_payouts_router
from reftrack.api.admin_transactions import router as admin_transactions_router
from reftrack.api.embed import router as embed_router
from reftrack.api.health import router as health_router

api_router = APIRouter()
api_router.include_router(tracking_router)
api_router.include_router(auth_router)
api_router.include_router(affiliate_router)
api_router.include_router(admin_dashboard_router)
api_router.include_router(admin_partners_router)
api_router.include_router(admin_payouts_router)
api_router.include_router(admin_transactions_router)
api_router.include_router(embed_router)
api_router.include_router(health_router)
