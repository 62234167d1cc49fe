"""
Database models - import all models here so Alembic can discover them.
"""
from reftrack.models.user import User
from reftrack.models.partner_group import PartnerGroup
from reftrack.models.affiliate import Affiliate
from reftrack.models.referral import Referral
from reftrack.models.payout import Payout
from reftrack.models.transaction import Transaction
from reftrack.models.conversion import Conversion
from reftrack.models.integration import IntegrationSettings

__all__ = [
    "User",
    "PartnerGroup",
    "Affiliate",
    "Referral",
    "Payout",
    "Transaction",
    "Conversion",
    "IntegrationSettings",
]
