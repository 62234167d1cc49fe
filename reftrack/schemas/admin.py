"""
Transport schemas for the admin API. Amounts are cents, timestamps ISO-8601.
Each *_out function maps an ORM row to its DTO and has no side effects.
"""
from datetime import datetime
from typing import Optional, Union
from pydantic import AliasChoices, Field

from reftrack.schemas.base import CamelModel


# === TRANSACTIONS ===

class TransactionCreate(CamelModel):
    referral_id: str
    amount: Union[float, str]
    description: Optional[str] = None
    invoice_id: Optional[str] = None
    payment_method: Optional[str] = None
    paid_at: Optional[datetime] = None
    status: Optional[str] = None


class TransactionUpdate(CamelModel):
    """Amount is deliberately absent: it is immutable after creation."""
    status: Optional[str] = None
    description: Optional[str] = None
    invoice_id: Optional[str] = None
    payment_method: Optional[str] = None
    paid_at: Optional[datetime] = None


class TransactionReferral(CamelModel):
    id: str
    lead_name: str
    lead_email: str
    status: str


class TransactionAffiliate(CamelModel):
    id: str
    name: str
    email: str
    referral_code: str
    partner_group: str


class TransactionOut(CamelModel):
    id: str
    referral_id: str
    affiliate_id: str
    payout_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    amount_cents: int
    commission_cents: int
    commission_rate: float
    status: str
    description: Optional[str] = None
    invoice_id: Optional[str] = None
    payment_method: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: datetime
    referral: Optional[TransactionReferral] = None
    affiliate: Optional[TransactionAffiliate] = None


class TransactionListResponse(CamelModel):
    success: bool = True
    transactions: list[TransactionOut]


class TransactionResponse(CamelModel):
    success: bool = True
    message: str
    transaction: TransactionOut


def transaction_out(txn) -> TransactionOut:
    referral = txn.referral
    affiliate = txn.affiliate
    return TransactionOut(
        id=str(txn.id),
        referral_id=str(txn.referral_id),
        affiliate_id=str(txn.affiliate_id),
        payout_id=str(txn.payout_id) if txn.payout_id else None,
        customer_name=txn.customer_name,
        customer_email=txn.customer_email,
        amount_cents=txn.amount_cents,
        commission_cents=txn.commission_cents,
        commission_rate=txn.commission_rate,
        status=txn.status,
        description=txn.description,
        invoice_id=txn.invoice_id,
        payment_method=txn.payment_method,
        paid_at=txn.paid_at,
        created_at=txn.created_at,
        referral=TransactionReferral(
            id=str(referral.id),
            lead_name=referral.lead_name,
            lead_email=referral.lead_email,
            status=referral.status,
        ),
        affiliate=TransactionAffiliate(
            id=str(affiliate.id),
            name=affiliate.user.name,
            email=affiliate.user.email,
            referral_code=affiliate.referral_code,
            partner_group=affiliate.partner_group.name if affiliate.partner_group else "Default",
        ),
    )


# === PAYOUTS ===

class PayoutCreate(CamelModel):
    affiliate_id: str
    transaction_ids: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("transactionIds", "commissionIds", "transaction_ids"),
    )
    method: Optional[str] = None
    notes: Optional[str] = None


class PayoutUpdate(CamelModel):
    status: Optional[str] = None
    method: Optional[str] = None
    notes: Optional[str] = None


class PayoutOut(CamelModel):
    id: str
    affiliate_id: str
    affiliate_name: str
    affiliate_email: str
    amount_cents: int
    commission_count: int
    status: str
    method: str
    notes: Optional[str] = None
    created_at: datetime
    processed_at: Optional[datetime] = None


class PayoutListResponse(CamelModel):
    success: bool = True
    payouts: list[PayoutOut]


class PayoutResponse(CamelModel):
    success: bool = True
    message: str
    payout: PayoutOut


def payout_out(payout, affiliate) -> PayoutOut:
    return PayoutOut(
        id=str(payout.id),
        affiliate_id=str(payout.affiliate_id),
        affiliate_name=affiliate.user.name,
        affiliate_email=affiliate.user.email,
        amount_cents=payout.amount_cents,
        commission_count=payout.commission_count or 0,
        status=payout.status,
        method=payout.method,
        notes=payout.notes,
        created_at=payout.created_at,
        processed_at=payout.processed_at,
    )


# === PARTNER GROUPS ===

class PartnerGroupCreate(CamelModel):
    name: str
    commission_rate: float
    description: Optional[str] = None
    signup_url: Optional[str] = None
    is_default: bool = False


class PartnerGroupUpdate(CamelModel):
    name: Optional[str] = None
    commission_rate: Optional[float] = None
    description: Optional[str] = None
    signup_url: Optional[str] = None
    is_default: Optional[bool] = None


class PartnerGroupOut(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    commission_rate: float
    signup_url: Optional[str] = None
    is_default: bool
    member_count: int = 0
    created_at: datetime
    updated_at: datetime


class PartnerGroupListResponse(CamelModel):
    success: bool = True
    partner_groups: list[PartnerGroupOut]


class PartnerGroupResponse(CamelModel):
    success: bool = True
    message: str
    partner_group: PartnerGroupOut


def partner_group_out(group, member_count: int = 0) -> PartnerGroupOut:
    return PartnerGroupOut(
        id=str(group.id),
        name=group.name,
        description=group.description,
        commission_rate=group.commission_rate,
        signup_url=group.signup_url,
        is_default=group.is_default,
        member_count=member_count,
        created_at=group.created_at,
        updated_at=group.updated_at,
    )


# === REFERRALS ===

class ReferralCreate(CamelModel):
    affiliate_id: str
    lead_name: str
    lead_email: str
    status: Optional[str] = None
    metadata: dict = Field(default_factory=dict)


class ReferralUpdate(CamelModel):
    lead_name: Optional[str] = None
    status: Optional[str] = None
    metadata: Optional[dict] = None


class ReferralOut(CamelModel):
    id: str
    affiliate_id: str
    affiliate_code: Optional[str] = None
    lead_name: str
    lead_email: str
    status: str
    metadata: dict = Field(default_factory=dict)
    created_at: datetime


class ReferralListResponse(CamelModel):
    success: bool = True
    referrals: list[ReferralOut]


class ReferralResponse(CamelModel):
    success: bool = True
    message: str
    referral: ReferralOut


def referral_out(referral, affiliate_code: Optional[str] = None) -> ReferralOut:
    return ReferralOut(
        id=str(referral.id),
        affiliate_id=str(referral.affiliate_id),
        affiliate_code=affiliate_code,
        lead_name=referral.lead_name,
        lead_email=referral.lead_email,
        status=referral.status,
        metadata=referral.extra_data or {},
        created_at=referral.created_at,
    )


# === AFFILIATES ===

class AffiliateUpdate(CamelModel):
    """Omitted fields are left alone; an explicit null partnerGroupId removes the group."""
    partner_group_id: Optional[str] = None
    status: Optional[str] = None


class AffiliateOut(CamelModel):
    id: str
    user_id: str
    name: str
    email: str
    status: str
    referral_code: str
    partner_group_id: Optional[str] = None
    partner_group: str
    commission_rate: float
    total_clicks: int
    total_leads: int
    total_revenue_cents: int
    created_at: datetime


class AffiliateListResponse(CamelModel):
    success: bool = True
    affiliates: list[AffiliateOut]


class AffiliateResponse(CamelModel):
    success: bool = True
    message: str
    affiliate: AffiliateOut


def affiliate_out(affiliate, commission_rate: float) -> AffiliateOut:
    group = affiliate.partner_group
    return AffiliateOut(
        id=str(affiliate.id),
        user_id=str(affiliate.user_id),
        name=affiliate.user.name,
        email=affiliate.user.email,
        status=affiliate.user.status,
        referral_code=affiliate.referral_code,
        partner_group_id=str(group.id) if group else None,
        partner_group=group.name if group else "Default",
        commission_rate=commission_rate,
        total_clicks=affiliate.total_clicks,
        total_leads=affiliate.total_leads,
        total_revenue_cents=affiliate.total_revenue_cents,
        created_at=affiliate.created_at,
    )


# === INTEGRATION ===

class IntegrationUpdate(CamelModel):
    webhook_url: Optional[str] = None
    is_active: Optional[bool] = None
    config: Optional[dict] = None


class IntegrationOut(CamelModel):
    id: str
    public_key: str
    api_key: str
    provider: str
    is_active: bool
    webhook_url: Optional[str] = None
    config: dict = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


class IntegrationResponse(CamelModel):
    success: bool = True
    message: Optional[str] = None
    integration: Optional[IntegrationOut] = None


def integration_out(integration) -> IntegrationOut:
    return IntegrationOut(
        id=str(integration.id),
        public_key=integration.public_key,
        api_key=integration.api_key,
        provider=integration.provider,
        is_active=integration.is_active,
        webhook_url=integration.webhook_url,
        config=integration.config or {},
        created_at=integration.created_at,
        updated_at=integration.updated_at,
    )


# === DASHBOARD ===

class DashboardStats(CamelModel):
    total_affiliates: int = 0
    total_users: int = 0
    total_referrals: int = 0
    total_conversions: int = 0
    pending_referrals: int = 0
    approved_referrals: int = 0
    total_revenue: int = 0  # cents, sum of tracked purchase conversions
    total_estimated_revenue: int = 0  # cents, from referral estimated_value
    total_estimated_commission: int = 0  # cents
    pending_payout_cents: int = 0  # COMPLETED, not yet paid out


class DashboardResponse(CamelModel):
    success: bool = True
    stats: DashboardStats


class MessageResponse(CamelModel):
    success: bool = True
    message: str
