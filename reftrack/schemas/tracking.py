"""
Transport schemas for the public tracking endpoints (/api/track/*).
Field names on the wire match what the embeddable snippet sends.
"""
from typing import Optional, Union
from pydantic import Field

from reftrack.schemas.base import CamelModel


class ReferralClickRequest(CamelModel):
    referral_code: Optional[str] = None
    url: Optional[str] = None
    referrer: Optional[str] = None
    user_agent: Optional[str] = None
    timestamp: Optional[str] = None


class ConversionRequest(CamelModel):
    referral_code: Optional[str] = None
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    amount: Optional[Union[float, str]] = 0
    currency: Optional[str] = None
    order_id: Optional[str] = None
    metadata: dict = Field(default_factory=dict)
    url: Optional[str] = None
    timestamp: Optional[str] = None


class AffiliateRef(CamelModel):
    name: str
    code: str


class ReferralClickResponse(CamelModel):
    success: bool = True
    message: str = "Referral tracked successfully"
    affiliate: AffiliateRef


class ConversionSummary(CamelModel):
    id: str
    amount: float  # currency units, amount_cents / 100
    currency: str


class ConversionResponse(CamelModel):
    success: bool = True
    message: str = "Conversion tracked successfully"
    conversion: ConversionSummary
    affiliate: AffiliateRef


def affiliate_ref(affiliate) -> AffiliateRef:
    return AffiliateRef(name=affiliate.user.name, code=affiliate.referral_code)


def conversion_summary(conversion) -> ConversionSummary:
    return ConversionSummary(
        id=str(conversion.id),
        amount=conversion.amount_cents / 100,
        currency=conversion.currency,
    )
