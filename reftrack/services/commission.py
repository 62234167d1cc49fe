"""
Commission calculator.

Rate lookup: the affiliate's partner group rate, else DEFAULT_COMMISSION_RATE.
Commission: floor(amount_cents * rate), computed once and stored on the
transaction together with the rate that produced it.

Two call sites convert currency units to cents differently:
- conversion tracking rounds half-up (to_cents_rounded)
- admin transaction creation floors (to_cents_floored)
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP, InvalidOperation
from typing import Callable, Optional, Union

from reftrack.errors import ValidationError

DEFAULT_COMMISSION_RATE = 0.20

Amount = Union[int, float, str, Decimal]


@dataclass(frozen=True)
class CommissionQuote:
    amount_cents: int
    commission_cents: int
    rate: float


def _to_decimal(value: Amount, field: str) -> Decimal:
    # str() first so 49.99 becomes Decimal("49.99"), not its binary approximation
    try:
        dec = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not dec.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return dec


def to_cents_rounded(amount: Amount) -> int:
    """Currency units to cents, half-up. Used by conversion tracking."""
    dec = _to_decimal(amount, "amount")
    if dec < 0:
        raise ValidationError("amount must not be negative")
    return int((dec * 100).to_integral_value(rounding=ROUND_HALF_UP))


def to_cents_floored(amount: Amount) -> int:
    """Currency units to cents, truncating fractional cents. Used by transaction creation."""
    dec = _to_decimal(amount, "amount")
    if dec < 0:
        raise ValidationError("amount must not be negative")
    return int((dec * 100).to_integral_value(rounding=ROUND_FLOOR))


def validate_rate(rate: Amount) -> float:
    dec = _to_decimal(rate, "commission rate")
    if dec < 0 or dec > 1:
        raise ValidationError("Commission rate must be a number between 0 and 1")
    return float(dec)


def resolve_rate(partner_group) -> float:
    """Partner group override, else the flat default."""
    if partner_group is not None and partner_group.commission_rate is not None:
        return validate_rate(partner_group.commission_rate)
    return DEFAULT_COMMISSION_RATE


def commission_for(amount_cents: int, rate: float) -> int:
    """floor(amount_cents * rate); never exceeds amount_cents for rate <= 1."""
    if amount_cents < 0:
        raise ValidationError("amount must not be negative")
    rate = validate_rate(rate)
    product = Decimal(amount_cents) * Decimal(str(rate))
    return int(product.to_integral_value(rounding=ROUND_FLOOR))


def compute_commission(
    amount: Amount,
    partner_group=None,
    to_cents: Callable[[Amount], int] = to_cents_floored,
    rate: Optional[float] = None,
) -> CommissionQuote:
    """
    Quote the commission for a payment of ``amount`` currency units.

    ``rate`` overrides the partner-group lookup (used when re-quoting with a
    snapshotted rate). The returned quote carries the rate that was applied.
    """
    applied = validate_rate(rate) if rate is not None else resolve_rate(partner_group)
    amount_cents = to_cents(amount)
    return CommissionQuote(
        amount_cents=amount_cents,
        commission_cents=commission_for(amount_cents, applied),
        rate=applied,
    )
