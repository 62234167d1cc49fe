"""
Closed status and role vocabularies. Stored as their string values.
"""
import enum


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    AFFILIATE = "AFFILIATE"


class UserStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


class ReferralStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REFUNDED = "REFUNDED"
    CANCELED = "CANCELED"


class TransactionStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    REFUNDED = "REFUNDED"
    FAILED = "FAILED"
    PAID = "PAID"


class PayoutStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ConversionEventType(str, enum.Enum):
    CLICK = "CLICK"
    PURCHASE = "PURCHASE"


class ConversionStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
