"""
Auth request/response schemas and the per-request session object.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from reftrack.models.enums import Role
from reftrack.schemas.base import CamelModel


@dataclass(frozen=True)
class AuthSession:
    """Verified session carried through request dependencies."""
    user_id: uuid.UUID
    email: str
    role: Role
    expires_at: datetime

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


class LoginRequest(CamelModel):
    email: str
    password: str


class RegisterRequest(CamelModel):
    email: str
    password: str
    name: str


class SessionUser(CamelModel):
    id: str
    email: str
    name: str
    role: str
    status: str
    referral_code: Optional[str] = None


class LoginResponse(CamelModel):
    success: bool = True
    message: str = "Login successful"
    token: str
    expires_at: datetime
    user: SessionUser


def session_user(user) -> SessionUser:
    return SessionUser(
        id=str(user.id),
        email=user.email,
        name=user.name,
        role=user.role,
        status=user.status,
        referral_code=user.affiliate.referral_code if user.affiliate else None,
    )


class RegisterResponse(CamelModel):
    success: bool = True
    message: str = "Registration successful. Your account is pending approval."
    user: SessionUser


class GenerateCodeResponse(CamelModel):
    success: bool = True
    message: str
    referral_code: str
