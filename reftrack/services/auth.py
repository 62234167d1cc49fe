"""
Session tokens and credential checks.

Tokens are HS256 JWTs carrying the user id, role and expiry. A token is only
turned into an AuthSession after its signature, expiry, role and the user's
current status have all been checked.
"""
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from reftrack.config import get_settings
from reftrack.errors import AuthenticationError, AuthorizationError, ValidationError
from reftrack.models.enums import Role, UserStatus
from reftrack.models.user import User
from reftrack.schemas.auth import AuthSession
from reftrack.utils.logging import mask_email

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

STATUS_MESSAGES = {
    UserStatus.PENDING.value: "Your account is pending approval. Please wait for admin activation.",
    UserStatus.INACTIVE.value: "Your account has been deactivated. Please contact support.",
    UserStatus.SUSPENDED.value: "Your account has been suspended. Please contact support.",
}


def parse_role(value) -> Role:
    try:
        return Role(value)
    except ValueError:
        raise AuthenticationError("Invalid token payload")


def issue_token(user: User, now: Optional[datetime] = None) -> tuple[str, datetime]:
    settings = get_settings()
    now = now or datetime.now(timezone.utc)
    expires_at = now + timedelta(hours=settings.jwt_expiry_hours)
    token = jwt.encode(
        {
            "sub": str(user.id),
            "email": user.email,
            "role": user.role,
            "iat": now,
            "exp": expires_at,
        },
        settings.token_secret,
        algorithm=ALGORITHM,
    )
    return token, expires_at


def decode_token(token: str) -> dict:
    settings = get_settings()
    try:
        return jwt.decode(token, settings.token_secret, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Session expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid token")


async def load_session(db: AsyncSession, token: Optional[str]) -> AuthSession:
    """Verify ``token`` and the user behind it. Raises AuthenticationError on any failure."""
    if not token:
        raise AuthenticationError("Authentication required")

    payload = decode_token(token)
    try:
        user_id = uuid.UUID(payload.get("sub") or "")
    except (ValueError, AttributeError):
        raise AuthenticationError("Invalid token payload")
    role = parse_role(payload.get("role"))

    user = await db.get(User, user_id)
    if not user or not user.is_active:
        raise AuthenticationError("User not found or inactive")
    if user.role != role.value:
        # Role changed since the token was issued
        raise AuthenticationError("Session is no longer valid")

    return AuthSession(
        user_id=user.id,
        email=user.email,
        role=role,
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )


def check_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        return False


async def authenticate(db: AsyncSession, email: str, password: str) -> User:
    """Credentials first, then account status; 401 never reveals whether the email exists."""
    email = (email or "").strip().lower()
    if not email or not password:
        raise ValidationError("Email and password are required")

    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if not user or not check_password(password, user.password_hash):
        logger.info("Failed login for %s", mask_email(email))
        raise AuthenticationError("Invalid email or password")

    if user.status != UserStatus.ACTIVE.value:
        raise AuthorizationError(STATUS_MESSAGES.get(user.status, "Account is not active"))

    return user
