"""
Auth endpoints - login, affiliate registration, logout.
Also provides the get_session/require_admin/require_affiliate dependencies.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from reftrack.config import get_settings
from reftrack.database import get_db
from reftrack.errors import AuthorizationError, RateLimitedError
from reftrack.models.enums import Role
from reftrack.models.user import User
from reftrack.schemas.admin import MessageResponse
from reftrack.schemas.auth import (
    AuthSession, LoginRequest, LoginResponse, RegisterRequest, RegisterResponse, session_user,
)
from reftrack.services.affiliates import register_affiliate
from reftrack.services.auth import authenticate, issue_token, load_session
from reftrack.utils.rate_limiter import check_attempt_limit

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["auth"])
bearer_scheme = HTTPBearer(auto_error=False)


# === SESSION DEPENDENCIES ===

async def get_session(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> AuthSession:
    """Session from the Bearer token, falling back to the auth cookie."""
    token = credentials.credentials if credentials else None
    if not token:
        token = request.cookies.get(get_settings().auth_cookie_name)
    return await load_session(db, token)


async def require_admin(session: AuthSession = Depends(get_session)) -> AuthSession:
    if session.role is Role.ADMIN:
        return session
    if session.role is Role.AFFILIATE:
        raise AuthorizationError("Admin access required")
    raise AuthorizationError("Unknown role")


async def require_affiliate(session: AuthSession = Depends(get_session)) -> AuthSession:
    if session.role is Role.AFFILIATE:
        return session
    if session.role is Role.ADMIN:
        raise AuthorizationError("Affiliate access required")
    raise AuthorizationError("Unknown role")


async def _enforce_attempt_limit(action: str, identifier: str) -> None:
    settings = get_settings()
    allowed, retry_after = await check_attempt_limit(
        action, identifier,
        max_attempts=settings.login_max_attempts,
        window_seconds=settings.login_window_seconds,
    )
    if not allowed:
        raise RateLimitedError("Too many attempts. Please try again later.", retry_after)


def _set_auth_cookie(response: Response, token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        settings.auth_cookie_name,
        token,
        max_age=settings.jwt_expiry_hours * 3600,
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite="lax",
        path="/",
    )


# === AUTH ===

@router.post("/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Authenticate and return a JWT; the token is also set as an httponly cookie."""
    await _enforce_attempt_limit("login", payload.email.strip().lower())

    user = await authenticate(db, payload.email, payload.password)
    token, expires_at = issue_token(user)
    _set_auth_cookie(response, token)

    logger.info("Login: role=%s", user.role)
    return LoginResponse(token=token, expires_at=expires_at, user=session_user(user))


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(
    payload: RegisterRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Affiliate sign-up. Accounts start PENDING and cannot log in until approved."""
    client_ip = request.client.host if request.client else "unknown"
    await _enforce_attempt_limit("register", client_ip)

    user: User = await register_affiliate(db, payload.email, payload.password, payload.name)
    return RegisterResponse(user=session_user(user))


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response):
    response.delete_cookie(get_settings().auth_cookie_name, path="/")
    return MessageResponse(message="Logged out")
