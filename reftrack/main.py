"""
Reftrack - affiliate and referral tracking.
Main FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from reftrack.config import get_settings
from reftrack.api.router import api_router
from reftrack.database import dispose_engine
from reftrack.errors import AppError, RateLimitedError
from reftrack.utils.logging import (
    configure_structured_logging,
    generate_correlation_id,
    set_correlation_id,
    get_correlation_id,
)
from reftrack.utils.redis_pool import close_redis

logger = logging.getLogger("reftrack")

# Called from arbitrary customer sites; authenticated by X-API-Key, never by cookies
PUBLIC_PATH_PREFIXES = ("/api/track/", "/scripts/")
PUBLIC_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, X-API-Key, X-Correlation-ID",
    "Access-Control-Max-Age": "86400",
}


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Injects a correlation ID into every request context and response header."""

    async def dispatch(self, request: Request, call_next) -> Response:
        cid = request.headers.get("X-Correlation-ID") or generate_correlation_id()
        set_correlation_id(cid)
        response = await call_next(request)
        response.headers["X-Correlation-ID"] = cid
        return response


class PublicCorsMiddleware(BaseHTTPMiddleware):
    """Open CORS for the tracking endpoints and the embeddable script."""

    async def dispatch(self, request: Request, call_next) -> Response:
        if not request.url.path.startswith(PUBLIC_PATH_PREFIXES):
            return await call_next(request)
        if request.method == "OPTIONS":
            return Response(status_code=204, headers=PUBLIC_CORS_HEADERS)
        response = await call_next(request)
        response.headers.update(PUBLIC_CORS_HEADERS)
        return response


def _error_response(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message},
        headers=headers,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message)
    headers = None
    if isinstance(exc, RateLimitedError):
        headers = {"Retry-After": str(exc.retry_after)}
    return _error_response(exc.status_code, exc.message, headers)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"
    return _error_response(400, message)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled error on %s %s (correlation_id=%s)",
        request.method, request.url.path, get_correlation_id(),
    )
    return _error_response(500, "Internal server error")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    settings = get_settings()
    logger.info("Reftrack starting up (env=%s)", settings.app_env)

    if not settings.jwt_secret:
        logger.warning(
            "JWT_SECRET not set - falling back to APP_SECRET_KEY. "
            "Set a dedicated JWT secret for production."
        )
    if not settings.sendgrid_api_key:
        logger.warning("SENDGRID_API_KEY not set - payout emails will be skipped")

    if settings.sentry_dsn:
        try:
            import sentry_sdk
            sentry_sdk.init(
                dsn=settings.sentry_dsn,
                traces_sample_rate=0.1,
                environment=settings.app_env,
            )
            logger.info("Sentry initialized")
        except Exception as e:
            logger.warning("Sentry initialization failed: %s", str(e))

    yield

    await close_redis()
    await dispose_engine()
    logger.info("Reftrack shutdown complete")


def _cors_origins(settings) -> list[str]:
    origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
    origins.append(settings.app_base_url)
    if settings.app_env == "development":
        origins.extend(["http://localhost:3000", "http://localhost:5173"])
    return list(dict.fromkeys(origins))


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()

    configure_structured_logging(settings.log_level)

    application = FastAPI(
        title="Reftrack",
        description="Affiliate and referral tracking",
        version="1.0.0",
        lifespan=lifespan,
    )

    application.add_exception_handler(AppError, app_error_handler)
    application.add_exception_handler(RequestValidationError, validation_error_handler)
    application.add_exception_handler(Exception, unhandled_error_handler)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(settings),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=[
            "Authorization", "Content-Type", "X-Correlation-ID",
            "Accept", "Origin", "X-Requested-With",
        ],
    )
    application.add_middleware(PublicCorsMiddleware)
    application.add_middleware(CorrelationIdMiddleware)

    application.include_router(api_router)

    return application


app = create_app()
