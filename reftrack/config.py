"""
Application configuration using pydantic-settings.
All config is validated at startup - fail fast if anything is missing.
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    app_env: str = "development"
    app_base_url: str = "http://localhost:8000"
    app_secret_key: str
    log_level: str = "INFO"

    # Database
    database_url: str
    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Redis (rate limiting only)
    redis_url: str = "redis://localhost:6379/0"

    # Session tokens
    jwt_secret: str = ""
    jwt_expiry_hours: int = 24
    auth_cookie_name: str = "auth-token"
    auth_cookie_secure: bool = False

    # Tracking
    default_currency: str = "USD"
    tracking_rate_limit_per_minute: int = 120
    login_max_attempts: int = 5
    login_window_seconds: int = 900

    # SendGrid (payout notifications)
    sendgrid_api_key: str = ""
    from_email_transactional: str = "noreply@reftrack.io"
    from_name_transactional: str = "Reftrack"

    # Sentry
    sentry_dsn: str = ""

    # Comma-separated CORS origins (auto-includes localhost in dev)
    allowed_origins: str = ""

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def token_secret(self) -> str:
        return self.jwt_secret or self.app_secret_key


@lru_cache()
def get_settings() -> Settings:
    return Settings()
