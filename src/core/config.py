"""
Core Configuration Module
Uses pydantic-settings for environment variable management.
All secrets loaded from .env file - NEVER hardcode secrets.
"""
from decimal import Decimal
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    project_name: str = "Cagri"
    environment: str = Field(default="development", description="development | staging | production")
    debug: bool = Field(default=True)
    api_v1_str: str = "/api/v1"

    # Database - PostgreSQL (supports both formats)
    database_url: str = Field(
        default="postgresql+asyncpg://cagri_user:cagri_secret_password@db:5432/cagri_core",
        description="Full database URL (takes precedence)",
    )
    db_host: str = Field(default="db", description="Database host")
    db_port: int = Field(default=5432, description="Database port")
    db_name: str = Field(default="cagri_core", description="Database name")
    db_user: str = Field(default="cagri_user", description="Database user")
    db_password: str = Field(default="cagri_secret_password", description="Database password")
    db_pool_size: int = Field(default=20, description="SQLAlchemy connection pool size")
    db_max_overflow: int = Field(default=10, description="Max overflow connections")
    db_echo: bool = Field(default=False, description="Echo SQL queries")
    run_db_init: bool = False

    # Transient data-store errors (timeouts, dropped connections) are retried
    db_retry_attempts: int = Field(default=3, ge=1, description="Attempts per operation")
    db_retry_wait_multiplier: float = Field(default=0.2, description="Exponential backoff multiplier (seconds)")
    db_retry_wait_min: float = Field(default=0.2, description="Minimum wait between attempts (seconds)")
    db_retry_wait_max: float = Field(default=5.0, description="Maximum wait between attempts (seconds)")

    # Identity provider (HS256 JWT, shared secret)
    secret_key: str = Field(default="CHANGE_ME_IN_PRODUCTION", description="JWT secret")
    algorithm: str = Field(default="HS256", description="JWT Algorithm")
    access_token_expire_minutes: int = Field(default=60 * 24, description="Token expiry in minutes")
    jwt_audience: str = Field(default="", description="Expected 'aud' claim, empty = not checked")

    # CORS
    cors_origins: str = Field(default="http://localhost:3000", description="Allowed CORS origins")
    backend_cors_origins: str = Field(default="", description="CORS origins as comma-separated string")

    # Marketplace defaults (used only when the settings row is seeded)
    marketplace_enabled: bool = Field(default=True, description="Default marketplace switch")
    marketplace_commission_percentage: Decimal = Field(default=Decimal("10"), description="Default commission %")
    marketplace_minimum_balance: Decimal = Field(default=Decimal("100"), description="Default minimum balance")
    marketplace_cancellation_hours: int = Field(default=3, description="Default cancellation window")

    # SSE
    sse_heartbeat_seconds: float = Field(default=30.0, description="Heartbeat interval for SSE streams")

    # Sentry (Error Tracking)
    sentry_dsn: str = Field(default="", description="Sentry DSN for error tracking")
    sentry_traces_sample_rate: float = Field(default=0.1, description="Sentry traces sample rate")

    # Prometheus
    prometheus_enabled: bool = Field(default=True, description="Enable Prometheus metrics")

    # Application Version
    app_version: str = Field(default="1.0.0", description="Application version")

    @field_validator("marketplace_commission_percentage")
    @classmethod
    def _commission_in_range(cls, value: Decimal) -> Decimal:
        if not Decimal("0") <= value <= Decimal("100"):
            raise ValueError("marketplace_commission_percentage must be between 0 and 100")
        return value

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from backend_cors_origins or cors_origins."""
        origins = self.backend_cors_origins or self.cors_origins
        if origins:
            return [o.strip() for o in origins.split(",") if o.strip()]
        return []

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def async_database_url(self) -> str:
        """Build async database URL from components or use direct URL."""
        if self.is_sqlite:
            return self.database_url
        if self.database_url.startswith(("postgresql://", "postgresql+asyncpg://")):
            # Use direct URL (hosted providers hand out plain postgresql:// URLs)
            return self.database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        # Build from components
        return f"postgresql+asyncpg://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
