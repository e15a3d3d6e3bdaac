"""Centralized configuration management with environment-aware defaults.

This module implements the process configuration using Pydantic Settings,
providing type-safe values with validation and environment variable support.
Configuration is resolved once at startup and is read-only afterwards; any
invalid value is a startup-fatal condition reported through
ConfigurationError, never an HTTP-level failure.

Configuration sources (in order of precedence):
1. Environment variables (short platform names such as PORT, HOST,
   NODE_ENV and VITE_API_URL are accepted as aliases)
2. .env file in project root
3. Default values in model definitions
"""

from functools import lru_cache
from typing import Literal
from urllib.parse import urlsplit

from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.core.exceptions import ConfigurationError

Environment = Literal["development", "staging", "test", "production"]

_ASYNC_DATABASE_SCHEME = "postgresql+asyncpg://"
_SYNC_DATABASE_SCHEMES = ("postgresql://", "postgres://")


def _validate_http_origin(value: str) -> str:
    """Check that a value is a bare scheme://host[:port] origin.

    Args:
        value: Candidate origin string.

    Returns:
        str: The origin without surrounding whitespace or trailing slash.

    Raises:
        ValueError: If the value has another scheme, no host, or a path.
    """
    origin = value.strip().rstrip("/")
    parts = urlsplit(origin)
    if parts.scheme not in {"http", "https"} or not parts.hostname:
        msg = f"'{value}' is not an http(s) origin"
        raise ValueError(msg)
    if parts.path or parts.query or parts.fragment:
        msg = f"'{value}' must not contain a path, query or fragment"
        raise ValueError(msg)
    return origin


class LogConfig(BaseModel):
    """Simplified logging configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_formatter_type: Literal["console", "json"] | None = Field(
        default=None,
        description="Log output formatter. Derived from the environment if unset.",
    )
    excluded_paths: list[str] = Field(
        default_factory=lambda: ["/health"],
        description="Paths to exclude from request logging",
    )
    slow_request_threshold_ms: int = Field(
        default=1000,
        gt=0,
        description="Threshold for slow request warnings (milliseconds)",
    )
    sensitive_fields: list[str] = Field(
        default_factory=lambda: [
            "password",
            "token",
            "secret",
            "api_key",
            "authorization",
        ],
        description="Field names to redact",
    )


class DatabaseConfig(BaseModel):
    """Database configuration settings."""

    database_url: str | None = Field(
        default=None,
        description="Database connection URL (postgresql+asyncpg://...)",
    )
    pool_size: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Number of connections to maintain in the pool",
    )
    max_overflow: int = Field(
        default=5,
        ge=0,
        le=50,
        description="Maximum overflow connections above pool_size",
    )
    pool_timeout: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Timeout in seconds for acquiring a connection from the pool",
    )
    pool_pre_ping: bool = Field(
        default=True,
        description="Whether to test connections before using them",
    )
    echo: bool = Field(
        default=False,
        description="Whether to log SQL statements (use only for debugging)",
    )

    @field_validator("database_url", mode="after")
    @classmethod
    def normalize_database_url(cls, v: str | None) -> str | None:
        """Force the asyncpg driver, rewriting plain PostgreSQL URLs."""
        if v is None or not v.strip():
            return None
        if v.startswith(_ASYNC_DATABASE_SCHEME):
            return v
        for scheme in _SYNC_DATABASE_SCHEMES:
            if v.startswith(scheme):
                return _ASYNC_DATABASE_SCHEME + v.removeprefix(scheme)
        msg = "Database URL must be a PostgreSQL URL (postgresql+asyncpg://...)"
        raise ValueError(msg)


class RateLimitConfig(BaseModel):
    """Fixed-window rate limiting configuration."""

    max_requests: int = Field(
        default=100,
        ge=1,
        description="Requests allowed per client identity within one window",
    )
    window_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Length of one counting window in seconds",
    )
    message: str = Field(
        default="Demasiadas solicitudes. Por favor intenta nuevamente más tarde.",
        min_length=1,
        description="Localized text sent with 429 rejections",
    )


class HealthConfig(BaseModel):
    """Dependency health check configuration."""

    probe_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        le=60,
        description="Upper bound for the persistence liveness probe",
    )


class AlertConfig(BaseModel):
    """Background alert scheduler configuration."""

    enabled: bool = Field(
        default=True,
        description="Start the alert scheduler once the server is serving",
    )
    interval_seconds: float = Field(
        default=3600.0,
        gt=0,
        description="Delay between two alert scheduling passes",
    )


class Settings(BaseSettings):
    """Main settings class for the application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        env_nested_delimiter="__",
        extra="ignore",
        frozen=True,
    )

    # Application settings
    app_name: str = Field(default="Optica API", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: Environment = Field(
        default="development",
        validation_alias=AliasChoices("environment", "node_env"),
        description="Environment the application is running in",
    )

    # API settings
    api_host: str = Field(
        default="0.0.0.0",
        min_length=1,
        validation_alias=AliasChoices("api_host", "host"),
        description="Address the HTTP server binds to",
    )
    api_port: int = Field(
        default=3001,
        ge=1,
        le=65535,
        validation_alias=AliasChoices("api_port", "port"),
        description="Port the HTTP server binds to",
    )
    allowed_origins: str | None = Field(
        default=None,
        description="Comma-separated explicit CORS allow-list",
    )
    api_base_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("api_base_url", "vite_api_url"),
        description="Public API base URL trusted by the content-security policy",
    )
    trust_proxy_headers: bool = Field(
        default=False,
        description="Read the client address from X-Forwarded-For / X-Real-IP",
    )
    docs_url: str | None = Field(default="/docs", description="Swagger UI URL")
    redoc_url: str | None = Field(default=None, description="ReDoc URL")
    openapi_url: str | None = Field(
        default="/openapi.json", description="OpenAPI schema URL"
    )

    log_config: LogConfig = Field(
        default_factory=LogConfig, description="Logging configuration"
    )
    database_config: DatabaseConfig = Field(
        default_factory=DatabaseConfig, description="Database configuration"
    )
    rate_limit_config: RateLimitConfig = Field(
        default_factory=RateLimitConfig, description="Rate limiting configuration"
    )
    health_config: HealthConfig = Field(
        default_factory=HealthConfig, description="Health check configuration"
    )
    alert_config: AlertConfig = Field(
        default_factory=AlertConfig, description="Alert scheduler configuration"
    )

    def model_post_init(self, __context: object) -> None:
        """Post initialization to set environment-based defaults."""
        super().model_post_init(__context)

        if self.log_config.log_formatter_type is None:
            self.log_config.log_formatter_type = (
                "console" if self.environment == "development" else "json"
            )

    @field_validator(
        "allowed_origins", "api_base_url", "docs_url", "redoc_url", "openapi_url",
        mode="before",
    )
    @classmethod
    def empty_str_to_none(cls, v: str | None) -> str | None:
        """Convert empty strings to None for nullable fields."""
        _ = cls
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("allowed_origins", mode="after")
    @classmethod
    def validate_allowed_origins(cls, v: str | None) -> str | None:
        """Reject allow-list entries that are not bare origins."""
        _ = cls
        if v is None:
            return None
        origins = [_validate_http_origin(item) for item in v.split(",") if item.strip()]
        return ",".join(origins) or None

    @field_validator("api_base_url", mode="after")
    @classmethod
    def validate_api_base_url(cls, v: str | None) -> str | None:
        """Require an absolute http(s) URL for the public API address."""
        _ = cls
        if v is None:
            return None
        url = v.strip().rstrip("/")
        parts = urlsplit(url)
        if parts.scheme not in {"http", "https"} or not parts.hostname:
            msg = f"'{v}' is not an absolute http(s) URL"
            raise ValueError(msg)
        return url

    @property
    def is_production(self) -> bool:
        """Whether the process runs in the production environment."""
        return self.environment == "production"

    @property
    def allowed_origin_list(self) -> tuple[str, ...]:
        """Explicit allow-list entries in configured order (empty if unset)."""
        if self.allowed_origins is None:
            return ()
        return tuple(self.allowed_origins.split(","))


def _describe_validation_error(error: ValidationError) -> list[str]:
    """Render one readable line per invalid setting."""
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ())) or "settings"
        problems.append(f"{location.upper()}: {item.get('msg', 'invalid value')}")
    return problems


def _missing_production_values(settings: Settings) -> list[str]:
    """Required values that may only be omitted outside production."""
    if not settings.is_production:
        return []
    problems = []
    if settings.database_config.database_url is None:
        problems.append("DATABASE_CONFIG.DATABASE_URL: Field required in production")
    return problems


def load_settings() -> Settings:
    """Resolve and validate configuration from the environment.

    Returns:
        Settings: A freshly validated settings snapshot.

    Raises:
        ConfigurationError: If any value is missing or malformed.
    """
    try:
        settings = Settings()
    except ValidationError as e:
        raise ConfigurationError(
            "Environment variables validation failed",
            problems=_describe_validation_error(e),
            cause=e,
        ) from e

    missing = _missing_production_values(settings)
    if missing:
        raise ConfigurationError(
            "Environment variables validation failed", problems=missing
        )
    return settings


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return load_settings()
