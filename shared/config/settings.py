"""
Settings Module
===============

Environment-driven configuration for the FormaOS services.

Each concern is its own ``BaseSettings`` group with an env prefix
(``POSTGRES_HOST``, ``AUTOMATION_CRON_SECRET``, ``CONTROL_PLANE_SITE_URL``...).
A ``.env`` file at the working directory is read when present.

Production refuses to start with the development JWT key or without a
cron secret.

Version: 0.1.0
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL


DEV_JWT_SECRET = "formaos-dev-jwt-secret-change-me-32+"


class Environment(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ControlPlaneEnvironment(str, Enum):
    """Environments addressable from the admin control plane."""

    PRODUCTION = "production"
    PREVIEW = "preview"
    DEVELOPMENT = "development"


class PostgresSettings(BaseSettings):
    """Primary database (organizations, tasks, evidence, control plane tables)."""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = "localhost"
    port: int = 5432
    user: str = "formaos"
    password: SecretStr = SecretStr("formaos_dev_password")
    db: str = "formaos"
    pool_size: int = 10
    max_overflow: int = 20
    application_name: str = "formaos-backend"
    # Applied per connection as a server setting
    statement_timeout_ms: int = 30_000

    @property
    def async_url(self) -> str:
        return URL.create(
            "postgresql+asyncpg",
            username=self.user,
            password=self.password.get_secret_value(),
            host=self.host,
            port=self.port,
            database=self.db,
        ).render_as_string(hide_password=False)


class RedisSettings(BaseSettings):
    """Summary cache and the cron sweep lock."""

    model_config = SettingsConfigDict(env_prefix="REDIS_")

    host: str = "localhost"
    port: int = 6379
    password: SecretStr = SecretStr("")
    db: int = 0
    max_connections: int = 20

    @property
    def url(self) -> str:
        pwd = self.password.get_secret_value()
        auth = f":{pwd}@" if pwd else ""
        return f"redis://{auth}{self.host}:{self.port}/{self.db}"


class JWTSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="JWT_")

    secret_key: SecretStr = SecretStr(DEV_JWT_SECRET)
    algorithm: str = "HS256"


class CORSSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CORS_")

    # Comma-separated
    origins: str = "http://localhost:3000"
    allow_credentials: bool = True

    @property
    def origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.origins.split(",") if origin.strip()]


class AutomationSettings(BaseSettings):
    """Thresholds for the trigger engine and the scheduled sweep."""

    model_config = SettingsConfigDict(env_prefix="AUTOMATION_")

    max_trigger_depth: int = 5

    # Scheduled scan windows (days)
    evidence_expiry_days: int = 90
    policy_review_days: int = 180
    certification_validity_days: int = 365
    certification_warning_days: int = 30

    # Score refresh fan-out
    score_refresh_batch_size: int = 10

    # Shared secret presented by the external cron caller
    cron_secret: SecretStr = SecretStr("")

    # Compliance summary cache
    summary_cache_ttl_seconds: int = 300


class ControlPlaneSettings(BaseSettings):
    """Admin control plane configuration."""

    model_config = SettingsConfigDict(env_prefix="CONTROL_PLANE_")

    default_environment: ControlPlaneEnvironment = ControlPlaneEnvironment.PRODUCTION
    default_runtime_version: str = "1"
    stream_interval_seconds: float = 5.0
    job_log_limit: int = 120
    stale_job_days: int = 14

    # Probed by the warm_cdn job
    site_url: str = ""
    app_url: str = ""
    probe_timeout_seconds: float = 10.0
    probe_max_retries: int = 3


class ServicePorts(BaseSettings):
    automation: int = Field(default=8010, alias="AUTOMATION_PORT")
    control_plane: int = Field(default=8011, alias="CONTROL_PLANE_PORT")


class Settings(BaseSettings):
    """
    Root settings object.

    Use the ``settings`` singleton from ``shared.config``; ``get_settings()``
    builds it once per process.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Environment = Environment.DEVELOPMENT
    # Enables /docs and uvicorn reload
    debug: bool = True
    log_level: LogLevel = LogLevel.INFO

    ports: ServicePorts = Field(default_factory=ServicePorts)
    postgres: PostgresSettings = Field(default_factory=PostgresSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    jwt: JWTSettings = Field(default_factory=JWTSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)

    automation: AutomationSettings = Field(default_factory=AutomationSettings)
    control_plane: ControlPlaneSettings = Field(default_factory=ControlPlaneSettings)

    @field_validator("log_level", mode="before")
    @classmethod
    def uppercase_log_level(cls, v: str | LogLevel) -> LogLevel:
        return LogLevel(v.upper()) if isinstance(v, str) else v

    @model_validator(mode="after")
    def check_production_secrets(self) -> "Settings":
        if self.environment != Environment.PRODUCTION:
            return self
        if self.jwt.secret_key.get_secret_value() == DEV_JWT_SECRET:
            raise ValueError("JWT_SECRET_KEY must be set in production")
        if not self.automation.cron_secret.get_secret_value():
            raise ValueError("AUTOMATION_CRON_SECRET must be set in production")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION


@lru_cache
def get_settings() -> Settings:
    return Settings()
