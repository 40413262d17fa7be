"""
Unit tests for configuration loading.
"""

import pytest
from pydantic import ValidationError

from shared.config.settings import (
    AutomationSettings,
    Environment,
    JWTSettings,
    LogLevel,
    PostgresSettings,
    RedisSettings,
    Settings,
)


def build(**overrides: object) -> Settings:
    return Settings(_env_file=None, **overrides)  # type: ignore[arg-type]


class TestConnectionURLs:
    def test_postgres_password_is_escaped(self) -> None:
        config = PostgresSettings(password="p@ss/word", host="db", db="forma")

        assert config.async_url == "postgresql+asyncpg://formaos:p%40ss%2Fword@db:5432/forma"

    def test_redis_without_password(self) -> None:
        assert RedisSettings(password="").url == "redis://localhost:6379/0"

    def test_redis_with_password(self) -> None:
        assert RedisSettings(password="pw", db=2).url == "redis://:pw@localhost:6379/2"


class TestSettings:
    def test_log_level_is_case_insensitive(self) -> None:
        assert build(log_level="debug").log_level == LogLevel.DEBUG

    def test_cors_origins_split(self) -> None:
        config = build()
        config.cors.origins = "https://app.formaos.com, https://formaos.com,"

        assert config.cors.origins_list == ["https://app.formaos.com", "https://formaos.com"]

    def test_production_requires_jwt_secret(self) -> None:
        with pytest.raises(ValidationError, match="JWT_SECRET_KEY"):
            build(
                environment="production",
                automation=AutomationSettings(cron_secret="cron"),
            )

    def test_production_requires_cron_secret(self) -> None:
        with pytest.raises(ValidationError, match="AUTOMATION_CRON_SECRET"):
            build(
                environment="production",
                jwt=JWTSettings(secret_key="a-real-production-signing-key-000"),
                automation=AutomationSettings(cron_secret=""),
            )

    def test_production_with_secrets(self) -> None:
        config = build(
            environment="production",
            jwt=JWTSettings(secret_key="a-real-production-signing-key-000"),
            automation=AutomationSettings(cron_secret="cron"),
        )

        assert config.environment == Environment.PRODUCTION
        assert config.is_production
