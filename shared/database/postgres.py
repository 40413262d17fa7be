"""
PostgreSQL Client
=================

Async PostgreSQL access for the FormaOS services (SQLAlchemy 2.0 + asyncpg).

The platform tables (organizations, org_tasks, org_evidence, feature_flags,
admin_jobs, ...) are owned by the application schema. Services read and
write them through raw ``text()`` statements inside short transactions;
nothing here maps ORM classes.

Version: 0.1.0
"""

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from shared.config import settings
from shared.logging import get_logger


logger = get_logger(__name__)


async def measure_round_trip(session: AsyncSession, statement: str = "SELECT 1") -> float:
    """Execute a trivial statement and return the elapsed milliseconds."""
    start = time.perf_counter()
    await session.execute(text(statement))
    return (time.perf_counter() - start) * 1000


class PostgresClient:
    """
    Process-wide engine and session factory.

    Both are created lazily on first use so importing a service module
    never opens a connection.
    """

    _engine: AsyncEngine | None = None
    _session_factory: async_sessionmaker[AsyncSession] | None = None

    @classmethod
    def get_engine(cls) -> AsyncEngine:
        if cls._engine is None:
            config = settings.postgres
            cls._engine = create_async_engine(
                config.async_url,
                pool_size=config.pool_size,
                max_overflow=config.max_overflow,
                pool_pre_ping=True,
                connect_args={
                    "server_settings": {
                        "application_name": config.application_name,
                        "statement_timeout": str(config.statement_timeout_ms),
                    }
                },
            )
            logger.info(
                "postgres_engine_created",
                host=config.host,
                database=config.db,
                application_name=config.application_name,
            )
        return cls._engine

    @classmethod
    def get_session_factory(cls) -> async_sessionmaker[AsyncSession]:
        if cls._session_factory is None:
            cls._session_factory = async_sessionmaker(
                cls.get_engine(),
                expire_on_commit=False,
                autoflush=False,
            )
        return cls._session_factory

    @classmethod
    async def close(cls) -> None:
        """Dispose of the engine and drop the cached factory."""
        if cls._engine is not None:
            await cls._engine.dispose()
            cls._engine = None
            cls._session_factory = None
            logger.info("postgres_engine_closed")

    @classmethod
    async def health_check(cls) -> dict[str, Any]:
        """
        Check database health.

        Returns:
            dict with status and round-trip latency
        """
        try:
            async with cls.get_session_factory()() as session:
                latency_ms = await measure_round_trip(session)
        except Exception as e:
            logger.error("postgres_health_check_failed", error=str(e))
            return {"status": "unhealthy", "error": str(e)}

        return {
            "status": "healthy",
            "latency_ms": round(latency_ms, 2),
            "database": settings.postgres.db,
        }


@asynccontextmanager
async def postgres_session() -> AsyncGenerator[AsyncSession, None]:
    """
    One transaction: commit on clean exit, rollback on exception.

    Usage:
        async with postgres_session() as session:
            await session.execute(text("UPDATE org_tasks SET ..."))
    """
    async with PostgresClient.get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.warning(
                "postgres_transaction_rolled_back",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise


async def get_postgres_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: the request runs inside one ``postgres_session``."""
    async with postgres_session() as session:
        yield session
