"""
Database Module
===============

Async clients for the FormaOS data stores.

Clients:
- PostgreSQL (asyncpg + SQLAlchemy)
- Redis (redis.asyncio)

Usage:
    from shared.database import get_postgres_session, postgres_session

    # In FastAPI
    @router.get("/example")
    async def example(db: AsyncSession = Depends(get_postgres_session)):
        ...

    # Outside a request
    async with postgres_session() as session:
        ...
"""

from shared.database.postgres import (
    PostgresClient,
    get_postgres_session,
    measure_round_trip,
    postgres_session,
)
from shared.database.redis import (
    RedisClient,
    redis_lock,
)


__all__ = [
    # PostgreSQL
    "get_postgres_session",
    "postgres_session",
    "PostgresClient",
    "measure_round_trip",
    # Redis
    "redis_lock",
    "RedisClient",
]
