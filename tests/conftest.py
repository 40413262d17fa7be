"""
Test Configuration
==================

Pytest fixtures for FormaOS tests.
"""

import os
from collections.abc import AsyncGenerator, Generator
from typing import Any
from unittest.mock import patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Set test environment
os.environ["ENVIRONMENT"] = "testing"
os.environ["AUTOMATION_CRON_SECRET"] = "test-cron-secret"

from tests.fakes import (  # noqa: E402
    FakeAutomationRepository,
    FakeControlPlaneRepository,
    FakeSummaryCache,
    create_access_token,
    scope_for,
)

ORG_ID = "org-test-1"


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio backend for async tests."""
    return "asyncio"


# ============================================================================
# Repositories
# ============================================================================


@pytest.fixture
def org_id() -> str:
    return ORG_ID


@pytest.fixture
def automation_repo() -> FakeAutomationRepository:
    """Empty in-memory automation repository."""
    return FakeAutomationRepository()


@pytest.fixture
def control_plane_repo() -> FakeControlPlaneRepository:
    """Empty in-memory control plane repository."""
    return FakeControlPlaneRepository()


# ============================================================================
# Clients
# ============================================================================


@pytest.fixture
def summary_cache() -> Generator[FakeSummaryCache, None, None]:
    """In-memory stand-in for the Redis summary cache."""
    from shared.database.redis import RedisClient

    cache = FakeSummaryCache()
    with (
        patch.object(RedisClient, "get_cached", cache.get),
        patch.object(RedisClient, "set_cached", cache.set),
        patch.object(RedisClient, "delete_cached", cache.delete),
    ):
        yield cache


@pytest_asyncio.fixture
async def automation_client(
    automation_repo: FakeAutomationRepository,
    summary_cache: FakeSummaryCache,
) -> AsyncGenerator[AsyncClient, None]:
    """Create test client for the Automation Service over the fake repository."""
    from services.automation.main import app
    from services.automation.repository import (
        get_automation_repository,
        get_scope_factory,
        invalidating_summaries,
    )

    scope = invalidating_summaries(scope_for(automation_repo))

    async def request_repository() -> AsyncGenerator[Any, None]:
        async with scope() as repository:
            yield repository

    app.dependency_overrides[get_automation_repository] = request_repository
    app.dependency_overrides[get_scope_factory] = lambda: scope

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def control_plane_client(
    control_plane_repo: FakeControlPlaneRepository,
) -> AsyncGenerator[AsyncClient, None]:
    """Create test client for the Control Plane Service over the fake repository."""
    from services.control_plane.main import app
    from services.control_plane.repository import (
        get_control_plane_repository,
        get_control_plane_scope_factory,
    )

    app.dependency_overrides[get_control_plane_repository] = lambda: control_plane_repo
    app.dependency_overrides[get_control_plane_scope_factory] = lambda: scope_for(
        control_plane_repo
    )

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


# ============================================================================
# Auth
# ============================================================================


def _bearer(claims: dict[str, Any]) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(claims)}"}


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Organization owner/admin."""
    return _bearer({
        "sub": "test-user-id",
        "email": "owner@formaos.test",
        "roles": ["owner", "admin"],
        "organization_id": ORG_ID,
    })


@pytest.fixture
def member_headers() -> dict[str, str]:
    """Organization member without admin rights."""
    return _bearer({
        "sub": "member-user-id",
        "roles": ["member"],
        "organization_id": ORG_ID,
    })


@pytest.fixture
def no_org_headers() -> dict[str, str]:
    """Authenticated user that has not joined an organization."""
    return _bearer({"sub": "lonely-user-id", "roles": ["member"]})


@pytest.fixture
def founder_headers() -> dict[str, str]:
    """Platform founder."""
    return _bearer({"sub": "founder-user-id", "roles": ["founder"]})
