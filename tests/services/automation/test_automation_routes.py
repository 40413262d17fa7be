"""
Automation API Tests
====================

Tests for the compliance score, trigger and scheduled endpoints.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from services.automation.repository import invalidating_summaries
from services.automation.services.score import ComplianceScoreEngine
from shared.database.redis import RedisClient
from tests.fakes import FakeAutomationRepository, FakeSummaryCache, scope_for


CRON_HEADERS = {"Authorization": "Bearer test-cron-secret"}


def fake_lock(acquired: bool):
    @asynccontextmanager
    async def lock(*args: object, **kwargs: object) -> AsyncGenerator[bool, None]:
        yield acquired

    return lock


# ============================================================================
# Score Endpoint Tests
# ============================================================================


class TestScoreEndpoints:
    """Test /api/v1/compliance endpoints."""

    @pytest.mark.asyncio
    async def test_score_requires_auth(self, automation_client: AsyncClient) -> None:
        response = await automation_client.get("/api/v1/compliance/score")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_score_requires_organization(
        self, automation_client: AsyncClient, no_org_headers: dict[str, str]
    ) -> None:
        response = await automation_client.get(
            "/api/v1/compliance/score", headers=no_org_headers
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_score_is_not_persisted(
        self,
        automation_client: AsyncClient,
        automation_repo: FakeAutomationRepository,
        auth_headers: dict[str, str],
        org_id: str,
    ) -> None:
        automation_repo.add_control(org_id, "compliant")

        response = await automation_client.get("/api/v1/compliance/score", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["organization_id"] == org_id
        assert data["controls_score"] == 100
        assert data["overall_score"] == 80
        assert data["risk_level"] == "low"
        assert data["details"]["total_controls"] == 1
        assert automation_repo.evaluations == {}

    @pytest.mark.asyncio
    async def test_recalculate_persists_and_invalidates(
        self,
        automation_client: AsyncClient,
        automation_repo: FakeAutomationRepository,
        auth_headers: dict[str, str],
        org_id: str,
    ) -> None:
        with patch.object(RedisClient, "delete_cached", AsyncMock(return_value=True)) as delete:
            response = await automation_client.post(
                "/api/v1/compliance/score/recalculate", headers=auth_headers
            )

        assert response.status_code == 200
        assert automation_repo.evaluations[org_id]["version"] == 1
        delete.assert_awaited_once_with(f"compliance_summary:{org_id}")

    @pytest.mark.asyncio
    async def test_summary_cache_hit(
        self,
        automation_client: AsyncClient,
        automation_repo: FakeAutomationRepository,
        auth_headers: dict[str, str],
    ) -> None:
        cached = {
            "score": 64,
            "risk_level": "medium",
            "last_updated": None,
            "breakdown": {"controls": 60, "evidence": 50, "tasks": 90, "policies": 70},
        }
        with patch.object(RedisClient, "get_cached", AsyncMock(return_value=cached)):
            response = await automation_client.get(
                "/api/v1/compliance/summary", headers=auth_headers
            )

        assert response.status_code == 200
        assert response.json()["score"] == 64
        assert automation_repo.evaluations == {}

    @pytest.mark.asyncio
    async def test_summary_cache_miss(
        self,
        automation_client: AsyncClient,
        auth_headers: dict[str, str],
        org_id: str,
    ) -> None:
        with (
            patch.object(RedisClient, "get_cached", AsyncMock(return_value=None)),
            patch.object(RedisClient, "set_cached", AsyncMock(return_value=True)) as set_cached,
        ):
            response = await automation_client.get(
                "/api/v1/compliance/summary", headers=auth_headers
            )

        assert response.status_code == 200
        assert response.json()["breakdown"] == {
            "controls": 100,
            "evidence": 50,
            "tasks": 100,
            "policies": 50,
        }
        key, value = set_cached.await_args.args
        assert key == f"compliance_summary:{org_id}"
        assert value["score"] == 80


# ============================================================================
# Trigger Endpoint Tests
# ============================================================================


class TestTriggerEndpoints:
    """Test manual triggers and reported events."""

    @pytest.mark.asyncio
    async def test_manual_trigger(
        self,
        automation_client: AsyncClient,
        automation_repo: FakeAutomationRepository,
        auth_headers: dict[str, str],
    ) -> None:
        response = await automation_client.post(
            "/api/v1/automation/triggers",
            headers=auth_headers,
            json={"trigger_type": "org_onboarding"},
        )

        assert response.status_code == 200
        assert response.json()["tasks_created"] == 4
        assert len(automation_repo.tasks) == 4

    @pytest.mark.asyncio
    async def test_manual_trigger_reports_errors(
        self, automation_client: AsyncClient, auth_headers: dict[str, str]
    ) -> None:
        response = await automation_client.post(
            "/api/v1/automation/triggers",
            headers=auth_headers,
            json={"trigger_type": "policy_review_due", "metadata": {}},
        )

        assert response.status_code == 200
        assert response.json()["errors"] == ["Policy ID missing in metadata"]

    @pytest.mark.asyncio
    async def test_unknown_trigger_type(
        self, automation_client: AsyncClient, auth_headers: dict[str, str]
    ) -> None:
        response = await automation_client.post(
            "/api/v1/automation/triggers",
            headers=auth_headers,
            json={"trigger_type": "meteor_strike"},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_trigger_recompute_refreshes_cached_summary(
        self,
        automation_client: AsyncClient,
        automation_repo: FakeAutomationRepository,
        summary_cache: FakeSummaryCache,
        auth_headers: dict[str, str],
        org_id: str,
    ) -> None:
        automation_repo.add_control(org_id, "compliant")
        await automation_client.post("/api/v1/compliance/score/recalculate", headers=auth_headers)

        before = await automation_client.get("/api/v1/compliance/summary", headers=auth_headers)
        assert before.json()["breakdown"]["controls"] == 100
        assert f"compliance_summary:{org_id}" in summary_cache.values

        automation_repo.add_control(org_id, "non_compliant")
        trigger = await automation_client.post(
            "/api/v1/automation/triggers",
            headers=auth_headers,
            json={"trigger_type": "org_onboarding"},
        )
        assert trigger.status_code == 200
        assert f"compliance_summary:{org_id}" not in summary_cache.values

        after = await automation_client.get("/api/v1/compliance/summary", headers=auth_headers)
        assert after.json()["breakdown"]["controls"] == 50

    @pytest.mark.asyncio
    async def test_report_event(
        self,
        automation_client: AsyncClient,
        automation_repo: FakeAutomationRepository,
        auth_headers: dict[str, str],
        org_id: str,
    ) -> None:
        response = await automation_client.post(
            "/api/v1/automation/events",
            headers=auth_headers,
            json={"event_type": "task_created", "entity_id": "task-1", "entity_type": "task"},
        )

        assert response.status_code == 200
        assert response.json() == {"ok": True, "triggered": True, "error": None}
        assert org_id in automation_repo.evaluations

    @pytest.mark.asyncio
    async def test_report_event_failure_is_dead_lettered(
        self,
        automation_client: AsyncClient,
        automation_repo: FakeAutomationRepository,
        auth_headers: dict[str, str],
    ) -> None:
        automation_repo.fail_on.add("upsert_evaluation")

        response = await automation_client.post(
            "/api/v1/automation/events",
            headers=auth_headers,
            json={"event_type": "task_created", "entity_id": "task-1", "entity_type": "task"},
        )

        assert response.status_code == 200
        assert response.json()["ok"] is False
        assert len(automation_repo.failures) == 1


# ============================================================================
# Scheduled Endpoint Tests
# ============================================================================


class TestScheduledEndpoints:
    """Test the cron sweep and single-scan endpoints."""

    @pytest.mark.asyncio
    async def test_cron_requires_secret(self, automation_client: AsyncClient) -> None:
        response = await automation_client.post("/api/v1/automation/scheduled")

        assert response.status_code == 401
        assert response.json()["error"] == "Unauthorized"

    @pytest.mark.asyncio
    async def test_cron_rejects_wrong_secret(self, automation_client: AsyncClient) -> None:
        response = await automation_client.post(
            "/api/v1/automation/scheduled",
            headers={"Authorization": "Bearer not-the-secret"},
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_cron_runs_sweep(self, automation_client: AsyncClient) -> None:
        with patch("services.automation.routes.scheduled.redis_lock", fake_lock(True)):
            response = await automation_client.post(
                "/api/v1/automation/scheduled", headers=CRON_HEADERS
            )

        assert response.status_code == 200
        assert response.json() == {"checks_run": 5, "triggers_executed": 0, "errors": []}

    @pytest.mark.asyncio
    async def test_cron_conflict_when_locked(self, automation_client: AsyncClient) -> None:
        with patch("services.automation.routes.scheduled.redis_lock", fake_lock(False)):
            response = await automation_client.post(
                "/api/v1/automation/scheduled", headers=CRON_HEADERS
            )

        assert response.status_code == 409
        assert response.json()["error"] == "Scheduled automation already running"

    @pytest.mark.asyncio
    async def test_cron_runs_when_redis_is_down(self, automation_client: AsyncClient) -> None:
        redis = MagicMock()
        redis.lock.return_value.acquire = AsyncMock(side_effect=RedisConnectionError("down"))

        with patch.object(RedisClient, "get_client", return_value=redis):
            response = await automation_client.post(
                "/api/v1/automation/scheduled", headers=CRON_HEADERS
            )

        assert response.status_code == 200
        assert response.json()["checks_run"] == 5

    @pytest.mark.asyncio
    async def test_single_check(
        self,
        automation_client: AsyncClient,
        automation_repo: FakeAutomationRepository,
        auth_headers: dict[str, str],
        org_id: str,
    ) -> None:
        automation_repo.add_policy(org_id, status="published")

        response = await automation_client.post(
            "/api/v1/automation/scheduled/policies", headers=auth_headers
        )

        assert response.status_code == 200
        assert response.json()["checks_run"] == 1
        assert response.json()["triggers_executed"] == 1

    @pytest.mark.asyncio
    async def test_single_check_requires_admin(
        self, automation_client: AsyncClient, member_headers: dict[str, str]
    ) -> None:
        response = await automation_client.post(
            "/api/v1/automation/scheduled/policies", headers=member_headers
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown_check(
        self, automation_client: AsyncClient, auth_headers: dict[str, str]
    ) -> None:
        response = await automation_client.post(
            "/api/v1/automation/scheduled/nightly", headers=auth_headers
        )
        assert response.status_code == 404


# ============================================================================
# Summary Invalidation Tests
# ============================================================================


class TestSummaryInvalidation:
    """Cached summaries are dropped only after a rescoring transaction commits."""

    @pytest.mark.asyncio
    async def test_committed_rescore_drops_summary(
        self,
        automation_repo: FakeAutomationRepository,
        summary_cache: FakeSummaryCache,
        org_id: str,
    ) -> None:
        summary_cache.values[f"compliance_summary:{org_id}"] = {"score": 1}
        summary_cache.values["compliance_summary:other-org"] = {"score": 2}
        scope = invalidating_summaries(scope_for(automation_repo))

        async with scope() as repo:
            await ComplianceScoreEngine(repo).update(org_id)

        assert list(summary_cache.values) == ["compliance_summary:other-org"]

    @pytest.mark.asyncio
    async def test_rolled_back_rescore_keeps_summary(
        self,
        automation_repo: FakeAutomationRepository,
        summary_cache: FakeSummaryCache,
        org_id: str,
    ) -> None:
        summary_cache.values[f"compliance_summary:{org_id}"] = {"score": 1}
        scope = invalidating_summaries(scope_for(automation_repo))

        with pytest.raises(RuntimeError):
            async with scope() as repo:
                await ComplianceScoreEngine(repo).update(org_id)
                raise RuntimeError("rollback")

        assert f"compliance_summary:{org_id}" in summary_cache.values

    @pytest.mark.asyncio
    async def test_read_only_scope_keeps_summary(
        self,
        automation_repo: FakeAutomationRepository,
        summary_cache: FakeSummaryCache,
        org_id: str,
    ) -> None:
        summary_cache.values[f"compliance_summary:{org_id}"] = {"score": 1}
        scope = invalidating_summaries(scope_for(automation_repo))

        async with scope() as repo:
            await ComplianceScoreEngine(repo).calculate(org_id)

        assert f"compliance_summary:{org_id}" in summary_cache.values
