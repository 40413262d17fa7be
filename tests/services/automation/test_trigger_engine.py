"""
Trigger Engine Tests
====================

Tests for trigger dispatch, the remediation handlers and error collection.
"""

from datetime import UTC, datetime, timedelta

import pytest

from services.automation.models import MemberRole, TriggerEvent, TriggerType
from services.automation.services.trigger import ONBOARDING_TASKS, TriggerEngine
from tests.fakes import FakeAutomationRepository


ORG = "org-1"


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def repo() -> FakeAutomationRepository:
    """Repository with an owner, an admin, an officer and a plain member."""
    repo = FakeAutomationRepository()
    repo.add_member(ORG, "owner-1", MemberRole.OWNER)
    repo.add_member(ORG, "admin-1", MemberRole.ADMIN)
    repo.add_member(ORG, "officer-1", MemberRole.COMPLIANCE_OFFICER)
    repo.add_member(ORG, "member-1", MemberRole.MEMBER)
    return repo


def event(trigger_type: TriggerType, **metadata: object) -> TriggerEvent:
    return TriggerEvent(type=trigger_type, organization_id=ORG, metadata=dict(metadata))


def recipients(repo: FakeAutomationRepository) -> list[str]:
    return [n["user_id"] for n in repo.notifications]


# ============================================================================
# Dispatch Tests
# ============================================================================


class TestDispatch:
    """Test the handler table and the recursion guard."""

    def test_every_trigger_type_has_a_handler(self, repo: FakeAutomationRepository) -> None:
        engine = TriggerEngine(repo)
        assert set(engine.handlers) == set(TriggerType)

    @pytest.mark.asyncio
    async def test_depth_limit_refuses(self, repo: FakeAutomationRepository) -> None:
        """Test a call at max depth does nothing and reports an error."""
        result = await TriggerEngine(repo).process_trigger(
            event(TriggerType.ORG_ONBOARDING), depth=5
        )

        assert result.tasks_created == 0
        assert result.notifications_sent == 0
        assert result.errors == ["Max trigger recursion depth reached (5)"]
        assert repo.tasks == []
        assert repo.evaluations == {}

    @pytest.mark.asyncio
    async def test_depth_below_limit_runs(self, repo: FakeAutomationRepository) -> None:
        result = await TriggerEngine(repo).process_trigger(
            event(TriggerType.ORG_ONBOARDING), depth=4
        )
        assert result.tasks_created == len(ONBOARDING_TASKS)

    @pytest.mark.asyncio
    async def test_score_refreshed_after_handler(self, repo: FakeAutomationRepository) -> None:
        await TriggerEngine(repo).process_trigger(event(TriggerType.ORG_ONBOARDING))
        assert repo.evaluations[ORG]["version"] == 1

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_collected(self, repo: FakeAutomationRepository) -> None:
        """A failure outside the handlers' own error paths is reported, not raised."""
        repo.fail_on.add("fetch_control_statuses")

        result = await TriggerEngine(repo).process_trigger(event(TriggerType.ORG_ONBOARDING))

        assert len(result.errors) == 1
        assert "fetch_control_statuses failed" in result.errors[0]


# ============================================================================
# Handler Tests
# ============================================================================


class TestEvidenceExpiry:
    """Test renewal tasks for expired evidence."""

    @pytest.mark.asyncio
    async def test_missing_evidence_id(self, repo: FakeAutomationRepository) -> None:
        result = await TriggerEngine(repo).process_trigger(event(TriggerType.EVIDENCE_EXPIRY))
        assert result.errors == ["Evidence ID missing in metadata"]
        assert repo.tasks == []

    @pytest.mark.asyncio
    async def test_unknown_evidence(self, repo: FakeAutomationRepository) -> None:
        result = await TriggerEngine(repo).process_trigger(
            event(TriggerType.EVIDENCE_EXPIRY, evidenceId="missing")
        )
        assert result.errors == ["Evidence not found"]

    @pytest.mark.asyncio
    async def test_creates_task_and_notifies_officers(
        self, repo: FakeAutomationRepository
    ) -> None:
        policy_id = repo.add_policy(ORG)
        task_id = repo.add_task(ORG, linked_policy_id=policy_id)
        evidence_id = repo.add_evidence(ORG, file_name="soc2.pdf", task_id=task_id)

        result = await TriggerEngine(repo).process_trigger(
            event(TriggerType.EVIDENCE_EXPIRY, evidenceId=evidence_id)
        )

        assert result.tasks_created == 1
        assert result.notifications_sent == 3
        assert sorted(recipients(repo)) == ["admin-1", "officer-1", "owner-1"]

        renewal = repo.tasks[-1]
        assert renewal["title"] == "Renew Evidence: soc2.pdf"
        assert renewal["priority"] == "high"
        assert renewal["linked_policy_id"] == policy_id
        assert repo.notifications[0]["metadata"] == {
            "evidenceId": evidence_id,
            "taskId": renewal["id"],
        }

    @pytest.mark.asyncio
    async def test_task_insert_failure_skips_notifications(
        self, repo: FakeAutomationRepository
    ) -> None:
        evidence_id = repo.add_evidence(ORG)
        repo.fail_on.add("insert_task")

        result = await TriggerEngine(repo).process_trigger(
            event(TriggerType.EVIDENCE_EXPIRY, evidenceId=evidence_id)
        )

        assert result.tasks_created == 0
        assert result.notifications_sent == 0
        assert result.errors == ["Failed to create renewal task: insert_task failed"]

    @pytest.mark.asyncio
    async def test_notification_failures_are_collected(
        self, repo: FakeAutomationRepository
    ) -> None:
        evidence_id = repo.add_evidence(ORG)
        repo.fail_on.add("insert_notification")

        result = await TriggerEngine(repo).process_trigger(
            event(TriggerType.EVIDENCE_EXPIRY, evidenceId=evidence_id)
        )

        assert result.tasks_created == 1
        assert result.notifications_sent == 0
        assert result.errors == [
            "Failed to send notification: insert_notification failed"
        ] * 3


class TestPolicyReview:
    """Test review tasks for stale policies."""

    @pytest.mark.asyncio
    async def test_creates_review_task(self, repo: FakeAutomationRepository) -> None:
        policy_id = repo.add_policy(ORG, title="Privacy Policy", status="published")

        result = await TriggerEngine(repo).process_trigger(
            event(TriggerType.POLICY_REVIEW_DUE, policyId=policy_id)
        )

        assert result.tasks_created == 1
        task = repo.tasks[-1]
        assert task["title"] == "Review Policy: Privacy Policy"
        assert task["priority"] == "standard"
        assert task["linked_policy_id"] == policy_id

    @pytest.mark.asyncio
    async def test_missing_policy(self, repo: FakeAutomationRepository) -> None:
        result = await TriggerEngine(repo).process_trigger(
            event(TriggerType.POLICY_REVIEW_DUE, policyId="nope")
        )
        assert result.errors == ["Policy not found"]


class TestControlIssues:
    """Test failed and incomplete control handling."""

    @pytest.mark.asyncio
    async def test_failed_control_is_critical_and_goes_to_admins(
        self, repo: FakeAutomationRepository
    ) -> None:
        control_id = repo.add_control(ORG, "non_compliant", title="MFA")

        result = await TriggerEngine(repo).process_trigger(
            event(TriggerType.CONTROL_FAILED, controlId=control_id, status="non_compliant")
        )

        assert result.tasks_created == 1
        assert repo.tasks[-1]["title"] == "Fix Failed Control: MFA"
        assert repo.tasks[-1]["priority"] == "critical"
        assert sorted(recipients(repo)) == ["admin-1", "owner-1"]
        assert repo.notifications[0]["type"] == "CONTROL_FAILED"

    @pytest.mark.asyncio
    async def test_incomplete_control_goes_to_officers(
        self, repo: FakeAutomationRepository
    ) -> None:
        control_id = repo.add_control(ORG, "at_risk", title="Backups")

        await TriggerEngine(repo).process_trigger(
            event(TriggerType.CONTROL_INCOMPLETE, controlId=control_id, status="at_risk")
        )

        assert repo.tasks[-1]["title"] == "Complete Control: Backups"
        assert repo.tasks[-1]["priority"] == "high"
        assert sorted(recipients(repo)) == ["admin-1", "officer-1", "owner-1"]

    @pytest.mark.asyncio
    async def test_missing_control_id(self, repo: FakeAutomationRepository) -> None:
        result = await TriggerEngine(repo).process_trigger(event(TriggerType.CONTROL_FAILED))
        assert result.errors == ["Control ID missing in metadata"]


class TestOnboarding:
    """Test onboarding task seeding."""

    @pytest.mark.asyncio
    async def test_seeds_tasks_and_welcomes_first_owner(
        self, repo: FakeAutomationRepository
    ) -> None:
        repo.add_member(ORG, "owner-2", MemberRole.OWNER)

        result = await TriggerEngine(repo).process_trigger(event(TriggerType.ORG_ONBOARDING))

        assert result.tasks_created == 4
        expected = [template["title"] for template in ONBOARDING_TASKS]
        assert [t["title"] for t in repo.tasks] == expected
        assert recipients(repo) == ["owner-1"]
        assert repo.notifications[0]["metadata"] == {"tasksCreated": 4}


class TestRiskScoreChange:
    """Test risk escalation."""

    @pytest.mark.asyncio
    async def test_worsening_to_high_creates_task(self, repo: FakeAutomationRepository) -> None:
        result = await TriggerEngine(repo).process_trigger(
            event(TriggerType.RISK_SCORE_CHANGE, previousRisk="low", newRisk="high", score=55)
        )

        assert result.tasks_created == 1
        assert repo.tasks[-1]["title"] == "Address Compliance Risk"
        assert repo.tasks[-1]["priority"] == "high"
        assert sorted(recipients(repo)) == ["admin-1", "owner-1"]

    @pytest.mark.asyncio
    async def test_worsening_to_critical_is_urgent(self, repo: FakeAutomationRepository) -> None:
        await TriggerEngine(repo).process_trigger(
            event(TriggerType.RISK_SCORE_CHANGE, previousRisk="high", newRisk="critical", score=30)
        )
        assert repo.tasks[-1]["title"] == "URGENT: Address Compliance Risk"
        assert repo.tasks[-1]["priority"] == "critical"

    @pytest.mark.asyncio
    async def test_worsening_to_medium_only_notifies(self, repo: FakeAutomationRepository) -> None:
        result = await TriggerEngine(repo).process_trigger(
            event(TriggerType.RISK_SCORE_CHANGE, previousRisk="low", newRisk="medium", score=70)
        )
        assert result.tasks_created == 0
        assert result.notifications_sent == 2

    @pytest.mark.asyncio
    async def test_improvement_does_nothing(self, repo: FakeAutomationRepository) -> None:
        result = await TriggerEngine(repo).process_trigger(
            event(TriggerType.RISK_SCORE_CHANGE, previousRisk="high", newRisk="low", score=90)
        )

        assert result.tasks_created == 0
        assert result.notifications_sent == 0
        assert result.errors == []

    @pytest.mark.asyncio
    async def test_missing_levels(self, repo: FakeAutomationRepository) -> None:
        result = await TriggerEngine(repo).process_trigger(
            event(TriggerType.RISK_SCORE_CHANGE, previousRisk="low")
        )
        assert result.errors == ["Risk level data missing in metadata"]


class TestTaskOverdue:
    """Test overdue reminders and escalation."""

    @pytest.mark.asyncio
    async def test_reminds_assignee_and_escalates_after_three_days(
        self, repo: FakeAutomationRepository
    ) -> None:
        task_id = repo.add_task(
            ORG,
            title="Rotate keys",
            assigned_to="member-1",
            due_date=datetime.now(UTC) - timedelta(days=4),
        )

        result = await TriggerEngine(repo).process_trigger(
            event(TriggerType.TASK_OVERDUE, taskId=task_id)
        )

        assert result.notifications_sent == 3
        assert recipients(repo)[0] == "member-1"
        assert repo.notifications[0]["metadata"]["daysOverdue"] == 4
        assert {n["type"] for n in repo.notifications[1:]} == {"TASK_OVERDUE_ESCALATED"}

    @pytest.mark.asyncio
    async def test_recent_standard_task_only_reminds(
        self, repo: FakeAutomationRepository
    ) -> None:
        task_id = repo.add_task(
            ORG, assigned_to="member-1", due_date=datetime.now(UTC) - timedelta(days=1)
        )

        result = await TriggerEngine(repo).process_trigger(
            event(TriggerType.TASK_OVERDUE, taskId=task_id)
        )

        assert result.notifications_sent == 1
        assert recipients(repo) == ["member-1"]

    @pytest.mark.asyncio
    async def test_critical_task_escalates_immediately(
        self, repo: FakeAutomationRepository
    ) -> None:
        task_id = repo.add_task(
            ORG, priority="critical", due_date=datetime.now(UTC) - timedelta(hours=2)
        )

        result = await TriggerEngine(repo).process_trigger(
            event(TriggerType.TASK_OVERDUE, taskId=task_id)
        )

        assert sorted(recipients(repo)) == ["admin-1", "owner-1"]
        assert result.notifications_sent == 2

    @pytest.mark.asyncio
    async def test_completed_task_is_skipped(self, repo: FakeAutomationRepository) -> None:
        task_id = repo.add_task(
            ORG, status="completed", due_date=datetime.now(UTC) - timedelta(days=9)
        )

        result = await TriggerEngine(repo).process_trigger(
            event(TriggerType.TASK_OVERDUE, taskId=task_id)
        )

        assert result.notifications_sent == 0
        assert result.errors == []


class TestCertificationExpiring:
    """Test certification renewal tasks."""

    @pytest.mark.asyncio
    async def test_near_expiry_is_high_priority(self, repo: FakeAutomationRepository) -> None:
        certification_id = repo.add_certification(ORG)

        result = await TriggerEngine(repo).process_trigger(
            event(
                TriggerType.CERTIFICATION_EXPIRING,
                certificationId=certification_id,
                daysUntilExpiry=5,
            )
        )

        assert result.tasks_created == 1
        assert repo.tasks[-1]["priority"] == "high"
        assert repo.notifications[0]["metadata"]["daysUntilExpiry"] == 5

    @pytest.mark.asyncio
    async def test_zero_days_uses_default_window(self, repo: FakeAutomationRepository) -> None:
        certification_id = repo.add_certification(ORG)

        await TriggerEngine(repo).process_trigger(
            event(
                TriggerType.CERTIFICATION_EXPIRING,
                certificationId=certification_id,
                daysUntilExpiry=0,
            )
        )

        assert "expires in 30 days" in repo.tasks[-1]["description"]
        assert repo.tasks[-1]["priority"] == "standard"

    @pytest.mark.asyncio
    async def test_default_window_is_standard(self, repo: FakeAutomationRepository) -> None:
        certification_id = repo.add_certification(ORG)

        await TriggerEngine(repo).process_trigger(
            event(TriggerType.CERTIFICATION_EXPIRING, certificationId=certification_id)
        )

        assert repo.tasks[-1]["priority"] == "standard"
        assert "expires in 30 days" in repo.tasks[-1]["description"]
