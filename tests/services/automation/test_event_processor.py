"""
Event Processor Tests
=====================

Tests for record-change routing and risk monitoring.
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from services.automation.models import (
    AutomationResult,
    DatabaseEvent,
    EventType,
    MemberRole,
    RiskLevel,
    TriggerType,
)
from services.automation.services.events import EventProcessor
from tests.fakes import FakeAutomationRepository


ORG = "org-1"


@pytest.fixture
def repo() -> FakeAutomationRepository:
    repo = FakeAutomationRepository()
    repo.add_member(ORG, "owner-1", MemberRole.OWNER)
    return repo


def db_event(
    event_type: EventType,
    entity_id: str = "entity-1",
    entity_type: str = "record",
    **metadata: object,
) -> DatabaseEvent:
    return DatabaseEvent(
        type=event_type,
        organization_id=ORG,
        entity_id=entity_id,
        entity_type=entity_type,
        metadata=dict(metadata),
    )


def spy_trigger_engine() -> AsyncMock:
    engine = AsyncMock()
    engine.process_trigger.return_value = AutomationResult(tasks_created=1)
    return engine


# ============================================================================
# Routing Tests
# ============================================================================


class TestRouting:
    """Test the event handler table."""

    def test_every_event_type_has_a_handler(self, repo: FakeAutomationRepository) -> None:
        assert set(EventProcessor(repo).handlers) == set(EventType)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "event_type",
        [EventType.TASK_CREATED, EventType.POLICY_STATUS_UPDATED],
    )
    async def test_score_only_events(
        self, repo: FakeAutomationRepository, event_type: EventType
    ) -> None:
        outcome = await EventProcessor(repo).process_event(db_event(event_type))

        assert outcome.triggered is True
        assert repo.evaluations[ORG]["version"] == 1

    @pytest.mark.asyncio
    async def test_subscription_activated_is_ignored(
        self, repo: FakeAutomationRepository
    ) -> None:
        outcome = await EventProcessor(repo).process_event(
            db_event(EventType.SUBSCRIPTION_ACTIVATED)
        )

        assert outcome.triggered is False
        assert repo.evaluations == {}

    @pytest.mark.asyncio
    async def test_handler_failure_is_reported(self, repo: FakeAutomationRepository) -> None:
        repo.fail_on.add("upsert_evaluation")

        outcome = await EventProcessor(repo).process_event(db_event(EventType.TASK_CREATED))

        assert outcome.triggered is False
        assert "upsert_evaluation failed" in outcome.error


# ============================================================================
# Evidence Tests
# ============================================================================


class TestEvidenceEvents:
    """Test upload auto-completion and review outcomes."""

    @pytest.mark.asyncio
    async def test_upload_completes_linked_task(self, repo: FakeAutomationRepository) -> None:
        task_id = repo.add_task(ORG, status="pending")
        evidence_id = repo.add_evidence(ORG, task_id=task_id, uploaded_by="user-7")

        outcome = await EventProcessor(repo).process_event(
            db_event(EventType.EVIDENCE_UPLOADED, evidence_id, "evidence")
        )

        assert outcome.triggered is True
        task = repo.tasks[0]
        assert task["status"] == "completed"
        assert task["completed_at"] is not None
        assert repo.audit_events == [
            {
                "organization_id": ORG,
                "actor_user_id": "user-7",
                "entity_type": "task",
                "entity_id": task_id,
                "action_type": "UPDATE",
                "after_state": {"status": "completed"},
                "reason": "Evidence uploaded - task auto-completed",
            }
        ]

    @pytest.mark.asyncio
    async def test_upload_leaves_completed_task_alone(
        self, repo: FakeAutomationRepository
    ) -> None:
        task_id = repo.add_task(ORG, status="completed")
        evidence_id = repo.add_evidence(ORG, task_id=task_id)

        await EventProcessor(repo).process_event(
            db_event(EventType.EVIDENCE_UPLOADED, evidence_id, "evidence")
        )

        assert repo.audit_events == []

    @pytest.mark.asyncio
    async def test_verified_updates_control_mapping(self, repo: FakeAutomationRepository) -> None:
        engine = spy_trigger_engine()
        evidence_id = repo.add_evidence(ORG)

        outcome = await EventProcessor(repo, trigger_engine=engine).process_event(
            db_event(EventType.EVIDENCE_VERIFIED, evidence_id, "evidence")
        )

        assert outcome.triggered is True
        assert repo.control_evidence_status[evidence_id] == "approved"
        engine.process_trigger.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejected_fires_replacement(self, repo: FakeAutomationRepository) -> None:
        engine = spy_trigger_engine()
        evidence_id = repo.add_evidence(ORG, file_name="pentest.pdf")

        outcome = await EventProcessor(repo, trigger_engine=engine).process_event(
            db_event(EventType.EVIDENCE_REJECTED, evidence_id, "evidence")
        )

        assert outcome.triggered is True
        assert outcome.result.tasks_created == 1
        assert repo.control_evidence_status[evidence_id] == "rejected"

        fired = engine.process_trigger.call_args.args[0]
        assert fired.type == TriggerType.EVIDENCE_EXPIRY
        assert fired.entity_type == "evidence"
        assert fired.metadata == {
            "evidenceId": evidence_id,
            "fileName": "pentest.pdf",
            "reason": "Evidence rejected - replacement required",
        }


# ============================================================================
# Control and Task Tests
# ============================================================================


class TestControlStatusEvents:
    """Test control transitions."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("new_status", "expected"),
        [
            ("non_compliant", TriggerType.CONTROL_FAILED),
            ("at_risk", TriggerType.CONTROL_INCOMPLETE),
        ],
    )
    async def test_degradation_fires_trigger(
        self,
        repo: FakeAutomationRepository,
        new_status: str,
        expected: TriggerType,
    ) -> None:
        engine = spy_trigger_engine()

        outcome = await EventProcessor(repo, trigger_engine=engine).process_event(
            db_event(
                EventType.CONTROL_STATUS_UPDATED,
                "control-1",
                "control",
                newStatus=new_status,
                previousStatus="compliant",
            )
        )

        assert outcome.triggered is True
        fired = engine.process_trigger.call_args.args[0]
        assert fired.type == expected
        assert fired.metadata == {
            "controlId": "control-1",
            "status": new_status,
            "previousStatus": "compliant",
        }

    @pytest.mark.asyncio
    async def test_unchanged_status_does_nothing(self, repo: FakeAutomationRepository) -> None:
        engine = spy_trigger_engine()

        outcome = await EventProcessor(repo, trigger_engine=engine).process_event(
            db_event(
                EventType.CONTROL_STATUS_UPDATED,
                newStatus="non_compliant",
                previousStatus="non_compliant",
            )
        )

        assert outcome.triggered is False
        engine.process_trigger.assert_not_called()

    @pytest.mark.asyncio
    async def test_improvement_does_nothing(self, repo: FakeAutomationRepository) -> None:
        engine = spy_trigger_engine()

        outcome = await EventProcessor(repo, trigger_engine=engine).process_event(
            db_event(
                EventType.CONTROL_STATUS_UPDATED,
                newStatus="compliant",
                previousStatus="at_risk",
            )
        )

        assert outcome.triggered is False
        engine.process_trigger.assert_not_called()


class TestTaskCompletedEvents:
    """Test recurrence and policy review completion."""

    @pytest.mark.asyncio
    async def test_recurring_task_schedules_next(self, repo: FakeAutomationRepository) -> None:
        due = datetime(2025, 3, 1, tzinfo=UTC)
        task_id = repo.add_task(
            ORG,
            title="Quarterly access review",
            status="completed",
            due_date=due,
            is_recurring=True,
            recurrence_days=90,
            assigned_to="user-3",
        )

        outcome = await EventProcessor(repo).process_event(
            db_event(EventType.TASK_COMPLETED, task_id, "task")
        )

        assert outcome.triggered is True
        assert len(repo.tasks) == 2
        follow_up = repo.tasks[1]
        assert follow_up["title"] == "Quarterly access review"
        assert follow_up["status"] == "pending"
        assert follow_up["due_date"] == due + timedelta(days=90)
        assert follow_up["assigned_to"] == "user-3"
        assert follow_up["is_recurring"] is True

    @pytest.mark.asyncio
    async def test_one_off_task_has_no_follow_up(self, repo: FakeAutomationRepository) -> None:
        task_id = repo.add_task(ORG, status="completed")

        await EventProcessor(repo).process_event(db_event(EventType.TASK_COMPLETED, task_id))

        assert len(repo.tasks) == 1

    @pytest.mark.asyncio
    async def test_review_task_touches_policy(self, repo: FakeAutomationRepository) -> None:
        policy_id = repo.add_policy(ORG)
        task_id = repo.add_task(
            ORG,
            title="Review Policy: Access Control Policy",
            status="completed",
            linked_policy_id=policy_id,
        )

        await EventProcessor(repo).process_event(db_event(EventType.TASK_COMPLETED, task_id))

        assert repo.touched_policies == [policy_id]

    @pytest.mark.asyncio
    async def test_other_linked_task_leaves_policy(self, repo: FakeAutomationRepository) -> None:
        policy_id = repo.add_policy(ORG)
        task_id = repo.add_task(
            ORG, title="Upload evidence", status="completed", linked_policy_id=policy_id
        )

        await EventProcessor(repo).process_event(db_event(EventType.TASK_COMPLETED, task_id))

        assert repo.touched_policies == []

    @pytest.mark.asyncio
    async def test_missing_task(self, repo: FakeAutomationRepository) -> None:
        outcome = await EventProcessor(repo).process_event(
            db_event(EventType.TASK_COMPLETED, "gone")
        )
        assert outcome.triggered is False


class TestOnboardingCompleted:
    @pytest.mark.asyncio
    async def test_fires_org_onboarding(self, repo: FakeAutomationRepository) -> None:
        outcome = await EventProcessor(repo).process_event(
            db_event(EventType.ONBOARDING_COMPLETED, ORG, "organization")
        )

        assert outcome.triggered is True
        assert outcome.result.tasks_created == 4


# ============================================================================
# Risk Monitoring Tests
# ============================================================================


class TestMonitorScoreChange:
    """Test risk tier comparison against the stored evaluation."""

    @pytest.mark.asyncio
    async def test_no_previous_tier(self, repo: FakeAutomationRepository) -> None:
        outcome = await EventProcessor(repo).monitor_score_change(ORG, None)
        assert outcome.triggered is False

    @pytest.mark.asyncio
    async def test_no_evaluation(self, repo: FakeAutomationRepository) -> None:
        outcome = await EventProcessor(repo).monitor_score_change(ORG, RiskLevel.LOW)
        assert outcome.triggered is False

    @pytest.mark.asyncio
    async def test_same_tier(self, repo: FakeAutomationRepository) -> None:
        repo.evaluations[ORG] = {"compliance_score": 85, "details": {"riskLevel": "low"}}
        outcome = await EventProcessor(repo).monitor_score_change(ORG, "low")
        assert outcome.triggered is False

    @pytest.mark.asyncio
    async def test_changed_tier_fires_trigger(self, repo: FakeAutomationRepository) -> None:
        repo.evaluations[ORG] = {"compliance_score": 35, "details": {"riskLevel": "critical"}}
        engine = spy_trigger_engine()

        outcome = await EventProcessor(repo, trigger_engine=engine).monitor_score_change(
            ORG, RiskLevel.MEDIUM
        )

        assert outcome.triggered is True
        fired = engine.process_trigger.call_args.args[0]
        assert fired.type == TriggerType.RISK_SCORE_CHANGE
        assert fired.metadata == {"previousRisk": "medium", "newRisk": "critical", "score": 35}

    @pytest.mark.asyncio
    async def test_unknown_stored_tier_defaults_to_medium(
        self, repo: FakeAutomationRepository
    ) -> None:
        repo.evaluations[ORG] = {"compliance_score": 70, "details": {}}
        engine = spy_trigger_engine()

        outcome = await EventProcessor(repo, trigger_engine=engine).monitor_score_change(
            ORG, RiskLevel.MEDIUM
        )

        assert outcome.triggered is False
        engine.process_trigger.assert_not_called()

    @pytest.mark.asyncio
    async def test_failure_is_swallowed(self, repo: FakeAutomationRepository) -> None:
        repo.evaluations[ORG] = {"compliance_score": 35, "details": {"riskLevel": "critical"}}
        engine = AsyncMock()
        engine.process_trigger.side_effect = RuntimeError("trigger exploded")

        outcome = await EventProcessor(repo, trigger_engine=engine).monitor_score_change(
            ORG, RiskLevel.LOW
        )

        assert outcome.triggered is False
        assert outcome.error == "trigger exploded"
