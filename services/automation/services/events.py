"""
Automation Event Processor
==========================

Maps record changes (evidence uploads, control status changes, task
completions) onto score refreshes and trigger engine calls.

``process_event`` never raises: automation must not block the primary
action that reported the change.

Version: 0.1.0
"""

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta

from services.automation.models import (
    ControlStatus,
    DatabaseEvent,
    EventOutcome,
    EventType,
    RiskLevel,
    TaskStatus,
    TriggerEvent,
    TriggerType,
)
from services.automation.repository import AutomationRepository
from services.automation.services.score import (
    ComplianceScoreEngine,
    as_utc,
    stored_risk_level,
)
from services.automation.services.trigger import TriggerEngine
from shared.logging import get_logger


logger = get_logger(__name__)

EventHandler = Callable[[DatabaseEvent], Awaitable[EventOutcome]]

REVIEW_TASK_MARKER = "Review Policy"


class EventProcessor:
    """Routes ``DatabaseEvent`` values to their automation."""

    def __init__(
        self,
        repository: AutomationRepository,
        trigger_engine: TriggerEngine | None = None,
        score_engine: ComplianceScoreEngine | None = None,
    ) -> None:
        self.repository = repository
        self.score_engine = score_engine or ComplianceScoreEngine(repository)
        self.trigger_engine = trigger_engine or TriggerEngine(repository, self.score_engine)
        self.handlers: dict[EventType, EventHandler] = {
            EventType.EVIDENCE_UPLOADED: self._handle_evidence_uploaded,
            EventType.EVIDENCE_VERIFIED: self._handle_evidence_status_change,
            EventType.EVIDENCE_REJECTED: self._handle_evidence_status_change,
            EventType.CONTROL_STATUS_UPDATED: self._handle_control_status_update,
            EventType.TASK_COMPLETED: self._handle_task_completed,
            EventType.TASK_CREATED: self._refresh_score,
            EventType.POLICY_STATUS_UPDATED: self._refresh_score,
            EventType.SUBSCRIPTION_ACTIVATED: self._ignore,
            EventType.ONBOARDING_COMPLETED: self._handle_onboarding_completed,
        }

    async def process_event(self, event: DatabaseEvent) -> EventOutcome:
        """
        Process one record change.

        Returns:
            EventOutcome; failures are reported on ``error`` instead of raised
        """
        logger.debug(
            "event_processing",
            event_type=event.type.value,
            organization_id=event.organization_id,
            entity_id=event.entity_id,
        )

        try:
            return await self.handlers[event.type](event)
        except Exception as e:
            logger.exception(
                "event_processing_failed",
                event_type=event.type.value,
                organization_id=event.organization_id,
                entity_id=event.entity_id,
                error=str(e),
            )
            return EventOutcome(triggered=False, error=str(e) or type(e).__name__)

    async def _trigger(
        self,
        trigger_type: TriggerType,
        event: DatabaseEvent,
        metadata: dict[str, object] | None = None,
        entity_type: str | None = None,
    ) -> EventOutcome:
        result = await self.trigger_engine.process_trigger(
            TriggerEvent(
                type=trigger_type,
                organization_id=event.organization_id,
                entity_id=event.entity_id if entity_type else None,
                entity_type=entity_type,
                metadata=metadata or {},
            )
        )
        return EventOutcome(triggered=True, result=result)

    # =========================================================================
    # Handlers
    # =========================================================================

    async def _refresh_score(self, event: DatabaseEvent) -> EventOutcome:
        await self.score_engine.update(event.organization_id)
        return EventOutcome(triggered=True)

    async def _ignore(self, event: DatabaseEvent) -> EventOutcome:
        return EventOutcome(triggered=False)

    async def _handle_evidence_uploaded(self, event: DatabaseEvent) -> EventOutcome:
        await self.score_engine.update(event.organization_id)

        evidence = await self.repository.get_evidence(event.organization_id, event.entity_id)
        task_id = evidence.get("task_id") if evidence else None
        if not task_id:
            return EventOutcome(triggered=True)

        task = await self.repository.get_task(event.organization_id, str(task_id))
        if task and task.get("status") != TaskStatus.COMPLETED.value:
            await self.repository.update_task(
                str(task_id),
                {"status": TaskStatus.COMPLETED.value, "completed_at": datetime.now(UTC)},
            )
            await self.repository.insert_audit_event(
                {
                    "organization_id": event.organization_id,
                    "actor_user_id": evidence.get("uploaded_by"),
                    "entity_type": "task",
                    "entity_id": str(task_id),
                    "action_type": "UPDATE",
                    "after_state": {"status": TaskStatus.COMPLETED.value},
                    "reason": "Evidence uploaded - task auto-completed",
                }
            )
            logger.info(
                "task_auto_completed",
                organization_id=event.organization_id,
                task_id=str(task_id),
                evidence_id=event.entity_id,
            )

        return EventOutcome(triggered=True)

    async def _handle_evidence_status_change(self, event: DatabaseEvent) -> EventOutcome:
        verified = event.type == EventType.EVIDENCE_VERIFIED

        await self.score_engine.update(event.organization_id)
        await self.repository.update_control_evidence_status(
            event.entity_id, "approved" if verified else "rejected"
        )

        if verified:
            return EventOutcome(triggered=True)

        evidence = await self.repository.get_evidence(event.organization_id, event.entity_id)
        if not evidence:
            return EventOutcome(triggered=True)

        return await self._trigger(
            TriggerType.EVIDENCE_EXPIRY,
            event,
            {
                "evidenceId": event.entity_id,
                "fileName": evidence.get("file_name"),
                "reason": "Evidence rejected - replacement required",
            },
            entity_type="evidence",
        )

    async def _handle_control_status_update(self, event: DatabaseEvent) -> EventOutcome:
        new_status = event.metadata.get("newStatus")
        previous_status = event.metadata.get("previousStatus")

        await self.score_engine.update(event.organization_id)

        if new_status == previous_status:
            return EventOutcome(triggered=False)

        transitions = {
            ControlStatus.NON_COMPLIANT.value: TriggerType.CONTROL_FAILED,
            ControlStatus.AT_RISK.value: TriggerType.CONTROL_INCOMPLETE,
        }
        trigger_type = transitions.get(new_status)
        if trigger_type is None:
            return EventOutcome(triggered=False)

        return await self._trigger(
            trigger_type,
            event,
            {
                "controlId": event.entity_id,
                "status": new_status,
                "previousStatus": previous_status,
            },
            entity_type="control",
        )

    async def _handle_task_completed(self, event: DatabaseEvent) -> EventOutcome:
        await self.score_engine.update(event.organization_id)

        task = await self.repository.get_task(event.organization_id, event.entity_id)
        if not task:
            return EventOutcome(triggered=False)

        recurrence_days = task.get("recurrence_days")
        if task.get("is_recurring") and recurrence_days:
            base = as_utc(task["due_date"]) if task.get("due_date") else datetime.now(UTC)
            next_task = await self.repository.insert_task(
                {
                    "organization_id": event.organization_id,
                    "title": task.get("title"),
                    "description": task.get("description"),
                    "priority": task.get("priority"),
                    "status": TaskStatus.PENDING.value,
                    "due_date": base + timedelta(days=int(recurrence_days)),
                    "assigned_to": task.get("assigned_to"),
                    "linked_policy_id": task.get("linked_policy_id"),
                    "linked_asset_id": task.get("linked_asset_id"),
                    "is_recurring": True,
                    "recurrence_days": recurrence_days,
                }
            )
            logger.info(
                "recurring_task_generated",
                organization_id=event.organization_id,
                task_id=event.entity_id,
                next_task_id=str(next_task.get("id")),
            )

        policy_id = task.get("linked_policy_id")
        if policy_id and REVIEW_TASK_MARKER in (task.get("title") or ""):
            policy = await self.repository.get_policy(event.organization_id, str(policy_id))
            if policy:
                await self.repository.touch_policy(str(policy_id), datetime.now(UTC))

        return EventOutcome(triggered=True)

    async def _handle_onboarding_completed(self, event: DatabaseEvent) -> EventOutcome:
        return await self._trigger(TriggerType.ORG_ONBOARDING, event)

    # =========================================================================
    # Risk Monitoring
    # =========================================================================

    async def monitor_score_change(
        self,
        organization_id: str,
        previous_risk: RiskLevel | str | None,
    ) -> EventOutcome:
        """
        Fire ``risk_score_change`` when the stored risk tier differs from
        ``previous_risk``.
        """
        if not previous_risk:
            return EventOutcome(triggered=False)

        try:
            evaluation = await self.repository.get_evaluation(organization_id)
            if not evaluation:
                return EventOutcome(triggered=False)

            current = stored_risk_level(evaluation) or RiskLevel.MEDIUM
            previous = RiskLevel(previous_risk)
            if current == previous:
                return EventOutcome(triggered=False)

            result = await self.trigger_engine.process_trigger(
                TriggerEvent(
                    type=TriggerType.RISK_SCORE_CHANGE,
                    organization_id=organization_id,
                    metadata={
                        "previousRisk": previous.value,
                        "newRisk": current.value,
                        "score": evaluation.get("compliance_score"),
                    },
                )
            )
            return EventOutcome(triggered=True, result=result)
        except Exception as e:
            logger.exception(
                "score_monitoring_failed",
                organization_id=organization_id,
                error=str(e),
            )
            return EventOutcome(triggered=False, error=str(e) or type(e).__name__)
