"""
Automation Integration Helpers
==============================

Entry points that primary actions call after their own write succeeded.

Usage:
    outcome = await notify_evidence_uploaded(org_id, evidence_id)
    if not outcome.ok:
        ...  # the failure is already logged and dead-lettered

None of these helpers raise. A failure is logged and stored in
``org_automation_failures``; if that write fails too it is only logged.

Version: 0.1.0
"""

from typing import Any

from services.automation.models import AutomationOutcome, DatabaseEvent, EventType
from services.automation.repository import ScopeFactory, automation_scope
from services.automation.services.events import EventProcessor
from shared.logging import get_logger


logger = get_logger(__name__)


async def _record_failure(
    event: DatabaseEvent, error: str, scope_factory: ScopeFactory
) -> None:
    try:
        async with scope_factory() as repo:
            await repo.record_failure(
                {
                    "organization_id": event.organization_id,
                    "event_type": event.type.value,
                    "entity_id": event.entity_id,
                    "entity_type": event.entity_type,
                    "error_message": error,
                    "payload": event.metadata,
                }
            )
    except Exception as e:
        logger.error(
            "dead_letter_write_failed",
            event_type=event.type.value,
            organization_id=event.organization_id,
            entity_id=event.entity_id,
            error=str(e),
        )


async def dispatch_event(
    event: DatabaseEvent,
    scope_factory: ScopeFactory = automation_scope,
) -> AutomationOutcome:
    """
    Run the event processor for one record change.

    Args:
        event: The record change
        scope_factory: Opens the repository scope the event runs in

    Returns:
        AutomationOutcome; ``ok`` is False when processing failed
    """
    try:
        async with scope_factory() as repo:
            outcome = await EventProcessor(repo).process_event(event)
    except Exception as e:
        error = str(e) or type(e).__name__
    else:
        if outcome.error is None:
            return AutomationOutcome(ok=True, triggered=outcome.triggered)
        error = outcome.error

    logger.error(
        "automation_dispatch_failed",
        event_type=event.type.value,
        organization_id=event.organization_id,
        entity_id=event.entity_id,
        error=error,
    )
    await _record_failure(event, error, scope_factory)
    return AutomationOutcome(ok=False, triggered=False, error=error)


# =============================================================================
# Convenience helpers
# =============================================================================


async def notify_evidence_uploaded(
    organization_id: str,
    evidence_id: str,
    scope_factory: ScopeFactory = automation_scope,
) -> AutomationOutcome:
    return await dispatch_event(
        DatabaseEvent(
            type=EventType.EVIDENCE_UPLOADED,
            organization_id=organization_id,
            entity_id=evidence_id,
            entity_type="evidence",
        ),
        scope_factory,
    )


async def notify_evidence_reviewed(
    organization_id: str,
    evidence_id: str,
    approved: bool,
    scope_factory: ScopeFactory = automation_scope,
) -> AutomationOutcome:
    """Report an evidence verification decision."""
    return await dispatch_event(
        DatabaseEvent(
            type=EventType.EVIDENCE_VERIFIED if approved else EventType.EVIDENCE_REJECTED,
            organization_id=organization_id,
            entity_id=evidence_id,
            entity_type="evidence",
        ),
        scope_factory,
    )


async def notify_control_status_changed(
    organization_id: str,
    control_id: str,
    new_status: str,
    previous_status: str | None = None,
    scope_factory: ScopeFactory = automation_scope,
) -> AutomationOutcome:
    return await dispatch_event(
        DatabaseEvent(
            type=EventType.CONTROL_STATUS_UPDATED,
            organization_id=organization_id,
            entity_id=control_id,
            entity_type="control",
            metadata={"newStatus": new_status, "previousStatus": previous_status},
        ),
        scope_factory,
    )


async def notify_task_completed(
    organization_id: str,
    task_id: str,
    scope_factory: ScopeFactory = automation_scope,
) -> AutomationOutcome:
    return await dispatch_event(
        DatabaseEvent(
            type=EventType.TASK_COMPLETED,
            organization_id=organization_id,
            entity_id=task_id,
            entity_type="task",
        ),
        scope_factory,
    )


async def notify_task_created(
    organization_id: str,
    task_id: str,
    scope_factory: ScopeFactory = automation_scope,
) -> AutomationOutcome:
    return await dispatch_event(
        DatabaseEvent(
            type=EventType.TASK_CREATED,
            organization_id=organization_id,
            entity_id=task_id,
            entity_type="task",
        ),
        scope_factory,
    )


async def notify_policy_status_changed(
    organization_id: str,
    policy_id: str,
    status: str | None = None,
    scope_factory: ScopeFactory = automation_scope,
) -> AutomationOutcome:
    metadata: dict[str, Any] = {"status": status} if status else {}
    return await dispatch_event(
        DatabaseEvent(
            type=EventType.POLICY_STATUS_UPDATED,
            organization_id=organization_id,
            entity_id=policy_id,
            entity_type="policy",
            metadata=metadata,
        ),
        scope_factory,
    )


async def notify_onboarding_completed(
    organization_id: str,
    scope_factory: ScopeFactory = automation_scope,
) -> AutomationOutcome:
    return await dispatch_event(
        DatabaseEvent(
            type=EventType.ONBOARDING_COMPLETED,
            organization_id=organization_id,
            entity_id=organization_id,
            entity_type="organization",
        ),
        scope_factory,
    )
