"""
Automation Trigger Routes
=========================

Manual triggers and record-change events for the caller's organization.

Version: 0.1.0
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends

from services.automation.models import (
    AutomationOutcomeSchema,
    AutomationResultSchema,
    DatabaseEvent,
    EventRequest,
    TriggerEvent,
    TriggerRequest,
)
from services.automation.repository import (
    AutomationRepository,
    ScopeFactory,
    get_automation_repository,
    get_scope_factory,
)
from services.automation.services.integration import dispatch_event
from services.automation.services.trigger import TriggerEngine
from shared.auth import User, get_organization_user
from shared.logging import get_logger


logger = get_logger(__name__)

router = APIRouter()


@router.post("/triggers", response_model=AutomationResultSchema)
async def run_trigger(
    request: TriggerRequest,
    current_user: User = Depends(get_organization_user),
    repository: AutomationRepository = Depends(get_automation_repository),
) -> AutomationResultSchema:
    """
    Fire a trigger manually.

    Manual triggers ignore the scheduled idempotency flags.
    """
    logger.info(
        "manual_trigger_requested",
        trigger_type=request.trigger_type.value,
        organization_id=current_user.organization_id,
        user_id=current_user.id,
    )

    result = await TriggerEngine(repository).process_trigger(
        TriggerEvent(
            type=request.trigger_type,
            organization_id=current_user.organization_id,
            entity_id=request.entity_id,
            entity_type=request.entity_type,
            metadata=request.metadata,
        )
    )
    return AutomationResultSchema(**asdict(result))


@router.post("/events", response_model=AutomationOutcomeSchema)
async def report_event(
    request: EventRequest,
    current_user: User = Depends(get_organization_user),
    scope_factory: ScopeFactory = Depends(get_scope_factory),
) -> AutomationOutcomeSchema:
    """Report a record change; failures come back in the outcome."""
    outcome = await dispatch_event(
        DatabaseEvent(
            type=request.event_type,
            organization_id=current_user.organization_id,
            entity_id=request.entity_id,
            entity_type=request.entity_type,
            metadata=request.metadata,
        ),
        scope_factory,
    )
    return AutomationOutcomeSchema(**asdict(outcome))
