"""
Scheduled Automation Routes
===========================

Cron entry point for the full sweep, and an admin endpoint for one scan.

Version: 0.1.0
"""

import secrets
from dataclasses import asdict
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, status

from services.automation.models import ScheduledRunSchema
from services.automation.repository import ScopeFactory, get_scope_factory
from services.automation.services.scheduler import ScheduledProcessor
from shared.auth import User, require_org_admin
from shared.config import settings
from shared.database.redis import redis_lock
from shared.logging import get_logger


logger = get_logger(__name__)

router = APIRouter()

SWEEP_LOCK_KEY = "automation:scheduled"
SWEEP_LOCK_TIMEOUT_SECONDS = 600


def get_scheduled_processor(
    scope_factory: ScopeFactory = Depends(get_scope_factory),
) -> ScheduledProcessor:
    return ScheduledProcessor(scope_factory)


async def verify_cron_secret(
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """
    Check ``Authorization: Bearer <cron secret>``.

    Raises:
        HTTPException: 401 on a missing or wrong secret, or when no secret is configured
    """
    expected = settings.automation.cron_secret.get_secret_value()
    scheme, _, token = (authorization or "").partition(" ")

    if (
        not expected
        or scheme.lower() != "bearer"
        or not secrets.compare_digest(token.encode(), expected.encode())
    ):
        logger.warning("cron_auth_failed")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


@router.post("", response_model=ScheduledRunSchema, dependencies=[Depends(verify_cron_secret)])
async def run_scheduled_automation(
    processor: ScheduledProcessor = Depends(get_scheduled_processor),
) -> ScheduledRunSchema:
    """
    Run the full scheduled sweep.

    Only one sweep runs at a time; a concurrent call gets 409.
    """
    async with redis_lock(
        SWEEP_LOCK_KEY, timeout_seconds=SWEEP_LOCK_TIMEOUT_SECONDS, blocking=False
    ) as acquired:
        if not acquired:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Scheduled automation already running",
            )
        result = await processor.run_scheduled_automation()

    return ScheduledRunSchema(**asdict(result))


@router.post("/{check}", response_model=ScheduledRunSchema)
async def run_scheduled_check(
    check: str,
    current_user: User = Depends(require_org_admin),
    processor: ScheduledProcessor = Depends(get_scheduled_processor),
) -> ScheduledRunSchema:
    """Run one scan by name (owner or admin)."""
    try:
        result = await processor.run_scheduled_check(check)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        ) from e

    logger.info("scheduled_check_run", check=check, user_id=current_user.id)

    return ScheduledRunSchema(
        checks_run=1,
        triggers_executed=result.triggers,
        errors=result.errors,
    )
