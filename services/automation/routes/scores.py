"""
Compliance Score Routes
=======================

Score, recalculation and dashboard summary for the caller's organization.

Version: 0.1.0
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends

from services.automation.models import (
    ComplianceScoreResult,
    ComplianceScoreSchema,
    ComplianceSummarySchema,
)
from services.automation.repository import (
    AutomationRepository,
    get_automation_repository,
    summary_cache_key,
)
from services.automation.services.score import ComplianceScoreEngine
from shared.auth import User, get_organization_user
from shared.config import settings
from shared.database.redis import RedisClient
from shared.logging import get_logger


logger = get_logger(__name__)

router = APIRouter()


def _to_schema(result: ComplianceScoreResult) -> ComplianceScoreSchema:
    return ComplianceScoreSchema(
        organization_id=result.organization_id,
        overall_score=result.overall_score,
        controls_score=result.controls_score,
        evidence_score=result.evidence_score,
        tasks_score=result.tasks_score,
        policies_score=result.policies_score,
        risk_level=result.risk_level,
        details=asdict(result.details),
        calculated_at=result.calculated_at,
    )


@router.get("/score", response_model=ComplianceScoreSchema)
async def get_compliance_score(
    current_user: User = Depends(get_organization_user),
    repository: AutomationRepository = Depends(get_automation_repository),
) -> ComplianceScoreSchema:
    """
    Calculate the current compliance score.

    The score is computed from live data and not persisted.
    """
    result = await ComplianceScoreEngine(repository).calculate(current_user.organization_id)
    return _to_schema(result)


@router.post("/score/recalculate", response_model=ComplianceScoreSchema)
async def recalculate_compliance_score(
    current_user: User = Depends(get_organization_user),
    repository: AutomationRepository = Depends(get_automation_repository),
) -> ComplianceScoreSchema:
    """Recalculate and persist; the cached summary is dropped on commit."""
    organization_id = current_user.organization_id
    result = await ComplianceScoreEngine(repository).update(organization_id)

    logger.info(
        "compliance_score_recalculated",
        organization_id=organization_id,
        user_id=current_user.id,
        score=result.overall_score,
    )
    return _to_schema(result)


@router.get("/summary", response_model=ComplianceSummarySchema)
async def get_compliance_summary(
    current_user: User = Depends(get_organization_user),
    repository: AutomationRepository = Depends(get_automation_repository),
) -> ComplianceSummarySchema:
    """Dashboard summary of the stored evaluation."""
    cache_key = summary_cache_key(current_user.organization_id)
    cached = await RedisClient.get_cached(cache_key)
    if cached and isinstance(cached, dict):
        return ComplianceSummarySchema(**cached)

    summary = ComplianceSummarySchema(
        **await ComplianceScoreEngine(repository).get_compliance_summary(
            current_user.organization_id
        )
    )

    await RedisClient.set_cached(
        cache_key,
        summary.model_dump(mode="json"),
        ttl_seconds=settings.automation.summary_cache_ttl_seconds,
    )
    return summary
