"""
Onboarding Routes
=================

Read-only API over the industry roadmaps and checklist progress.

Version: 0.1.0
"""

from fastapi import APIRouter, Query

from services.onboarding.checklists import (
    estimate_time_to_completion,
    generate_industry_checklist,
    get_checklist_progress,
    get_completed_roadmap_steps,
    get_completion_summary,
    get_generic_checklist,
    get_next_action,
)
from services.onboarding.models import (
    ChecklistItem,
    ChecklistResponse,
    IndustryInfo,
    ProgressRequest,
    ProgressResponse,
)
from services.onboarding.roadmaps import (
    DEFAULT_ROADMAP,
    get_all_industries,
    get_roadmap_for_industry,
    get_total_estimated_days,
    get_total_steps,
)
from shared.logging import get_logger


logger = get_logger(__name__)

router = APIRouter()


def _checklist_for(industry: str | None) -> list[ChecklistItem]:
    if not industry or industry == DEFAULT_ROADMAP.industry_id:
        return get_generic_checklist()
    return generate_industry_checklist(industry)


@router.get("/industries", response_model=list[IndustryInfo])
async def list_industries() -> list[IndustryInfo]:
    """List every industry with a dedicated roadmap."""
    return [
        IndustryInfo(
            industry_id=roadmap.industry_id,
            industry_name=roadmap.industry_name,
            tagline=roadmap.tagline,
            estimated_time_to_operational=roadmap.estimated_time_to_operational,
            key_frameworks=list(roadmap.key_frameworks),
            total_steps=get_total_steps(roadmap),
            total_estimated_days=get_total_estimated_days(roadmap),
        )
        for roadmap in get_all_industries()
    ]


@router.get("/checklist", response_model=ChecklistResponse)
async def get_checklist(
    industry: str | None = Query(default=None, description="Industry ID"),
) -> ChecklistResponse:
    """
    Get the onboarding checklist for an industry.

    Without an industry (or for ``other``) the generic checklist is returned.
    """
    roadmap = get_roadmap_for_industry(industry)
    return ChecklistResponse(
        industry_id=roadmap.industry_id,
        roadmap=roadmap,
        items=_checklist_for(industry),
    )


@router.post("/progress", response_model=ProgressResponse)
async def get_progress(request: ProgressRequest) -> ProgressResponse:
    """Evaluate checklist progress for the supplied activity counts."""
    roadmap = get_roadmap_for_industry(request.industry)
    checklist = _checklist_for(request.industry)
    progress = get_checklist_progress(checklist, request.counts)

    logger.debug(
        "onboarding_progress_evaluated",
        industry_id=roadmap.industry_id,
        progress=progress.progress,
    )

    return ProgressResponse(
        industry_id=roadmap.industry_id,
        progress=progress,
        summary=get_completion_summary(checklist, request.counts),
        next_action=get_next_action(checklist, request.counts),
        estimated_minutes_remaining=estimate_time_to_completion(checklist, request.counts),
        completed_roadmap_steps=get_completed_roadmap_steps(roadmap, request.counts),
    )
