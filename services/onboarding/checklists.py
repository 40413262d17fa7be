"""
Industry Checklists
===================

Builds onboarding checklists from industry roadmaps and evaluates them
against an organization's activity counts.

Every function here is pure: no database access, no clock.

Version: 0.1.0
"""

from services.onboarding.models import (
    ChecklistCompletionCounts,
    ChecklistItem,
    ChecklistProgress,
    CompletionSummary,
    CompletionTally,
    IndustryRoadmap,
    RoadmapStep,
    StepCategory,
    StepPriority,
)
from services.onboarding.roadmaps import get_roadmap_for_industry


CHECKLIST_PHASES = 2
CHECKLIST_MAX_ITEMS = 8

DEFAULT_COMPLETION_KEY = "tasks"

STEP_COMPLETION_KEYS: dict[str, str] = {
    # Organization profile
    "provider-details": "orgProfile",
    "practice-details": "orgProfile",
    "org-details": "orgProfile",
    "service-details": "orgProfile",
    "organization-details": "orgProfile",
    "multi-site-governance": "orgProfile",
    # Team
    "staff-setup": "members",
    "team-setup": "members",
    "clinician-setup": "members",
    "educator-setup": "members",
    "department-creation": "members",
    "business-unit-linking": "members",
    # Care recipients
    "participant-onboarding": "patients",
    "resident-system": "patients",
    "child-enrollment": "patients",
    "client-system": "patients",
    # Frameworks
    "framework-provision": "frameworks",
    "racgp-framework": "frameworks",
    "soc2-activation": "frameworks",
    "iso27001-activation": "frameworks",
    "iso27001-framework": "frameworks",
    "soc2-framework": "frameworks",
    "quality-framework": "frameworks",
    "nqf-framework": "frameworks",
    "shared-controls": "frameworks",
    # Policies
    "policy-library": "policies",
    "policy-lifecycle": "policies",
    # Evidence
    "evidence-capture": "evidence",
    "evidence-vault": "evidence",
    "consolidated-evidence": "evidence",
    # Incidents
    "incident-system": "incidents",
    "incident-logging": "incidents",
    "sirs-reporting": "incidents",
    # Registers
    "location-setup": "registers",
    "credential-register": "registers",
    "ahpra-tracking": "registers",
    "risk-registers": "registers",
    "vendor-risk": "registers",
    "vendor-security": "registers",
    "wwcc-tracking": "registers",
    "clearance-tracking": "registers",
    # Compliance review
    "compliance-scoring": "complianceChecks",
    "compliance-dashboard": "complianceChecks",
    "compliance-review": "complianceChecks",
    "compliance-dashboards": "complianceChecks",
    "compliance-intelligence": "complianceChecks",
    "multi-site-dashboards": "complianceChecks",
    "cross-site-scoring": "complianceChecks",
    "risk-intelligence": "complianceChecks",
    "executive-dashboard": "complianceChecks",
    "control-deduplication": "complianceChecks",
    # Reports
    "audit-export": "reports",
    "accreditation-export": "reports",
    "auditor-sharing": "reports",
    "auditor-portal": "reports",
    "trust-reporting": "reports",
    "security-posture": "reports",
    "audit-readiness": "reports",
    "enterprise-audit-export": "reports",
    "board-reporting": "reports",
    "qip-review": "reports",
    # Workflows
    "staff-credential-tracking": "workflows",
    "credential-tracking": "workflows",
    "participant-workflows": "workflows",
    "quality-improvement": "workflows",
    "evidence-expiry": "workflows",
    "control-monitoring": "workflows",
    "devops-workflows": "workflows",
    "change-management": "workflows",
    "access-control": "workflows",
    "staff-rosters": "workflows",
    "food-safety": "workflows",
    "automation-setup": "workflows",
    "evacuation-plans": "workflows",
    "program-monitoring": "workflows",
}

# Completion key -> (counts attribute, minimum count)
_COUNT_THRESHOLDS: dict[str, tuple[str, int]] = {
    "members": ("members", 2),
    "patients": ("patients", 1),
    "frameworks": ("frameworks", 1),
    "policies": ("policies", 3),
    "evidence": ("evidence", 1),
    "incidents": ("incidents", 1),
    "registers": ("registers", 1),
    "complianceChecks": ("compliance_checks", 1),
    "reports": ("reports", 1),
    "workflows": ("workflows", 1),
    "tasks": ("tasks", 3),
}


def get_completion_key_for_step(step: RoadmapStep) -> str:
    return STEP_COMPLETION_KEYS.get(step.id, DEFAULT_COMPLETION_KEY)


def is_key_complete(
    key: str,
    counts: ChecklistCompletionCounts,
    min_count: int | None = None,
) -> bool:
    """
    Check one completion key against the counts.

    ``orgProfile`` is a flag. Unknown keys are treated as ``tasks``.
    """
    if key == "orgProfile":
        return counts.org_profile_complete

    attribute, threshold = _COUNT_THRESHOLDS.get(key, _COUNT_THRESHOLDS[DEFAULT_COMPLETION_KEY])
    if min_count is not None:
        threshold = min_count
    return getattr(counts, attribute) >= threshold


def is_item_complete(item: ChecklistItem, counts: ChecklistCompletionCounts) -> bool:
    return is_key_complete(item.completion_key, counts, item.min_count)


def _item_from_step(step: RoadmapStep) -> ChecklistItem:
    return ChecklistItem(
        id=step.id,
        label=step.title,
        description=step.description,
        href=step.cta_href,
        category=step.category,
        priority=step.priority,
        estimated_minutes=step.estimated_minutes,
        automation_trigger=step.automation_trigger,
        completion_key=get_completion_key_for_step(step),
    )


def generate_industry_checklist(industry_id: str | None) -> list[ChecklistItem]:
    """
    Generate the onboarding checklist for an industry.

    Takes the critical then high priority steps of each of the first two
    roadmap phases and keeps the first eight.
    """
    roadmap = get_roadmap_for_industry(industry_id)

    priority_steps: list[RoadmapStep] = []
    for phase in roadmap.phases[:CHECKLIST_PHASES]:
        priority_steps.extend(s for s in phase.steps if s.priority == StepPriority.CRITICAL)
        priority_steps.extend(s for s in phase.steps if s.priority == StepPriority.HIGH)

    return [_item_from_step(step) for step in priority_steps[:CHECKLIST_MAX_ITEMS]]


def get_checklist_progress(
    checklist: list[ChecklistItem],
    counts: ChecklistCompletionCounts,
) -> ChecklistProgress:
    completed: list[str] = []
    pending: list[str] = []

    for item in checklist:
        if is_item_complete(item, counts):
            completed.append(item.id)
        else:
            pending.append(item.id)

    total = len(checklist)
    # Half-up rounding; progress is never negative
    progress = 0 if total == 0 else int(len(completed) * 100 / total + 0.5)

    return ChecklistProgress(
        completed_count=len(completed),
        total_count=total,
        progress=progress,
        completed_items=completed,
        pending_items=pending,
    )


def get_completed_roadmap_steps(
    roadmap: IndustryRoadmap,
    counts: ChecklistCompletionCounts,
) -> list[str]:
    """Ids of every roadmap step (all phases) already satisfied by the counts."""
    return [
        step.id
        for phase in roadmap.phases
        for step in phase.steps
        if is_key_complete(get_completion_key_for_step(step), counts)
    ]


def get_next_action(
    checklist: list[ChecklistItem],
    counts: ChecklistCompletionCounts,
) -> ChecklistItem | None:
    for item in checklist:
        if not is_item_complete(item, counts):
            return item
    return None


def get_items_by_category(
    checklist: list[ChecklistItem],
    category: StepCategory,
) -> list[ChecklistItem]:
    return [item for item in checklist if item.category == category]


def get_items_by_priority(
    checklist: list[ChecklistItem],
    priority: StepPriority,
) -> list[ChecklistItem]:
    return [item for item in checklist if item.priority == priority]


def estimate_time_to_completion(
    checklist: list[ChecklistItem],
    counts: ChecklistCompletionCounts,
) -> int:
    """Minutes of work left across incomplete items."""
    return sum(
        item.estimated_minutes
        for item in checklist
        if not is_item_complete(item, counts)
    )


def get_completion_summary(
    checklist: list[ChecklistItem],
    counts: ChecklistCompletionCounts,
) -> CompletionSummary:
    by_category = {category.value: CompletionTally() for category in StepCategory}
    by_priority = {priority.value: CompletionTally() for priority in StepPriority}

    for item in checklist:
        complete = is_item_complete(item, counts)
        for tally in (by_category[item.category.value], by_priority[item.priority.value]):
            tally.total += 1
            if complete:
                tally.completed += 1

    return CompletionSummary(
        by_category=by_category,
        by_priority=by_priority,
        overall_progress=get_checklist_progress(checklist, counts).progress,
    )


def get_generic_checklist() -> list[ChecklistItem]:
    """Fallback checklist used when no industry has been selected."""
    return [
        ChecklistItem(
            id="team-invite",
            label="Invite your first team member",
            description="Bring your compliance team into FormaOS",
            href="/app/team",
            category=StepCategory.SETUP,
            priority=StepPriority.HIGH,
            estimated_minutes=5,
            completion_key="members",
        ),
        ChecklistItem(
            id="framework-selection",
            label="Activate a compliance framework",
            description="Choose ISO 27001, SOC 2, GDPR, or another framework",
            href="/app/compliance/frameworks",
            category=StepCategory.COMPLIANCE,
            priority=StepPriority.CRITICAL,
            estimated_minutes=10,
            completion_key="frameworks",
            automation_trigger="framework_activated",
        ),
        ChecklistItem(
            id="first-task",
            label="Create your first compliance task",
            description="Add a compliance requirement and assign an owner",
            href="/app/tasks",
            category=StepCategory.OPERATIONAL,
            priority=StepPriority.HIGH,
            estimated_minutes=10,
            completion_key="tasks",
            min_count=1,
        ),
        ChecklistItem(
            id="first-evidence",
            label="Upload first compliance evidence",
            description="Store a compliance artifact in the evidence vault",
            href="/app/vault",
            category=StepCategory.OPERATIONAL,
            priority=StepPriority.HIGH,
            estimated_minutes=10,
            completion_key="evidence",
            automation_trigger="evidence_uploaded",
        ),
        ChecklistItem(
            id="policy-review",
            label="Review pre-loaded policies",
            description="Customize and approve policies from your template library",
            href="/app/policies",
            category=StepCategory.COMPLIANCE,
            priority=StepPriority.MEDIUM,
            estimated_minutes=30,
            completion_key="policies",
            min_count=1,
        ),
        ChecklistItem(
            id="compliance-check",
            label="Review compliance dashboard",
            description="Check live compliance scores and identify gaps",
            href="/app",
            category=StepCategory.READINESS,
            priority=StepPriority.HIGH,
            estimated_minutes=10,
            completion_key="complianceChecks",
        ),
        ChecklistItem(
            id="first-report",
            label="Generate your first audit report",
            description="Export a compliance snapshot for stakeholders",
            href="/app/reports",
            category=StepCategory.READINESS,
            priority=StepPriority.MEDIUM,
            estimated_minutes=5,
            completion_key="reports",
        ),
    ]
