"""
Onboarding Models
=================

Pydantic models for roadmaps, checklist items, and progress reports.

Version: 0.1.0
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class StepPriority(str, Enum):
    """Roadmap step priority."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class StepCategory(str, Enum):
    """Roadmap step category."""

    SETUP = "setup"
    COMPLIANCE = "compliance"
    OPERATIONAL = "operational"
    READINESS = "readiness"


class RoadmapStep(BaseModel):
    """A single actionable step inside a roadmap phase."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str
    cta: str
    cta_href: str
    priority: StepPriority
    category: StepCategory
    estimated_minutes: int
    automation_trigger: str | None = None


class RoadmapPhase(BaseModel):
    """Ordered group of steps."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str
    estimated_days: int
    steps: tuple[RoadmapStep, ...]


class IndustryRoadmap(BaseModel):
    """Onboarding roadmap for one industry."""

    model_config = ConfigDict(frozen=True)

    industry_id: str
    industry_name: str
    tagline: str
    estimated_time_to_operational: str
    key_frameworks: tuple[str, ...]
    phases: tuple[RoadmapPhase, ...]


class ChecklistCompletionCounts(BaseModel):
    """
    Activity counts for an organization.

    Accepts both snake_case and the camelCase keys sent by the dashboard.
    """

    model_config = ConfigDict(populate_by_name=True)

    tasks: int = Field(default=0, ge=0)
    evidence: int = Field(default=0, ge=0)
    members: int = Field(default=0, ge=0)
    compliance_checks: int = Field(default=0, ge=0, alias="complianceChecks")
    reports: int = Field(default=0, ge=0)
    frameworks: int = Field(default=0, ge=0)
    policies: int = Field(default=0, ge=0)
    incidents: int = Field(default=0, ge=0)
    registers: int = Field(default=0, ge=0)
    workflows: int = Field(default=0, ge=0)
    patients: int = Field(default=0, ge=0)
    org_profile_complete: bool = Field(default=False, alias="orgProfileComplete")


class ChecklistItem(BaseModel):
    """
    Onboarding checklist entry.

    ``min_count`` overrides the default threshold for ``completion_key``.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    description: str
    href: str
    category: StepCategory
    priority: StepPriority
    estimated_minutes: int
    completion_key: str
    automation_trigger: str | None = None
    min_count: int | None = None


class ChecklistProgress(BaseModel):
    """Completion state of a checklist."""

    completed_count: int
    total_count: int
    progress: int
    completed_items: list[str]
    pending_items: list[str]


class CompletionTally(BaseModel):
    """Completed vs total counter for one bucket."""

    completed: int = 0
    total: int = 0


class CompletionSummary(BaseModel):
    """Checklist completion grouped by category and priority."""

    by_category: dict[str, CompletionTally]
    by_priority: dict[str, CompletionTally]
    overall_progress: int


class IndustryInfo(BaseModel):
    """Industry listing entry."""

    industry_id: str
    industry_name: str
    tagline: str
    estimated_time_to_operational: str
    key_frameworks: list[str]
    total_steps: int
    total_estimated_days: int


class ChecklistResponse(BaseModel):
    """Checklist for an industry plus its roadmap."""

    industry_id: str
    roadmap: IndustryRoadmap
    items: list[ChecklistItem]


class ProgressRequest(BaseModel):
    """Progress request body."""

    industry: str | None = None
    counts: ChecklistCompletionCounts = Field(default_factory=ChecklistCompletionCounts)


class ProgressResponse(BaseModel):
    """Progress report for an organization's onboarding."""

    industry_id: str
    progress: ChecklistProgress
    summary: CompletionSummary
    next_action: ChecklistItem | None
    estimated_minutes_remaining: int
    completed_roadmap_steps: list[str]
