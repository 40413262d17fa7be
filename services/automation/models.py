"""
Automation Models
=================

Enums, dataclasses and API schemas shared by the automation engines.

Version: 0.1.0
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


# =============================================================================
# Enums
# =============================================================================


class RiskLevel(str, Enum):
    """Compliance risk tier."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def ordinal(self) -> int:
        return _RISK_ORDER.index(self)


_RISK_ORDER = [RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.CRITICAL]


class TriggerType(str, Enum):
    """Compliance events handled by the trigger engine."""

    EVIDENCE_EXPIRY = "evidence_expiry"
    POLICY_REVIEW_DUE = "policy_review_due"
    CONTROL_FAILED = "control_failed"
    CONTROL_INCOMPLETE = "control_incomplete"
    ORG_ONBOARDING = "org_onboarding"
    RISK_SCORE_CHANGE = "risk_score_change"
    TASK_OVERDUE = "task_overdue"
    CERTIFICATION_EXPIRING = "certification_expiring"


class EventType(str, Enum):
    """Record changes reported to the event processor."""

    EVIDENCE_UPLOADED = "evidence_uploaded"
    EVIDENCE_VERIFIED = "evidence_verified"
    EVIDENCE_REJECTED = "evidence_rejected"
    CONTROL_STATUS_UPDATED = "control_status_updated"
    TASK_COMPLETED = "task_completed"
    TASK_CREATED = "task_created"
    POLICY_STATUS_UPDATED = "policy_status_updated"
    SUBSCRIPTION_ACTIVATED = "subscription_activated"
    ONBOARDING_COMPLETED = "onboarding_completed"


class TaskPriority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    STANDARD = "standard"
    LOW = "low"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class MemberRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    COMPLIANCE_OFFICER = "compliance_officer"
    MEMBER = "member"
    VIEWER = "viewer"


class ControlStatus(str, Enum):
    COMPLIANT = "compliant"
    AT_RISK = "at_risk"
    NON_COMPLIANT = "non_compliant"
    NOT_STARTED = "not_started"


class ScheduledCheck(str, Enum):
    """Scans run by the scheduled processor."""

    EVIDENCE = "evidence"
    POLICIES = "policies"
    TASKS = "tasks"
    CERTIFICATIONS = "certifications"
    SCORES = "scores"


class ClaimFlag(str, Enum):
    """Idempotency flags claimed by the scheduled scans, keyed by table."""

    EVIDENCE_RENEWAL = "org_evidence.renewal_task_created"
    POLICY_REVIEW = "org_policies.review_task_created"
    TASK_ESCALATION = "org_tasks.escalation_sent"
    CERTIFICATION_RENEWAL = "org_certifications.renewal_task_created"

    @property
    def table(self) -> str:
        return self.value.split(".")[0]

    @property
    def column(self) -> str:
        return self.value.split(".")[1]


ROLES_ALL_OFFICERS = [MemberRole.OWNER, MemberRole.ADMIN, MemberRole.COMPLIANCE_OFFICER]
ROLES_ADMINS = [MemberRole.OWNER, MemberRole.ADMIN]


# =============================================================================
# Engine Records
# =============================================================================


@dataclass
class TriggerEvent:
    """A typed automation event."""

    type: TriggerType
    organization_id: str
    entity_id: str | None = None
    entity_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    triggered_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class AutomationResult:
    """Counters and collected errors from one trigger run."""

    tasks_created: int = 0
    notifications_sent: int = 0
    workflows_executed: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class DatabaseEvent:
    """A record change reported by a primary action."""

    type: EventType
    organization_id: str
    entity_id: str
    entity_type: str
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class EventOutcome:
    """Result of processing one record change."""

    triggered: bool
    result: AutomationResult | None = None
    error: str | None = None


@dataclass
class ScheduledRunResult:
    checks_run: int = 0
    triggers_executed: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class CheckResult:
    """Outcome of a single scheduled scan."""

    triggers: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class AutomationOutcome:
    """What an integration helper reports back to its caller."""

    ok: bool
    triggered: bool = False
    error: str | None = None


# =============================================================================
# Score Records
# =============================================================================


@dataclass
class ScoreDetails:
    """Breakdown counters behind a compliance score."""

    total_controls: int = 0
    compliant_controls: int = 0
    at_risk_controls: int = 0
    non_compliant_controls: int = 0
    total_evidence: int = 0
    verified_evidence: int = 0
    pending_evidence: int = 0
    rejected_evidence: int = 0
    total_tasks: int = 0
    completed_tasks: int = 0
    overdue_tasks: int = 0
    total_policies: int = 0
    approved_policies: int = 0
    draft_policies: int = 0


@dataclass
class ComplianceScoreResult:
    organization_id: str
    overall_score: int
    controls_score: int
    evidence_score: int
    tasks_score: int
    policies_score: int
    risk_level: RiskLevel
    details: ScoreDetails
    calculated_at: datetime


# =============================================================================
# API Schemas
# =============================================================================


class ScoreBreakdownSchema(BaseModel):
    controls: int
    evidence: int
    tasks: int
    policies: int


class ComplianceScoreSchema(BaseModel):
    """Compliance score response."""

    organization_id: str
    overall_score: int = Field(..., ge=0, le=100)
    controls_score: int = Field(..., ge=0, le=100)
    evidence_score: int = Field(..., ge=0, le=100)
    tasks_score: int = Field(..., ge=0, le=100)
    policies_score: int = Field(..., ge=0, le=100)
    risk_level: RiskLevel
    details: dict[str, int]
    calculated_at: datetime


class ComplianceSummarySchema(BaseModel):
    """Dashboard summary of the stored evaluation."""

    score: int
    risk_level: RiskLevel
    last_updated: datetime | None = None
    breakdown: ScoreBreakdownSchema


class TriggerRequest(BaseModel):
    """Manual trigger request."""

    trigger_type: TriggerType
    entity_id: str | None = None
    entity_type: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class EventRequest(BaseModel):
    """Record change reported over HTTP."""

    event_type: EventType
    entity_id: str
    entity_type: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class AutomationResultSchema(BaseModel):
    tasks_created: int
    notifications_sent: int
    workflows_executed: int
    errors: list[str]


class AutomationOutcomeSchema(BaseModel):
    ok: bool
    triggered: bool
    error: str | None = None


class ScheduledRunSchema(BaseModel):
    checks_run: int
    triggers_executed: int
    errors: list[str]
