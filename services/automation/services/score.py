"""
Compliance Score Engine
=======================

Computes an organization's compliance health score.

Score Components:
- Controls (40%): compliant 1.0, at risk 0.5, non-compliant 0.0
- Evidence (30%): verified 1.0, pending 0.3, rejected 0.0
- Tasks (20%): completion rate minus an overdue penalty
- Policies (10%): share of approved or published policies

Risk tier is derived from the overall score plus raw counters; the first
matching rule wins.

Version: 0.1.0
"""

import math
from collections.abc import Iterable
from dataclasses import asdict
from datetime import UTC, date, datetime, time
from typing import Any

from services.automation.models import (
    ComplianceScoreResult,
    ControlStatus,
    RiskLevel,
    ScoreDetails,
    TaskStatus,
)
from services.automation.repository import AutomationRepository
from shared.logging import get_logger


logger = get_logger(__name__)


# =============================================================================
# Score Configuration
# =============================================================================

CONTROL_WEIGHTS = {
    ControlStatus.COMPLIANT.value: 1.0,
    ControlStatus.AT_RISK.value: 0.5,
    ControlStatus.NON_COMPLIANT.value: 0.0,
}

EVIDENCE_WEIGHTS = {"verified": 1.0, "pending": 0.3, "rejected": 0.0}

CATEGORY_WEIGHTS = {
    "controls": 0.4,
    "evidence": 0.3,
    "tasks": 0.2,
    "policies": 0.1,
}

APPROVED_POLICY_STATUSES = frozenset({"approved", "published"})

OVERDUE_PENALTY = 20

EMPTY_CONTROLS_SCORE = 100
EMPTY_EVIDENCE_SCORE = 50
EMPTY_TASKS_SCORE = 100
EMPTY_POLICIES_SCORE = 50

_EVALUATION_STATUS = {
    RiskLevel.LOW: "compliant",
    RiskLevel.CRITICAL: "non_compliant",
}

_DETAIL_KEYS = {
    "total_controls": "totalControls",
    "compliant_controls": "compliantControls",
    "at_risk_controls": "atRiskControls",
    "non_compliant_controls": "nonCompliantControls",
    "total_evidence": "totalEvidence",
    "verified_evidence": "verifiedEvidence",
    "pending_evidence": "pendingEvidence",
    "rejected_evidence": "rejectedEvidence",
    "total_tasks": "totalTasks",
    "completed_tasks": "completedTasks",
    "overdue_tasks": "overdueTasks",
    "total_policies": "totalPolicies",
    "approved_policies": "approvedPolicies",
    "draft_policies": "draftPolicies",
}


def _round_half_up(value: float) -> int:
    """Round halves up (49.5 -> 50); inputs here are never negative."""
    return math.floor(value + 0.5)


def as_utc(value: datetime | date | str) -> datetime:
    """Normalize a stored timestamp or date to an aware UTC datetime."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


# =============================================================================
# Counting
# =============================================================================


def count_controls(statuses: Iterable[str | None]) -> dict[str, int]:
    statuses = list(statuses)
    return {
        "total": len(statuses),
        "compliant": sum(1 for s in statuses if s == ControlStatus.COMPLIANT.value),
        "at_risk": sum(1 for s in statuses if s == ControlStatus.AT_RISK.value),
        "non_compliant": sum(1 for s in statuses if s == ControlStatus.NON_COMPLIANT.value),
    }


def count_evidence(statuses: Iterable[str | None]) -> dict[str, int]:
    """Unset, empty and ``pending`` verification statuses all count as pending."""
    statuses = list(statuses)
    return {
        "total": len(statuses),
        "verified": sum(1 for s in statuses if s == "verified"),
        "pending": sum(1 for s in statuses if not s or s == "pending"),
        "rejected": sum(1 for s in statuses if s == "rejected"),
    }


def count_tasks(tasks: Iterable[dict[str, Any]], now: datetime) -> dict[str, int]:
    tasks = list(tasks)
    completed = 0
    overdue = 0
    for task in tasks:
        if task.get("status") == TaskStatus.COMPLETED.value:
            completed += 1
        elif task.get("due_date") and as_utc(task["due_date"]) < now:
            overdue += 1
    return {"total": len(tasks), "completed": completed, "overdue": overdue}


def count_policies(statuses: Iterable[str | None]) -> dict[str, int]:
    statuses = list(statuses)
    return {
        "total": len(statuses),
        "approved": sum(1 for s in statuses if s in APPROVED_POLICY_STATUSES),
        "draft": sum(1 for s in statuses if s == "draft"),
    }


# =============================================================================
# Sub-scores
# =============================================================================


def calculate_controls_score(total: int, compliant: int, at_risk: int, non_compliant: int) -> int:
    if total == 0:
        return EMPTY_CONTROLS_SCORE
    weighted = (
        compliant * CONTROL_WEIGHTS["compliant"]
        + at_risk * CONTROL_WEIGHTS["at_risk"]
        + non_compliant * CONTROL_WEIGHTS["non_compliant"]
    ) / total
    return _clamp(_round_half_up(weighted * 100))


def calculate_evidence_score(total: int, verified: int, pending: int, rejected: int) -> int:
    if total == 0:
        return EMPTY_EVIDENCE_SCORE
    weighted = (
        verified * EVIDENCE_WEIGHTS["verified"]
        + pending * EVIDENCE_WEIGHTS["pending"]
        + rejected * EVIDENCE_WEIGHTS["rejected"]
    ) / total
    return _clamp(_round_half_up(weighted * 100))


def calculate_tasks_score(total: int, completed: int, overdue: int) -> int:
    if total == 0:
        return EMPTY_TASKS_SCORE
    completion_rate = completed / total
    overdue_rate = overdue / total
    raw = completion_rate * 100 - overdue_rate * OVERDUE_PENALTY
    # Clamp before rounding so negative raw scores floor at zero
    return _round_half_up(max(0.0, min(100.0, raw)))


def calculate_policies_score(total: int, approved: int) -> int:
    if total == 0:
        return EMPTY_POLICIES_SCORE
    return _clamp(_round_half_up(approved / total * 100))


def calculate_overall_score(controls: int, evidence: int, tasks: int, policies: int) -> int:
    weighted = (
        controls * CATEGORY_WEIGHTS["controls"]
        + evidence * CATEGORY_WEIGHTS["evidence"]
        + tasks * CATEGORY_WEIGHTS["tasks"]
        + policies * CATEGORY_WEIGHTS["policies"]
    )
    return _clamp(_round_half_up(weighted))


def determine_risk_level(
    score: int,
    overdue_tasks: int,
    non_compliant_controls: int,
    rejected_evidence: int,
) -> RiskLevel:
    if (
        score < 40
        or non_compliant_controls > 5
        or (overdue_tasks > 10 and rejected_evidence > 3)
    ):
        return RiskLevel.CRITICAL
    if score < 60 or non_compliant_controls > 2 or overdue_tasks > 5:
        return RiskLevel.HIGH
    if score < 80 or overdue_tasks > 2:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def _clamp(value: int) -> int:
    return max(0, min(100, value))


def evaluation_status(risk_level: RiskLevel) -> str:
    """Evaluation row status for a risk tier."""
    return _EVALUATION_STATUS.get(risk_level, "at_risk")


def build_score_result(
    organization_id: str,
    control_statuses: Iterable[str | None],
    evidence_statuses: Iterable[str | None],
    task_states: Iterable[dict[str, Any]],
    policy_statuses: Iterable[str | None],
    now: datetime,
) -> ComplianceScoreResult:
    """Pure scoring over already-fetched rows."""
    controls = count_controls(control_statuses)
    evidence = count_evidence(evidence_statuses)
    tasks = count_tasks(task_states, now)
    policies = count_policies(policy_statuses)

    controls_score = calculate_controls_score(
        controls["total"], controls["compliant"], controls["at_risk"], controls["non_compliant"]
    )
    evidence_score = calculate_evidence_score(
        evidence["total"], evidence["verified"], evidence["pending"], evidence["rejected"]
    )
    tasks_score = calculate_tasks_score(tasks["total"], tasks["completed"], tasks["overdue"])
    policies_score = calculate_policies_score(policies["total"], policies["approved"])

    overall = calculate_overall_score(controls_score, evidence_score, tasks_score, policies_score)

    risk_level = determine_risk_level(
        overall,
        overdue_tasks=tasks["overdue"],
        non_compliant_controls=controls["non_compliant"],
        rejected_evidence=evidence["rejected"],
    )

    return ComplianceScoreResult(
        organization_id=organization_id,
        overall_score=overall,
        controls_score=controls_score,
        evidence_score=evidence_score,
        tasks_score=tasks_score,
        policies_score=policies_score,
        risk_level=risk_level,
        details=ScoreDetails(
            total_controls=controls["total"],
            compliant_controls=controls["compliant"],
            at_risk_controls=controls["at_risk"],
            non_compliant_controls=controls["non_compliant"],
            total_evidence=evidence["total"],
            verified_evidence=evidence["verified"],
            pending_evidence=evidence["pending"],
            rejected_evidence=evidence["rejected"],
            total_tasks=tasks["total"],
            completed_tasks=tasks["completed"],
            overdue_tasks=tasks["overdue"],
            total_policies=policies["total"],
            approved_policies=policies["approved"],
            draft_policies=policies["draft"],
        ),
        calculated_at=now,
    )


# =============================================================================
# Score Engine
# =============================================================================


class ComplianceScoreEngine:
    """
    Calculates, persists and summarizes organization compliance scores.

    The engine owns the single ``org_control_evaluations`` row per
    organization. Concurrent recomputes are last-write-wins; every write
    bumps the row's version.
    """

    def __init__(self, repository: AutomationRepository) -> None:
        self.repository = repository

    async def calculate(
        self,
        organization_id: str,
        now: datetime | None = None,
    ) -> ComplianceScoreResult:
        """
        Calculate the compliance score for an organization.

        Args:
            organization_id: Organization UUID
            now: Reference time for overdue checks (defaults to the current time)

        Returns:
            ComplianceScoreResult with sub-scores, risk tier and breakdown
        """
        now = now or datetime.now(UTC)
        repo = self.repository

        return build_score_result(
            organization_id,
            control_statuses=await repo.fetch_control_statuses(organization_id),
            evidence_statuses=await repo.fetch_evidence_statuses(organization_id),
            task_states=await repo.fetch_task_states(organization_id),
            policy_statuses=await repo.fetch_policy_statuses(organization_id),
            now=now,
        )

    async def save(self, result: ComplianceScoreResult) -> int:
        """Upsert the evaluation row; returns the stored version."""
        details: dict[str, Any] = {
            "controlsScore": result.controls_score,
            "evidenceScore": result.evidence_score,
            "tasksScore": result.tasks_score,
            "policiesScore": result.policies_score,
            "riskLevel": result.risk_level.value,
        }
        details.update(
            {_DETAIL_KEYS[key]: value for key, value in asdict(result.details).items()}
        )

        version = await self.repository.upsert_evaluation(
            result.organization_id,
            {
                "compliance_score": result.overall_score,
                "total_controls": result.details.total_controls,
                "satisfied_controls": result.details.compliant_controls,
                "missing_controls": result.details.non_compliant_controls,
                "status": evaluation_status(result.risk_level),
                "details": details,
                "last_evaluated_at": result.calculated_at,
            },
        )

        logger.info(
            "compliance_score_saved",
            organization_id=result.organization_id,
            score=result.overall_score,
            risk_level=result.risk_level.value,
            version=version,
        )
        return version

    async def update(
        self,
        organization_id: str,
        now: datetime | None = None,
    ) -> ComplianceScoreResult:
        """Calculate and save in one step."""
        result = await self.calculate(organization_id, now=now)
        await self.save(result)
        return result

    async def get_compliance_summary(self, organization_id: str) -> dict[str, Any]:
        """
        Summarize the stored evaluation, computing one first if none exists.

        Returns:
            dict with score, risk_level, last_updated and breakdown
        """
        evaluation = await self.repository.get_evaluation(organization_id)

        if evaluation is None:
            result = await self.update(organization_id)
            return {
                "score": result.overall_score,
                "risk_level": result.risk_level,
                "last_updated": result.calculated_at,
                "breakdown": {
                    "controls": result.controls_score,
                    "evidence": result.evidence_score,
                    "tasks": result.tasks_score,
                    "policies": result.policies_score,
                },
            }

        details = evaluation.get("details") or {}
        return {
            "score": int(evaluation.get("compliance_score") or 0),
            "risk_level": RiskLevel(details.get("riskLevel", RiskLevel.MEDIUM.value)),
            "last_updated": evaluation.get("last_evaluated_at"),
            "breakdown": {
                "controls": int(details.get("controlsScore", 0)),
                "evidence": int(details.get("evidenceScore", 0)),
                "tasks": int(details.get("tasksScore", 0)),
                "policies": int(details.get("policiesScore", 0)),
            },
        }


def stored_risk_level(evaluation: dict[str, Any] | None) -> RiskLevel | None:
    """Risk tier recorded on an evaluation row, if any."""
    if not evaluation:
        return None
    details = evaluation.get("details") or {}
    raw = details.get("riskLevel")
    if raw is None:
        return None
    try:
        return RiskLevel(raw)
    except ValueError:
        logger.warning("unknown_stored_risk_level", value=raw)
        return None
