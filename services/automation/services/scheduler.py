"""
Scheduled Automation Processor
==============================

Periodic sweep over evidence, policies, tasks, certifications and
organization scores. Invoked by the cron endpoint; it owns no timer.

Each scan opens its own repository scope, and each candidate is processed
in a fresh scope that first claims the candidate's idempotency flag and
then fires the trigger. A claim that loses the race skips the candidate;
an exception rolls back the claim together with the trigger's writes.

Version: 0.1.0
"""

import asyncio
import math
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from services.automation.models import (
    CheckResult,
    ClaimFlag,
    ScheduledCheck,
    ScheduledRunResult,
    TriggerEvent,
    TriggerType,
)
from services.automation.repository import ScopeFactory, automation_scope
from services.automation.services.score import (
    ComplianceScoreEngine,
    as_utc,
    stored_risk_level,
)
from services.automation.services.trigger import TriggerEngine
from shared.config import settings
from shared.config.settings import AutomationSettings
from shared.logging import get_logger


logger = get_logger(__name__)

ONE_DAY = timedelta(days=1)


def _iso(value: Any) -> str | None:
    if value is None:
        return None
    return as_utc(value).isoformat()


class ScheduledProcessor:
    """
    Runs the five scheduled scans.

    Args:
        scope_factory: Opens a transactional repository scope
        config: Thresholds and batch size
    """

    def __init__(
        self,
        scope_factory: ScopeFactory = automation_scope,
        config: AutomationSettings | None = None,
    ) -> None:
        self.scope_factory = scope_factory
        self.config = config or settings.automation
        self.checks: dict[ScheduledCheck, Callable[[datetime], Awaitable[CheckResult]]] = {
            ScheduledCheck.EVIDENCE: self.check_expiring_evidence,
            ScheduledCheck.POLICIES: self.check_policy_reviews,
            ScheduledCheck.TASKS: self.check_overdue_tasks,
            ScheduledCheck.CERTIFICATIONS: self.check_expiring_certifications,
            ScheduledCheck.SCORES: self.refresh_compliance_scores,
        }

    async def run_scheduled_automation(self, now: datetime | None = None) -> ScheduledRunResult:
        """
        Run every scan concurrently.

        A scan that raises contributes its message to ``errors`` and leaves
        the other scans unaffected.
        """
        now = now or datetime.now(UTC)
        checks = list(self.checks)

        logger.info("scheduled_automation_started", checks=[c.value for c in checks])

        outcomes = await asyncio.gather(
            *(self.checks[check](now) for check in checks),
            return_exceptions=True,
        )

        run = ScheduledRunResult(checks_run=len(checks))
        for check, outcome in zip(checks, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                logger.error("scheduled_check_failed", check=check.value, error=str(outcome))
                run.errors.append(f"{check.value} check failed: {outcome}")
                continue
            run.triggers_executed += outcome.triggers
            run.errors.extend(outcome.errors)

        logger.info(
            "scheduled_automation_completed",
            checks_run=run.checks_run,
            triggers_executed=run.triggers_executed,
            errors=len(run.errors),
        )
        return run

    async def run_scheduled_check(
        self,
        check: ScheduledCheck | str,
        now: datetime | None = None,
    ) -> CheckResult:
        """
        Run a single scan by name.

        Raises:
            ValueError: If ``check`` names no scan
        """
        try:
            scheduled_check = ScheduledCheck(check)
        except ValueError:
            raise ValueError(f"Unknown scheduled check: {check}") from None

        return await self.checks[scheduled_check](now or datetime.now(UTC))

    # =========================================================================
    # Claim and fire
    # =========================================================================

    async def _claim_and_fire(
        self,
        kind: str,
        flag: ClaimFlag,
        candidate: dict[str, Any],
        trigger_type: TriggerType,
        metadata: dict[str, Any],
        outcome: CheckResult,
    ) -> None:
        entity_id = str(candidate["id"])

        try:
            async with self.scope_factory() as repo:
                if not await repo.claim_flag(flag, entity_id):
                    logger.debug("scheduled_claim_lost", kind=kind, entity_id=entity_id)
                    return

                result = await TriggerEngine(repo).process_trigger(
                    TriggerEvent(
                        type=trigger_type,
                        organization_id=str(candidate["organization_id"]),
                        entity_id=entity_id,
                        entity_type=kind,
                        metadata=metadata,
                    )
                )
        except Exception as e:
            logger.exception("scheduled_item_failed", kind=kind, entity_id=entity_id)
            outcome.errors.append(f"Failed to process {kind} {entity_id}: {e}")
            return

        outcome.triggers += 1
        outcome.errors.extend(f"Failed to process {kind} {entity_id}: {err}" for err in result.errors)

    # =========================================================================
    # Scans
    # =========================================================================

    async def check_expiring_evidence(self, now: datetime) -> CheckResult:
        """Verified evidence older than the expiry window gets a renewal task."""
        threshold = now - timedelta(days=self.config.evidence_expiry_days)
        async with self.scope_factory() as repo:
            candidates = await repo.find_expiring_evidence(threshold)

        outcome = CheckResult()
        for evidence in candidates:
            await self._claim_and_fire(
                "evidence",
                ClaimFlag.EVIDENCE_RENEWAL,
                evidence,
                TriggerType.EVIDENCE_EXPIRY,
                {
                    "evidenceId": str(evidence["id"]),
                    "fileName": evidence.get("file_name"),
                    "createdAt": _iso(evidence.get("created_at")),
                },
                outcome,
            )
        return outcome

    async def check_policy_reviews(self, now: datetime) -> CheckResult:
        threshold = now - timedelta(days=self.config.policy_review_days)
        async with self.scope_factory() as repo:
            candidates = await repo.find_policies_due_review(threshold)

        outcome = CheckResult()
        for policy in candidates:
            await self._claim_and_fire(
                "policy",
                ClaimFlag.POLICY_REVIEW,
                policy,
                TriggerType.POLICY_REVIEW_DUE,
                {
                    "policyId": str(policy["id"]),
                    "title": policy.get("title"),
                    "lastUpdated": _iso(policy.get("last_updated_at")),
                },
                outcome,
            )
        return outcome

    async def check_overdue_tasks(self, now: datetime) -> CheckResult:
        async with self.scope_factory() as repo:
            candidates = await repo.find_overdue_tasks(now)

        outcome = CheckResult()
        for task in candidates:
            days_overdue = math.floor((now - as_utc(task["due_date"])) / ONE_DAY)
            await self._claim_and_fire(
                "task",
                ClaimFlag.TASK_ESCALATION,
                task,
                TriggerType.TASK_OVERDUE,
                {
                    "taskId": str(task["id"]),
                    "title": task.get("title"),
                    "daysOverdue": days_overdue,
                    "priority": task.get("priority"),
                    "assignedTo": task.get("assigned_to"),
                },
                outcome,
            )
        return outcome

    async def check_expiring_certifications(self, now: datetime) -> CheckResult:
        """Issued certifications whose validity ends inside the warning window."""
        validity = timedelta(days=self.config.certification_validity_days)
        horizon = now + timedelta(days=self.config.certification_warning_days)

        async with self.scope_factory() as repo:
            certifications = await repo.find_issued_certifications()

        outcome = CheckResult()
        for certification in certifications:
            if not certification.get("issued_at"):
                continue
            expires_at = as_utc(certification["issued_at"]) + validity
            if expires_at > horizon:
                continue

            await self._claim_and_fire(
                "certification",
                ClaimFlag.CERTIFICATION_RENEWAL,
                certification,
                TriggerType.CERTIFICATION_EXPIRING,
                {
                    "certificationId": str(certification["id"]),
                    "frameworkId": certification.get("framework_id"),
                    "daysUntilExpiry": math.floor((expires_at - now) / ONE_DAY),
                },
                outcome,
            )
        return outcome

    async def refresh_compliance_scores(self, now: datetime) -> CheckResult:
        """
        Recompute scores for onboarded organizations in concurrent batches.

        A risk tier change against a previously stored tier fires
        ``risk_score_change``.
        """
        async with self.scope_factory() as repo:
            organization_ids = await repo.list_onboarded_organizations()

        outcome = CheckResult()
        batch_size = max(self.config.score_refresh_batch_size, 1)

        for start in range(0, len(organization_ids), batch_size):
            batch = organization_ids[start : start + batch_size]
            results = await asyncio.gather(
                *(self._refresh_organization(org_id, now) for org_id in batch),
                return_exceptions=True,
            )
            for org_id, refreshed in zip(batch, results, strict=True):
                if isinstance(refreshed, BaseException):
                    logger.error(
                        "score_refresh_failed",
                        organization_id=org_id,
                        error=str(refreshed),
                    )
                    outcome.errors.append(f"Failed to process organization {org_id}: {refreshed}")
                    continue
                outcome.triggers += 1
                outcome.errors.extend(
                    f"Failed to process organization {org_id}: {err}" for err in refreshed
                )

        return outcome

    async def _refresh_organization(self, organization_id: str, now: datetime) -> list[str]:
        async with self.scope_factory() as repo:
            previous = stored_risk_level(await repo.get_evaluation(organization_id))
            score_engine = ComplianceScoreEngine(repo)
            result = await score_engine.update(organization_id, now=now)

            if previous is None or previous == result.risk_level:
                return []

            logger.info(
                "risk_level_changed",
                organization_id=organization_id,
                previous_risk=previous.value,
                new_risk=result.risk_level.value,
            )
            trigger_result = await TriggerEngine(repo, score_engine).process_trigger(
                TriggerEvent(
                    type=TriggerType.RISK_SCORE_CHANGE,
                    organization_id=organization_id,
                    metadata={
                        "previousRisk": previous.value,
                        "newRisk": result.risk_level.value,
                        "score": result.overall_score,
                    },
                )
            )
            return trigger_result.errors
