"""
Compliance Trigger Engine
=========================

Turns typed compliance events into remediation tasks and member
notifications, then refreshes the organization's compliance score.

Failures never propagate: missing metadata, missing records and database
errors are collected on the returned ``AutomationResult``.

Version: 0.1.0
"""

import math
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from services.automation.models import (
    ROLES_ADMINS,
    ROLES_ALL_OFFICERS,
    AutomationResult,
    MemberRole,
    RiskLevel,
    TaskPriority,
    TaskStatus,
    TriggerEvent,
    TriggerType,
)
from services.automation.repository import AutomationRepository
from services.automation.services.score import ComplianceScoreEngine, as_utc
from shared.config import settings
from shared.logging import get_logger


logger = get_logger(__name__)

MAX_TRIGGER_DEPTH = settings.automation.max_trigger_depth

Handler = Callable[[TriggerEvent, AutomationResult], Awaitable[None]]


def db_error_message(exc: SQLAlchemyError) -> str:
    """Driver message for a database error, without the SQL statement."""
    return str(getattr(exc, "orig", None) or exc)


ONBOARDING_TASKS: list[dict[str, Any]] = [
    {
        "title": "Complete Organization Profile",
        "description": (
            "Fill in your organization details including industry, team size, and frameworks."
        ),
        "priority": TaskPriority.HIGH,
        "days": 3,
    },
    {
        "title": "Review Pre-loaded Policies",
        "description": "Review and approve the policies that were pre-loaded for your industry.",
        "priority": TaskPriority.STANDARD,
        "days": 7,
    },
    {
        "title": "Invite Team Members",
        "description": "Invite your compliance and operations team members to collaborate.",
        "priority": TaskPriority.STANDARD,
        "days": 5,
    },
    {
        "title": "Upload Initial Evidence",
        "description": "Upload your existing compliance evidence and documentation.",
        "priority": TaskPriority.STANDARD,
        "days": 14,
    },
]


class TriggerEngine:
    """
    Dispatches trigger events to their handlers.

    Dispatch goes through a handler table keyed by ``TriggerType``; every
    member of the enum has exactly one entry.
    """

    def __init__(
        self,
        repository: AutomationRepository,
        score_engine: ComplianceScoreEngine | None = None,
        max_depth: int = MAX_TRIGGER_DEPTH,
    ) -> None:
        self.repository = repository
        self.score_engine = score_engine or ComplianceScoreEngine(repository)
        self.max_depth = max_depth
        self.handlers: dict[TriggerType, Handler] = {
            TriggerType.EVIDENCE_EXPIRY: self._handle_evidence_expiry,
            TriggerType.POLICY_REVIEW_DUE: self._handle_policy_review_due,
            TriggerType.CONTROL_FAILED: self._handle_control_issue,
            TriggerType.CONTROL_INCOMPLETE: self._handle_control_issue,
            TriggerType.ORG_ONBOARDING: self._handle_org_onboarding,
            TriggerType.RISK_SCORE_CHANGE: self._handle_risk_score_change,
            TriggerType.TASK_OVERDUE: self._handle_task_overdue,
            TriggerType.CERTIFICATION_EXPIRING: self._handle_certification_expiring,
        }

    async def process_trigger(self, event: TriggerEvent, depth: int = 0) -> AutomationResult:
        """
        Run the handler for an event and refresh the compliance score.

        Args:
            event: The trigger event to process
            depth: Chain depth of this call; refused at ``max_depth``

        Returns:
            AutomationResult with counters and collected errors
        """
        result = AutomationResult()

        if depth >= self.max_depth:
            logger.warning(
                "trigger_recursion_limit",
                trigger_type=event.type.value,
                organization_id=event.organization_id,
                depth=depth,
            )
            result.errors.append(f"Max trigger recursion depth reached ({self.max_depth})")
            return result

        try:
            await self.handlers[event.type](event, result)
            await self.score_engine.update(event.organization_id)
        except Exception as e:
            logger.exception(
                "trigger_failed",
                trigger_type=event.type.value,
                organization_id=event.organization_id,
                error=str(e),
            )
            result.errors.append(str(e) or type(e).__name__)
            return result

        logger.info(
            "trigger_processed",
            trigger_type=event.type.value,
            organization_id=event.organization_id,
            tasks_created=result.tasks_created,
            notifications_sent=result.notifications_sent,
            errors=len(result.errors),
        )
        return result

    # =========================================================================
    # Write helpers
    # =========================================================================

    async def _create_task(
        self,
        event: TriggerEvent,
        result: AutomationResult,
        failure_prefix: str,
        *,
        title: str,
        description: str,
        priority: TaskPriority,
        due_in_days: int,
        linked_policy_id: str | None = None,
    ) -> dict[str, Any] | None:
        try:
            task = await self.repository.insert_task(
                {
                    "organization_id": event.organization_id,
                    "title": title,
                    "description": description,
                    "priority": priority.value,
                    "status": TaskStatus.PENDING.value,
                    "due_date": datetime.now(UTC) + timedelta(days=due_in_days),
                    "linked_policy_id": linked_policy_id,
                }
            )
        except SQLAlchemyError as e:
            result.errors.append(f"{failure_prefix}: {db_error_message(e)}")
            return None

        result.tasks_created += 1
        return task

    async def _notify(
        self,
        event: TriggerEvent,
        result: AutomationResult,
        user_ids: Sequence[str],
        *,
        notification_type: str,
        title: str,
        message: str,
        metadata: dict[str, Any],
    ) -> None:
        for user_id in user_ids:
            try:
                await self.repository.insert_notification(
                    {
                        "organization_id": event.organization_id,
                        "user_id": user_id,
                        "type": notification_type,
                        "title": title,
                        "message": message,
                        "metadata": metadata,
                    }
                )
            except SQLAlchemyError as e:
                result.errors.append(f"Failed to send notification: {db_error_message(e)}")
                continue
            result.notifications_sent += 1

    async def _members(self, event: TriggerEvent, roles: Sequence[MemberRole]) -> list[str]:
        return await self.repository.list_member_ids(event.organization_id, roles)

    # =========================================================================
    # Handlers
    # =========================================================================

    async def _handle_evidence_expiry(self, event: TriggerEvent, result: AutomationResult) -> None:
        evidence_id = event.metadata.get("evidenceId")
        if not evidence_id:
            result.errors.append("Evidence ID missing in metadata")
            return

        evidence = await self.repository.get_evidence(event.organization_id, evidence_id)
        if not evidence:
            result.errors.append("Evidence not found")
            return

        file_name = evidence.get("file_name")
        task = await self._create_task(
            event,
            result,
            "Failed to create renewal task",
            title=f"Renew Evidence: {file_name}",
            description=f'Evidence "{file_name}" has expired and needs to be renewed.',
            priority=TaskPriority.HIGH,
            due_in_days=7,
            linked_policy_id=evidence.get("linked_policy_id"),
        )
        if task is None:
            return

        await self._notify(
            event,
            result,
            await self._members(event, ROLES_ALL_OFFICERS),
            notification_type="EVIDENCE_EXPIRED",
            title="Evidence Renewal Required",
            message=f'Evidence "{file_name}" has expired. A renewal task has been created.',
            metadata={"evidenceId": evidence_id, "taskId": task["id"]},
        )

    async def _handle_policy_review_due(
        self, event: TriggerEvent, result: AutomationResult
    ) -> None:
        policy_id = event.metadata.get("policyId")
        if not policy_id:
            result.errors.append("Policy ID missing in metadata")
            return

        policy = await self.repository.get_policy(event.organization_id, policy_id)
        if not policy:
            result.errors.append("Policy not found")
            return

        title = policy.get("title")
        task = await self._create_task(
            event,
            result,
            "Failed to create review task",
            title=f"Review Policy: {title}",
            description=f'Policy "{title}" is due for scheduled review.',
            priority=TaskPriority.STANDARD,
            due_in_days=14,
            linked_policy_id=policy_id,
        )
        if task is None:
            return

        await self._notify(
            event,
            result,
            await self._members(event, ROLES_ALL_OFFICERS),
            notification_type="POLICY_REVIEW_DUE",
            title="Policy Review Required",
            message=f'Policy "{title}" is due for review. A review task has been created.',
            metadata={"policyId": policy_id, "taskId": task["id"]},
        )

    async def _handle_control_issue(self, event: TriggerEvent, result: AutomationResult) -> None:
        control_id = event.metadata.get("controlId")
        status = event.metadata.get("status")
        if not control_id:
            result.errors.append("Control ID missing in metadata")
            return

        control = await self.repository.get_control(event.organization_id, control_id)
        if not control:
            result.errors.append("Control not found")
            return

        failed = event.type == TriggerType.CONTROL_FAILED
        title = control.get("title")

        if failed:
            task_title = f"Fix Failed Control: {title}"
            description = f'Control "{title}" has failed and requires immediate attention.'
        else:
            task_title = f"Complete Control: {title}"
            description = f'Control "{title}" is incomplete and needs to be addressed.'

        task = await self._create_task(
            event,
            result,
            "Failed to create remediation task",
            title=task_title,
            description=description,
            priority=TaskPriority.CRITICAL if failed else TaskPriority.HIGH,
            due_in_days=2 if failed else 7,
        )
        if task is None:
            return

        # Critical failures go straight to owners and admins
        roles = ROLES_ADMINS if failed else ROLES_ALL_OFFICERS
        await self._notify(
            event,
            result,
            await self._members(event, roles),
            notification_type="CONTROL_FAILED" if failed else "CONTROL_INCOMPLETE",
            title="Critical Control Failure" if failed else "Control Incomplete",
            message=(
                f'Control "{title}" {"has failed" if failed else "is incomplete"}. '
                "A remediation task has been created."
            ),
            metadata={"controlId": control_id, "taskId": task["id"], "status": status},
        )

    async def _handle_org_onboarding(self, event: TriggerEvent, result: AutomationResult) -> None:
        for template in ONBOARDING_TASKS:
            await self._create_task(
                event,
                result,
                "Failed to create onboarding task",
                title=template["title"],
                description=template["description"],
                priority=template["priority"],
                due_in_days=template["days"],
            )

        owners = await self._members(event, [MemberRole.OWNER])
        await self._notify(
            event,
            result,
            owners[:1],
            notification_type="ONBOARDING_STARTED",
            title="Welcome to FormaOS!",
            message=(
                "Your onboarding tasks are ready. "
                "Complete them to get started with compliance automation."
            ),
            metadata={"tasksCreated": result.tasks_created},
        )

    async def _handle_risk_score_change(
        self, event: TriggerEvent, result: AutomationResult
    ) -> None:
        raw_previous = event.metadata.get("previousRisk")
        raw_new = event.metadata.get("newRisk")
        score = event.metadata.get("score")

        if not raw_previous or not raw_new:
            result.errors.append("Risk level data missing in metadata")
            return

        try:
            previous = RiskLevel(raw_previous)
            new = RiskLevel(raw_new)
        except ValueError:
            result.errors.append("Risk level data missing in metadata")
            return

        # Only worsening risk is acted on
        if new.ordinal <= previous.ordinal:
            return

        if new in (RiskLevel.HIGH, RiskLevel.CRITICAL):
            critical = new == RiskLevel.CRITICAL
            await self._create_task(
                event,
                result,
                "Failed to create risk escalation task",
                title=f"{'URGENT: ' if critical else ''}Address Compliance Risk",
                description=(
                    f"Your compliance risk level has increased to {new.value.upper()} "
                    f"(score: {score}). Immediate action is required to address "
                    "compliance gaps."
                ),
                priority=TaskPriority.CRITICAL if critical else TaskPriority.HIGH,
                due_in_days=1 if critical else 3,
            )

        await self._notify(
            event,
            result,
            await self._members(event, ROLES_ADMINS),
            notification_type="RISK_SCORE_CHANGE",
            title=f"Compliance Risk Elevated to {new.value.upper()}",
            message=(
                "Your organization's compliance risk level has increased from "
                f"{previous.value} to {new.value}. Score: {score}"
            ),
            metadata={"previousRisk": previous.value, "newRisk": new.value, "score": score},
        )

    async def _handle_task_overdue(self, event: TriggerEvent, result: AutomationResult) -> None:
        task_id = event.metadata.get("taskId")
        if not task_id:
            result.errors.append("Task ID missing in metadata")
            return

        task = await self.repository.get_task(event.organization_id, task_id)
        if not task or task.get("status") == TaskStatus.COMPLETED.value:
            return

        days_overdue = 0
        if task.get("due_date"):
            elapsed = datetime.now(UTC) - as_utc(task["due_date"])
            days_overdue = math.floor(elapsed / timedelta(days=1))

        should_escalate = days_overdue >= 3 or task.get("priority") == TaskPriority.CRITICAL.value
        title = task.get("title")

        if task.get("assigned_to"):
            await self._notify(
                event,
                result,
                [str(task["assigned_to"])],
                notification_type="TASK_OVERDUE",
                title="Task Overdue",
                message=f'Task "{title}" is {days_overdue} day(s) overdue.',
                metadata={"taskId": task_id, "daysOverdue": days_overdue},
            )

        if should_escalate:
            await self._notify(
                event,
                result,
                await self._members(event, ROLES_ADMINS),
                notification_type="TASK_OVERDUE_ESCALATED",
                title="Overdue Task Escalation",
                message=(
                    f'Critical task "{title}" is {days_overdue} day(s) overdue '
                    "and requires immediate attention."
                ),
                metadata={
                    "taskId": task_id,
                    "daysOverdue": days_overdue,
                    "priority": task.get("priority"),
                },
            )

    async def _handle_certification_expiring(
        self, event: TriggerEvent, result: AutomationResult
    ) -> None:
        """A missing or zero daysUntilExpiry falls back to the 30-day window."""
        certification_id = event.metadata.get("certificationId")
        raw_days = event.metadata.get("daysUntilExpiry")
        days_until_expiry = int(raw_days) if raw_days else 30

        if not certification_id:
            result.errors.append("Certification ID missing in metadata")
            return

        certification = await self.repository.get_certification(
            event.organization_id, certification_id
        )
        if not certification:
            result.errors.append("Certification not found")
            return

        task = await self._create_task(
            event,
            result,
            "Failed to create renewal task",
            title="Renew Certification",
            description=(
                f"Certification expires in {days_until_expiry} days. Begin renewal process."
            ),
            priority=TaskPriority.HIGH if days_until_expiry <= 7 else TaskPriority.STANDARD,
            due_in_days=max(days_until_expiry - 7, 1),
        )
        if task is None:
            return

        await self._notify(
            event,
            result,
            await self._members(event, ROLES_ALL_OFFICERS),
            notification_type="CERTIFICATION_EXPIRING",
            title="Certification Renewal Required",
            message=(
                f"A certification expires in {days_until_expiry} days. "
                "Renewal task has been created."
            ),
            metadata={
                "certificationId": certification_id,
                "taskId": task["id"],
                "daysUntilExpiry": days_until_expiry,
            },
        )
