"""
Automation Repository
=====================

Data access for the automation engines.

The engines depend on the ``AutomationRepository`` protocol only; the
PostgreSQL implementation issues raw SQL over one ``AsyncSession``.
Every write runs inside a SAVEPOINT so a failed statement can be
reported by the caller without aborting the surrounding transaction.

Version: 0.1.0
"""

import json
from collections.abc import AsyncGenerator, Callable, Sequence
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession

from services.automation.models import ClaimFlag, MemberRole
from shared.database.postgres import postgres_session
from shared.database.redis import RedisClient


class AutomationRepository(Protocol):
    """Persistence contract for the score, trigger, event and scheduled engines."""

    # Score inputs -----------------------------------------------------------

    async def fetch_control_statuses(self, organization_id: str) -> list[str | None]: ...

    async def fetch_evidence_statuses(self, organization_id: str) -> list[str | None]: ...

    async def fetch_task_states(self, organization_id: str) -> list[dict[str, Any]]:
        """Rows with ``status`` and ``due_date``."""
        ...

    async def fetch_policy_statuses(self, organization_id: str) -> list[str | None]: ...

    # Evaluation -------------------------------------------------------------

    async def get_evaluation(self, organization_id: str) -> dict[str, Any] | None: ...

    async def upsert_evaluation(self, organization_id: str, values: dict[str, Any]) -> int:
        """Write the organization's evaluation row and return its new version."""
        ...

    # Lookups ----------------------------------------------------------------

    async def get_evidence(self, organization_id: str, evidence_id: str) -> dict[str, Any] | None:
        """Evidence row, with the ``linked_policy_id`` of its task when it has one."""
        ...

    async def get_task(self, organization_id: str, task_id: str) -> dict[str, Any] | None: ...

    async def get_policy(self, organization_id: str, policy_id: str) -> dict[str, Any] | None: ...

    async def get_control(self, organization_id: str, control_id: str) -> dict[str, Any] | None: ...

    async def get_certification(
        self, organization_id: str, certification_id: str
    ) -> dict[str, Any] | None: ...

    # Writes -----------------------------------------------------------------

    async def insert_task(self, values: dict[str, Any]) -> dict[str, Any]: ...

    async def update_task(self, task_id: str, values: dict[str, Any]) -> None: ...

    async def list_member_ids(
        self, organization_id: str, roles: Sequence[MemberRole]
    ) -> list[str]:
        """User ids of members holding any of ``roles``, oldest membership first."""
        ...

    async def insert_notification(self, values: dict[str, Any]) -> None: ...

    async def insert_audit_event(self, values: dict[str, Any]) -> None: ...

    async def update_control_evidence_status(self, evidence_id: str, status: str) -> None: ...

    async def touch_policy(self, policy_id: str, at: datetime) -> None: ...

    # Scheduled scans --------------------------------------------------------

    async def find_expiring_evidence(self, threshold: datetime) -> list[dict[str, Any]]: ...

    async def find_policies_due_review(self, threshold: datetime) -> list[dict[str, Any]]: ...

    async def find_overdue_tasks(self, now: datetime) -> list[dict[str, Any]]: ...

    async def find_issued_certifications(self) -> list[dict[str, Any]]: ...

    async def list_onboarded_organizations(self) -> list[str]: ...

    # Claims and dead letters ------------------------------------------------

    async def claim_flag(self, flag: ClaimFlag, entity_id: str) -> bool:
        """Set an idempotency flag; False when it was already set."""
        ...

    async def record_failure(self, values: dict[str, Any]) -> None: ...


ScopeFactory = Callable[[], AbstractAsyncContextManager[AutomationRepository]]


# =============================================================================
# PostgreSQL Implementation
# =============================================================================


class PostgresAutomationRepository:
    """AutomationRepository over a single SQLAlchemy session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _rows(self, query: Any, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        result = await self.session.execute(query, params or {})
        return [dict(row) for row in result.mappings().all()]

    async def _row(self, query: Any, params: dict[str, Any]) -> dict[str, Any] | None:
        result = await self.session.execute(query, params)
        row = result.mappings().first()
        return dict(row) if row else None

    async def _write(self, query: Any, params: dict[str, Any]) -> Any:
        async with self.session.begin_nested():
            return await self.session.execute(query, params)

    # Score inputs -----------------------------------------------------------

    async def fetch_control_statuses(self, organization_id: str) -> list[str | None]:
        query = text("SELECT status FROM org_controls WHERE organization_id = :org_id")
        return [row["status"] for row in await self._rows(query, {"org_id": organization_id})]

    async def fetch_evidence_statuses(self, organization_id: str) -> list[str | None]:
        query = text(
            "SELECT verification_status FROM org_evidence WHERE organization_id = :org_id"
        )
        rows = await self._rows(query, {"org_id": organization_id})
        return [row["verification_status"] for row in rows]

    async def fetch_task_states(self, organization_id: str) -> list[dict[str, Any]]:
        query = text("SELECT status, due_date FROM org_tasks WHERE organization_id = :org_id")
        return await self._rows(query, {"org_id": organization_id})

    async def fetch_policy_statuses(self, organization_id: str) -> list[str | None]:
        query = text("SELECT status FROM org_policies WHERE organization_id = :org_id")
        return [row["status"] for row in await self._rows(query, {"org_id": organization_id})]

    # Evaluation -------------------------------------------------------------

    async def get_evaluation(self, organization_id: str) -> dict[str, Any] | None:
        query = text("""
            SELECT organization_id, compliance_score, status, details,
                   last_evaluated_at, version
            FROM org_control_evaluations
            WHERE organization_id = :org_id
        """)
        return await self._row(query, {"org_id": organization_id})

    async def upsert_evaluation(self, organization_id: str, values: dict[str, Any]) -> int:
        query = text("""
            INSERT INTO org_control_evaluations (
                organization_id, compliance_score, total_controls,
                satisfied_controls, missing_controls, status, details,
                last_evaluated_at, version
            ) VALUES (
                :org_id, :compliance_score, :total_controls,
                :satisfied_controls, :missing_controls, :status,
                CAST(:details AS jsonb), :last_evaluated_at, 1
            )
            ON CONFLICT (organization_id) DO UPDATE SET
                compliance_score = EXCLUDED.compliance_score,
                total_controls = EXCLUDED.total_controls,
                satisfied_controls = EXCLUDED.satisfied_controls,
                missing_controls = EXCLUDED.missing_controls,
                status = EXCLUDED.status,
                details = EXCLUDED.details,
                last_evaluated_at = EXCLUDED.last_evaluated_at,
                version = org_control_evaluations.version + 1
            RETURNING version
        """)
        result = await self._write(
            query,
            {
                "org_id": organization_id,
                "compliance_score": values["compliance_score"],
                "total_controls": values["total_controls"],
                "satisfied_controls": values["satisfied_controls"],
                "missing_controls": values["missing_controls"],
                "status": values["status"],
                "details": json.dumps(values["details"]),
                "last_evaluated_at": values["last_evaluated_at"],
            },
        )
        return int(result.scalar_one())

    # Lookups ----------------------------------------------------------------

    async def get_evidence(self, organization_id: str, evidence_id: str) -> dict[str, Any] | None:
        query = text("""
            SELECT e.id, e.file_name, e.task_id, e.uploaded_by, e.verification_status,
                   e.created_at, t.linked_policy_id
            FROM org_evidence e
            LEFT JOIN org_tasks t ON t.id = e.task_id
            WHERE e.id = :id AND e.organization_id = :org_id
        """)
        return await self._row(query, {"id": evidence_id, "org_id": organization_id})

    async def get_task(self, organization_id: str, task_id: str) -> dict[str, Any] | None:
        query = text("""
            SELECT id, title, description, status, priority, due_date, assigned_to,
                   is_recurring, recurrence_days, linked_policy_id, linked_asset_id
            FROM org_tasks
            WHERE id = :id AND organization_id = :org_id
        """)
        return await self._row(query, {"id": task_id, "org_id": organization_id})

    async def get_policy(self, organization_id: str, policy_id: str) -> dict[str, Any] | None:
        query = text("""
            SELECT id, title, status, last_updated_at
            FROM org_policies
            WHERE id = :id AND organization_id = :org_id
        """)
        return await self._row(query, {"id": policy_id, "org_id": organization_id})

    async def get_control(self, organization_id: str, control_id: str) -> dict[str, Any] | None:
        query = text("""
            SELECT id, title, status
            FROM org_controls
            WHERE id = :id AND organization_id = :org_id
        """)
        return await self._row(query, {"id": control_id, "org_id": organization_id})

    async def get_certification(
        self, organization_id: str, certification_id: str
    ) -> dict[str, Any] | None:
        query = text("""
            SELECT id, framework_id, status, issued_at
            FROM org_certifications
            WHERE id = :id AND organization_id = :org_id
        """)
        return await self._row(query, {"id": certification_id, "org_id": organization_id})

    # Writes -----------------------------------------------------------------

    async def insert_task(self, values: dict[str, Any]) -> dict[str, Any]:
        query = text("""
            INSERT INTO org_tasks (
                organization_id, title, description, priority, status, due_date,
                assigned_to, linked_policy_id, linked_asset_id,
                is_recurring, recurrence_days
            ) VALUES (
                :organization_id, :title, :description, :priority, :status, :due_date,
                :assigned_to, :linked_policy_id, :linked_asset_id,
                :is_recurring, :recurrence_days
            )
            RETURNING id, title, status, due_date
        """)
        params = {
            "organization_id": values["organization_id"],
            "title": values["title"],
            "description": values.get("description"),
            "priority": values.get("priority", "standard"),
            "status": values.get("status", "pending"),
            "due_date": values.get("due_date"),
            "assigned_to": values.get("assigned_to"),
            "linked_policy_id": values.get("linked_policy_id"),
            "linked_asset_id": values.get("linked_asset_id"),
            "is_recurring": values.get("is_recurring", False),
            "recurrence_days": values.get("recurrence_days"),
        }
        result = await self._write(query, params)
        return dict(result.mappings().one())

    async def update_task(self, task_id: str, values: dict[str, Any]) -> None:
        query = text("""
            UPDATE org_tasks
            SET status = COALESCE(:status, status),
                completed_at = COALESCE(:completed_at, completed_at)
            WHERE id = :id
        """)
        await self._write(
            query,
            {
                "id": task_id,
                "status": values.get("status"),
                "completed_at": values.get("completed_at"),
            },
        )

    async def list_member_ids(
        self, organization_id: str, roles: Sequence[MemberRole]
    ) -> list[str]:
        query = text("""
            SELECT user_id
            FROM org_members
            WHERE organization_id = :org_id AND role IN :roles
            ORDER BY created_at
        """).bindparams(bindparam("roles", expanding=True))
        rows = await self._rows(
            query,
            {"org_id": organization_id, "roles": [MemberRole(r).value for r in roles]},
        )
        return [str(row["user_id"]) for row in rows]

    async def insert_notification(self, values: dict[str, Any]) -> None:
        query = text("""
            INSERT INTO org_notifications (
                organization_id, user_id, type, title, message, metadata
            ) VALUES (
                :organization_id, :user_id, :type, :title, :message,
                CAST(:metadata AS jsonb)
            )
        """)
        await self._write(
            query,
            {
                "organization_id": values["organization_id"],
                "user_id": values["user_id"],
                "type": values["type"],
                "title": values["title"],
                "message": values["message"],
                "metadata": json.dumps(values.get("metadata", {}), default=str),
            },
        )

    async def insert_audit_event(self, values: dict[str, Any]) -> None:
        query = text("""
            INSERT INTO org_audit_events (
                organization_id, actor_user_id, entity_type, entity_id,
                action_type, before_state, after_state, reason
            ) VALUES (
                :organization_id, :actor_user_id, :entity_type, :entity_id,
                :action_type, CAST(:before_state AS jsonb),
                CAST(:after_state AS jsonb), :reason
            )
        """)
        await self._write(
            query,
            {
                "organization_id": values["organization_id"],
                "actor_user_id": values.get("actor_user_id"),
                "entity_type": values["entity_type"],
                "entity_id": values["entity_id"],
                "action_type": values["action_type"],
                "before_state": json.dumps(values.get("before_state", {}), default=str),
                "after_state": json.dumps(values.get("after_state", {}), default=str),
                "reason": values.get("reason"),
            },
        )

    async def update_control_evidence_status(self, evidence_id: str, status: str) -> None:
        query = text("""
            UPDATE control_evidence
            SET approval_status = :status
            WHERE evidence_id = :evidence_id
        """)
        await self._write(query, {"evidence_id": evidence_id, "status": status})

    async def touch_policy(self, policy_id: str, at: datetime) -> None:
        query = text("UPDATE org_policies SET last_updated_at = :at WHERE id = :id")
        await self._write(query, {"id": policy_id, "at": at})

    # Scheduled scans --------------------------------------------------------

    async def find_expiring_evidence(self, threshold: datetime) -> list[dict[str, Any]]:
        query = text("""
            SELECT id, organization_id, file_name, created_at
            FROM org_evidence
            WHERE created_at < :threshold
              AND verification_status = 'verified'
              AND renewal_task_created IS NOT TRUE
        """)
        return await self._rows(query, {"threshold": threshold})

    async def find_policies_due_review(self, threshold: datetime) -> list[dict[str, Any]]:
        query = text("""
            SELECT id, organization_id, title, last_updated_at
            FROM org_policies
            WHERE (last_updated_at < :threshold OR last_updated_at IS NULL)
              AND status IN ('published', 'approved')
              AND review_task_created IS NOT TRUE
        """)
        return await self._rows(query, {"threshold": threshold})

    async def find_overdue_tasks(self, now: datetime) -> list[dict[str, Any]]:
        query = text("""
            SELECT id, organization_id, title, due_date, priority, assigned_to
            FROM org_tasks
            WHERE status = 'pending'
              AND due_date < :now
              AND escalation_sent IS NOT TRUE
        """)
        return await self._rows(query, {"now": now})

    async def find_issued_certifications(self) -> list[dict[str, Any]]:
        query = text("""
            SELECT id, organization_id, framework_id, issued_at
            FROM org_certifications
            WHERE status = 'issued'
              AND renewal_task_created IS NOT TRUE
        """)
        return await self._rows(query)

    async def list_onboarded_organizations(self) -> list[str]:
        query = text("SELECT id FROM organizations WHERE onboarding_completed = true")
        return [str(row["id"]) for row in await self._rows(query)]

    # Claims and dead letters ------------------------------------------------

    async def claim_flag(self, flag: ClaimFlag, entity_id: str) -> bool:
        # Table and column come from the closed ClaimFlag enum
        query = text(f"""
            UPDATE {flag.table}
            SET {flag.column} = true
            WHERE id = :id AND {flag.column} IS NOT TRUE
            RETURNING id
        """)
        result = await self._write(query, {"id": entity_id})
        return result.first() is not None

    async def record_failure(self, values: dict[str, Any]) -> None:
        query = text("""
            INSERT INTO org_automation_failures (
                organization_id, event_type, entity_id, entity_type,
                error_message, payload
            ) VALUES (
                :organization_id, :event_type, :entity_id, :entity_type,
                :error_message, CAST(:payload AS jsonb)
            )
        """)
        await self._write(
            query,
            {
                "organization_id": values["organization_id"],
                "event_type": values["event_type"],
                "entity_id": values.get("entity_id"),
                "entity_type": values.get("entity_type"),
                "error_message": values["error_message"],
                "payload": json.dumps(values.get("payload", {}), default=str),
            },
        )


# =============================================================================
# Transaction scopes
# =============================================================================


def summary_cache_key(organization_id: str) -> str:
    return f"compliance_summary:{organization_id}"


class ScoreTrackingRepository:
    """Delegates to a repository and remembers which organizations were rescored."""

    def __init__(self, repository: AutomationRepository) -> None:
        self._repository = repository
        self.scored_organizations: set[str] = set()

    def __getattr__(self, name: str) -> Any:
        return getattr(self._repository, name)

    async def upsert_evaluation(self, organization_id: str, values: dict[str, Any]) -> int:
        version = await self._repository.upsert_evaluation(organization_id, values)
        self.scored_organizations.add(organization_id)
        return version


def invalidating_summaries(scope_factory: ScopeFactory) -> ScopeFactory:
    """
    Wrap a scope factory so cached summaries of rescored organizations are
    dropped once the transaction has committed.

    A rolled-back scope leaves the cache alone.
    """

    @asynccontextmanager
    async def scope() -> AsyncGenerator[AutomationRepository, None]:
        async with scope_factory() as repository:
            tracked = ScoreTrackingRepository(repository)
            yield tracked  # type: ignore[misc]

        for organization_id in sorted(tracked.scored_organizations):
            await RedisClient.delete_cached(summary_cache_key(organization_id))

    return scope


@asynccontextmanager
async def _transaction() -> AsyncGenerator[AutomationRepository, None]:
    async with postgres_session() as session:
        yield PostgresAutomationRepository(session)


# async with automation_scope() as repo: one transaction, summaries dropped on commit
automation_scope = invalidating_summaries(_transaction)


async def get_automation_repository() -> AsyncGenerator[AutomationRepository, None]:
    """Dependency that runs the request in one transaction."""
    async with automation_scope() as repository:
        yield repository


def get_scope_factory() -> ScopeFactory:
    """Dependency for handlers that open their own transactions."""
    return automation_scope
