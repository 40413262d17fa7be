"""
Control Plane Repository
========================

Data access for feature flags, marketing config, system settings, admin
jobs and the admin audit log.

Version: 0.1.0
"""

import json
from collections.abc import AsyncGenerator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import datetime
from typing import Any, Protocol

from fastapi import Depends
from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession

from shared.database.postgres import (
    get_postgres_session,
    measure_round_trip,
    postgres_session,
)


class ControlPlaneRepository(Protocol):
    """Persistence contract for the control plane service and job runner."""

    async def ping(self) -> float:
        """Round-trip a trivial query; returns elapsed milliseconds."""
        ...

    async def list_feature_flags(self, environment: str) -> list[dict[str, Any]]: ...

    async def list_marketing_config(self, environment: str) -> list[dict[str, Any]]: ...

    async def list_system_settings(self, environment: str) -> list[dict[str, Any]]: ...

    async def get_system_setting(
        self, environment: str, category: str, setting_key: str
    ) -> dict[str, Any] | None: ...

    async def list_audit(self, environment: str, limit: int) -> list[dict[str, Any]]: ...

    async def list_jobs(self, limit: int) -> list[dict[str, Any]]: ...

    async def count_jobs(self, status: str, updated_since: datetime | None = None) -> int: ...

    async def latest_change(self, table: str, column: str, environment: str | None) -> str:
        """Latest timestamp in ``table.column`` as ISO text, ``"0"`` when empty."""
        ...

    async def find_feature_flag_id(
        self, environment: str, flag_key: str, scope_type: str, scope_id: str | None
    ) -> str | None: ...

    async def insert_feature_flag(self, values: dict[str, Any]) -> dict[str, Any]: ...

    async def update_feature_flag(self, flag_id: str, values: dict[str, Any]) -> dict[str, Any]: ...

    async def upsert_marketing_config(self, values: dict[str, Any]) -> dict[str, Any]: ...

    async def upsert_system_setting(self, values: dict[str, Any]) -> dict[str, Any]: ...

    async def insert_audit(self, values: dict[str, Any]) -> None: ...

    async def insert_job(self, values: dict[str, Any]) -> dict[str, Any]: ...

    async def get_job(self, job_id: str) -> dict[str, Any] | None: ...

    async def update_job(self, job_id: str, values: dict[str, Any]) -> None: ...

    async def find_stale_failed_jobs(self, threshold: datetime, limit: int) -> list[str]: ...

    async def delete_jobs(self, job_ids: list[str]) -> None: ...


ControlPlaneScopeFactory = Callable[[], AbstractAsyncContextManager[ControlPlaneRepository]]

# Tables and timestamp columns the stream version is built from
_CHANGE_COLUMNS = {
    ("feature_flags", "updated_at"),
    ("marketing_config", "updated_at"),
    ("system_settings", "updated_at"),
    ("admin_jobs", "updated_at"),
    ("audit_log", "created_at"),
}

_JOB_COLUMNS = {
    "status",
    "progress",
    "logs",
    "result",
    "error_message",
    "started_at",
    "completed_at",
}
_JSON_JOB_COLUMNS = {"logs", "result"}


def _json(value: Any) -> str:
    return json.dumps(value, default=str)


class PostgresControlPlaneRepository:
    """ControlPlaneRepository over a single SQLAlchemy session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _rows(self, query: Any, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        result = await self.session.execute(query, params or {})
        return [dict(row) for row in result.mappings().all()]

    async def _row(self, query: Any, params: dict[str, Any]) -> dict[str, Any] | None:
        result = await self.session.execute(query, params)
        row = result.mappings().first()
        return dict(row) if row else None

    async def _write_returning(self, query: Any, params: dict[str, Any]) -> dict[str, Any]:
        async with self.session.begin_nested():
            result = await self.session.execute(query, params)
            return dict(result.mappings().one())

    async def _write(self, query: Any, params: dict[str, Any]) -> None:
        async with self.session.begin_nested():
            await self.session.execute(query, params)

    # Reads ------------------------------------------------------------------

    async def ping(self) -> float:
        return await measure_round_trip(self.session, "SELECT count(*) FROM organizations")

    async def list_feature_flags(self, environment: str) -> list[dict[str, Any]]:
        query = text("""
            SELECT * FROM feature_flags
            WHERE environment = :environment
            ORDER BY updated_at DESC
        """)
        return await self._rows(query, {"environment": environment})

    async def list_marketing_config(self, environment: str) -> list[dict[str, Any]]:
        query = text("""
            SELECT * FROM marketing_config
            WHERE environment = :environment
            ORDER BY section ASC
        """)
        return await self._rows(query, {"environment": environment})

    async def list_system_settings(self, environment: str) -> list[dict[str, Any]]:
        query = text("""
            SELECT * FROM system_settings
            WHERE environment = :environment
            ORDER BY category ASC
        """)
        return await self._rows(query, {"environment": environment})

    async def get_system_setting(
        self, environment: str, category: str, setting_key: str
    ) -> dict[str, Any] | None:
        query = text("""
            SELECT * FROM system_settings
            WHERE environment = :environment
              AND category = :category
              AND setting_key = :setting_key
        """)
        return await self._row(
            query,
            {"environment": environment, "category": category, "setting_key": setting_key},
        )

    async def list_audit(self, environment: str, limit: int) -> list[dict[str, Any]]:
        query = text("""
            SELECT * FROM audit_log
            WHERE environment = :environment
            ORDER BY created_at DESC
            LIMIT :limit
        """)
        return await self._rows(query, {"environment": environment, "limit": limit})

    async def list_jobs(self, limit: int) -> list[dict[str, Any]]:
        query = text("SELECT * FROM admin_jobs ORDER BY created_at DESC LIMIT :limit")
        return await self._rows(query, {"limit": limit})

    async def count_jobs(self, status: str, updated_since: datetime | None = None) -> int:
        if updated_since is None:
            query = text("SELECT count(*) FROM admin_jobs WHERE status = :status")
            params: dict[str, Any] = {"status": status}
        else:
            query = text("""
                SELECT count(*) FROM admin_jobs
                WHERE status = :status AND updated_at >= :since
            """)
            params = {"status": status, "since": updated_since}
        result = await self.session.execute(query, params)
        return int(result.scalar() or 0)

    async def latest_change(self, table: str, column: str, environment: str | None) -> str:
        if (table, column) not in _CHANGE_COLUMNS:
            raise ValueError(f"Untracked change column: {table}.{column}")

        if environment:
            query = text(f"SELECT max({column}) FROM {table} WHERE environment = :environment")
            result = await self.session.execute(query, {"environment": environment})
        else:
            result = await self.session.execute(text(f"SELECT max({column}) FROM {table}"))
        value = result.scalar()
        return value.isoformat() if isinstance(value, datetime) else "0"

    # Writes -----------------------------------------------------------------

    async def find_feature_flag_id(
        self, environment: str, flag_key: str, scope_type: str, scope_id: str | None
    ) -> str | None:
        query = text("""
            SELECT id FROM feature_flags
            WHERE environment = :environment
              AND flag_key = :flag_key
              AND scope_type = :scope_type
              AND scope_id IS NOT DISTINCT FROM :scope_id
        """)
        row = await self._row(
            query,
            {
                "environment": environment,
                "flag_key": flag_key,
                "scope_type": scope_type,
                "scope_id": scope_id,
            },
        )
        return str(row["id"]) if row else None

    async def insert_feature_flag(self, values: dict[str, Any]) -> dict[str, Any]:
        query = text("""
            INSERT INTO feature_flags (
                environment, flag_key, scope_type, scope_id, enabled, kill_switch,
                rollout_percentage, variants, default_variant, description,
                is_public, start_at, end_at, created_by, updated_by
            ) VALUES (
                :environment, :flag_key, :scope_type, :scope_id, :enabled, :kill_switch,
                :rollout_percentage, CAST(:variants AS jsonb), :default_variant, :description,
                :is_public, :start_at, :end_at, :created_by, :updated_by
            )
            RETURNING *
        """)
        return await self._write_returning(
            query, {**values, "variants": _json(values.get("variants", {}))}
        )

    async def update_feature_flag(self, flag_id: str, values: dict[str, Any]) -> dict[str, Any]:
        query = text("""
            UPDATE feature_flags SET
                enabled = :enabled,
                kill_switch = :kill_switch,
                rollout_percentage = :rollout_percentage,
                variants = CAST(:variants AS jsonb),
                default_variant = :default_variant,
                description = :description,
                is_public = :is_public,
                start_at = :start_at,
                end_at = :end_at,
                updated_by = :updated_by,
                updated_at = NOW()
            WHERE id = :id
            RETURNING *
        """)
        params = {key: value for key, value in values.items() if key != "created_by"}
        return await self._write_returning(
            query,
            {**params, "id": flag_id, "variants": _json(values.get("variants", {}))},
        )

    async def upsert_marketing_config(self, values: dict[str, Any]) -> dict[str, Any]:
        query = text("""
            INSERT INTO marketing_config (
                environment, section, config_key, value, description, updated_by
            ) VALUES (
                :environment, :section, :config_key, CAST(:value AS jsonb),
                :description, :updated_by
            )
            ON CONFLICT (environment, section, config_key) DO UPDATE SET
                value = EXCLUDED.value,
                description = EXCLUDED.description,
                updated_by = EXCLUDED.updated_by,
                updated_at = NOW()
            RETURNING *
        """)
        return await self._write_returning(query, {**values, "value": _json(values.get("value"))})

    async def upsert_system_setting(self, values: dict[str, Any]) -> dict[str, Any]:
        query = text("""
            INSERT INTO system_settings (
                environment, category, setting_key, value, description, updated_by
            ) VALUES (
                :environment, :category, :setting_key, CAST(:value AS jsonb),
                :description, :updated_by
            )
            ON CONFLICT (environment, category, setting_key) DO UPDATE SET
                value = EXCLUDED.value,
                description = COALESCE(EXCLUDED.description, system_settings.description),
                updated_by = EXCLUDED.updated_by,
                updated_at = NOW()
            RETURNING *
        """)
        params = {"description": None, "updated_by": None, **values}
        return await self._write_returning(query, {**params, "value": _json(values.get("value"))})

    async def insert_audit(self, values: dict[str, Any]) -> None:
        query = text("""
            INSERT INTO audit_log (
                actor_user_id, environment, event_type, target_type, target_id, metadata
            ) VALUES (
                :actor_user_id, :environment, :event_type, :target_type, :target_id,
                CAST(:metadata AS jsonb)
            )
        """)
        await self._write(
            query,
            {
                "actor_user_id": values.get("actor_user_id"),
                "environment": values["environment"],
                "event_type": values["event_type"],
                "target_type": values["target_type"],
                "target_id": values.get("target_id"),
                "metadata": _json(values.get("metadata", {})),
            },
        )

    # Jobs -------------------------------------------------------------------

    async def insert_job(self, values: dict[str, Any]) -> dict[str, Any]:
        query = text("""
            INSERT INTO admin_jobs (job_type, status, payload, progress, logs, requested_by)
            VALUES (
                :job_type, :status, CAST(:payload AS jsonb), :progress,
                CAST(:logs AS jsonb), :requested_by
            )
            RETURNING *
        """)
        return await self._write_returning(
            query,
            {
                **values,
                "payload": _json(values.get("payload", {})),
                "logs": _json(values.get("logs", [])),
            },
        )

    async def get_job(self, job_id: str) -> dict[str, Any] | None:
        return await self._row(text("SELECT * FROM admin_jobs WHERE id = :id"), {"id": job_id})

    async def update_job(self, job_id: str, values: dict[str, Any]) -> None:
        unknown = set(values) - _JOB_COLUMNS
        if unknown:
            raise ValueError(f"Unknown admin_jobs columns: {sorted(unknown)}")

        assignments = [
            f"{column} = CAST(:{column} AS jsonb)" if column in _JSON_JOB_COLUMNS
            else f"{column} = :{column}"
            for column in values
        ]
        params = {
            column: _json(value) if column in _JSON_JOB_COLUMNS else value
            for column, value in values.items()
        }
        query = text(f"""
            UPDATE admin_jobs
            SET {", ".join(assignments)}, updated_at = NOW()
            WHERE id = :id
        """)
        await self._write(query, {**params, "id": job_id})

    async def find_stale_failed_jobs(self, threshold: datetime, limit: int) -> list[str]:
        query = text("""
            SELECT id FROM admin_jobs
            WHERE status = 'failed' AND created_at < :threshold
            LIMIT :limit
        """)
        rows = await self._rows(query, {"threshold": threshold, "limit": limit})
        return [str(row["id"]) for row in rows]

    async def delete_jobs(self, job_ids: list[str]) -> None:
        if not job_ids:
            return
        query = text("DELETE FROM admin_jobs WHERE id IN :ids").bindparams(
            bindparam("ids", expanding=True)
        )
        await self._write(query, {"ids": job_ids})


@asynccontextmanager
async def control_plane_scope() -> AsyncGenerator[ControlPlaneRepository, None]:
    """Open one transaction and yield a repository bound to it."""
    async with postgres_session() as session:
        yield PostgresControlPlaneRepository(session)


async def get_control_plane_repository(
    db: AsyncSession = Depends(get_postgres_session),
) -> ControlPlaneRepository:
    """Dependency that binds a repository to the request's session."""
    return PostgresControlPlaneRepository(db)


def get_control_plane_scope_factory() -> ControlPlaneScopeFactory:
    """Dependency for work that outlives the request, such as background jobs."""
    return control_plane_scope
