"""
Control Plane Service
=====================

Snapshot assembly, change detection for the live stream, and the named
actions the admin console posts.

Version: 0.1.0
"""

import math
import time
from datetime import UTC, datetime, timedelta
from typing import Any

from services.control_plane.models import (
    AdminControlPlaneSnapshot,
    AdminJobRecord,
    AuditLogRecord,
    ConnectionStatus,
    ControlPlaneAction,
    ControlPlaneError,
    ControlPlaneHealth,
    FeatureFlagRecord,
    IntegrationControl,
    IntegrationEntry,
    JobLogEntry,
    JobStatus,
    JobType,
    MarketingConfigRecord,
    QueueHealth,
    ScopeType,
    SystemSettingRecord,
)
from services.control_plane.repository import ControlPlaneRepository
from shared.config import ControlPlaneEnvironment, settings
from shared.logging import get_logger


logger = get_logger(__name__)

INTEGRATIONS_CATEGORY = "integrations"
INTEGRATION_ERROR_LOG_LIMIT = 20
RETRY_LOG_MESSAGE = "Manual retry requested from Admin Control Plane"


def now_iso() -> str:
    return datetime.now(UTC).isoformat()


def resolve_environment(value: str | None = None) -> str:
    """Known environment names pass through; anything else maps to the default."""
    try:
        return ControlPlaneEnvironment(value).value
    except ValueError:
        return settings.control_plane.default_environment.value


def _clean_str(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _as_object(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _parse_timestamp(payload: dict[str, Any], key: str) -> datetime | None:
    raw = _clean_str(payload.get(key))
    if raw is None:
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        raise ControlPlaneError(f"{key} must be an ISO 8601 timestamp") from None


def normalize_job(row: dict[str, Any]) -> AdminJobRecord:
    """Validate a job row, dropping empty log lines and unknown log levels."""
    logs = []
    for entry in row.get("logs") or []:
        if not isinstance(entry, dict) or not _clean_str(entry.get("message")):
            continue
        level = entry.get("level")
        logs.append(
            JobLogEntry(
                at=_clean_str(entry.get("at")) or now_iso(),
                level=level if level in ("warn", "error") else "info",
                message=entry["message"],
            )
        )
    return AdminJobRecord.model_validate({**row, "logs": logs})


def materialize_integration(value: Any) -> IntegrationControl:
    """Coerce a stored integration value into a well-formed control record."""
    value = _as_object(value)

    status = value.get("connection_status")
    error_logs = [
        {"at": _clean_str(log.get("at")) or now_iso(), "message": log["message"]}
        for log in value.get("error_logs") or []
        if isinstance(log, dict) and _clean_str(log.get("message"))
    ]

    def _strings(key: str) -> list[str]:
        items = value.get(key)
        return [item for item in items if isinstance(item, str)] if isinstance(items, list) else []

    def _optional_str(key: str) -> str | None:
        item = value.get(key)
        return item if isinstance(item, str) else None

    return IntegrationControl(
        enabled=value["enabled"] if isinstance(value.get("enabled"), bool) else True,
        connection_status=(
            ConnectionStatus(status)
            if status in {s.value for s in ConnectionStatus}
            else ConnectionStatus.DISCONNECTED
        ),
        last_sync_at=_optional_str("last_sync_at"),
        last_error=_optional_str("last_error"),
        error_logs=error_logs,
        scopes=_strings("scopes"),
        enabled_scopes=_strings("enabled_scopes"),
        retry_requested_at=_optional_str("retry_requested_at"),
    )


class ControlPlaneService:
    """
    Admin control plane operations over one repository.

    Every settings write records an ``audit_log`` row and bumps the
    environment's runtime version so connected consoles refresh.
    """

    def __init__(self, repository: ControlPlaneRepository) -> None:
        self.repository = repository

    # =========================================================================
    # Runtime version and audit
    # =========================================================================

    async def read_runtime_version(self, environment: str) -> str:
        row = await self.repository.get_system_setting(environment, "runtime", "version")
        value = _as_object(row.get("value") if row else None).get("value")
        return _clean_str(value) or settings.control_plane.default_runtime_version

    async def touch_runtime_version(self, environment: str, actor_user_id: str | None) -> str:
        next_version = str(time.time_ns() // 1_000_000)
        await self.repository.upsert_system_setting(
            {
                "environment": environment,
                "category": "runtime",
                "setting_key": "version",
                "value": {"value": next_version},
                "updated_by": actor_user_id,
            }
        )
        return next_version

    async def write_audit(
        self,
        *,
        actor_user_id: str | None,
        environment: str,
        event_type: str,
        target_type: str,
        target_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        await self.repository.insert_audit(
            {
                "actor_user_id": actor_user_id,
                "environment": environment,
                "event_type": event_type,
                "target_type": target_type,
                "target_id": target_id,
                "metadata": metadata or {},
            }
        )

    async def read_stream_version(self, environment: str) -> str:
        """
        Marker that changes whenever anything the console shows changes.

        Built from the runtime version and the latest change timestamps of
        the control plane tables.
        """
        repo = self.repository
        parts = [
            await self.read_runtime_version(environment),
            await repo.latest_change("feature_flags", "updated_at", environment),
            await repo.latest_change("marketing_config", "updated_at", environment),
            await repo.latest_change("system_settings", "updated_at", environment),
            await repo.latest_change("admin_jobs", "updated_at", None),
            await repo.latest_change("audit_log", "created_at", environment),
        ]
        return "|".join(parts)

    # =========================================================================
    # Snapshot
    # =========================================================================

    async def get_snapshot(
        self,
        environment: str | None = None,
        audit_limit: int = 120,
        jobs_limit: int = 120,
    ) -> AdminControlPlaneSnapshot:
        environment = resolve_environment(environment)
        audit_limit = max(20, min(audit_limit, 500))
        jobs_limit = max(20, min(jobs_limit, 300))
        repo = self.repository

        latency_ms = max(1, round(await repo.ping()))

        system_settings = [
            SystemSettingRecord.model_validate(row)
            for row in await repo.list_system_settings(environment)
        ]
        day_ago = datetime.now(UTC) - timedelta(days=1)

        return AdminControlPlaneSnapshot(
            environment=environment,
            runtime_version=await self.read_runtime_version(environment),
            feature_flags=[
                FeatureFlagRecord.model_validate(row)
                for row in await repo.list_feature_flags(environment)
            ],
            marketing_config=[
                MarketingConfigRecord.model_validate(row)
                for row in await repo.list_marketing_config(environment)
            ],
            system_settings=system_settings,
            integrations=[
                IntegrationEntry(key=entry.setting_key, value=materialize_integration(entry.value))
                for entry in system_settings
                if entry.category == INTEGRATIONS_CATEGORY
            ],
            jobs=[normalize_job(row) for row in await repo.list_jobs(jobs_limit)],
            audit=[
                AuditLogRecord.model_validate(row)
                for row in await repo.list_audit(environment, audit_limit)
            ],
            health=ControlPlaneHealth(
                database_latency_ms=latency_ms,
                api_healthy=True,
                queue=QueueHealth(
                    queued=await repo.count_jobs(JobStatus.QUEUED.value),
                    running=await repo.count_jobs(JobStatus.RUNNING.value),
                    failed=await repo.count_jobs(JobStatus.FAILED.value),
                    succeeded_last_24h=await repo.count_jobs(
                        JobStatus.SUCCEEDED.value, updated_since=day_ago
                    ),
                ),
            ),
        )

    # =========================================================================
    # Settings writes
    # =========================================================================

    async def upsert_feature_flag(
        self,
        *,
        environment: str,
        actor_user_id: str,
        flag_key: str,
        scope_type: ScopeType,
        scope_id: str | None,
        enabled: bool,
        kill_switch: bool,
        rollout_percentage: float,
        variants: dict[str, float] | None = None,
        default_variant: str | None = None,
        description: str | None = None,
        is_public: bool = True,
        start_at: datetime | None = None,
        end_at: datetime | None = None,
    ) -> FeatureFlagRecord:
        """Insert or update one flag row, keyed by environment, key and scope."""
        scope_id = None if scope_type == ScopeType.GLOBAL else scope_id
        values = {
            "environment": environment,
            "flag_key": flag_key,
            "scope_type": scope_type.value,
            "scope_id": scope_id,
            "enabled": enabled,
            "kill_switch": kill_switch,
            "rollout_percentage": min(100, max(0, round(rollout_percentage))),
            "variants": variants or {},
            "default_variant": default_variant,
            "description": description,
            "is_public": is_public,
            "start_at": start_at,
            "end_at": end_at,
            "created_by": actor_user_id,
            "updated_by": actor_user_id,
        }

        existing_id = await self.repository.find_feature_flag_id(
            environment, flag_key, scope_type.value, scope_id
        )
        if existing_id:
            row = await self.repository.update_feature_flag(existing_id, values)
        else:
            row = await self.repository.insert_feature_flag(values)
        record = FeatureFlagRecord.model_validate(row)

        await self.write_audit(
            actor_user_id=actor_user_id,
            environment=environment,
            event_type="feature_flag.upsert",
            target_type="feature_flag",
            target_id=record.id,
            metadata={
                "flag_key": flag_key,
                "scope_type": scope_type.value,
                "scope_id": scope_id,
                "enabled": enabled,
                "kill_switch": kill_switch,
                "rollout_percentage": values["rollout_percentage"],
            },
        )
        await self.touch_runtime_version(environment, actor_user_id)

        logger.info(
            "feature_flag_upserted",
            environment=environment,
            flag_key=flag_key,
            scope_type=scope_type.value,
            enabled=enabled,
        )
        return record

    async def upsert_marketing_config(
        self,
        *,
        environment: str,
        actor_user_id: str,
        section: str,
        config_key: str,
        value: Any,
        description: str | None = None,
    ) -> MarketingConfigRecord:
        row = await self.repository.upsert_marketing_config(
            {
                "environment": environment,
                "section": section,
                "config_key": config_key,
                "value": value,
                "description": description,
                "updated_by": actor_user_id,
            }
        )
        record = MarketingConfigRecord.model_validate(row)

        await self.write_audit(
            actor_user_id=actor_user_id,
            environment=environment,
            event_type="marketing_config.upsert",
            target_type="marketing_config",
            target_id=record.id,
            metadata={"section": section, "config_key": config_key},
        )
        await self.touch_runtime_version(environment, actor_user_id)
        return record

    async def upsert_system_setting(
        self,
        *,
        environment: str,
        actor_user_id: str,
        category: str,
        setting_key: str,
        value: Any,
        description: str | None = None,
        event_type: str | None = None,
    ) -> SystemSettingRecord:
        row = await self.repository.upsert_system_setting(
            {
                "environment": environment,
                "category": category,
                "setting_key": setting_key,
                "value": value,
                "description": description,
                "updated_by": actor_user_id,
            }
        )
        record = SystemSettingRecord.model_validate(row)

        await self.write_audit(
            actor_user_id=actor_user_id,
            environment=environment,
            event_type=event_type or "system_setting.upsert",
            target_type=f"{category}_setting",
            target_id=record.id,
            metadata={"category": category, "setting_key": setting_key},
        )
        await self.touch_runtime_version(environment, actor_user_id)
        return record

    async def get_integration(self, environment: str, integration_key: str) -> IntegrationControl:
        row = await self.repository.get_system_setting(
            environment, INTEGRATIONS_CATEGORY, integration_key
        )
        return materialize_integration(row.get("value") if row else None)

    async def enqueue_job(
        self,
        *,
        environment: str,
        actor_user_id: str,
        job_type: str,
        payload: dict[str, Any] | None = None,
    ) -> AdminJobRecord:
        """
        Queue an admin job.

        Raises:
            ControlPlaneError: If the job type is not supported
        """
        if job_type not in {t.value for t in JobType}:
            raise ControlPlaneError("Unsupported job type")

        row = await self.repository.insert_job(
            {
                "job_type": job_type,
                "status": JobStatus.QUEUED.value,
                "payload": payload or {},
                "progress": 0,
                "logs": [{"at": now_iso(), "level": "info", "message": "Job queued"}],
                "requested_by": actor_user_id,
            }
        )
        job = normalize_job(row)

        await self.write_audit(
            actor_user_id=actor_user_id,
            environment=environment,
            event_type="admin_job.queued",
            target_type="admin_job",
            target_id=job.id,
            metadata={"job_type": job_type},
        )
        logger.info("admin_job_queued", job_id=job.id, job_type=job_type)
        return job

    # =========================================================================
    # Actions
    # =========================================================================

    async def handle_action(
        self,
        actor_user_id: str,
        environment: str,
        action: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        """
        Validate and apply one console action.

        ``run_job`` is executed by the job runner, not here.

        Raises:
            ControlPlaneError: On a validation failure or an unknown action
        """
        if not action:
            raise ControlPlaneError("action is required")

        try:
            kind = ControlPlaneAction(action)
        except ValueError:
            raise ControlPlaneError(f"Unknown action: {action}") from None

        if kind == ControlPlaneAction.SET_FEATURE_FLAG:
            body = await self._set_feature_flag(actor_user_id, environment, payload)
        elif kind == ControlPlaneAction.SET_MARKETING_CONFIG:
            body = await self._set_marketing_config(actor_user_id, environment, payload)
        elif kind == ControlPlaneAction.SET_SYSTEM_SETTING:
            body = await self._set_system_setting(actor_user_id, environment, payload)
        elif kind == ControlPlaneAction.SET_INTEGRATION_CONTROL:
            body = await self._set_integration_control(actor_user_id, environment, payload)
        elif kind == ControlPlaneAction.RETRY_INTEGRATION:
            body = await self._retry_integration(actor_user_id, environment, payload)
        elif kind == ControlPlaneAction.ENQUEUE_JOB:
            job_type = _clean_str(payload.get("jobType"))
            if not job_type:
                raise ControlPlaneError("jobType is required")
            job = await self.enqueue_job(
                environment=environment,
                actor_user_id=actor_user_id,
                job_type=job_type,
                payload=_as_object(payload.get("payload")),
            )
            body = {"ok": True, "job": job.model_dump(mode="json")}
        else:
            raise ControlPlaneError("run_job is handled by the job runner")

        await self.record_action(actor_user_id, environment, kind)
        return body

    async def record_action(
        self, actor_user_id: str, environment: str, action: ControlPlaneAction
    ) -> None:
        """Audit a successful action; job actions also bump the runtime version."""
        await self.write_audit(
            actor_user_id=actor_user_id,
            environment=environment,
            event_type="control_plane.action",
            target_type="control_plane",
            target_id=action.value,
            metadata={"action": action.value},
        )
        # Settings writes already bumped it
        if action in (ControlPlaneAction.ENQUEUE_JOB, ControlPlaneAction.RUN_JOB):
            await self.touch_runtime_version(environment, actor_user_id)

        logger.info(
            "control_plane_action",
            action=action.value,
            environment=environment,
            actor_user_id=actor_user_id,
        )

    async def _set_feature_flag(
        self, actor_user_id: str, environment: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        flag_key = _clean_str(payload.get("flagKey"))
        raw_scope = str(payload.get("scopeType") or ScopeType.GLOBAL.value)
        scope_id = _clean_str(payload.get("scopeId"))

        if not flag_key:
            raise ControlPlaneError("flagKey is required")
        try:
            scope_type = ScopeType(raw_scope)
        except ValueError:
            raise ControlPlaneError("scopeType must be global, organization, or user") from None
        if scope_type != ScopeType.GLOBAL and not scope_id:
            raise ControlPlaneError("scopeId is required for organization and user scopes")

        raw_rollout = payload.get("rolloutPercentage")
        try:
            rollout = float(100 if raw_rollout is None else raw_rollout)
        except (TypeError, ValueError):
            raise ControlPlaneError("rolloutPercentage must be a number") from None
        if not math.isfinite(rollout):
            raise ControlPlaneError("rolloutPercentage must be a number")

        record = await self.upsert_feature_flag(
            environment=environment,
            actor_user_id=actor_user_id,
            flag_key=flag_key,
            scope_type=scope_type,
            scope_id=scope_id,
            enabled=bool(payload.get("enabled")),
            kill_switch=bool(payload.get("killSwitch")),
            rollout_percentage=rollout,
            variants=_as_object(payload.get("variants")),
            default_variant=_clean_str(payload.get("defaultVariant")),
            description=_clean_str(payload.get("description")),
            is_public=payload.get("isPublic") is not False,
            start_at=_parse_timestamp(payload, "startAt"),
            end_at=_parse_timestamp(payload, "endAt"),
        )
        return {"ok": True, "feature_flag": record.model_dump(mode="json")}

    async def _set_marketing_config(
        self, actor_user_id: str, environment: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        section = _clean_str(payload.get("section"))
        config_key = _clean_str(payload.get("configKey"))
        if not section or not config_key:
            raise ControlPlaneError("section and configKey are required")

        record = await self.upsert_marketing_config(
            environment=environment,
            actor_user_id=actor_user_id,
            section=section,
            config_key=config_key,
            value=payload.get("value"),
            description=_clean_str(payload.get("description")),
        )
        return {"ok": True, "marketing_config": record.model_dump(mode="json")}

    async def _set_system_setting(
        self, actor_user_id: str, environment: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        category = _clean_str(payload.get("category"))
        setting_key = _clean_str(payload.get("settingKey"))
        if not category or not setting_key:
            raise ControlPlaneError("category and settingKey are required")

        record = await self.upsert_system_setting(
            environment=environment,
            actor_user_id=actor_user_id,
            category=category,
            setting_key=setting_key,
            value=payload.get("value"),
            description=_clean_str(payload.get("description")),
            event_type=_clean_str(payload.get("eventType")),
        )
        return {"ok": True, "system_setting": record.model_dump(mode="json")}

    async def _set_integration_control(
        self, actor_user_id: str, environment: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        integration_key = _clean_str(payload.get("integrationKey"))
        if not integration_key:
            raise ControlPlaneError("integrationKey is required")

        existing = (await self.get_integration(environment, integration_key)).model_dump(
            mode="json"
        )
        incoming = _as_object(payload.get("value"))
        merged = {
            **existing,
            **incoming,
            "error_logs": (
                incoming["error_logs"]
                if isinstance(incoming.get("error_logs"), list)
                else existing["error_logs"]
            ),
        }

        record = await self.upsert_system_setting(
            environment=environment,
            actor_user_id=actor_user_id,
            category=INTEGRATIONS_CATEGORY,
            setting_key=integration_key,
            value=merged,
            event_type="integration_control.updated",
        )
        return {"ok": True, "integration_setting": record.model_dump(mode="json")}

    async def _retry_integration(
        self, actor_user_id: str, environment: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        integration_key = _clean_str(payload.get("integrationKey"))
        if not integration_key:
            raise ControlPlaneError("integrationKey is required")

        existing = (await self.get_integration(environment, integration_key)).model_dump(
            mode="json"
        )
        requested_at = now_iso()
        error_logs = [
            {"at": requested_at, "message": RETRY_LOG_MESSAGE},
            *existing["error_logs"],
        ][:INTEGRATION_ERROR_LOG_LIMIT]

        record = await self.upsert_system_setting(
            environment=environment,
            actor_user_id=actor_user_id,
            category=INTEGRATIONS_CATEGORY,
            setting_key=integration_key,
            value={
                **existing,
                "connection_status": ConnectionStatus.SYNCING.value,
                "retry_requested_at": requested_at,
                "error_logs": error_logs,
            },
            event_type="integration_control.retry_requested",
        )
        return {"ok": True, "integration_setting": record.model_dump(mode="json")}
