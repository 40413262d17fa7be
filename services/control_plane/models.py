"""
Control Plane Models
====================

Records and snapshot schemas for the admin control plane.

Rows coming back from PostgreSQL are validated into these models; fields
the database leaves NULL fall back to the defaults below.

Version: 0.1.0
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class JobType(str, Enum):
    """Admin jobs the runner knows how to execute."""

    RUN_CLEANUP = "run_cleanup"
    RECOMPUTE_SCORES = "recompute_scores"
    REGENERATE_TRUST_PACKET = "regenerate_trust_packet"
    WARM_CDN = "warm_cdn"


class ScopeType(str, Enum):
    GLOBAL = "global"
    ORGANIZATION = "organization"
    USER = "user"


class ConnectionStatus(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"
    SYNCING = "syncing"


class ControlPlaneAction(str, Enum):
    SET_FEATURE_FLAG = "set_feature_flag"
    SET_MARKETING_CONFIG = "set_marketing_config"
    SET_SYSTEM_SETTING = "set_system_setting"
    SET_INTEGRATION_CONTROL = "set_integration_control"
    RETRY_INTEGRATION = "retry_integration"
    ENQUEUE_JOB = "enqueue_job"
    RUN_JOB = "run_job"


class ControlPlaneError(Exception):
    """An action was rejected; the message is returned to the console."""


# =============================================================================
# Records
# =============================================================================


class _Record(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    @field_validator("*", mode="before")
    @classmethod
    def _normalize_column(cls, value: Any, info: ValidationInfo) -> Any:
        # asyncpg returns UUID objects for id columns
        if isinstance(value, UUID):
            return str(value)
        if value is None:
            field = cls.model_fields[info.field_name]
            if not field.is_required():
                return field.get_default(call_default_factory=True)
        return value


class FeatureFlagRecord(_Record):
    id: str
    flag_key: str
    description: str | None = None
    environment: str
    scope_type: ScopeType
    scope_id: str | None = None
    enabled: bool = False
    kill_switch: bool = False
    rollout_percentage: int = 0
    variants: dict[str, float] = Field(default_factory=dict)
    default_variant: str | None = None
    start_at: datetime | None = None
    end_at: datetime | None = None
    is_public: bool = True
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class MarketingConfigRecord(_Record):
    id: str
    environment: str
    section: str
    config_key: str
    value: Any = None
    description: str | None = None
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SystemSettingRecord(_Record):
    id: str
    environment: str
    category: str
    setting_key: str
    value: Any = None
    description: str | None = None
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class JobLogEntry(BaseModel):
    at: str
    level: str = "info"
    message: str


class AdminJobRecord(_Record):
    id: str
    job_type: str
    status: JobStatus
    payload: dict[str, Any] = Field(default_factory=dict)
    progress: int = 0
    logs: list[JobLogEntry] = Field(default_factory=list)
    result: dict[str, Any] = Field(default_factory=dict)
    error_message: str | None = None
    requested_by: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class AuditLogRecord(_Record):
    id: str
    actor_user_id: str | None = None
    event_type: str
    target_type: str
    target_id: str | None = None
    environment: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None


class IntegrationErrorLog(BaseModel):
    at: str
    message: str


class IntegrationControl(BaseModel):
    """Operator-facing state of one third-party integration."""

    enabled: bool = True
    connection_status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    last_sync_at: str | None = None
    last_error: str | None = None
    error_logs: list[IntegrationErrorLog] = Field(default_factory=list)
    scopes: list[str] = Field(default_factory=list)
    enabled_scopes: list[str] = Field(default_factory=list)
    retry_requested_at: str | None = None


class IntegrationEntry(BaseModel):
    key: str
    value: IntegrationControl


# =============================================================================
# Snapshot
# =============================================================================


class QueueHealth(BaseModel):
    queued: int = 0
    running: int = 0
    failed: int = 0
    succeeded_last_24h: int = 0


class ControlPlaneHealth(BaseModel):
    database_latency_ms: int
    api_healthy: bool = True
    queue: QueueHealth


class AdminControlPlaneSnapshot(BaseModel):
    """Everything the admin console renders."""

    environment: str
    runtime_version: str
    feature_flags: list[FeatureFlagRecord]
    marketing_config: list[MarketingConfigRecord]
    system_settings: list[SystemSettingRecord]
    integrations: list[IntegrationEntry]
    jobs: list[AdminJobRecord]
    audit: list[AuditLogRecord]
    health: ControlPlaneHealth


class ActionRequest(BaseModel):
    action: str = ""
    payload: dict[str, Any] = Field(default_factory=dict)
    environment: str | None = None

    @field_validator("payload", mode="before")
    @classmethod
    def _payload_object(cls, value: Any) -> dict[str, Any]:
        return value if isinstance(value, dict) else {}
