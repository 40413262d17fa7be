"""
Common Models
=============

Bodies shared by the FormaOS services: the error envelope every exception
handler returns and the ``/health`` report.

Version: 0.1.0
"""

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    status_code: int
    timestamp: datetime = Field(default_factory=_utcnow)


class HealthResponse(BaseModel):
    """Service health; ``degraded`` when any datastore check fails."""

    status: Literal["healthy", "degraded"] = "healthy"
    service: str
    version: str
    timestamp: datetime = Field(default_factory=_utcnow)
    components: dict[str, dict[str, Any]] = Field(default_factory=dict)

    @classmethod
    def from_components(
        cls,
        service: str,
        version: str,
        components: dict[str, dict[str, Any]],
    ) -> "HealthResponse":
        healthy = all(c.get("status") == "healthy" for c in components.values())
        return cls(
            status="healthy" if healthy else "degraded",
            service=service,
            version=version,
            components=components,
        )
