"""
Configuration Module
====================

Import the process-wide ``settings`` object; groups hang off it by concern.

Usage:
    from shared.config import settings

    settings.automation.evidence_expiry_days
    settings.control_plane.default_environment
"""

from shared.config.settings import (
    ControlPlaneEnvironment,
    Environment,
    LogLevel,
    Settings,
    get_settings,
)


settings = get_settings()

__all__ = [
    "ControlPlaneEnvironment",
    "Environment",
    "LogLevel",
    "Settings",
    "get_settings",
    "settings",
]
