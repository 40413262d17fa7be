"""
FormaOS Shared Library
======================

Common utilities and configuration shared across all FormaOS services.

Modules:
    - config: Configuration management with Pydantic Settings
    - logging: Structured logging with structlog
    - auth: JWT authentication and role checks
    - database: PostgreSQL and Redis clients
    - models: Shared response envelopes

Version: 0.1.0
"""

__version__ = "0.1.0"

from shared.config import settings
from shared.logging import get_logger, setup_logging


__all__ = [
    "settings",
    "get_logger",
    "setup_logging",
    "__version__",
]
