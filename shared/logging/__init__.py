"""
Logging Module
==============

Structured logging using structlog with JSON output for production
and colored console output for development.

Usage:
    from shared.logging import get_logger, setup_logging

    # Setup at application start
    setup_logging(service_name="automation")

    # Get logger for a module
    logger = get_logger(__name__)

    # Log with context
    logger.info("score_saved", organization_id="org-1", score=82)
"""

from shared.logging.logger import get_logger, setup_logging


__all__ = [
    "get_logger",
    "setup_logging",
]
