"""
Automation Routes
=================

API route handlers for the Automation Service.
"""

from services.automation.routes import scheduled, scores, triggers


__all__ = ["scheduled", "scores", "triggers"]
