"""
FormaOS Services
================

Backend services for the FormaOS compliance platform.

Services:
- automation: Compliance scoring, automation triggers and the scheduled sweep
- onboarding: Industry roadmaps and setup checklists
- control_plane: Founder-only admin console (flags, settings, jobs)
"""

__all__ = [
    "automation",
    "onboarding",
    "control_plane",
]
