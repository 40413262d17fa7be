"""
Onboarding Service
==================

Per-industry onboarding roadmaps and checklist progress.

Components:
- Roadmaps: static phase/step tables keyed by industry
- Checklists: completion checks over organization activity counts
- Routes: read-only API mounted by the automation service

Version: 0.1.0
"""
