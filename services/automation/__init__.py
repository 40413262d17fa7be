"""
Automation Service
==================

Compliance scoring and rule-based automation for FormaOS organizations.

Components:
- Score engine: weighted compliance health score and risk tier
- Trigger engine: compliance events -> remediation tasks and notifications
- Event processor: record changes -> score refreshes and triggers
- Scheduled processor: cron sweep over expiring and overdue records
- Integration helpers: best-effort entry points for callers

Version: 0.1.0
"""
