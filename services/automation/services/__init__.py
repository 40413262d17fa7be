"""Automation engines: scoring, triggers, events and the scheduled sweep."""

from services.automation.services.events import EventProcessor
from services.automation.services.integration import (
    dispatch_event,
    notify_control_status_changed,
    notify_evidence_reviewed,
    notify_evidence_uploaded,
    notify_onboarding_completed,
    notify_policy_status_changed,
    notify_task_completed,
    notify_task_created,
)
from services.automation.services.scheduler import ScheduledProcessor
from services.automation.services.score import ComplianceScoreEngine
from services.automation.services.trigger import TriggerEngine


__all__ = [
    "ComplianceScoreEngine",
    "TriggerEngine",
    "EventProcessor",
    "ScheduledProcessor",
    "dispatch_event",
    "notify_evidence_uploaded",
    "notify_evidence_reviewed",
    "notify_control_status_changed",
    "notify_task_completed",
    "notify_task_created",
    "notify_policy_status_changed",
    "notify_onboarding_completed",
]
