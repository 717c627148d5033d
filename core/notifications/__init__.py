"""
Notification system for event registrants.

Public API:
    accept_trigger(trigger, runs) - Create and arm runs for a trigger
    parse_trigger(data) - Validate a raw trigger payload
    NotificationWorkflow - Executes runs (resolving, gating, batched sending)
    init_scheduler(workflow) / shutdown_scheduler() - Scheduler lifecycle
    schedule_run(run_id, run_at) - Arm a run's job
    resume_unfinished_runs(run_store) - Startup recovery sweep
"""

from .scheduler import (
    init_scheduler,
    resume_unfinished_runs,
    schedule_run,
    shutdown_scheduler,
)
from .store import EventStore, RunStore
from .triggers import Trigger, accept_trigger, parse_trigger
from .workflow import NotificationWorkflow

__all__ = [
    "accept_trigger",
    "parse_trigger",
    "Trigger",
    "NotificationWorkflow",
    "EventStore",
    "RunStore",
    "init_scheduler",
    "shutdown_scheduler",
    "schedule_run",
    "resume_unfinished_runs",
]
