"""Query layer for database operations using SQLAlchemy Core."""

from .notification_runs import (
    create_run,
    get_run,
    list_unfinished_runs,
    log_deliveries,
    record_run_failure,
    record_step,
    update_run_status,
)
from .registrations import get_event_flags, list_registered_recipients

__all__ = [
    # Event store (read-only)
    "list_registered_recipients",
    "get_event_flags",
    # Notification runs
    "create_run",
    "get_run",
    "update_run_status",
    "record_step",
    "record_run_failure",
    "list_unfinished_runs",
    "log_deliveries",
]
