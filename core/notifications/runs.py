"""
Notification run records and their step log.

A run is one scheduled notification from trigger to terminal state. Every
discrete unit of work inside it is recorded under a stable step id so a
resumed run reuses what was already done instead of repeating it.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping

from core.enums import RunStatus, TriggerKind


STEP_COMPUTE_SEND_TIME = "compute-send-time"
STEP_READ_EVENT_FLAGS = "read-event-flags"
STEP_FETCH_RECIPIENTS = "fetch-recipients"

# Kinds whose audience is given by the caller rather than looked up at fire time
PINNED_KINDS = frozenset({TriggerKind.registration_confirmed, TriggerKind.broadcast})


def batch_step_id(index: int) -> str:
    return f"send-batch-{index}"


class InvalidTransition(Exception):
    """A run was asked to move backwards in its lifecycle."""


@dataclass
class NotificationRun:
    run_id: int
    trigger_kind: TriggerKind
    event_id: str | None
    event_snapshot: dict
    payload: dict
    scheduled_for: datetime
    status: RunStatus = RunStatus.pending
    completed_steps: dict = field(default_factory=dict)
    sent_count: int = 0
    failed_count: int = 0
    attempts: int = 0
    last_error: str | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Mapping) -> "NotificationRun":
        return cls(
            run_id=row["run_id"],
            trigger_kind=TriggerKind(row["trigger_kind"]),
            event_id=row["event_id"],
            event_snapshot=dict(row["event_snapshot"] or {}),
            payload=dict(row["payload"] or {}),
            scheduled_for=row["scheduled_for"],
            status=RunStatus(row["status"]),
            completed_steps=dict(row["completed_steps"] or {}),
            sent_count=row.get("sent_count") or 0,
            failed_count=row.get("failed_count") or 0,
            attempts=row.get("attempts") or 0,
            last_error=row.get("last_error"),
            created_at=row.get("created_at"),
            completed_at=row.get("completed_at"),
        )

    @property
    def is_finished(self) -> bool:
        return self.status.is_terminal

    def has_step(self, step_id: str) -> bool:
        return step_id in self.completed_steps

    def summary(self) -> dict:
        """Public view of the run, as returned by the API."""
        return {
            "run_id": self.run_id,
            "trigger_kind": self.trigger_kind.value,
            "event_id": self.event_id,
            "status": self.status.value,
            "scheduled_for": self.scheduled_for.isoformat(),
            "sent_count": self.sent_count,
            "failed_count": self.failed_count,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "completed_steps": sorted(self.completed_steps),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


def check_transition(current: RunStatus, target: RunStatus) -> bool:
    """
    Validate a forward move.

    Returns:
        False if the run is already in `target` (nothing to do), True otherwise

    Raises:
        InvalidTransition: If `target` is behind `current`, or `current` is terminal
    """
    if current == target:
        return False
    if current.is_terminal or target.rank < current.rank:
        raise InvalidTransition(f"Cannot move run from {current.value} to {target.value}")
    return True


def statuses_before(target: RunStatus) -> list[RunStatus]:
    """Non-terminal statuses a run may be in when moving to `target`."""
    return [
        status
        for status in RunStatus
        if not status.is_terminal and status.rank < target.rank
    ]
