"""SQLAlchemy enum definitions for the database schema."""

import enum

from sqlalchemy import Enum as SQLEnum


# =====================================================
# Python Enum Classes
# =====================================================


class EventType(str, enum.Enum):
    online = "online"
    offline = "offline"


class RegistrationStatus(str, enum.Enum):
    registered = "registered"
    cancelled = "cancelled"


class TriggerKind(str, enum.Enum):
    registration_confirmed = "registration_confirmed"
    reminder_24h = "reminder_24h"
    reminder_custom = "reminder_custom"
    attendance_request = "attendance_request"
    broadcast = "broadcast"


class RunStatus(str, enum.Enum):
    pending = "pending"
    waiting = "waiting"
    resolving = "resolving"
    sending = "sending"
    completed = "completed"
    skipped_disabled = "skipped_disabled"
    skipped_empty = "skipped_empty"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_RUN_STATUSES

    @property
    def rank(self) -> int:
        """Position in the forward-only lifecycle (terminal states share the last rank)."""
        return _RUN_STATUS_RANK[self]


TERMINAL_RUN_STATUSES = frozenset(
    {RunStatus.completed, RunStatus.skipped_disabled, RunStatus.skipped_empty}
)

_RUN_STATUS_RANK = {
    RunStatus.pending: 0,
    RunStatus.waiting: 1,
    RunStatus.resolving: 2,
    RunStatus.sending: 3,
    RunStatus.completed: 4,
    RunStatus.skipped_disabled: 4,
    RunStatus.skipped_empty: 4,
}


class DeliveryStatus(str, enum.Enum):
    sent = "sent"
    failed = "failed"


# =====================================================
# SQLAlchemy Enum Types
# =====================================================

event_type_enum = SQLEnum(EventType, name="event_type", native_enum=True)
registration_status_enum = SQLEnum(
    RegistrationStatus, name="registration_status", native_enum=True
)
trigger_kind_enum = SQLEnum(TriggerKind, name="trigger_kind", native_enum=True)
run_status_enum = SQLEnum(RunStatus, name="run_status", native_enum=True)
delivery_status_enum = SQLEnum(
    DeliveryStatus, name="delivery_status", native_enum=True
)
