"""SQLAlchemy Core table definitions for the database schema."""

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID

from .enums import (
    delivery_status_enum,
    event_type_enum,
    registration_status_enum,
    run_status_enum,
    trigger_kind_enum,
)

# Naming convention for constraints (helps Alembic generate better names)
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}
metadata = MetaData(naming_convention=convention)


# =====================================================
# 1. EVENTS (owned by the event store, read-only here)
# =====================================================
events = Table(
    "events",
    metadata,
    Column(
        "id",
        UUID(as_uuid=False),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    ),
    Column("organizer_id", UUID(as_uuid=False)),
    Column("title", Text, nullable=False),
    Column("slug", Text, unique=True),
    Column("description", Text),
    Column("event_type", event_type_enum, nullable=False),
    Column("location", Text),
    Column("meeting_link", Text),
    Column("start_date", Text, nullable=False),  # YYYY-MM-DD as entered
    Column("start_time", Text, nullable=False),  # HH:MM as entered
    Column("capacity", Integer),
    Column("send_24h_reminder", Boolean, nullable=False, server_default="true"),
    Column("confirmation_email_hours", Integer, nullable=False, server_default="0"),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
)


# =====================================================
# 2. REGISTRATIONS (owned by the event store, read-only here)
# =====================================================
registrations = Table(
    "registrations",
    metadata,
    Column(
        "id",
        UUID(as_uuid=False),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    ),
    Column(
        "event_id",
        UUID(as_uuid=False),
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("full_name", Text, nullable=False),
    Column("email", Text, nullable=False),
    Column(
        "status",
        registration_status_enum,
        nullable=False,
        server_default="registered",
    ),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
    # Concurrent signups from the same address are rejected here, not in app code
    UniqueConstraint("event_id", "email", name="uq_registrations_event_id_email"),
    Index("idx_registrations_event_status", "event_id", "status"),
)


# =====================================================
# 3. NOTIFICATION_RUNS
# =====================================================
notification_runs = Table(
    "notification_runs",
    metadata,
    Column("run_id", Integer, primary_key=True, autoincrement=True),
    Column("trigger_kind", trigger_kind_enum, nullable=False),
    Column("event_id", Text),  # Not a FK: runs outlive deleted events
    Column("event_snapshot", JSONB, nullable=False, server_default="{}"),
    Column("payload", JSONB, nullable=False, server_default="{}"),
    Column("scheduled_for", TIMESTAMP(timezone=True), nullable=False),
    Column("status", run_status_enum, nullable=False, server_default="pending"),
    # {step_id: recorded result}; replayed steps reuse these values
    Column("completed_steps", JSONB, nullable=False, server_default="{}"),
    Column("sent_count", Integer, nullable=False, server_default="0"),
    Column("failed_count", Integer, nullable=False, server_default="0"),
    Column("attempts", Integer, nullable=False, server_default="0"),
    Column("last_error", Text),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Column("updated_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Column("completed_at", TIMESTAMP(timezone=True)),
    Index("idx_notification_runs_status", "status"),
    Index("idx_notification_runs_event_id", "event_id"),
)


# =====================================================
# 4. NOTIFICATION_LOG
# =====================================================
notification_log = Table(
    "notification_log",
    metadata,
    Column("log_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "run_id",
        Integer,
        ForeignKey("notification_runs.run_id", ondelete="SET NULL"),
    ),
    Column("registration_id", Text),
    Column("email", Text, nullable=False),
    Column("trigger_kind", trigger_kind_enum, nullable=False),
    Column("step_id", Text, nullable=False),  # e.g. "send-batch-0"
    Column("status", delivery_status_enum, nullable=False),
    Column("message_id", Text),  # Provider message id (if sent)
    Column("error_message", Text),  # Why it failed (if applicable)
    Column("sent_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Index("idx_notification_log_run_id", "run_id"),
    Index("idx_notification_log_sent_at", "sent_at"),
)
