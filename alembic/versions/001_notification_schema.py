"""Notification schema.

Revision ID: 001
Revises:
Create Date: 2026-02-14

Creates the events/registrations tables read by the notification service
(the event store owns their write paths), plus notification_runs and
notification_log. The APScheduler job table is created by APScheduler itself.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ENUMS = {
    "event_type": ("online", "offline"),
    "registration_status": ("registered", "cancelled"),
    "trigger_kind": (
        "registration_confirmed",
        "reminder_24h",
        "reminder_custom",
        "attendance_request",
        "broadcast",
    ),
    "run_status": (
        "pending",
        "waiting",
        "resolving",
        "sending",
        "completed",
        "skipped_disabled",
        "skipped_empty",
    ),
    "delivery_status": ("sent", "failed"),
}


def _enum(name: str) -> postgresql.ENUM:
    # Types are created up front; columns only reference them
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def upgrade() -> None:
    bind = op.get_bind()
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        "events",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=False),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("organizer_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("event_type", _enum("event_type"), nullable=False),
        sa.Column("location", sa.Text(), nullable=True),
        sa.Column("meeting_link", sa.Text(), nullable=True),
        sa.Column("start_date", sa.Text(), nullable=False),
        sa.Column("start_time", sa.Text(), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=True),
        sa.Column(
            "send_24h_reminder",
            sa.Boolean(),
            server_default=sa.text("true"),
            nullable=False,
        ),
        sa.Column(
            "confirmation_email_hours",
            sa.Integer(),
            server_default=sa.text("0"),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_events")),
        sa.UniqueConstraint("slug", name=op.f("uq_events_slug")),
    )

    op.create_table(
        "registrations",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=False),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("event_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("full_name", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column(
            "status",
            _enum("registration_status"),
            server_default="registered",
            nullable=False,
        ),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
        sa.ForeignKeyConstraint(
            ["event_id"],
            ["events.id"],
            name=op.f("fk_registrations_event_id_events"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_registrations")),
        sa.UniqueConstraint(
            "event_id", "email", name="uq_registrations_event_id_email"
        ),
    )
    op.create_index(
        "idx_registrations_event_status",
        "registrations",
        ["event_id", "status"],
        unique=False,
    )

    op.create_table(
        "notification_runs",
        sa.Column("run_id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("trigger_kind", _enum("trigger_kind"), nullable=False),
        sa.Column("event_id", sa.Text(), nullable=True),
        sa.Column(
            "event_snapshot",
            postgresql.JSONB(),
            server_default="{}",
            nullable=False,
        ),
        sa.Column("payload", postgresql.JSONB(), server_default="{}", nullable=False),
        sa.Column("scheduled_for", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column(
            "status", _enum("run_status"), server_default="pending", nullable=False
        ),
        sa.Column(
            "completed_steps",
            postgresql.JSONB(),
            server_default="{}",
            nullable=False,
        ),
        sa.Column("sent_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("failed_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("attempts", sa.Integer(), server_default="0", nullable=False),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
        sa.Column(
            "updated_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
        sa.Column("completed_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("run_id", name=op.f("pk_notification_runs")),
    )
    op.create_index(
        "idx_notification_runs_status", "notification_runs", ["status"], unique=False
    )
    op.create_index(
        "idx_notification_runs_event_id",
        "notification_runs",
        ["event_id"],
        unique=False,
    )

    op.create_table(
        "notification_log",
        sa.Column("log_id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("run_id", sa.Integer(), nullable=True),
        sa.Column("registration_id", sa.Text(), nullable=True),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("trigger_kind", _enum("trigger_kind"), nullable=False),
        sa.Column("step_id", sa.Text(), nullable=False),
        sa.Column("status", _enum("delivery_status"), nullable=False),
        sa.Column("message_id", sa.Text(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column(
            "sent_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
        sa.ForeignKeyConstraint(
            ["run_id"],
            ["notification_runs.run_id"],
            name=op.f("fk_notification_log_run_id_notification_runs"),
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("log_id", name=op.f("pk_notification_log")),
    )
    op.create_index(
        "idx_notification_log_run_id", "notification_log", ["run_id"], unique=False
    )
    op.create_index(
        "idx_notification_log_sent_at", "notification_log", ["sent_at"], unique=False
    )


def downgrade() -> None:
    op.drop_index("idx_notification_log_sent_at", table_name="notification_log")
    op.drop_index("idx_notification_log_run_id", table_name="notification_log")
    op.drop_table("notification_log")
    op.drop_index("idx_notification_runs_event_id", table_name="notification_runs")
    op.drop_index("idx_notification_runs_status", table_name="notification_runs")
    op.drop_table("notification_runs")
    op.drop_index("idx_registrations_event_status", table_name="registrations")
    op.drop_table("registrations")
    op.drop_table("events")

    bind = op.get_bind()
    for name in reversed(list(ENUMS)):
        postgresql.ENUM(name=name).drop(bind, checkfirst=True)
