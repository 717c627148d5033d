"""
Database-backed stores handed to the notification workflow.

Each store wraps an AsyncEngine given by the caller; nothing here opens a
global connection on its own.
"""

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncEngine

from core.database import get_connection, get_transaction
from core.enums import RunStatus, TriggerKind
from core.notifications.runs import NotificationRun, statuses_before
from core.queries import notification_runs as run_queries
from core.queries import registrations as registration_queries


class EventStore:
    """Read access to events and registrations."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def list_registered_recipients(self, event_id: str) -> list[dict]:
        async with get_connection(self.engine) as conn:
            return await registration_queries.list_registered_recipients(
                conn, event_id
            )

    async def get_event_flags(self, event_id: str) -> dict | None:
        async with get_connection(self.engine) as conn:
            return await registration_queries.get_event_flags(conn, event_id)


class RunStore:
    """Persistence for notification runs, their step log and delivery log."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def create_run(
        self,
        trigger_kind: TriggerKind,
        event_id: str | None,
        event_snapshot: dict,
        payload: dict,
        scheduled_for: datetime,
        completed_steps: dict | None = None,
    ) -> int:
        async with get_transaction(self.engine) as conn:
            return await run_queries.create_run(
                conn,
                trigger_kind=trigger_kind,
                event_id=event_id,
                event_snapshot=event_snapshot,
                payload=payload,
                scheduled_for=scheduled_for,
                completed_steps=completed_steps,
            )

    async def get_run(self, run_id: int) -> NotificationRun | None:
        async with get_connection(self.engine) as conn:
            row = await run_queries.get_run(conn, run_id)
        return NotificationRun.from_row(row) if row else None

    async def set_status(self, run_id: int, status: RunStatus, **values) -> bool:
        async with get_transaction(self.engine) as conn:
            return await run_queries.update_run_status(
                conn, run_id, status, allowed_from=statuses_before(status), **values
            )

    async def record_step(self, run_id: int, step_id: str, result) -> None:
        async with get_transaction(self.engine) as conn:
            await run_queries.record_step(conn, run_id, step_id, result)

    async def record_failure(self, run_id: int, error: str) -> None:
        async with get_transaction(self.engine) as conn:
            await run_queries.record_run_failure(conn, run_id, error)

    async def list_unfinished(self) -> list[NotificationRun]:
        async with get_connection(self.engine) as conn:
            rows = await run_queries.list_unfinished_runs(conn)
        return [NotificationRun.from_row(row) for row in rows]

    async def log_deliveries(
        self,
        run: NotificationRun,
        step_id: str,
        results: list[dict],
    ) -> None:
        async with get_transaction(self.engine) as conn:
            await run_queries.log_deliveries(
                conn, run.run_id, run.trigger_kind, step_id, results
            )
