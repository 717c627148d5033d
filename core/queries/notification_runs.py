"""Database queries for notification runs and the delivery log."""

from datetime import datetime

from sqlalchemy import func, insert, literal, select, update
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncConnection

from ..enums import TERMINAL_RUN_STATUSES, RunStatus, TriggerKind
from ..tables import notification_log, notification_runs


async def create_run(
    conn: AsyncConnection,
    trigger_kind: TriggerKind,
    event_id: str | None,
    event_snapshot: dict,
    payload: dict,
    scheduled_for: datetime,
    completed_steps: dict | None = None,
) -> int:
    """
    Create a notification run in the pending state.

    Returns:
        The new run_id
    """
    result = await conn.execute(
        insert(notification_runs)
        .values(
            trigger_kind=trigger_kind,
            event_id=event_id,
            event_snapshot=event_snapshot,
            payload=payload,
            scheduled_for=scheduled_for,
            status=RunStatus.pending,
            completed_steps=completed_steps or {},
        )
        .returning(notification_runs.c.run_id)
    )
    return result.scalar_one()


async def get_run(conn: AsyncConnection, run_id: int) -> dict | None:
    """Get a single run by ID."""
    result = await conn.execute(
        select(notification_runs).where(notification_runs.c.run_id == run_id)
    )
    row = result.first()
    return dict(row._mapping) if row else None


async def update_run_status(
    conn: AsyncConnection,
    run_id: int,
    status: RunStatus,
    allowed_from: list[RunStatus],
    **values,
) -> bool:
    """
    Move a run to `status` if it is currently in one of `allowed_from`.

    The guard keeps transitions forward-only even if two workers race.

    Returns:
        True if the row was updated
    """
    result = await conn.execute(
        update(notification_runs)
        .where(notification_runs.c.run_id == run_id)
        .where(notification_runs.c.status.in_(allowed_from))
        .values(status=status, updated_at=func.now(), **values)
    )
    return result.rowcount > 0


async def record_step(
    conn: AsyncConnection,
    run_id: int,
    step_id: str,
    result,
) -> None:
    """Merge one step result into the run's completed_steps."""
    step = literal({step_id: result}, type_=JSONB)
    await conn.execute(
        update(notification_runs)
        .where(notification_runs.c.run_id == run_id)
        .values(
            completed_steps=notification_runs.c.completed_steps.op(
                "||", return_type=JSONB
            )(step),
            updated_at=func.now(),
        )
    )


async def record_run_failure(
    conn: AsyncConnection,
    run_id: int,
    error: str,
) -> None:
    """Count an engine-level failed attempt and remember why."""
    await conn.execute(
        update(notification_runs)
        .where(notification_runs.c.run_id == run_id)
        .values(
            attempts=notification_runs.c.attempts + 1,
            last_error=error[:2000],
            updated_at=func.now(),
        )
    )


async def list_unfinished_runs(conn: AsyncConnection) -> list[dict]:
    """Get runs that have not reached a terminal state, oldest due first."""
    result = await conn.execute(
        select(notification_runs)
        .where(notification_runs.c.status.not_in(list(TERMINAL_RUN_STATUSES)))
        .order_by(notification_runs.c.scheduled_for, notification_runs.c.run_id)
    )
    return [dict(row._mapping) for row in result]


async def log_deliveries(
    conn: AsyncConnection,
    run_id: int,
    trigger_kind: TriggerKind,
    step_id: str,
    results: list[dict],
) -> None:
    """Append one notification_log row per dispatch result."""
    if not results:
        return
    await conn.execute(
        insert(notification_log),
        [
            {
                "run_id": run_id,
                "registration_id": r.get("registration_id"),
                "email": r["email"],
                "trigger_kind": trigger_kind,
                "step_id": step_id,
                "status": r["status"],
                "message_id": r.get("message_id"),
                "error_message": r.get("reason"),
            }
            for r in results
        ],
    )
