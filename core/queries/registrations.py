"""Read-only queries against the event store (events and registrations)."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncConnection

from ..enums import RegistrationStatus
from ..tables import events, registrations


async def list_registered_recipients(
    conn: AsyncConnection,
    event_id: str,
) -> list[dict]:
    """
    Get registrations for an event that are still active.

    Cancelled registrations are excluded. Rows come back in signup order so
    batching is reproducible.
    """
    result = await conn.execute(
        select(
            registrations.c.id,
            registrations.c.full_name,
            registrations.c.email,
            registrations.c.status,
        )
        .where(registrations.c.event_id == event_id)
        .where(registrations.c.status == RegistrationStatus.registered)
        .order_by(registrations.c.created_at, registrations.c.id)
    )
    return [dict(row._mapping) for row in result]


async def get_event_flags(
    conn: AsyncConnection,
    event_id: str,
) -> dict | None:
    """
    Get the organizer's notification settings for an event.

    Returns:
        Dict with send_24h_reminder and confirmation_email_hours, or None if
        the event no longer exists
    """
    result = await conn.execute(
        select(
            events.c.send_24h_reminder,
            events.c.confirmation_email_hours,
        ).where(events.c.id == event_id)
    )
    row = result.first()
    return dict(row._mapping) if row else None
