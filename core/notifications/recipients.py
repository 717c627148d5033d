"""
Recipient resolution.

Reminders are addressed to whoever is registered when the reminder fires,
not when it was scheduled, so people who cancel in between are never
emailed and late signups are included.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, Mapping

from core.enums import RegistrationStatus
from core.notifications.errors import RecipientResolutionFailed

logger = logging.getLogger(__name__)


RESOLVE_ATTEMPTS = 3
RESOLVE_RETRY_DELAY_SECONDS = 2.0


def parse_status(value) -> RegistrationStatus | None:
    """
    Read a registration status case-insensitively.

    A missing status means registered. An unrecognised one returns None,
    which is never eligible.
    """
    if value is None or value == "":
        return RegistrationStatus.registered
    if isinstance(value, RegistrationStatus):
        return value
    try:
        return RegistrationStatus(str(value).strip().lower())
    except ValueError:
        logger.warning(f"Unknown registration status {value!r}; skipping recipient")
        return None


@dataclass
class Recipient:
    """A registrant as seen at send time."""

    registration_id: str | None
    full_name: str
    email: str
    status: RegistrationStatus | None = RegistrationStatus.registered

    @property
    def is_eligible(self) -> bool:
        return self.status == RegistrationStatus.registered and bool(self.email)

    @classmethod
    def from_dict(cls, data: Mapping) -> "Recipient":
        """
        Build from a registrations row, a trigger payload registrant, or a
        recorded step result (all use slightly different key names).
        """
        registration_id = data.get("registration_id", data.get("id"))
        return cls(
            registration_id=str(registration_id) if registration_id else None,
            full_name=(data.get("full_name") or "").strip(),
            email=(data.get("email") or "").strip(),
            status=parse_status(data.get("status")),
        )

    def to_dict(self) -> dict:
        return {
            "registration_id": self.registration_id,
            "full_name": self.full_name,
            "email": self.email,
            "status": self.status.value if self.status else None,
        }


def eligible_recipients(candidates: Iterable[Mapping | Recipient]) -> list[Recipient]:
    """
    Keep registered recipients with an email address, first occurrence of
    each address only, in input order.
    """
    seen: set[str] = set()
    result = []
    for candidate in candidates:
        recipient = (
            candidate
            if isinstance(candidate, Recipient)
            else Recipient.from_dict(candidate)
        )
        key = recipient.email.lower()
        if not recipient.is_eligible or key in seen:
            continue
        seen.add(key)
        result.append(recipient)
    return result


async def resolve_recipients(
    event_store,
    event_id: str | None,
    attempts: int = RESOLVE_ATTEMPTS,
    retry_delay: float = RESOLVE_RETRY_DELAY_SECONDS,
    sleep=asyncio.sleep,
) -> list[Recipient]:
    """
    Fetch the currently-registered recipients for an event.

    Store errors are retried a fixed number of times; after that an empty
    list is returned so the run ends instead of hanging past the event.

    Args:
        event_store: Object with `list_registered_recipients(event_id)`
        event_id: Event to resolve
        attempts: Total read attempts before giving up
        retry_delay: Seconds between attempts (multiplied by attempt number)
        sleep: Awaitable sleep (injected for tests)
    """
    if not event_id:
        logger.warning("Cannot resolve recipients without an event id")
        return []

    last_error: Exception | None = None
    for attempt in range(1, attempts + 1):
        try:
            rows = await event_store.list_registered_recipients(event_id)
            return eligible_recipients(rows)
        except Exception as e:
            last_error = e
            logger.warning(
                f"Recipient lookup for event {event_id} failed "
                f"(attempt {attempt}/{attempts}): {e}"
            )
            if attempt < attempts:
                await sleep(retry_delay * attempt)

    logger.error(str(RecipientResolutionFailed(event_id, attempts, last_error)))
    return []
