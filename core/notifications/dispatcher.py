"""
Notification dispatcher - delivers one rendered message to one recipient.

A failed send is reported as a result, never raised, so one bad address
cannot stop the rest of a batch.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Mapping

from core.enums import DeliveryStatus
from core.notifications.recipients import Recipient
from core.notifications.templates import RenderedMessage

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    """Per-recipient outcome: sent with a provider id, or failed with a reason."""

    email: str
    status: DeliveryStatus
    registration_id: str | None = None
    message_id: str | None = None
    reason: str | None = None

    @classmethod
    def sent(cls, recipient: Recipient, message_id: str) -> "DispatchResult":
        return cls(
            email=recipient.email,
            registration_id=recipient.registration_id,
            status=DeliveryStatus.sent,
            message_id=message_id,
        )

    @classmethod
    def failed(cls, recipient: Recipient, reason: str) -> "DispatchResult":
        return cls(
            email=recipient.email,
            registration_id=recipient.registration_id,
            status=DeliveryStatus.failed,
            reason=reason,
        )

    @property
    def ok(self) -> bool:
        return self.status == DeliveryStatus.sent

    def to_dict(self) -> dict:
        return {
            "email": self.email,
            "registration_id": self.registration_id,
            "status": self.status.value,
            "message_id": self.message_id,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "DispatchResult":
        return cls(
            email=data["email"],
            status=DeliveryStatus(data["status"]),
            registration_id=data.get("registration_id"),
            message_id=data.get("message_id"),
            reason=data.get("reason"),
        )


async def dispatch(
    transport,
    recipient: Recipient,
    message: RenderedMessage,
) -> DispatchResult:
    """
    Send one message through the transport.

    The transport call is blocking (HTTP to the provider), so it runs in a
    worker thread; members of a batch can then be sent concurrently.

    Args:
        transport: Object with `send(to_email, subject, html) -> message_id`
        recipient: Who to send to
        message: Rendered subject and body

    Returns:
        DispatchResult - never raises for transport errors
    """
    try:
        message_id = await asyncio.to_thread(
            transport.send, recipient.email, message.subject, message.html
        )
    except Exception as e:
        reason = str(e) or e.__class__.__name__
        logger.warning(f"Failed to send email to {recipient.email}: {reason}")
        return DispatchResult.failed(recipient, reason)

    logger.info(f"Email sent to {recipient.email}. MessageId: {message_id}")
    return DispatchResult.sent(recipient, message_id or "")
