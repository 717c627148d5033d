"""
Trigger intake.

Triggers arrive as JSON tagged by `name`. Each one is validated into a
pydantic model, turned into one or more notification runs, and armed on the
scheduler. Nothing here sends email; accepting a trigger only creates runs.
"""

import logging
from datetime import datetime
from typing import Annotated, Callable, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from core.config import pin_24h_reminder_recipients
from core.enums import RegistrationStatus, RunStatus, TriggerKind
from core.notifications.context import REMINDER_24H_HOURS
from core.notifications.runs import STEP_COMPUTE_SEND_TIME
from core.notifications.scheduler import schedule_run
from core.notifications.timing import coerce_hours, compute_scheduled_for, utc_now

logger = logging.getLogger(__name__)


# =============================================================================
# Payload models
# =============================================================================


class EventSnapshot(BaseModel):
    """Event details as they were when the trigger was sent."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    title: str = ""
    start_date: str | None = None
    start_time: str | None = None
    location: str | None = None
    event_type: str | None = None
    meeting_link: str | None = None
    send_24h_reminder: bool = True
    confirmation_email_hours: float = 0

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, v):
        return str(v) if v is not None else None

    @field_validator("send_24h_reminder", mode="before")
    @classmethod
    def _default_reminder_flag(cls, v):
        return True if v is None else v

    @field_validator("confirmation_email_hours", mode="before")
    @classmethod
    def _lenient_hours(cls, v):
        # Bad values mean "no delay", not a rejected trigger
        return coerce_hours(v)


class Registrant(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = Field(
        default=None, validation_alias=AliasChoices("id", "registration_id")
    )
    full_name: str = ""
    email: str
    status: RegistrationStatus = RegistrationStatus.registered

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, v):
        return str(v) if v is not None else None

    @field_validator("status", mode="before")
    @classmethod
    def _normalise_status(cls, v):
        if v is None or v == "":
            return RegistrationStatus.registered
        return v.strip().lower() if isinstance(v, str) else v

    def to_recipient_dict(self) -> dict:
        return {
            "registration_id": self.id,
            "full_name": self.full_name,
            "email": self.email,
            "status": self.status.value,
        }


class RegistrationCreated(BaseModel):
    name: Literal["registration.created"]
    event_snapshot: EventSnapshot
    registrant: Registrant
    origin_url: str | None = None


class Reminder24h(BaseModel):
    name: Literal["reminder.24hr"]
    event_snapshot: EventSnapshot
    registrants: list[Registrant] = []


class ReminderCustom(BaseModel):
    name: Literal["reminder.custom"]
    event_snapshot: EventSnapshot
    custom_message: str = ""
    hours_before: float | str | None = None


class Broadcast(BaseModel):
    name: Literal["broadcast"]
    event_id: str
    event_title: str = ""
    subject: str
    html_body: str
    registrants: list[Registrant] = []

    @field_validator("event_id", mode="before")
    @classmethod
    def _stringify_id(cls, v):
        return str(v) if v is not None else v


class AttendanceRequest(BaseModel):
    name: Literal["attendance.request"]
    event_snapshot: EventSnapshot
    registrant: Registrant
    origin_url: str | None = None


Trigger = Annotated[
    Union[RegistrationCreated, Reminder24h, ReminderCustom, Broadcast, AttendanceRequest],
    Field(discriminator="name"),
]

_trigger_adapter = TypeAdapter(Trigger)


def parse_trigger(data: dict) -> Trigger:
    """
    Validate a raw trigger payload.

    Raises:
        pydantic.ValidationError: Unknown `name` or invalid fields
    """
    return _trigger_adapter.validate_python(data)


# =============================================================================
# Run creation
# =============================================================================


async def _create_run(
    runs,
    schedule: Callable[[int, datetime], object],
    kind: TriggerKind,
    event_id: str | None,
    snapshot: dict,
    payload: dict,
    scheduled_for: datetime,
) -> int:
    """
    Persist a run, move it to `waiting` and arm its job.

    The send time is recorded as the first step so it is never recomputed.
    """
    run_id = await runs.create_run(
        trigger_kind=kind,
        event_id=event_id,
        event_snapshot=snapshot,
        payload=payload,
        scheduled_for=scheduled_for,
        completed_steps={STEP_COMPUTE_SEND_TIME: scheduled_for.isoformat()},
    )
    # Waiting before the job exists, so a job that fires at once never races this
    await runs.set_status(run_id, RunStatus.waiting)
    schedule(run_id, scheduled_for)
    logger.info(
        f"Created {kind.value} run {run_id} for event {event_id}, "
        f"scheduled for {scheduled_for.isoformat()}"
    )
    return run_id


async def schedule_confirmation(
    trigger: RegistrationCreated, runs, schedule, now: datetime
) -> int:
    snapshot = trigger.event_snapshot
    return await _create_run(
        runs,
        schedule,
        TriggerKind.registration_confirmed,
        snapshot.id,
        snapshot.model_dump(),
        {
            "registrant": trigger.registrant.to_recipient_dict(),
            "origin_url": trigger.origin_url,
        },
        now,
    )


async def schedule_attendance_request(
    trigger: RegistrationCreated | AttendanceRequest, runs, schedule, now: datetime
) -> int:
    snapshot = trigger.event_snapshot
    hours = snapshot.confirmation_email_hours
    scheduled_for = compute_scheduled_for(
        snapshot.start_date, snapshot.start_time, hours, now=now
    )
    return await _create_run(
        runs,
        schedule,
        TriggerKind.attendance_request,
        snapshot.id,
        snapshot.model_dump(),
        {
            "registrant": trigger.registrant.to_recipient_dict(),
            "origin_url": trigger.origin_url,
            "hours_before": hours,
        },
        scheduled_for,
    )


async def schedule_24h_reminder(
    trigger: Reminder24h, runs, schedule, now: datetime
) -> int:
    snapshot = trigger.event_snapshot
    scheduled_for = compute_scheduled_for(
        snapshot.start_date, snapshot.start_time, REMINDER_24H_HOURS, now=now
    )
    return await _create_run(
        runs,
        schedule,
        TriggerKind.reminder_24h,
        snapshot.id,
        snapshot.model_dump(),
        {
            "registrants": [r.to_recipient_dict() for r in trigger.registrants],
            "pin_recipients": pin_24h_reminder_recipients(),
        },
        scheduled_for,
    )


async def schedule_custom_reminder(
    trigger: ReminderCustom, runs, schedule, now: datetime
) -> int:
    snapshot = trigger.event_snapshot
    hours = coerce_hours(trigger.hours_before)
    scheduled_for = compute_scheduled_for(
        snapshot.start_date, snapshot.start_time, hours, now=now
    )
    return await _create_run(
        runs,
        schedule,
        TriggerKind.reminder_custom,
        snapshot.id,
        snapshot.model_dump(),
        {"custom_message": trigger.custom_message, "hours_before": hours},
        scheduled_for,
    )


async def schedule_broadcast(
    trigger: Broadcast, runs, schedule, now: datetime
) -> int:
    return await _create_run(
        runs,
        schedule,
        TriggerKind.broadcast,
        trigger.event_id,
        {"id": trigger.event_id, "title": trigger.event_title},
        {
            "subject": trigger.subject,
            "html_body": trigger.html_body,
            "registrants": [r.to_recipient_dict() for r in trigger.registrants],
        },
        now,
    )


async def accept_trigger(
    trigger: Trigger,
    runs,
    schedule: Callable[[int, datetime], object] = schedule_run,
    now: datetime | None = None,
) -> list[int]:
    """
    Create and arm the runs a trigger asks for.

    Args:
        trigger: Validated trigger (see parse_trigger)
        runs: RunStore
        schedule: `(run_id, run_at)` job arming function
        now: Reference time for send-time computation (defaults to UTC now)

    Returns:
        Ids of the created runs, in creation order
    """
    now = now or utc_now()

    if isinstance(trigger, RegistrationCreated):
        run_ids = [await schedule_confirmation(trigger, runs, schedule, now)]
        if trigger.event_snapshot.confirmation_email_hours > 0:
            run_ids.append(
                await schedule_attendance_request(trigger, runs, schedule, now)
            )
        return run_ids

    if isinstance(trigger, AttendanceRequest):
        return [await schedule_attendance_request(trigger, runs, schedule, now)]

    if isinstance(trigger, Reminder24h):
        return [await schedule_24h_reminder(trigger, runs, schedule, now)]

    if isinstance(trigger, ReminderCustom):
        return [await schedule_custom_reminder(trigger, runs, schedule, now)]

    if isinstance(trigger, Broadcast):
        return [await schedule_broadcast(trigger, runs, schedule, now)]

    raise TypeError(f"Unsupported trigger: {type(trigger).__name__}")
