"""
Email routes kept compatible with the existing frontend.

Endpoints:
- POST /api/email/confirm - Registration confirmation (sent immediately)
- POST /api/email/send-update - Broadcast to the given registrants
- POST /api/email/schedule-attendance-request - "Are you still coming?" email
- POST /api/email/schedule-reminders - Custom and 24-hour reminders
- GET /api/email/attendance/confirm - Attendance link target, redirects to the frontend
- POST /api/email/webhook - Email provider event webhook
"""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Response
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, ValidationError

from core.notifications.scheduler import schedule_run
from core.notifications.timing import utc_now
from core.notifications.triggers import (
    AttendanceRequest,
    Broadcast,
    EventSnapshot,
    RegistrationCreated,
    Registrant,
    Reminder24h,
    ReminderCustom,
    accept_trigger,
    schedule_confirmation,
)
from core.notifications.urls import build_attendance_url
from web_api.routes.notifications import get_run_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/email", tags=["email"])


def _invalid(e: ValidationError) -> HTTPException:
    return HTTPException(
        422, e.errors(include_url=False, include_context=False, include_input=False)
    )


class ConfirmRequest(BaseModel):
    registrantName: str = ""
    registrantEmail: str
    eventDetails: dict[str, Any]
    registrationId: str | int | None = None
    frontendUrl: str | None = None


@router.post("/confirm", status_code=202)
async def confirm_registration(
    request: ConfirmRequest,
    run_store=Depends(get_run_store),
) -> dict[str, Any]:
    """Queue the registration confirmation email. Sent as soon as the job fires."""
    try:
        trigger = RegistrationCreated(
            name="registration.created",
            event_snapshot=EventSnapshot.model_validate(request.eventDetails),
            registrant=Registrant(
                id=request.registrationId,
                full_name=request.registrantName,
                email=request.registrantEmail,
            ),
            origin_url=request.frontendUrl,
        )
    except ValidationError as e:
        raise _invalid(e)

    run_id = await schedule_confirmation(trigger, run_store, schedule_run, utc_now())
    return {"success": True, "message": "Confirmation queued", "run_ids": [run_id]}


class SendUpdateRequest(BaseModel):
    eventId: str | int
    eventTitle: str = ""
    subject: str
    htmlBody: str
    registrants: list[dict[str, Any]] = []


@router.post("/send-update", status_code=202)
async def send_update(
    request: SendUpdateRequest,
    run_store=Depends(get_run_store),
) -> dict[str, Any]:
    """Broadcast an organizer update to the registrants listed in the request."""
    logger.info(
        f"Received update request for event {request.eventTitle!r} "
        f"with {len(request.registrants)} registrants"
    )
    try:
        trigger = Broadcast(
            name="broadcast",
            event_id=request.eventId,
            event_title=request.eventTitle,
            subject=request.subject,
            html_body=request.htmlBody,
            registrants=request.registrants,
        )
    except ValidationError as e:
        raise _invalid(e)

    run_ids = await accept_trigger(trigger, run_store, schedule=schedule_run)
    return {"success": True, "message": "Broadcast queued", "run_ids": run_ids}


class AttendanceRequestBody(BaseModel):
    eventData: dict[str, Any]
    registrant: dict[str, Any]
    frontendUrl: str | None = None


@router.post("/schedule-attendance-request", status_code=202)
async def schedule_attendance_request(
    request: AttendanceRequestBody,
    run_store=Depends(get_run_store),
) -> dict[str, Any]:
    try:
        trigger = AttendanceRequest(
            name="attendance.request",
            event_snapshot=request.eventData,
            registrant=request.registrant,
            origin_url=request.frontendUrl,
        )
    except ValidationError as e:
        raise _invalid(e)

    logger.info(
        f"Scheduling attendance request for event {trigger.event_snapshot.title!r} "
        f"for {trigger.registrant.email}"
    )
    run_ids = await accept_trigger(trigger, run_store, schedule=schedule_run)
    return {
        "success": True,
        "message": "Attendance request scheduled",
        "run_ids": run_ids,
    }


class ScheduleRemindersRequest(BaseModel):
    eventData: dict[str, Any]
    customMessage: str | None = None
    timeBefore: float | str | None = None


@router.post("/schedule-reminders", status_code=202)
async def schedule_reminders(
    request: ScheduleRemindersRequest,
    run_store=Depends(get_run_store),
) -> dict[str, Any]:
    """
    Schedule the custom reminder (when both a message and an offset are
    given) and the 24-hour reminder (when the event has it switched on).
    """
    try:
        snapshot = EventSnapshot.model_validate(request.eventData)
    except ValidationError as e:
        raise _invalid(e)

    logger.info(
        f"Scheduling reminders for event {snapshot.title!r}. "
        f"Custom msg: {bool(request.customMessage)}, Time before: {request.timeBefore}"
    )

    triggers = []
    if request.customMessage and request.timeBefore:
        triggers.append(
            ReminderCustom(
                name="reminder.custom",
                event_snapshot=snapshot,
                custom_message=request.customMessage,
                hours_before=request.timeBefore,
            )
        )
    if snapshot.send_24h_reminder:
        triggers.append(Reminder24h(name="reminder.24hr", event_snapshot=snapshot))

    run_ids = []
    for trigger in triggers:
        run_ids.extend(await accept_trigger(trigger, run_store, schedule=schedule_run))

    return {"success": True, "message": "Reminders scheduled", "run_ids": run_ids}


@router.get("/attendance/confirm")
async def attendance_confirm(id: str, status: str) -> RedirectResponse:
    """
    Target of the yes/no links in attendance emails.

    The frontend records the answer; this only forwards the registrant there.
    """
    return RedirectResponse(build_attendance_url(id, status), status_code=302)


@router.post("/webhook")
async def email_webhook(event: Any = Body(None)) -> Response:
    """Acknowledge provider events. Open/click analytics are not processed."""
    logger.info(f"Email webhook: {event}")
    return Response(status_code=200)
