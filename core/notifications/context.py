"""
Template context building for notification emails.

Runs carry an event snapshot taken when the trigger arrived; this turns the
snapshot, the run payload and one recipient into the variables used by
messages.yaml.
"""

from core.enums import EventType, TriggerKind
from core.notifications.recipients import Recipient
from core.notifications.runs import NotificationRun
from core.notifications.timing import coerce_hours
from core.notifications.urls import (
    ATTENDANCE_CONFIRMED,
    ATTENDANCE_DECLINED,
    build_attendance_url,
    build_registration_url,
)


REMINDER_24H_HOURS = 24


def format_number(value: float) -> str:
    """24.0 -> "24", 1.5 -> "1.5"."""
    return f"{value:g}"


def format_hours(hours: float) -> str:
    if hours <= 0:
        return "a few moments"
    unit = "hour" if hours == 1 else "hours"
    return f"{format_number(hours)} {unit}"


def describe_location(snapshot: dict) -> str:
    """One line telling the registrant where to go (or which link to open)."""
    if snapshot.get("event_type") == EventType.online.value:
        link = snapshot.get("meeting_link")
        if link:
            return f"Online: [Join the meeting]({link})"
        return "Online: the meeting link will be shared before the event"

    location = snapshot.get("location")
    return f"Location: {location}" if location else "Location: to be announced"


def hours_before_for(run: NotificationRun) -> float:
    if run.trigger_kind == TriggerKind.reminder_24h:
        return float(REMINDER_24H_HOURS)
    return coerce_hours(run.payload.get("hours_before"))


def build_message_context(run: NotificationRun, recipient: Recipient) -> dict:
    """
    Build template variables for one recipient of a run.

    Pure function: everything comes from the run record and the recipient.
    """
    snapshot = run.event_snapshot
    payload = run.payload
    origin_url = payload.get("origin_url")
    hours = hours_before_for(run)
    custom_message = (payload.get("custom_message") or "").strip()

    context = {
        "name": recipient.full_name or "there",
        "email": recipient.email,
        "event_title": snapshot.get("title") or "your event",
        "event_date": snapshot.get("start_date") or "To be announced",
        "event_time": snapshot.get("start_time") or "To be announced",
        "location_line": describe_location(snapshot),
        "hours_before": format_number(hours),
        "hours_until": format_hours(hours),
        "custom_message_block": f"\n{custom_message}\n" if custom_message else "",
        "registration_url": build_registration_url(
            recipient.registration_id, origin_url
        ),
        "confirm_url": build_attendance_url(
            recipient.registration_id, ATTENDANCE_CONFIRMED, origin_url
        ),
        "decline_url": build_attendance_url(
            recipient.registration_id, ATTENDANCE_DECLINED, origin_url
        ),
    }

    if run.trigger_kind == TriggerKind.broadcast:
        context["subject"] = payload.get("subject") or ""
        context["html_body"] = payload.get("html_body") or ""

    return context
