"""
Event-relative send time calculation.

Events carry a calendar date and a time-of-day as the organizer typed them.
A reminder is due `hours_before` hours ahead of that moment. Nothing here
ever blocks delivery: anything unparseable or already past means "now".
"""

import logging
import math
from datetime import datetime, timedelta, timezone

import pytz

from core.config import get_event_timezone
from core.notifications.errors import InvalidEventTime

logger = logging.getLogger(__name__)


# Tried against "<date> <time>" when the ISO "<date>T<time>" composition fails
PERMISSIVE_FORMATS = (
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %I:%M %p",
    "%Y-%m-%d %I:%M%p",
    "%Y-%m-%d %I %p",
    "%Y/%m/%d %H:%M",
    "%d/%m/%Y %H:%M",
    "%d-%m-%Y %H:%M",
    "%B %d, %Y %H:%M",
    "%B %d, %Y %I:%M %p",
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _event_tz(tz_name: str | None):
    name = tz_name or get_event_timezone()
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        logger.warning(f"Unknown EVENT_TIMEZONE {name!r}, using UTC")
        return pytz.UTC


def parse_event_start(
    start_date: str | None,
    start_time: str | None,
    tz_name: str | None = None,
) -> datetime:
    """
    Compose an event's date and time-of-day into an aware UTC datetime.

    Args:
        start_date: Calendar date, normally YYYY-MM-DD
        start_time: Time of day, normally HH:MM
        tz_name: Timezone the values are expressed in (defaults to EVENT_TIMEZONE)

    Raises:
        InvalidEventTime: If neither composition parses
    """
    if not start_date or not start_time:
        raise InvalidEventTime(start_date, start_time)

    date_str = str(start_date).strip()
    time_str = str(start_time).strip()

    naive = None
    try:
        naive = datetime.fromisoformat(f"{date_str}T{time_str}")
    except ValueError:
        composed = f"{date_str} {time_str}"
        for fmt in PERMISSIVE_FORMATS:
            try:
                naive = datetime.strptime(composed, fmt)
                break
            except ValueError:
                continue

    if naive is None:
        raise InvalidEventTime(start_date, start_time)

    if naive.tzinfo is not None:
        return naive.astimezone(timezone.utc)
    return _event_tz(tz_name).localize(naive).astimezone(timezone.utc)


def coerce_hours(hours_before) -> float:
    """Offset in hours; zero for anything missing, non-numeric, non-finite or negative."""
    if hours_before is None or isinstance(hours_before, bool):
        return 0.0
    try:
        hours = float(hours_before)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(hours) or hours <= 0:
        return 0.0
    return hours


def resolve_send_time(
    start_date: str | None,
    start_time: str | None,
    hours_before,
    tz_name: str | None = None,
) -> datetime:
    """
    Absolute instant `hours_before` hours ahead of the event start.

    Raises:
        InvalidEventTime: If the event start cannot be parsed
    """
    start = parse_event_start(start_date, start_time, tz_name)
    return start - timedelta(hours=coerce_hours(hours_before))


def compute_scheduled_for(
    start_date: str | None,
    start_time: str | None,
    hours_before,
    now: datetime | None = None,
    tz_name: str | None = None,
) -> datetime:
    """
    When a run should fire.

    Zero/invalid offsets, unparseable event times and instants already in
    the past all resolve to `now`.
    """
    now = now or utc_now()

    if coerce_hours(hours_before) <= 0:
        return now

    try:
        send_at = resolve_send_time(start_date, start_time, hours_before, tz_name)
    except InvalidEventTime as e:
        logger.warning(f"{e}; sending immediately instead")
        return now

    if send_at <= now:
        return now
    return send_at
