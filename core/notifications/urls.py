"""URL builder utilities for notification templates."""

from urllib.parse import urlencode

from core.config import get_frontend_url


ATTENDANCE_CONFIRMED = "confirmed"
ATTENDANCE_DECLINED = "declined"


def _base(frontend_url: str | None) -> str:
    return (frontend_url or get_frontend_url()).rstrip("/")


def build_attendance_url(
    registration_id: str | None,
    status: str,
    frontend_url: str | None = None,
) -> str:
    """
    Build the link a registrant clicks to confirm or decline attendance.

    Args:
        registration_id: Registration being answered for
        status: ATTENDANCE_CONFIRMED or ATTENDANCE_DECLINED
        frontend_url: Origin the registrant signed up from (defaults to FRONTEND_URL)
    """
    query = urlencode({"id": registration_id or "", "status": status})
    return f"{_base(frontend_url)}/attendance-confirmed?{query}"


def build_registration_url(
    registration_id: str | None, frontend_url: str | None = None
) -> str:
    """Build URL to a registrant's own registration page."""
    return f"{_base(frontend_url)}/registration/{registration_id or ''}"
