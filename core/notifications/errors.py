"""
Notification error types.

None of these abort a run: each is caught at the smallest scope that can
degrade (a single recipient, a single step) and turned into a fallback.
"""


class NotificationError(Exception):
    """Base class for notification errors."""


class InvalidEventTime(NotificationError, ValueError):
    """Event start date/time could not be parsed. Callers fire immediately."""

    def __init__(self, start_date, start_time):
        self.start_date = start_date
        self.start_time = start_time
        super().__init__(
            f"Cannot parse event start from date={start_date!r} time={start_time!r}"
        )


class RecipientResolutionFailed(NotificationError):
    """The store could not be read after the retry budget was spent."""

    def __init__(self, event_id: str, attempts: int, cause: Exception | None = None):
        self.event_id = event_id
        self.attempts = attempts
        self.cause = cause
        super().__init__(
            f"Could not resolve recipients for event {event_id} "
            f"after {attempts} attempts: {cause}"
        )


class TemplateRenderFailed(NotificationError):
    """A template raised while rendering. Callers use default content."""

    def __init__(self, kind: str, cause: Exception):
        self.kind = kind
        self.cause = cause
        super().__init__(f"Failed to render {kind} template: {cause!r}")


class DispatchFailed(NotificationError):
    """The email provider rejected or could not accept one message."""


class GatingDisabled(NotificationError):
    """The organizer switched this notification off. Not an error outcome."""

    def __init__(self, event_id: str, flag: str):
        self.event_id = event_id
        self.flag = flag
        super().__init__(f"{flag} is disabled for event {event_id}")
