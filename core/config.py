"""
Centralized configuration for the event notification service.

Settings come from environment variables (optionally loaded from .env /
.env.local by the entry points). Accessors are functions so tests can
patch the environment per case.
"""

import os


TRUTHY = ("true", "1", "yes")


def is_dev_mode() -> bool:
    """Check if running in development mode (--dev flag or DEV_MODE env)."""
    return os.getenv("DEV_MODE", "").lower() in TRUTHY


def is_production() -> bool:
    """Check if running on Railway (production environment)."""
    return bool(os.environ.get("RAILWAY_ENVIRONMENT"))


def get_api_port() -> int:
    """Get API server port from env or default."""
    return int(os.getenv("API_PORT", "3001"))


def get_frontend_url() -> str:
    """Base URL of the organizer/registrant frontend, used in email links."""
    return os.environ.get("FRONTEND_URL", "http://localhost:5173").rstrip("/")


def get_allowed_origins() -> list[str]:
    """
    Get list of allowed CORS origins.

    Includes localhost variants for the Vite dev server and the configured
    frontend URL.
    """
    origins = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]
    frontend_url = get_frontend_url()
    if frontend_url not in origins:
        origins.append(frontend_url)
    return origins


def get_event_timezone() -> str:
    """
    Timezone that event start dates/times are expressed in.

    Events store a naive calendar date and time-of-day; this decides which
    wall clock they refer to.
    """
    return os.environ.get("EVENT_TIMEZONE", "UTC")


def pin_24h_reminder_recipients() -> bool:
    """
    Use the registrant list sent with a 24-hour reminder trigger instead of
    re-resolving registrants when the reminder fires.
    """
    return os.getenv("PIN_24H_REMINDER_RECIPIENTS", "").lower() in TRUTHY


def is_scheduler_disabled() -> bool:
    """Check if the notification scheduler is disabled (--no-scheduler)."""
    return os.getenv("DISABLE_SCHEDULER", "").lower() in TRUTHY


# Required environment variables for production
# Format: (name, description, required_in_dev)
REQUIRED_ENV_VARS = [
    ("DATABASE_URL", "PostgreSQL connection string", True),
    ("SENDGRID_API_KEY", "SendGrid API key for outgoing email", False),
    ("FROM_EMAIL", "Sender address for notification emails", False),
    ("FRONTEND_URL", "Public frontend URL used in email links", False),
]


def check_required_env_vars() -> tuple[bool, list[str]]:
    """
    Check that required environment variables are set.

    Returns:
        (all_ok, warnings): Tuple of success flag and list of warning messages
    """
    warnings = []
    errors = []
    in_dev = is_dev_mode()

    for name, description, required_in_dev in REQUIRED_ENV_VARS:
        value = os.environ.get(name)

        if not value:
            if is_production():
                errors.append(f"  ✗ {name}: Not set ({description})")
            elif required_in_dev or not in_dev:
                warnings.append(f"  ⚠ {name}: Not set ({description})")

    if errors:
        for error in errors:
            print(error)
        return False, warnings

    return True, warnings
