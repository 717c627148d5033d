"""Message template loading and rendering."""

import html
import logging
from dataclasses import dataclass
from pathlib import Path

import yaml

from core.notifications.channels.email import markdown_to_html
from core.notifications.errors import TemplateRenderFailed

logger = logging.getLogger(__name__)


_templates: dict | None = None

# Context keys holding organizer-authored HTML, inserted without escaping
RAW_HTML_KEYS = frozenset({"html_body"})

DEFAULT_BODY = (
    "Hi {name},\n\n"
    "There is an update about {event_title}. "
    "Please check your registration for details."
)


@dataclass
class RenderedMessage:
    """Subject and HTML body ready for the transport."""

    subject: str
    html: str


def load_templates() -> dict:
    """
    Load message templates from YAML file.

    Caches templates after first load.
    """
    global _templates
    if _templates is not None:
        return _templates

    yaml_path = Path(__file__).parent / "messages.yaml"
    with open(yaml_path) as f:
        _templates = yaml.safe_load(f)

    return _templates


def render_message(template: str, context: dict) -> str:
    """
    Render a message template with context variables.

    Args:
        template: String with {variable} placeholders
        context: Dict of variable names to values

    Returns:
        Rendered string

    Raises:
        KeyError: If a required variable is missing from context
    """
    return template.format(**context)


def get_message(message_type: str, field: str, context: dict) -> str:
    """
    Get and render a message for a specific type and field.

    Args:
        message_type: e.g., "reminder_24h", "broadcast"
        field: "email_subject" or "email_body"
        context: Variables to substitute
    """
    templates = load_templates()
    template = templates[message_type][field]
    return render_message(template, context)


def _escape(value) -> str:
    # Line breaks are handled by markdown_to_html
    return html.escape(str(value))


def render_email(kind: str, data: dict) -> RenderedMessage:
    """
    Render the subject and HTML body for a notification kind.

    Values in `data` are HTML-escaped before substitution, except the keys in
    RAW_HTML_KEYS which are inserted as-is after markdown conversion.

    Raises:
        TemplateRenderFailed: If the template is missing or a variable is absent
    """
    try:
        subject = get_message(kind, "email_subject", data)

        sentinels = {key: f"\x00{key}\x00" for key in RAW_HTML_KEYS if key in data}
        escaped = {
            key: sentinels.get(key) or _escape(value) for key, value in data.items()
        }
        body = markdown_to_html(get_message(kind, "email_body", escaped))
        for key, sentinel in sentinels.items():
            body = body.replace(sentinel, str(data[key]))
    except (KeyError, IndexError, ValueError, TypeError, AttributeError) as e:
        raise TemplateRenderFailed(kind, e) from e

    return RenderedMessage(subject=subject.strip(), html=body)


def default_message(data: dict) -> RenderedMessage:
    """Plain fallback used when a template cannot be rendered."""
    event_title = data.get("event_title") or "your event"
    context = {"name": data.get("name") or "there", "event_title": event_title}
    body = markdown_to_html(
        DEFAULT_BODY.format(**{k: _escape(v) for k, v in context.items()})
    )
    return RenderedMessage(subject=f"An update about {event_title}", html=body)


def render_or_default(kind: str, data: dict) -> RenderedMessage:
    """Render a notification, falling back to default content on any template error."""
    try:
        return render_email(kind, data)
    except TemplateRenderFailed as e:
        logger.warning(f"{e}; sending default content")
        return default_message(data)
