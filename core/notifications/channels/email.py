"""SendGrid email delivery channel."""

import html
import os
import re

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from core.notifications.errors import DispatchFailed


DEFAULT_FROM_EMAIL = "noreply@example.com"
DEFAULT_FROM_NAME = "Event Notifications"

# Regex to match markdown links: [text](url)
MARKDOWN_LINK_PATTERN = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
HTML_TAG_PATTERN = re.compile(r"<[^>]+>")
BREAK_PATTERN = re.compile(r"<\s*(br|/p|/div|/h\d|/li)\s*/?>", re.IGNORECASE)


def markdown_to_html(text: str) -> str:
    """
    Convert markdown-style links to HTML and wrap in basic HTML structure.

    Converts [text](url) to <a href="url">text</a> and preserves line breaks.
    """
    html_body = MARKDOWN_LINK_PATTERN.sub(r'<a href="\2">\1</a>', text)
    html_body = html_body.replace("\n", "<br>\n")

    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.5; color: #333;">
{html_body}
</body>
</html>"""


def html_to_plain_text(content: str) -> str:
    """Rough plain-text alternative for an HTML body."""
    text = BREAK_PATTERN.sub("\n", content)
    text = HTML_TAG_PATTERN.sub("", text)
    lines = [line.strip() for line in html.unescape(text).splitlines()]
    return "\n".join(line for line in lines if line).strip()


class SendGridTransport:
    """
    Email transport backed by SendGrid.

    `send()` returns the provider message id and raises on any failure; the
    dispatcher turns exceptions into per-recipient failures.
    """

    def __init__(
        self,
        api_key: str | None,
        from_email: str = DEFAULT_FROM_EMAIL,
        from_name: str = DEFAULT_FROM_NAME,
        client: SendGridAPIClient | None = None,
    ):
        self.from_email = from_email
        self.from_name = from_name
        self._client = client or (SendGridAPIClient(api_key) if api_key else None)

    @classmethod
    def from_env(cls) -> "SendGridTransport":
        return cls(
            api_key=os.environ.get("SENDGRID_API_KEY"),
            from_email=os.environ.get("FROM_EMAIL", DEFAULT_FROM_EMAIL),
            from_name=os.environ.get("FROM_NAME", DEFAULT_FROM_NAME),
        )

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    def send(self, to_email: str, subject: str, html_content: str) -> str:
        """
        Send one email.

        Returns:
            Provider message id (empty string if SendGrid did not return one)

        Raises:
            DispatchFailed: If SendGrid is not configured or rejects the message
        """
        if not self._client:
            raise DispatchFailed("SendGrid not configured (SENDGRID_API_KEY not set)")

        message = Mail(
            from_email=(self.from_email, self.from_name),
            to_emails=to_email,
            subject=subject,
            plain_text_content=html_to_plain_text(html_content),
            html_content=html_content,
        )

        response = self._client.send(message)
        if response.status_code not in (200, 201, 202):
            raise DispatchFailed(
                f"SendGrid responded with {response.status_code} for {to_email}"
            )

        headers = response.headers or {}
        return headers.get("X-Message-Id") or ""
