"""Tests for email channel."""

from unittest.mock import MagicMock, patch

import pytest

from core.notifications.channels.email import (
    SendGridTransport,
    html_to_plain_text,
    markdown_to_html,
)
from core.notifications.errors import DispatchFailed


def _client(status_code=202, headers=None):
    client = MagicMock()
    response = MagicMock()
    response.status_code = status_code
    response.headers = headers if headers is not None else {"X-Message-Id": "abc123"}
    client.send.return_value = response
    return client


class TestSendGridTransport:
    def test_sends_and_returns_message_id(self):
        client = _client()
        transport = SendGridTransport(api_key=None, client=client)

        message_id = transport.send("alice@example.com", "Subject", "<p>Hello</p>")

        assert message_id == "abc123"
        client.send.assert_called_once()

    def test_missing_message_id_header(self):
        transport = SendGridTransport(api_key=None, client=_client(headers={}))
        assert transport.send("alice@example.com", "Subject", "<p>Hello</p>") == ""

    def test_rejected_status_raises(self):
        transport = SendGridTransport(api_key=None, client=_client(status_code=400))

        with pytest.raises(DispatchFailed, match="400"):
            transport.send("alice@example.com", "Subject", "<p>Hello</p>")

    def test_not_configured_raises(self):
        transport = SendGridTransport(api_key=None)

        assert not transport.is_configured
        with pytest.raises(DispatchFailed, match="not configured"):
            transport.send("alice@example.com", "Subject", "<p>Hello</p>")

    def test_from_env(self):
        env = {
            "SENDGRID_API_KEY": "SG.test",
            "FROM_EMAIL": "events@example.com",
            "FROM_NAME": "Example Events",
        }
        with patch.dict("os.environ", env):
            transport = SendGridTransport.from_env()

        assert transport.is_configured
        assert transport.from_email == "events@example.com"
        assert transport.from_name == "Example Events"

    def test_from_env_defaults_sender(self):
        with patch.dict("os.environ", {}, clear=True):
            transport = SendGridTransport.from_env()

        assert not transport.is_configured
        assert transport.from_email == "noreply@example.com"
        assert transport.from_name == "Event Notifications"


class TestMarkdownConversion:
    def test_markdown_to_html_converts_links(self):
        result = markdown_to_html("Click [here](https://example.com) to continue.")
        assert '<a href="https://example.com">here</a>' in result

    def test_markdown_to_html_preserves_newlines(self):
        result = markdown_to_html("Line 1\nLine 2")
        assert "Line 1<br>\nLine 2" in result

    def test_markdown_to_html_wraps_in_html_structure(self):
        result = markdown_to_html("Hello")
        assert result.startswith("<!DOCTYPE html>")
        assert "<body" in result


class TestHtmlToPlainText:
    def test_strips_tags_and_keeps_line_breaks(self):
        text = html_to_plain_text("<p>Hello &amp; welcome</p><p>See <b>you</b></p>")
        assert text == "Hello & welcome\nSee you"
