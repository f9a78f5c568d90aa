"""Unit tests for auth/email.py.

Covers:
- MockEmailClient succeeds and never logs the message body
- PostmarkEmailClient request shape (URL, token header, JSON body, timeout)
- HTTP error status and transport errors raise EmailSendError
"""

import logging
from unittest.mock import MagicMock

import pytest
import requests

from auth.email import EmailSendError, MockEmailClient, PostmarkEmailClient
from core.config import Settings
from core.models import Email

RECIPIENT = Email.parse("alice@example.com")


def test_mock_client_logs_without_body(caplog):
    with caplog.at_level(logging.DEBUG, logger="authservice.email"):
        MockEmailClient().send_email(RECIPIENT, "2FA code", "Your 2FA code is 123456")
    assert "123456" not in caplog.text
    assert "alice@example.com" not in caplog.text
    assert "al***@example.com" in caplog.text


@pytest.fixture
def session():
    s = MagicMock(spec=requests.Session)
    s.post.return_value = MagicMock(spec=requests.Response)
    return s


@pytest.fixture
def client(session):
    return PostmarkEmailClient(
        base_url="https://postmark.test/email",
        sender="sender@example.com",
        auth_token="server-token",
        timeout=2.5,
        session=session,
    )


def test_postmark_request_shape(client, session):
    client.send_email(RECIPIENT, "2FA code", "Your 2FA code is <123456>")
    session.post.assert_called_once()
    args, kwargs = session.post.call_args
    assert args == ("https://postmark.test/email",)
    assert kwargs["timeout"] == 2.5
    assert kwargs["headers"]["X-Postmark-Server-Token"] == "server-token"
    assert kwargs["json"] == {
        "From": "sender@example.com",
        "To": "alice@example.com",
        "Subject": "2FA code",
        "HtmlBody": "Your 2FA code is &lt;123456&gt;",
        "TextBody": "Your 2FA code is <123456>",
        "MessageStream": "outbound",
    }


def test_postmark_http_error_raises(client, session):
    session.post.return_value.raise_for_status.side_effect = requests.HTTPError("422 Unprocessable")
    with pytest.raises(EmailSendError):
        client.send_email(RECIPIENT, "2FA code", "body")


def test_postmark_timeout_raises(client, session):
    session.post.side_effect = requests.Timeout("timed out")
    with pytest.raises(EmailSendError):
        client.send_email(RECIPIENT, "2FA code", "body")


def test_from_settings():
    settings = Settings(
        secret_key="x" * 32,
        email_backend="postmark",
        postmark_auth_token="tok",
        email_sender="noreply@example.com",
        email_timeout_seconds=3,
    )
    client = PostmarkEmailClient.from_settings(settings)
    assert client.sender == "noreply@example.com"
    assert client.timeout == 3
    assert client.base_url == "https://api.postmarkapp.com/email"
