"""
auth/email.py -- Outbound email for 2FA codes.

The protocol only needs send_email(recipient, subject, content). Two clients
implement it:

  MockEmailClient      -- dev/test. Logs that a message would have been sent
                          (recipient redacted, body never logged) and succeeds.
  PostmarkEmailClient  -- production. One POST per message to Postmark's
                          transactional email API via a shared requests.Session.

Any transport failure surfaces as EmailSendError; the protocol turns that
into a 500 without telling the client why.

Layer rule: no imports from api/ or stores/.
"""

from __future__ import annotations

import html
import logging
from abc import ABC, abstractmethod

import requests

from core.config import Settings
from core.models import Email

logger = logging.getLogger("authservice.email")


class EmailSendError(Exception):
    """Raised when a message could not be handed to the email provider."""


class EmailClient(ABC):
    @abstractmethod
    def send_email(self, recipient: Email, subject: str, content: str) -> None: ...

    def close(self) -> None:
        pass


class MockEmailClient(EmailClient):
    def send_email(self, recipient: Email, subject: str, content: str) -> None:
        logger.debug("Mock email to %s with subject %r (not sent)", recipient.redacted(), subject)


class PostmarkEmailClient(EmailClient):
    """Send mail through Postmark's /email endpoint.

    Usage:
        client = PostmarkEmailClient.from_settings(settings)
        client.send_email(Email.parse("a@x.com"), "2FA code", "Your 2FA code is 123456")
    """

    def __init__(
        self,
        base_url: str,
        sender: str,
        auth_token: str,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url
        self.sender = sender
        self._auth_token = auth_token
        self.timeout = timeout
        self._session = session or requests.Session()
        # Postmark never redirects; anything else is a misconfiguration.
        self._session.max_redirects = 0

    @classmethod
    def from_settings(cls, settings: Settings) -> PostmarkEmailClient:
        return cls(
            base_url=settings.postmark_base_url,
            sender=settings.email_sender,
            auth_token=settings.postmark_auth_token,
            timeout=settings.email_timeout_seconds,
        )

    def send_email(self, recipient: Email, subject: str, content: str) -> None:
        body = {
            "From": self.sender,
            "To": recipient.value,
            "Subject": subject,
            "HtmlBody": html.escape(content),
            "TextBody": content,
            "MessageStream": "outbound",
        }
        headers = {
            "Accept": "application/json",
            "X-Postmark-Server-Token": self._auth_token,
        }
        try:
            resp = self._session.post(self.base_url, json=body, headers=headers, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            logger.warning("Postmark send to %s failed: %s", recipient.redacted(), exc)
            raise EmailSendError(str(exc)) from exc
        logger.info("Email sent to %s (subject %r)", recipient.redacted(), subject)

    def close(self) -> None:
        self._session.close()
