"""
tests/conftest.py -- Shared fixtures for the auth service test suite.

This module provides:
  - RecordingEmailClient: captures outgoing 2FA emails so tests can read the code
  - settings: a dev-mode Settings instance with a fixed secret key
  - app_state / auth_service: the protocol over fresh in-memory stores
  - client: TestClient over the real FastAPI app with a patched lifespan

The DEBUG env var must be set before any api/ import so the import-time
get_settings() call (CORS origins) auto-generates SECRET_KEY in dev mode
rather than raising ValueError.
"""

from __future__ import annotations

import os
import re
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set DEBUG before any api/auth/core import.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.email import EmailClient
from auth.service import AppState, AuthService
from auth.tokens import SessionAuthority
from core.config import Settings
from core.models import Email
from stores.memory import HashmapTwoFACodeStore, HashmapUserStore, HashsetBannedTokenStore

TEST_SECRET_KEY = "test-secret-key-0123456789abcdef0123456789"


class RecordingEmailClient(EmailClient):
    """Email client that keeps every message in memory instead of sending it."""

    def __init__(self) -> None:
        self.sent: list[tuple[Email, str, str]] = []

    def send_email(self, recipient: Email, subject: str, content: str) -> None:
        self.sent.append((recipient, subject, content))

    def last_code_for(self, email: str) -> str:
        for recipient, _subject, content in reversed(self.sent):
            if recipient.value == email:
                return re.search(r"\d{6}", content).group(0)
        raise AssertionError(f"no email sent to {email}")


# ---------------------------------------------------------------------------
# Service fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return Settings(debug=True, secret_key=TEST_SECRET_KEY)


@pytest.fixture
def email_client() -> RecordingEmailClient:
    return RecordingEmailClient()


@pytest.fixture
def app_state(email_client: RecordingEmailClient) -> AppState:
    return AppState(
        user_store=HashmapUserStore(),
        banned_token_store=HashsetBannedTokenStore(),
        two_fa_code_store=HashmapTwoFACodeStore(),
        email_client=email_client,
    )


@pytest.fixture
def auth_service(app_state: AppState, settings: Settings) -> AuthService:
    return AuthService(app_state, SessionAuthority(settings, app_state.banned_token_store))


# ---------------------------------------------------------------------------
# HTTP fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(service: AuthService, settings: Settings):
    """Return a lifespan that wires the test service into app.state.

    Replaces the real lifespan so no Settings are read from the environment
    and no Redis/SQL backend is contacted.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = settings
        app.state.auth_service = service
        yield

    return test_lifespan


@pytest.fixture
def client(auth_service: AuthService, settings: Settings) -> Generator[TestClient, None, None]:
    """TestClient over the real app, backed by fresh in-memory stores per test.

    base_url uses https so the client keeps cookies regardless of the
    Secure flag.
    """
    app.router.lifespan_context = _patch_lifespan(auth_service, settings)
    with TestClient(app, base_url="https://testserver") as c:
        yield c
