"""
auth/dependencies.py -- FastAPI Depends() helpers.

The service and settings are created once in the lifespan and parked on
app.state; these helpers hand them to route functions so handlers never
reach for module-level globals.

read_session_token() is the "read credential from request" half of the cookie
transport (auth/tokens.py owns the "attach credential to response" half).

Layer rule: no imports from api/. This module may import from fastapi
because it is part of the dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.service import AuthService
from auth.tokens import JWT_COOKIE_NAME
from core.config import Settings


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def read_session_token(request: Request) -> str | None:
    """Return the session token from the `jwt` cookie, or None if absent or empty."""
    return request.cookies.get(JWT_COOKIE_NAME) or None
