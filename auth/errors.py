"""
auth/errors.py -- Error taxonomy returned by the authentication protocol.

Each error carries the HTTP status and the human-readable message that
api/main.py renders as {"error": message}. The protocol raises these; routes
never build error responses by hand.

Security:
  IncorrectCredentials covers both "unknown email" and "wrong password" (and
  every 2FA mismatch) so responses cannot be used to enumerate accounts.
  InvalidToken covers expired, badly signed, malformed, and revoked tokens.
  UnexpectedError never carries backend detail; the cause is chained for logs.
"""

from __future__ import annotations


class AuthAPIError(Exception):
    status_code: int = 500
    message: str = "Unexpected error"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class InvalidInput(AuthAPIError):
    """A field was present but failed domain parsing. Message is the parse error."""

    status_code = 400
    message = "Invalid credentials"


class IncorrectCredentials(AuthAPIError):
    status_code = 401
    message = "Incorrect credentials"


class MissingToken(AuthAPIError):
    status_code = 400
    message = "Missing auth token"


class InvalidToken(AuthAPIError):
    status_code = 401
    message = "Invalid auth token"


class UserAlreadyExistsError(AuthAPIError):
    status_code = 409
    message = "User already exists"


class UnexpectedError(AuthAPIError):
    status_code = 500
    message = "Unexpected error"
