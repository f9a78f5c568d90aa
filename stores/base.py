"""
stores/base.py -- Capability sets shared by every storage backend.

Three independent stores back the auth protocol:
  UserStore         -- email -> User, durable
  BannedTokenStore  -- revoked session tokens, entries expire with the token
  TwoFACodeStore    -- at most one pending (LoginAttemptId, TwoFACode) per email

Each capability is an ABC with two or more concrete backends (stores/memory.py,
stores/sql.py, stores/redis_store.py). Which backend runs is decided once at
startup by stores/factory.py from Settings -- callers only see these types.

Error contract:
  Backend-specific exceptions (SQLAlchemyError, RedisError, JSON decode errors)
  never escape a store. They are wrapped in the store's *UnexpectedError with
  the backend error chained via `raise ... from exc`, so logs keep the cause while
  the protocol layer only has to handle the types below.

Layer rule: stores/ imports from core/ only.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from core.models import Email, LoginAttemptId, Password, TwoFACode, User

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class UserStoreError(Exception):
    """Base class for user store failures."""


class UserAlreadyExists(UserStoreError):
    pass


class UserNotFound(UserStoreError):
    pass


class InvalidCredentials(UserStoreError):
    pass


class UserStoreUnexpectedError(UserStoreError):
    pass


class BannedTokenStoreError(Exception):
    """Raised when the revoked-token backend cannot be read or written."""


class TwoFACodeStoreError(Exception):
    """Base class for 2FA challenge store failures."""


class LoginAttemptIdNotFound(TwoFACodeStoreError):
    """No live challenge exists for the email (never issued, consumed, or expired)."""


class TwoFACodeStoreUnexpectedError(TwoFACodeStoreError):
    pass


# ---------------------------------------------------------------------------
# Capability sets
# ---------------------------------------------------------------------------


class UserStore(ABC):
    @abstractmethod
    def add(self, user: User) -> None:
        """Insert a new user. Raises UserAlreadyExists if the email is taken."""

    @abstractmethod
    def get(self, email: Email) -> User:
        """Return the user for email. Raises UserNotFound if absent."""

    def validate(self, email: Email, password: Password) -> None:
        """Check a login attempt against the stored record.

        Raises UserNotFound for an unknown email and InvalidCredentials for a
        password mismatch. The protocol collapses both into one response.
        """
        user = self.get(email)
        if not user.password.matches(password):
            raise InvalidCredentials()

    def close(self) -> None:
        pass


class BannedTokenStore(ABC):
    @abstractmethod
    def revoke(self, token: str, ttl_seconds: int) -> None:
        """Mark token as revoked for ttl_seconds. Revoking twice is not an error."""

    @abstractmethod
    def contains(self, token: str) -> bool:
        """Return True while token is revoked and its TTL has not elapsed."""

    def close(self) -> None:
        pass


class TwoFACodeStore(ABC):
    @abstractmethod
    def issue(self, email: Email, login_attempt_id: LoginAttemptId, code: TwoFACode) -> None:
        """Store the challenge for email, replacing any previous one."""

    @abstractmethod
    def consume(self, email: Email) -> None:
        """Delete the challenge for email. A missing challenge is not an error."""

    @abstractmethod
    def peek(self, email: Email) -> tuple[LoginAttemptId, TwoFACode]:
        """Return the live challenge for email. Raises LoginAttemptIdNotFound if none."""

    @abstractmethod
    def take_if_matches(self, email: Email, login_attempt_id: LoginAttemptId, code: TwoFACode) -> bool:
        """Delete the challenge for email iff it is live and equals (login_attempt_id, code).

        Compare and delete are one atomic step: of several concurrent calls
        with the same pair, at most one returns True. A mismatch leaves the
        stored challenge untouched. Returns False when nothing was taken.
        """

    def close(self) -> None:
        pass
