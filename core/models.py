"""
core/models.py -- Domain value types for the auth service.

Every value that crosses the HTTP boundary is parsed into one of these types
before any store is touched. Each type checks its invariant in __post_init__,
so a direct constructor call validates exactly like parse(); there is no way
to hold an Email without an "@" or a TwoFACode that is not six digits.
generate() is the only non-parsing constructor, and exists only for
LoginAttemptId and TwoFACode. A bad value raises ValidationError, whose
message is returned verbatim to the client as the "error" string.

All types are frozen dataclasses: equality and hashing are structural, which
lets Email serve directly as a dict key in the in-memory stores.
"""

from __future__ import annotations

import re
import secrets
import uuid
from dataclasses import dataclass, field

# Canonical 6-digit one-time code. ASCII digits only -- str.isdigit() would
# also accept other Unicode digit characters.
TWO_FA_CODE_PATTERN = re.compile(r"[0-9]{6}")

LOGIN_ATTEMPT_ID_PATTERN = re.compile(r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}")

PASSWORD_MIN_LENGTH = 8


class ValidationError(ValueError):
    """Raised when raw input does not satisfy a value type's invariant."""


@dataclass(frozen=True)
class Email:
    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or "@" not in self.value:
            raise ValidationError("invalid email")

    @classmethod
    def parse(cls, raw: str) -> Email:
        return cls(raw)

    def redacted(self) -> str:
        """Return a log-safe form of the address (first two chars of the local part)."""
        local, _, domain = self.value.partition("@")
        return f"{local[:2]}***@{domain}"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Password:
    """A candidate or stored password. Never rendered by repr() or str()."""

    value: str = field(repr=False)

    def __post_init__(self) -> None:
        # len() counts code points, not encoded bytes
        if not isinstance(self.value, str) or len(self.value) < PASSWORD_MIN_LENGTH:
            raise ValidationError("password too short")

    @classmethod
    def parse(cls, raw: str) -> Password:
        return cls(raw)

    def matches(self, other: Password) -> bool:
        return secrets.compare_digest(self.value.encode("utf-8"), other.value.encode("utf-8"))

    def __str__(self) -> str:
        return "********"


@dataclass(frozen=True)
class LoginAttemptId:
    value: str

    def __post_init__(self) -> None:
        # Only the 36-character hyphenated form is accepted; uuid.UUID alone
        # would also take braces, a urn: prefix, or 32 bare hex digits.
        if not isinstance(self.value, str) or not LOGIN_ATTEMPT_ID_PATTERN.fullmatch(self.value):
            raise ValidationError("Invalid LoginAttemptId")
        # Stored lowercase so ids compare equal regardless of input case.
        object.__setattr__(self, "value", str(uuid.UUID(self.value)))

    @classmethod
    def parse(cls, raw: str) -> LoginAttemptId:
        return cls(raw)

    @classmethod
    def generate(cls) -> LoginAttemptId:
        return cls(str(uuid.uuid4()))

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class TwoFACode:
    value: str = field(repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not TWO_FA_CODE_PATTERN.fullmatch(self.value):
            raise ValidationError("Invalid 2FA code. It must be a 6-digit number.")

    @classmethod
    def parse(cls, raw: str) -> TwoFACode:
        return cls(raw)

    @classmethod
    def generate(cls) -> TwoFACode:
        return cls(f"{secrets.randbelow(1_000_000):06d}")

    def matches(self, other: TwoFACode) -> bool:
        return secrets.compare_digest(self.value, other.value)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class User:
    """A registered account. Created on signup and never modified afterwards.

    Security gap: password holds the value exactly as supplied at signup and
    stores compare it in plaintext on login (constant-time, via
    Password.matches). Nothing is hashed; a leaked users table exposes every
    password.
    """

    email: Email
    password: Password = field(repr=False)
    requires_2fa: bool = False
