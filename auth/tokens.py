"""
auth/tokens.py -- Session tokens: issue, validate, revoke, and the cookie.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry the
       user's email as `sub`, an expiry `exp` of now + TOKEN_TTL_SECONDS, and a
       random `jti` so two sessions opened in the same second still get
       distinct tokens (revoking one must not revoke the other).

  Stateless sessions: the server never stores live sessions. A token is
       valid iff its signature checks out, it has not expired, and it is not
       in the BannedTokenStore. The first two checks are local and run first;
       the store is only consulted for tokens that pass them.

  Revocation TTL: a revoked token only needs to stay banned until its own
       `exp` -- after that the expiry check rejects it anyway. revoke()
       therefore writes it with TTL = exp - now.

  Cookie: httpOnly (JS cannot read it), SameSite from settings, Secure when
       SECURE_COOKIES=true, path "/", max_age equal to the token lifetime so
       both expire together.

Layer rule: no imports from api/. Import from core/ and stores/ is allowed.
"""

from __future__ import annotations

import time
import uuid
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from core.config import Settings
from core.models import Email, ValidationError
from stores.base import BannedTokenStore

JWT_COOKIE_NAME = "jwt"

_ALGORITHM = "HS256"


class TokenError(Exception):
    """Base class for every reason a session token is rejected."""


class TokenExpired(TokenError):
    pass


class BadSignature(TokenError):
    """Signature mismatch, wrong algorithm, or a token that is not a JWT at all."""


class TokenRevoked(TokenError):
    pass


class SessionAuthority:
    """Mint, check, and revoke session tokens.

    Usage:
        authority = SessionAuthority(settings, banned_token_store)
        token = authority.issue(email)
        email = authority.validate(token)   # raises TokenError subclasses
        authority.revoke(token)
    """

    def __init__(self, settings: Settings, banned_token_store: BannedTokenStore) -> None:
        self._secret_key = settings.secret_key
        self.ttl_seconds = settings.token_ttl_seconds
        self.banned_token_store = banned_token_store

    def issue(self, email: Email) -> str:
        expire = datetime.now(timezone.utc) + timedelta(seconds=self.ttl_seconds)
        payload = {
            "sub": email.value,
            "exp": expire,
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def _decode(self, token: str) -> Email:
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except ExpiredSignatureError as exc:
            raise TokenExpired() from exc
        except JWTError as exc:
            raise BadSignature() from exc
        if "exp" not in payload:
            # jose only checks exp when present; a token without one never expires.
            raise BadSignature()
        try:
            return Email.parse(payload.get("sub"))
        except ValidationError as exc:
            raise BadSignature() from exc

    def validate(self, token: str) -> Email:
        """Return the token's subject. Raises TokenExpired, BadSignature, or TokenRevoked.

        BannedTokenStoreError propagates unchanged: a store outage is not
        evidence that the token is bad.
        """
        email = self._decode(token)
        if self.banned_token_store.contains(token):
            raise TokenRevoked()
        return email

    def remaining_seconds(self, token: str) -> int:
        """Seconds until the token's exp; the full lifetime if exp is unreadable."""
        try:
            claims = jwt.get_unverified_claims(token)
            exp = int(claims["exp"])
        except (JWTError, KeyError, TypeError, ValueError):
            return self.ttl_seconds
        return max(0, exp - int(time.time()))

    def revoke(self, token: str) -> None:
        """Ban token until it would have expired anyway. Raises BannedTokenStoreError."""
        self.banned_token_store.revoke(token, self.remaining_seconds(token))


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, settings: Settings) -> None:
    """Write the session token as an httpOnly cookie on the response."""
    response.set_cookie(
        JWT_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite=settings.cookie_samesite,
        secure=settings.secure_cookies,
        path="/",
        max_age=settings.token_ttl_seconds,
    )


def clear_auth_cookie(response, settings: Settings) -> None:
    response.delete_cookie(
        JWT_COOKIE_NAME,
        path="/",
        httponly=True,
        samesite=settings.cookie_samesite,
        secure=settings.secure_cookies,
    )
