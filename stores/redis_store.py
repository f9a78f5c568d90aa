"""
stores/redis_store.py -- Redis backends for revoked tokens and 2FA challenges.

Both stores lean on Redis key expiry instead of tracking deadlines themselves:
every write is a single SET ... EX <ttl>, so an entry disappears on its own
once the TTL elapses and no cleanup job is needed.

Key layout (one prefix per entry family so both stores can share a database):
  banned_token:<token>   -> "1"                             EX = remaining token lifetime
  two_fa_code:<email>    -> '["<login_attempt_id>", "<code>"]' EX = two_fa_code_ttl_seconds

Each command is atomic on the Redis side; no multi-key transaction is needed
because neither store has an invariant spanning more than one key. Redeeming
a 2FA challenge is a compare-and-delete, so it runs as one Lua script
(EVAL) rather than a GET followed by a DEL.
redis.RedisError (connection refused, timeout, ...) and malformed stored
values are wrapped in the store's unexpected error.
"""

from __future__ import annotations

import json
import logging

import redis
from redis import Redis

from core.models import Email, LoginAttemptId, TwoFACode, ValidationError
from stores.base import (
    BannedTokenStore,
    BannedTokenStoreError,
    LoginAttemptIdNotFound,
    TwoFACodeStore,
    TwoFACodeStoreUnexpectedError,
)

logger = logging.getLogger("authservice.stores.redis")

BANNED_TOKEN_KEY_PREFIX = "banned_token:"
TWO_FA_CODE_KEY_PREFIX = "two_fa_code:"

# DEL only when the stored payload equals ARGV[1]; returns 1 if deleted, else 0.
_TAKE_IF_MATCHES_SCRIPT = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("DEL", KEYS[1])
end
return 0
"""


def create_redis_client(redis_url: str, *, socket_timeout: float = 5.0) -> Redis:
    """Build a client with explicit timeouts so a dead Redis fails fast."""
    return redis.from_url(
        redis_url,
        decode_responses=True,
        socket_timeout=socket_timeout,
        socket_connect_timeout=socket_timeout,
    )


class RedisBannedTokenStore(BannedTokenStore):
    def __init__(self, client: Redis) -> None:
        self.client = client

    @staticmethod
    def _key(token: str) -> str:
        return f"{BANNED_TOKEN_KEY_PREFIX}{token}"

    def revoke(self, token: str, ttl_seconds: int) -> None:
        # Redis rejects EX values <= 0; an already-expired token still gets
        # a short-lived entry so revoke() stays idempotent and harmless.
        ttl = max(1, int(ttl_seconds))
        try:
            self.client.set(self._key(token), "1", ex=ttl)
        except redis.RedisError as exc:
            logger.error("Failed to store revoked token: %s", exc)
            raise BannedTokenStoreError() from exc

    def contains(self, token: str) -> bool:
        try:
            return bool(self.client.exists(self._key(token)))
        except redis.RedisError as exc:
            logger.error("Failed to query revoked tokens: %s", exc)
            raise BannedTokenStoreError() from exc

    def close(self) -> None:
        self.client.close()


class RedisTwoFACodeStore(TwoFACodeStore):
    def __init__(self, client: Redis, ttl_seconds: int = 600) -> None:
        self.client = client
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def _key(email: Email) -> str:
        return f"{TWO_FA_CODE_KEY_PREFIX}{email.value}"

    def issue(self, email: Email, login_attempt_id: LoginAttemptId, code: TwoFACode) -> None:
        payload = json.dumps([login_attempt_id.value, code.value])
        try:
            # Plain SET overwrites any earlier challenge for this email.
            self.client.set(self._key(email), payload, ex=self.ttl_seconds)
        except redis.RedisError as exc:
            logger.error("Failed to store 2FA challenge for %s: %s", email.redacted(), exc)
            raise TwoFACodeStoreUnexpectedError() from exc

    def consume(self, email: Email) -> None:
        try:
            self.client.delete(self._key(email))
        except redis.RedisError as exc:
            logger.error("Failed to delete 2FA challenge for %s: %s", email.redacted(), exc)
            raise TwoFACodeStoreUnexpectedError() from exc

    def peek(self, email: Email) -> tuple[LoginAttemptId, TwoFACode]:
        try:
            raw = self.client.get(self._key(email))
        except redis.RedisError as exc:
            logger.error("Failed to read 2FA challenge for %s: %s", email.redacted(), exc)
            raise TwoFACodeStoreUnexpectedError() from exc
        if raw is None:
            raise LoginAttemptIdNotFound()
        try:
            attempt_id, code = json.loads(raw)
            return LoginAttemptId.parse(attempt_id), TwoFACode.parse(code)
        except (ValueError, TypeError, ValidationError) as exc:
            logger.error("Corrupt 2FA challenge stored for %s", email.redacted())
            raise TwoFACodeStoreUnexpectedError() from exc

    def take_if_matches(self, email: Email, login_attempt_id: LoginAttemptId, code: TwoFACode) -> bool:
        # issue() writes this exact serialization, so string equality is pair equality.
        expected = json.dumps([login_attempt_id.value, code.value])
        try:
            deleted = self.client.eval(_TAKE_IF_MATCHES_SCRIPT, 1, self._key(email), expected)
        except redis.RedisError as exc:
            logger.error("Failed to redeem 2FA challenge for %s: %s", email.redacted(), exc)
            raise TwoFACodeStoreUnexpectedError() from exc
        return int(deleted) == 1

    def close(self) -> None:
        self.client.close()
