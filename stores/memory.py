"""
stores/memory.py -- In-process backends for all three stores.

Suitable for tests and single-process deployments: state lives in plain
dicts guarded by an RWLock and disappears when the process exits.

The revoked-token and 2FA stores record an absolute deadline next to every
entry and treat a past-deadline entry as absent (it is dropped on the next
access). There is no background sweeper; an entry that is never read again
stays in memory until the process exits, which is bounded by the number of
logins/logouts the process serves.

The clock is injectable (defaults to time.monotonic) so tests can advance
time without sleeping.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from core.models import Email, LoginAttemptId, TwoFACode, User
from stores.base import (
    BannedTokenStore,
    LoginAttemptIdNotFound,
    TwoFACodeStore,
    UserAlreadyExists,
    UserNotFound,
    UserStore,
)
from stores.rwlock import RWLock

Clock = Callable[[], float]


class HashmapUserStore(UserStore):
    def __init__(self) -> None:
        self._users: dict[Email, User] = {}
        self._lock = RWLock()

    def add(self, user: User) -> None:
        with self._lock.write():
            if user.email in self._users:
                raise UserAlreadyExists()
            self._users[user.email] = user

    def get(self, email: Email) -> User:
        with self._lock.read():
            user = self._users.get(email)
        if user is None:
            raise UserNotFound()
        return user


class HashsetBannedTokenStore(BannedTokenStore):
    def __init__(self, clock: Clock = time.monotonic) -> None:
        self._tokens: dict[str, float] = {}  # token -> deadline
        self._lock = RWLock()
        self._clock = clock

    def revoke(self, token: str, ttl_seconds: int) -> None:
        deadline = self._clock() + max(1, ttl_seconds)
        with self._lock.write():
            # Keep the later deadline if the token is revoked twice.
            self._tokens[token] = max(deadline, self._tokens.get(token, 0.0))

    def contains(self, token: str) -> bool:
        now = self._clock()
        with self._lock.read():
            deadline = self._tokens.get(token)
        if deadline is None:
            return False
        if deadline <= now:
            with self._lock.write():
                if self._tokens.get(token, now + 1) <= now:
                    del self._tokens[token]
            return False
        return True


class HashmapTwoFACodeStore(TwoFACodeStore):
    def __init__(self, ttl_seconds: int = 600, clock: Clock = time.monotonic) -> None:
        self._codes: dict[Email, tuple[LoginAttemptId, TwoFACode, float]] = {}
        self._lock = RWLock()
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    def issue(self, email: Email, login_attempt_id: LoginAttemptId, code: TwoFACode) -> None:
        deadline = self._clock() + self._ttl_seconds
        with self._lock.write():
            self._codes[email] = (login_attempt_id, code, deadline)

    def consume(self, email: Email) -> None:
        with self._lock.write():
            self._codes.pop(email, None)

    def peek(self, email: Email) -> tuple[LoginAttemptId, TwoFACode]:
        now = self._clock()
        with self._lock.read():
            entry = self._codes.get(email)
        if entry is None:
            raise LoginAttemptIdNotFound()
        login_attempt_id, code, deadline = entry
        if deadline <= now:
            with self._lock.write():
                # A fresh challenge may have replaced the expired one meanwhile.
                current = self._codes.get(email)
                if current is not None and current[2] <= now:
                    del self._codes[email]
            raise LoginAttemptIdNotFound()
        return login_attempt_id, code

    def take_if_matches(self, email: Email, login_attempt_id: LoginAttemptId, code: TwoFACode) -> bool:
        now = self._clock()
        with self._lock.write():
            entry = self._codes.get(email)
            if entry is None:
                return False
            stored_attempt_id, stored_code, deadline = entry
            if deadline <= now:
                del self._codes[email]
                return False
            if stored_attempt_id != login_attempt_id or not stored_code.matches(code):
                return False
            del self._codes[email]
            return True
