"""
auth/service.py -- The authentication protocol.

AuthService composes the three stores, the email client, and the
SessionAuthority into the five user-facing operations:

  signup        Start -> Created
  login         Start -> CredentialsChecked -> SessionEstablished
                                             -> ChallengeIssued (requires_2fa)
  verify_2fa    ChallengeIssued -> ChallengeVerified -> SessionEstablished
  logout        Authenticated -> TokenRevoked
  verify_token  read-only check

Inputs arrive as raw strings and are parsed here, so every failure path --
parse error, store error, token error -- leaves as an AuthAPIError subclass
(auth/errors.py) and the HTTP layer only has to render it.

Consistency: the stores are updated independently, never inside one
transaction. The one visible consequence is in login with 2FA: if the
challenge is stored but the email send fails, the caller gets a 500 and the
orphaned challenge simply expires unused.

Security:
  Unknown email and wrong password both raise IncorrectCredentials.
  A 2FA attempt must match BOTH the stored attempt id and the code, and the
  challenge is deleted on success -- a replay or a stale pair from an earlier
  login finds nothing (or a different pair) and is rejected the same way.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from auth.email import EmailClient, EmailSendError, MockEmailClient, PostmarkEmailClient
from auth.errors import (
    IncorrectCredentials,
    InvalidInput,
    InvalidToken,
    MissingToken,
    UnexpectedError,
    UserAlreadyExistsError,
)
from auth.tokens import SessionAuthority, TokenError
from core.config import Settings
from core.models import Email, LoginAttemptId, Password, TwoFACode, User, ValidationError
from stores.base import (
    BannedTokenStore,
    BannedTokenStoreError,
    TwoFACodeStore,
    TwoFACodeStoreError,
    UserAlreadyExists,
    UserNotFound,
    UserStore,
    UserStoreError,
    UserStoreUnexpectedError,
)
from stores.factory import build_stores

logger = logging.getLogger("authservice.auth")

TWO_FA_EMAIL_SUBJECT = "2FA code"


@dataclass
class AppState:
    """The shared, long-lived collaborators every request works against."""

    user_store: UserStore
    banned_token_store: BannedTokenStore
    two_fa_code_store: TwoFACodeStore
    email_client: EmailClient

    def close(self) -> None:
        self.user_store.close()
        self.banned_token_store.close()
        self.two_fa_code_store.close()
        self.email_client.close()


@dataclass(frozen=True)
class LoginResult:
    """Outcome of a successful credential check.

    Exactly one of token / login_attempt_id is set: a session token when the
    user has no second factor, otherwise the id of the challenge just issued.
    """

    token: str | None = None
    login_attempt_id: LoginAttemptId | None = None

    @property
    def requires_2fa(self) -> bool:
        return self.login_attempt_id is not None


def _parse(parser, raw):
    try:
        return parser(raw)
    except ValidationError as exc:
        raise InvalidInput(str(exc)) from exc


class AuthService:
    def __init__(self, state: AppState, sessions: SessionAuthority) -> None:
        self.state = state
        self.sessions = sessions

    # ------------------------------------------------------------------
    # Signup
    # ------------------------------------------------------------------

    def signup(self, email: str, password: str, requires_2fa: bool) -> User:
        parsed_email = _parse(Email.parse, email)
        parsed_password = _parse(Password.parse, password)
        user = User(email=parsed_email, password=parsed_password, requires_2fa=requires_2fa)

        store = self.state.user_store
        try:
            store.get(parsed_email)
        except UserNotFound:
            pass
        except UserStoreError as exc:
            raise UnexpectedError() from exc
        else:
            raise UserAlreadyExistsError()

        try:
            store.add(user)
        except UserAlreadyExists as exc:
            # Lost a race with a concurrent signup for the same email.
            raise UserAlreadyExistsError() from exc
        except UserStoreError as exc:
            raise UnexpectedError() from exc
        logger.info("User created: %s (2fa=%s)", parsed_email.redacted(), requires_2fa)
        return user

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> LoginResult:
        parsed_email = _parse(Email.parse, email)
        parsed_password = _parse(Password.parse, password)

        store = self.state.user_store
        try:
            store.validate(parsed_email, parsed_password)
            user = store.get(parsed_email)
        except UserStoreUnexpectedError as exc:
            raise UnexpectedError() from exc
        except UserStoreError as exc:
            logger.info("Login rejected for %s", parsed_email.redacted())
            raise IncorrectCredentials() from exc

        if user.requires_2fa:
            return self._start_2fa(user.email)
        logger.info("Login succeeded for %s", parsed_email.redacted())
        return LoginResult(token=self.sessions.issue(user.email))

    def _start_2fa(self, email: Email) -> LoginResult:
        login_attempt_id = LoginAttemptId.generate()
        code = TwoFACode.generate()
        try:
            self.state.two_fa_code_store.issue(email, login_attempt_id, code)
        except TwoFACodeStoreError as exc:
            raise UnexpectedError() from exc
        try:
            self.state.email_client.send_email(email, TWO_FA_EMAIL_SUBJECT, f"Your 2FA code is {code.value}")
        except EmailSendError as exc:
            # The stored challenge is left to expire on its own.
            raise UnexpectedError() from exc
        logger.info("2FA challenge issued for %s", email.redacted())
        return LoginResult(login_attempt_id=login_attempt_id)

    # ------------------------------------------------------------------
    # Verify 2FA
    # ------------------------------------------------------------------

    def verify_2fa(self, email: str, login_attempt_id: str, code: str) -> str:
        parsed_email = _parse(Email.parse, email)
        parsed_attempt_id = _parse(LoginAttemptId.parse, login_attempt_id)
        parsed_code = _parse(TwoFACode.parse, code)

        # One atomic compare-and-delete: concurrent redemptions of the same
        # pair yield at most one session, and a challenge reissued by a newer
        # login is never deleted by a stale verify.
        try:
            taken = self.state.two_fa_code_store.take_if_matches(parsed_email, parsed_attempt_id, parsed_code)
        except TwoFACodeStoreError as exc:
            raise UnexpectedError() from exc

        if not taken:
            logger.info("2FA verification failed for %s", parsed_email.redacted())
            raise IncorrectCredentials()
        logger.info("2FA verification succeeded for %s", parsed_email.redacted())
        return self.sessions.issue(parsed_email)

    # ------------------------------------------------------------------
    # Logout / verify token
    # ------------------------------------------------------------------

    def _validate(self, token: str) -> Email:
        try:
            return self.sessions.validate(token)
        except TokenError as exc:
            raise InvalidToken() from exc
        except BannedTokenStoreError as exc:
            raise UnexpectedError() from exc

    def logout(self, token: str | None) -> None:
        if not token:
            raise MissingToken()
        email = self._validate(token)
        try:
            self.sessions.revoke(token)
        except BannedTokenStoreError as exc:
            raise UnexpectedError() from exc
        logger.info("Logout for %s", email.redacted())

    def verify_token(self, token: str) -> Email:
        return self._validate(token)


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def build_email_client(settings: Settings) -> EmailClient:
    if settings.email_backend == "postmark":
        return PostmarkEmailClient.from_settings(settings)
    return MockEmailClient()


def build_auth_service(settings: Settings) -> AuthService:
    """Assemble the service from Settings. Called once per process by the lifespan."""
    user_store, banned_token_store, two_fa_code_store = build_stores(settings)
    state = AppState(
        user_store=user_store,
        banned_token_store=banned_token_store,
        two_fa_code_store=two_fa_code_store,
        email_client=build_email_client(settings),
    )
    return AuthService(state, SessionAuthority(settings, banned_token_store))
