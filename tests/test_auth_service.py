"""Unit tests for auth/service.py -- the authentication protocol.

Covers:
- signup: Created, AlreadyExists, InvalidInput with the domain message
- login: unknown user and wrong password both IncorrectCredentials
- login with 2FA: challenge stored, code emailed, attempt id returned (never the code)
- verify_2fa: success consumes the challenge; replay, stale pair, wrong code rejected
- verify_2fa under concurrency: one code redeemed by parallel requests opens one session
- logout / verify_token: MissingToken, InvalidToken, revocation isolation
- backend failures surface as UnexpectedError
"""

import threading
from unittest.mock import MagicMock

import pytest

from auth.email import EmailClient, EmailSendError
from auth.errors import (
    IncorrectCredentials,
    InvalidInput,
    InvalidToken,
    MissingToken,
    UnexpectedError,
    UserAlreadyExistsError,
)
from auth.service import AuthService, build_auth_service
from core.config import Settings
from core.models import Email, LoginAttemptId
from stores.base import (
    BannedTokenStore,
    BannedTokenStoreError,
    TwoFACodeStore,
    TwoFACodeStoreUnexpectedError,
    UserStore,
    UserStoreUnexpectedError,
)
from stores.memory import HashmapUserStore

EMAIL = "a@x.com"
PASSWORD = "password123"


def _login_2fa(auth_service: AuthService, email_client, email=EMAIL) -> tuple[str, str]:
    result = auth_service.login(email, PASSWORD)
    assert result.requires_2fa
    return result.login_attempt_id.value, email_client.last_code_for(email)


# ---------------------------------------------------------------------------
# Signup
# ---------------------------------------------------------------------------


class TestSignup:
    def test_created_then_already_exists(self, auth_service):
        auth_service.signup(EMAIL, PASSWORD, False)
        with pytest.raises(UserAlreadyExistsError):
            auth_service.signup(EMAIL, "another-password", True)

    @pytest.mark.parametrize(
        "email,password,message",
        [
            ("", PASSWORD, "invalid email"),
            ("no-at-sign", PASSWORD, "invalid email"),
            (EMAIL, "short", "password too short"),
        ],
    )
    def test_invalid_input_carries_domain_message(self, auth_service, email, password, message):
        with pytest.raises(InvalidInput) as exc_info:
            auth_service.signup(email, password, False)
        assert exc_info.value.message == message
        assert exc_info.value.status_code == 400

    def test_store_failure_is_unexpected(self, app_state, auth_service):
        app_state.user_store = MagicMock(spec=UserStore)
        app_state.user_store.get.side_effect = UserStoreUnexpectedError()
        with pytest.raises(UnexpectedError):
            auth_service.signup(EMAIL, PASSWORD, False)


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


class TestLogin:
    def test_login_without_2fa_returns_valid_token(self, auth_service):
        auth_service.signup(EMAIL, PASSWORD, False)
        result = auth_service.login(EMAIL, PASSWORD)
        assert not result.requires_2fa
        assert auth_service.verify_token(result.token) == Email.parse(EMAIL)

    def test_unknown_user_and_wrong_password_are_indistinguishable(self, auth_service):
        auth_service.signup(EMAIL, PASSWORD, False)
        with pytest.raises(IncorrectCredentials) as unknown:
            auth_service.login("nobody@x.com", PASSWORD)
        with pytest.raises(IncorrectCredentials) as wrong:
            auth_service.login(EMAIL, "wrongpassword")
        assert unknown.value.message == wrong.value.message

    def test_invalid_input(self, auth_service):
        with pytest.raises(InvalidInput):
            auth_service.login("no-at-sign", PASSWORD)
        with pytest.raises(InvalidInput):
            auth_service.login(EMAIL, "short")

    def test_2fa_login_issues_challenge_and_emails_code(self, auth_service, app_state, email_client):
        auth_service.signup(EMAIL, PASSWORD, True)
        result = auth_service.login(EMAIL, PASSWORD)
        assert result.token is None
        stored_id, stored_code = app_state.two_fa_code_store.peek(Email.parse(EMAIL))
        assert stored_id == result.login_attempt_id
        assert result.login_attempt_id.value != stored_code.value
        recipient, subject, content = email_client.sent[-1]
        assert recipient == Email.parse(EMAIL)
        assert subject == "2FA code"
        assert content == f"Your 2FA code is {stored_code.value}"

    def test_challenge_store_failure_sends_no_email(self, auth_service, app_state, email_client):
        auth_service.signup(EMAIL, PASSWORD, True)
        app_state.two_fa_code_store = MagicMock(spec=TwoFACodeStore)
        app_state.two_fa_code_store.issue.side_effect = TwoFACodeStoreUnexpectedError()
        with pytest.raises(UnexpectedError):
            auth_service.login(EMAIL, PASSWORD)
        assert email_client.sent == []

    def test_email_failure_is_unexpected(self, auth_service, app_state):
        auth_service.signup(EMAIL, PASSWORD, True)
        failing = MagicMock(spec=EmailClient)
        failing.send_email.side_effect = EmailSendError("down")
        app_state.email_client = failing
        with pytest.raises(UnexpectedError):
            auth_service.login(EMAIL, PASSWORD)

    def test_user_store_outage_is_unexpected_not_incorrect(self, auth_service, app_state):
        app_state.user_store = MagicMock(spec=UserStore)
        app_state.user_store.validate.side_effect = UserStoreUnexpectedError()
        with pytest.raises(UnexpectedError):
            auth_service.login(EMAIL, PASSWORD)


# ---------------------------------------------------------------------------
# Verify 2FA
# ---------------------------------------------------------------------------


class TestVerify2FA:
    def test_success_returns_token_and_consumes_challenge(self, auth_service, email_client):
        auth_service.signup(EMAIL, PASSWORD, True)
        attempt_id, code = _login_2fa(auth_service, email_client)
        token = auth_service.verify_2fa(EMAIL, attempt_id, code)
        assert auth_service.verify_token(token) == Email.parse(EMAIL)
        with pytest.raises(IncorrectCredentials):
            auth_service.verify_2fa(EMAIL, attempt_id, code)

    def test_old_pair_rejected_after_relogin(self, auth_service, email_client):
        auth_service.signup(EMAIL, PASSWORD, True)
        old_id, old_code = _login_2fa(auth_service, email_client)
        new_id, new_code = _login_2fa(auth_service, email_client)
        with pytest.raises(IncorrectCredentials):
            auth_service.verify_2fa(EMAIL, old_id, old_code)
        # Mixing the new attempt id with the old code fails too (unless the
        # independent draws happened to collide).
        if old_code != new_code:
            with pytest.raises(IncorrectCredentials):
                auth_service.verify_2fa(EMAIL, new_id, old_code)
        assert auth_service.verify_2fa(EMAIL, new_id, new_code)

    def test_wrong_code_keeps_challenge(self, auth_service, email_client):
        auth_service.signup(EMAIL, PASSWORD, True)
        attempt_id, code = _login_2fa(auth_service, email_client)
        wrong = "000000" if code != "000000" else "111111"
        with pytest.raises(IncorrectCredentials):
            auth_service.verify_2fa(EMAIL, attempt_id, wrong)
        assert auth_service.verify_2fa(EMAIL, attempt_id, code)

    def test_concurrent_redemptions_open_one_session(self, auth_service, email_client):
        auth_service.signup(EMAIL, PASSWORD, True)
        attempt_id, code = _login_2fa(auth_service, email_client)
        tokens: list[str] = []
        rejected: list[IncorrectCredentials] = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            try:
                tokens.append(auth_service.verify_2fa(EMAIL, attempt_id, code))
            except IncorrectCredentials as exc:
                rejected.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(tokens) == 1
        assert len(rejected) == 7

    def test_stale_verify_keeps_reissued_challenge(self, auth_service, email_client):
        auth_service.signup(EMAIL, PASSWORD, True)
        old_id, old_code = _login_2fa(auth_service, email_client)
        new_id, new_code = _login_2fa(auth_service, email_client)
        with pytest.raises(IncorrectCredentials):
            auth_service.verify_2fa(EMAIL, old_id, old_code)
        assert auth_service.verify_2fa(EMAIL, new_id, new_code)

    def test_challenge_store_outage_is_unexpected(self, auth_service, app_state):
        app_state.two_fa_code_store = MagicMock(spec=TwoFACodeStore)
        app_state.two_fa_code_store.take_if_matches.side_effect = TwoFACodeStoreUnexpectedError()
        with pytest.raises(UnexpectedError):
            auth_service.verify_2fa(EMAIL, LoginAttemptId.generate().value, "123456")

    def test_no_challenge(self, auth_service):
        with pytest.raises(IncorrectCredentials):
            auth_service.verify_2fa(EMAIL, LoginAttemptId.generate().value, "123456")

    @pytest.mark.parametrize(
        "email,attempt_id,code",
        [
            ("no-at-sign", "11111111-1111-4111-8111-111111111111", "123456"),
            (EMAIL, "not-a-uuid", "123456"),
            (EMAIL, "11111111-1111-4111-8111-111111111111", "12345"),
        ],
    )
    def test_invalid_input(self, auth_service, email, attempt_id, code):
        with pytest.raises(InvalidInput):
            auth_service.verify_2fa(email, attempt_id, code)


# ---------------------------------------------------------------------------
# Logout / verify token
# ---------------------------------------------------------------------------


class TestLogoutAndVerifyToken:
    def test_missing_token(self, auth_service):
        with pytest.raises(MissingToken):
            auth_service.logout(None)
        with pytest.raises(MissingToken):
            auth_service.logout("")

    def test_invalid_token(self, auth_service):
        with pytest.raises(InvalidToken):
            auth_service.logout("garbage")
        with pytest.raises(InvalidToken):
            auth_service.verify_token("garbage")

    def test_logout_revokes_only_that_session(self, auth_service):
        auth_service.signup(EMAIL, PASSWORD, False)
        first = auth_service.login(EMAIL, PASSWORD).token
        second = auth_service.login(EMAIL, PASSWORD).token
        auth_service.logout(first)
        with pytest.raises(InvalidToken):
            auth_service.verify_token(first)
        assert auth_service.verify_token(second) == Email.parse(EMAIL)

    def test_double_logout_is_invalid_token(self, auth_service):
        auth_service.signup(EMAIL, PASSWORD, False)
        token = auth_service.login(EMAIL, PASSWORD).token
        auth_service.logout(token)
        with pytest.raises(InvalidToken):
            auth_service.logout(token)

    def test_revocation_store_outage_is_unexpected(self, auth_service, app_state):
        auth_service.signup(EMAIL, PASSWORD, False)
        token = auth_service.login(EMAIL, PASSWORD).token
        outage = MagicMock(spec=BannedTokenStore)
        outage.contains.side_effect = BannedTokenStoreError()
        auth_service.sessions.banned_token_store = outage
        with pytest.raises(UnexpectedError):
            auth_service.verify_token(token)


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def test_build_auth_service_defaults_to_memory_backends():
    settings = Settings(secret_key="k" * 32, _env_file=None)
    service = build_auth_service(settings)
    assert isinstance(service.state.user_store, HashmapUserStore)
    service.signup(EMAIL, PASSWORD, False)
    assert service.verify_token(service.login(EMAIL, PASSWORD).token) == Email.parse(EMAIL)
    service.state.close()
