"""Unit tests for stores/sql.py -- SQLAlchemy-backed user store.

Covers:
- add/get round trip including the requires_2fa flag
- duplicate email rejected by the primary key (UserAlreadyExists)
- validate: wrong password vs unknown user
- backend failures and corrupt rows wrapped as UserStoreUnexpectedError
"""

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from core.models import Email, Password, User
from stores.base import InvalidCredentials, UserAlreadyExists, UserNotFound, UserStoreUnexpectedError
from stores.sql import SqlUserStore


@pytest.fixture
def store():
    s = SqlUserStore("sqlite:///:memory:")
    yield s
    s.close()


def _user(email="a@x.com", password="password123", requires_2fa=False) -> User:
    return User(email=Email.parse(email), password=Password.parse(password), requires_2fa=requires_2fa)


def test_add_then_get(store):
    store.add(_user(requires_2fa=True))
    user = store.get(Email.parse("a@x.com"))
    assert user.email == Email.parse("a@x.com")
    assert user.requires_2fa is True
    assert user.password.matches(Password.parse("password123"))


def test_duplicate_email_rejected(store):
    store.add(_user())
    with pytest.raises(UserAlreadyExists):
        store.add(_user(password="another-password"))


def test_get_missing(store):
    with pytest.raises(UserNotFound):
        store.get(Email.parse("nobody@x.com"))


def test_validate_success(store):
    store.add(_user())
    store.validate(Email.parse("a@x.com"), Password.parse("password123"))


def test_validate_wrong_password(store):
    store.add(_user())
    with pytest.raises(InvalidCredentials):
        store.validate(Email.parse("a@x.com"), Password.parse("wrongpassword"))


def test_validate_unknown_user(store):
    with pytest.raises(UserNotFound):
        store.validate(Email.parse("a@x.com"), Password.parse("password123"))


def test_emails_are_case_sensitive_keys(store):
    store.add(_user(email="a@x.com"))
    store.add(_user(email="A@x.com"))
    assert store.get(Email.parse("A@x.com")).email.value == "A@x.com"


def test_backend_failure_wrapped(store, monkeypatch):
    def boom(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(store.engine, "connect", boom)
    with pytest.raises(UserStoreUnexpectedError):
        store.get(Email.parse("a@x.com"))
    with pytest.raises(UserStoreUnexpectedError):
        store.add(_user())


def test_corrupt_row_is_unexpected(store):
    # Written behind the store's back: a password shorter than the minimum.
    with store.engine.connect() as conn:
        conn.execute(text("INSERT INTO users (email, password, requires_2fa) VALUES ('a@x.com', 'short', 0)"))
        conn.commit()
    with pytest.raises(UserStoreUnexpectedError):
        store.get(Email.parse("a@x.com"))
