"""
stores/sql.py -- SQLAlchemy Core persistence for user records.

Pattern: Repository + Data Mapper. SqlUserStore is the repository;
_row_to_user is the mapper. Route and service code never touches SQL directly.

Every operation is a single statement on its own connection:
  add      -- INSERT; the primary key on email rejects duplicates, and the
              resulting IntegrityError becomes UserAlreadyExists. No
              check-then-insert race is possible.
  get      -- point lookup by primary key.
  validate -- get() followed by an in-process password comparison.

Security:
  All queries use bound parameters. No f-strings in SQL.

Any other SQLAlchemyError (connection refused, locked database, ...) is
wrapped in UserStoreUnexpectedError so backend detail never reaches a client.

Works against SQLite out of the box (the default DATABASE_URL) and against
PostgreSQL when a driver is installed (pip install .[postgres]).
"""

from __future__ import annotations

import logging

from sqlalchemy import Boolean, Column, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from core.models import Email, Password, User, ValidationError
from stores.base import UserAlreadyExists, UserNotFound, UserStore, UserStoreUnexpectedError

logger = logging.getLogger("authservice.stores.sql")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("email", String(320), primary_key=True),
    Column("password", Text, nullable=False),
    Column("requires_2fa", Boolean, nullable=False, default=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked by a writer.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class SqlUserStore(UserStore):
    """User repository over a single `users` table.

    Usage:
        store = SqlUserStore("sqlite:///authservice.db")
        store.add(User(email=Email.parse("a@x.com"), password=Password.parse("password123")))
        user = store.get(Email.parse("a@x.com"))
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        engine_kwargs: dict = {}
        in_memory = ":memory:" in db_url or "mode=memory" in db_url
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            if in_memory:
                # One shared connection, otherwise every pooled connection
                # would open its own empty database.
                engine_kwargs["poolclass"] = StaticPool
        self.engine: Engine = create_engine(db_url, connect_args=connect_args, **engine_kwargs)
        if db_url.startswith("sqlite") and not in_memory:
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def add(self, user: User) -> None:
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _users.insert().values(
                        email=user.email.value,
                        password=user.password.value,
                        requires_2fa=user.requires_2fa,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise UserAlreadyExists() from exc
        except SQLAlchemyError as exc:
            logger.error("User insert failed for %s: %s", user.email.redacted(), exc)
            raise UserStoreUnexpectedError() from exc

    def get(self, email: Email) -> User:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.email == email.value)).fetchone()
        except SQLAlchemyError as exc:
            logger.error("User lookup failed for %s: %s", email.redacted(), exc)
            raise UserStoreUnexpectedError() from exc
        if row is None:
            raise UserNotFound()
        try:
            return _row_to_user(row)
        except ValidationError as exc:
            logger.error("Corrupt user row for %s", email.redacted())
            raise UserStoreUnexpectedError() from exc

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    # Raises ValidationError for a row that no longer satisfies the value types.
    return User(
        email=Email.parse(row.email),
        password=Password.parse(row.password),
        requires_2fa=bool(row.requires_2fa),
    )
