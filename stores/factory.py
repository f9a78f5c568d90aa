"""
stores/factory.py -- Pick concrete store backends from Settings.

Called once from the app lifespan. Backend names are Literal-typed in
Settings, so an unknown name never reaches this module.

  USER_STORE_BACKEND          memory | sql    (sql uses DATABASE_URL)
  BANNED_TOKEN_STORE_BACKEND  memory | redis  (redis uses REDIS_URL)
  TWO_FA_CODE_STORE_BACKEND   memory | redis

When both TTL stores run on Redis they share one client (and its
connection pool); their key prefixes keep the entry families apart.
"""

from __future__ import annotations

import logging

from redis import Redis

from core.config import Settings
from stores.base import BannedTokenStore, TwoFACodeStore, UserStore
from stores.memory import HashmapTwoFACodeStore, HashmapUserStore, HashsetBannedTokenStore
from stores.redis_store import RedisBannedTokenStore, RedisTwoFACodeStore, create_redis_client
from stores.sql import SqlUserStore

logger = logging.getLogger("authservice.stores")


def build_user_store(settings: Settings) -> UserStore:
    if settings.user_store_backend == "sql":
        return SqlUserStore(settings.database_url)
    return HashmapUserStore()


def build_banned_token_store(settings: Settings, redis_client: Redis | None = None) -> BannedTokenStore:
    if settings.banned_token_store_backend == "redis":
        return RedisBannedTokenStore(redis_client or create_redis_client(settings.redis_url))
    return HashsetBannedTokenStore()


def build_two_fa_code_store(settings: Settings, redis_client: Redis | None = None) -> TwoFACodeStore:
    if settings.two_fa_code_store_backend == "redis":
        return RedisTwoFACodeStore(
            redis_client or create_redis_client(settings.redis_url),
            ttl_seconds=settings.two_fa_code_ttl_seconds,
        )
    return HashmapTwoFACodeStore(ttl_seconds=settings.two_fa_code_ttl_seconds)


def build_stores(settings: Settings) -> tuple[UserStore, BannedTokenStore, TwoFACodeStore]:
    redis_client: Redis | None = None
    if "redis" in (settings.banned_token_store_backend, settings.two_fa_code_store_backend):
        redis_client = create_redis_client(settings.redis_url)

    user_store = build_user_store(settings)
    banned_token_store = build_banned_token_store(settings, redis_client)
    two_fa_code_store = build_two_fa_code_store(settings, redis_client)
    logger.info(
        "Stores initialized (users=%s, banned_tokens=%s, two_fa_codes=%s)",
        settings.user_store_backend,
        settings.banned_token_store_backend,
        settings.two_fa_code_store_backend,
    )
    return user_store, banned_token_store, two_fa_code_store
