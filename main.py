#!/usr/bin/env python3
"""
Auth service -- email/password login with optional emailed 2FA codes and
JWT session cookies.

Usage:
  python main.py
  python main.py --host 0.0.0.0 --port 3000
  python main.py --reload

Environment variables (see core/config.py for the full list):
  SECRET_KEY                   JWT signing key, >= 32 chars (required unless DEBUG=true)
  USER_STORE_BACKEND           memory | sql
  DATABASE_URL                 SQLAlchemy URL for the sql backend
  BANNED_TOKEN_STORE_BACKEND   memory | redis
  TWO_FA_CODE_STORE_BACKEND    memory | redis
  REDIS_URL                    redis://host:port/db
  EMAIL_BACKEND                mock | postmark
  POSTMARK_AUTH_TOKEN          Postmark server token (postmark backend only)
"""

import argparse

import uvicorn


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the auth service HTTP API.")
    parser.add_argument("--host", default="127.0.0.1", help="Interface to bind (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=3000, help="Port to listen on (default: 3000)")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    args = parser.parse_args()

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
