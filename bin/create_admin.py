#!/usr/bin/env python3
"""Create an admin user who can sign in to the admin API."""
from __future__ import annotations

import argparse
import asyncio
import getpass

import asyncpg  # type: ignore[import-untyped]

from admin_service.repositories.users import UserRepository
from admin_service.services.auth import ADMIN_ROLES, hash_password
from admin_service.settings import get_settings


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create an admin user.")
    parser.add_argument("username")
    parser.add_argument("--email", default=None)
    parser.add_argument("--role", default="Admin", choices=sorted(ADMIN_ROLES))
    parser.add_argument("--database-url", "-d", default=None, help="Defaults to DATABASE_URL / settings.")
    return parser.parse_args()


async def run(args: argparse.Namespace, password: str) -> None:
    settings = get_settings()
    pool = await asyncpg.create_pool(dsn=args.database_url or str(settings.database_url), max_size=1)
    try:
        users = UserRepository(pool)
        if await users.get_by_username(args.username) is not None:
            raise SystemExit(f"User {args.username!r} already exists")
        user = await users.create(
            username=args.username,
            email=args.email,
            password_hash=hash_password(password, rounds=settings.bcrypt_rounds),
            role=args.role,
        )
        print(f"Created {user.role} {user.username} ({user.id})")
    finally:
        await pool.close()


def main() -> None:
    args = parse_args()
    password = getpass.getpass("Password: ")
    if not password or password != getpass.getpass("Repeat password: "):
        raise SystemExit("Passwords are empty or do not match")
    asyncio.run(run(args, password))


if __name__ == "__main__":
    main()
