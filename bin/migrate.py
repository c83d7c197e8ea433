#!/usr/bin/env python3
"""Apply admin-service SQL migrations from the command line."""
from __future__ import annotations

import argparse
import asyncio
import os
from pathlib import Path

import asyncpg  # type: ignore[import-untyped]

from backend_common.db.migrations import apply_pending, load_migrations


def _default_migrations_dir() -> Path:
    return Path(__file__).resolve().parent.parent / "migrations"


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Apply SQL migrations sequentially.")
    parser.add_argument(
        "--database-url",
        "-d",
        default=os.getenv("DATABASE_URL"),
        help="PostgreSQL connection string. Defaults to DATABASE_URL env variable.",
    )
    parser.add_argument(
        "--migrations-dir",
        "-m",
        type=Path,
        default=_default_migrations_dir(),
        help="Directory with *.sql migrations (sorted lexicographically).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only list pending migrations without applying.",
    )
    return parser.parse_args()


async def list_pending(conn: asyncpg.Connection, versions: list[str]) -> list[str]:
    exists = await conn.fetchval("SELECT to_regclass('schema_migrations') IS NOT NULL")
    if not exists:
        return versions
    rows = await conn.fetch("SELECT version FROM schema_migrations")
    applied = {row["version"] for row in rows}
    return [v for v in versions if v not in applied]


async def run(database_url: str, migrations_dir: Path, dry_run: bool) -> None:
    if not migrations_dir.exists():
        raise SystemExit(f"Migrations directory does not exist: {migrations_dir}")
    migrations = load_migrations(migrations_dir)
    if not migrations:
        raise SystemExit(f"No *.sql files found in {migrations_dir}")
    conn = await asyncpg.connect(database_url)
    try:
        if dry_run:
            pending = await list_pending(conn, list(migrations))
            for version in pending:
                print(f"[dry-run] Pending migration: {version}")
            print(f"{len(pending)} migration(s) pending.")
            return
        applied = await apply_pending(conn, migrations)
        print(f"Applied {len(applied)} migration(s).")
    finally:
        await conn.close()


def main() -> None:
    args = parse_args()
    if not args.database_url:
        raise SystemExit("Database URL must be provided via --database-url or DATABASE_URL env.")
    asyncio.run(run(args.database_url, args.migrations_dir, args.dry_run))


if __name__ == "__main__":
    main()
