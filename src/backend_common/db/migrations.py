"""Apply SQL migrations on service startup."""
from __future__ import annotations

import asyncio
import hashlib
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, Protocol

import asyncpg  # type: ignore[import-untyped]
import structlog
from aiohttp import web

logger = structlog.get_logger(__name__)

_SCHEMA_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    version text PRIMARY KEY,
    checksum text NOT NULL,
    applied_at timestamptz NOT NULL DEFAULT now()
);
"""


class SettingsProtocol(Protocol):
    database_url: Any


def load_migrations(directory: Path) -> dict[str, Path]:
    """Map version (file stem) to path for every ``*.sql`` file, sorted."""
    migrations: dict[str, Path] = {}
    for path in sorted(directory.glob("*.sql")):
        if path.stem in migrations:
            raise ValueError(f"Duplicate migration version detected: {path.stem}")
        migrations[path.stem] = path
    return migrations


def checksum(sql: str) -> str:
    return hashlib.sha256(sql.encode("utf-8")).hexdigest()


async def _connect(dsn: str, *, attempts: int, delay: float) -> asyncpg.Connection | None:
    for attempt in range(1, attempts + 1):
        try:
            return await asyncpg.connect(dsn)
        except (OSError, asyncpg.PostgresError) as exc:
            logger.warning("migration connect failed", attempt=attempt, attempts=attempts, error=str(exc))
            if attempt < attempts:
                await asyncio.sleep(delay)
    return None


async def apply_pending(conn: asyncpg.Connection, migrations: dict[str, Path]) -> list[str]:
    """Apply migrations not yet recorded in ``schema_migrations``; return applied versions."""
    await conn.execute(_SCHEMA_TABLE_SQL)
    rows = await conn.fetch("SELECT version, checksum FROM schema_migrations")
    applied = {row["version"]: row["checksum"] for row in rows}

    done: list[str] = []
    for version, path in migrations.items():
        sql = path.read_text(encoding="utf-8")
        digest = checksum(sql)
        if version in applied:
            if applied[version] != digest:
                raise RuntimeError(
                    f"Checksum mismatch for {version}: {applied[version]} (db) != {digest} (file)"
                )
            continue
        async with conn.transaction():
            await conn.execute(sql)
            await conn.execute(
                "INSERT INTO schema_migrations (version, checksum) VALUES ($1, $2)",
                version,
                digest,
            )
        logger.info("migration applied", version=version)
        done.append(version)
    return done


def create_migration_runner(
    settings: SettingsProtocol,
    possible_paths: Iterable[Path],
    *,
    connect_attempts: int = 5,
    connect_delay: float = 2.0,
) -> Callable[[web.Application], Awaitable[None]]:
    """Create an ``on_startup`` hook applying pending migrations from the first existing dir."""
    candidates = list(possible_paths)

    async def apply_migrations_on_startup(_app: web.Application) -> None:
        migrations_dir = next((p for p in candidates if p.exists()), None)
        if migrations_dir is None:
            logger.warning("migrations directory not found", tried=[str(p) for p in candidates])
            return
        migrations = load_migrations(migrations_dir)
        if not migrations:
            logger.warning("no migrations found", directory=str(migrations_dir))
            return

        conn = await _connect(str(settings.database_url), attempts=connect_attempts, delay=connect_delay)
        if conn is None:
            logger.error("database unreachable, migrations skipped")
            return
        try:
            applied = await apply_pending(conn, migrations)
        finally:
            await conn.close()
        logger.info("migrations up to date", applied=len(applied))

    return apply_migrations_on_startup
