"""asyncpg connection pool bound to the aiohttp application lifecycle."""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol

import asyncpg  # type: ignore[import-untyped]
import structlog
from aiohttp import web

logger = structlog.get_logger(__name__)

POOL_KEY = web.AppKey("db_pool", asyncpg.Pool)


class SettingsProtocol(Protocol):
    database_url: Any
    db_pool_size: int


def create_pool_hooks(
    settings: SettingsProtocol,
) -> tuple[Callable[[web.Application], Awaitable[None]], Callable[[web.Application], Awaitable[None]]]:
    """Return ``(init_pool, close_pool)`` hooks for ``on_startup`` / ``on_cleanup``."""

    async def init_pool(app: web.Application) -> None:
        if POOL_KEY in app:
            return
        app[POOL_KEY] = await asyncpg.create_pool(
            dsn=str(settings.database_url),
            max_size=settings.db_pool_size,
        )
        logger.info("database pool created", max_size=settings.db_pool_size)

    async def close_pool(app: web.Application) -> None:
        pool = app.get(POOL_KEY)
        if pool is not None:
            await pool.close()
            logger.info("database pool closed")

    return init_pool, close_pool


def get_pool(app: web.Application) -> asyncpg.Pool:
    """Return the application's pool (raises if startup has not run)."""
    pool = app.get(POOL_KEY)
    if pool is None:
        raise RuntimeError("Database pool not initialized")
    return pool
