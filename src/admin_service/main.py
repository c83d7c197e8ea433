"""aiohttp application entrypoint."""
from __future__ import annotations

from pathlib import Path

import structlog
from aiohttp import web

from backend_common.aiohttp_app import add_cors_to_routes, add_healthcheck, create_base_app
from backend_common.db.migrations import create_migration_runner
from backend_common.db.pool import create_pool_hooks, get_pool
from backend_common.logging_config import configure_logging
from backend_common.worker import BackgroundWorker

from admin_service.api.middleware import create_auth_middleware, error_middleware
from admin_service.api.router import setup_routes
from admin_service.repositories import Repositories
from admin_service.services.auth import AuthService
from admin_service.services.dependencies import (
    AUTH_SERVICE_KEY,
    DISPATCHER_KEY,
    REPOSITORIES_KEY,
    SCHEDULER_KEY,
    SETTINGS_KEY,
    WEBHOOK_SERVICE_KEY,
)
from admin_service.services.scheduler import TaskScheduler
from admin_service.services.task_handlers import build_task_handlers
from admin_service.services.webhooks import WebhookDispatcher, WebhookService
from admin_service.settings import Settings, get_settings
from admin_service.workers import build_worker

logger = structlog.get_logger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

WORKER_KEY = web.AppKey("admin_worker", BackgroundWorker)

MIGRATION_PATHS = [
    PROJECT_ROOT / "migrations",
    Path("/app/migrations"),
]


async def init_components(app: web.Application) -> None:
    """Wire repositories, services and the background worker."""
    settings = app[SETTINGS_KEY]
    if REPOSITORIES_KEY not in app:
        app[REPOSITORIES_KEY] = Repositories.from_pool(get_pool(app))
    repositories = app[REPOSITORIES_KEY]

    dispatcher = WebhookDispatcher(
        repositories.webhooks,
        repositories.webhook_logs,
        timeout_seconds=settings.webhook_request_timeout_seconds,
        max_concurrency=settings.webhook_dispatch_max_concurrency,
        response_body_limit=settings.webhook_response_body_limit,
    )
    await dispatcher.start()
    scheduler = TaskScheduler(
        repositories.tasks,
        build_task_handlers(settings, repositories, dispatcher),
        tz=settings.scheduler_timezone,
        task_timeout_seconds=settings.task_timeout_seconds,
    )
    app[DISPATCHER_KEY] = dispatcher
    app[SCHEDULER_KEY] = scheduler
    app[WEBHOOK_SERVICE_KEY] = WebhookService(repositories.webhooks, repositories.webhook_logs, dispatcher)
    app[AUTH_SERVICE_KEY] = AuthService(repositories.users, settings)

    worker = build_worker(scheduler, repositories, settings)
    app[WORKER_KEY] = worker
    await worker.start(app)
    logger.info("components initialized", worker_tasks=[t.name for t in worker.tasks])


async def close_components(app: web.Application) -> None:
    worker = app.get(WORKER_KEY)
    if worker is not None:
        await worker.stop(app)
    dispatcher = app.get(DISPATCHER_KEY)
    if dispatcher is not None:
        await dispatcher.close()


def create_app(settings: Settings | None = None, *, repositories: Repositories | None = None) -> web.Application:
    """Build the application; ``repositories`` replaces the database-backed ones."""
    settings = settings or get_settings()
    app, cors = create_base_app(settings, middlewares=[error_middleware, create_auth_middleware()])
    app[SETTINGS_KEY] = settings

    add_healthcheck(app, settings)
    setup_routes(app)

    if repositories is None:
        init_pool, close_pool = create_pool_hooks(settings)
        app.on_startup.append(init_pool)
        app.on_startup.append(create_migration_runner(settings, MIGRATION_PATHS))
        app.on_startup.append(init_components)
        app.on_cleanup.append(close_components)
        app.on_cleanup.append(close_pool)
    else:
        app[REPOSITORIES_KEY] = repositories
        app.on_startup.append(init_components)
        app.on_cleanup.append(close_components)

    add_cors_to_routes(app, cors)
    return app


def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    web.run_app(create_app(settings), host=settings.host, port=settings.port, access_log=None)


if __name__ == "__main__":
    main()
