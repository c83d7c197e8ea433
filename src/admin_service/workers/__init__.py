"""Background workers for admin-service.

Each worker module exports a factory returning an async task function
compatible with :class:`backend_common.worker.WorkerTask`; the components
they need only exist once the application has started.
"""
from __future__ import annotations

from backend_common.worker import BackgroundWorker, WorkerTask

from admin_service.repositories import Repositories
from admin_service.services.scheduler import TaskScheduler
from admin_service.settings import Settings
from admin_service.workers.scheduler_tick import make_scheduler_tick
from admin_service.workers.webhook_log_purge import make_webhook_log_purge


def build_worker(scheduler: TaskScheduler, repositories: Repositories, settings: Settings) -> BackgroundWorker:
    tasks: list[WorkerTask] = []
    if settings.scheduler_enabled:
        tasks.append(WorkerTask(name="scheduler_tick", fn=make_scheduler_tick(scheduler)))
    if settings.webhook_log_purge_enabled:
        tasks.append(
            WorkerTask(
                name="webhook_log_purge",
                fn=make_webhook_log_purge(repositories.webhook_logs, settings.webhook_log_retention_days),
            )
        )
    return BackgroundWorker(
        name="admin_worker",
        interval_seconds=settings.scheduler_tick_seconds,
        tasks=tasks,
    )


__all__ = ["build_worker"]
