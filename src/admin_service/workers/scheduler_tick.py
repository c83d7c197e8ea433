"""Worker: run scheduled tasks whose next run is due."""
from __future__ import annotations

from backend_common.worker import TaskFn

from admin_service.services.scheduler import TaskScheduler


def make_scheduler_tick(scheduler: TaskScheduler) -> TaskFn:
    return scheduler.tick
