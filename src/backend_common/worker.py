"""Reusable periodic background worker for aiohttp services.

Usage::

    from backend_common.worker import BackgroundWorker, WorkerTask

    async def purge_old_logs(now: datetime) -> str | None:
        deleted = await repo.delete_older_than(now - timedelta(days=30))
        return f"deleted={deleted}" if deleted else None

    worker = BackgroundWorker(
        name="maintenance",
        interval_seconds=60.0,
        tasks=[WorkerTask(name="log_purge", fn=purge_old_logs)],
    )

    app.on_startup.append(worker.start)
    app.on_cleanup.append(worker.stop)
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Sequence

import structlog
from aiohttp import web

logger = structlog.get_logger(__name__)

# A task receives the current UTC time and returns an optional summary
# (logged when non-empty).
TaskFn = Callable[[datetime], Awaitable[str | None]]


@dataclass
class WorkerTask:
    """A named periodic task executed by :class:`BackgroundWorker`."""

    name: str
    fn: TaskFn


@dataclass
class BackgroundWorker:
    """In-process async worker running a list of tasks once per interval.

    Tasks run sequentially inside one loop, so two sweeps never overlap.
    A failing task is logged and does not prevent the others from running.
    :meth:`start` / :meth:`stop` fit ``app.on_startup`` / ``app.on_cleanup``.
    """

    name: str = "background_worker"
    interval_seconds: float = 60.0
    tasks: Sequence[WorkerTask] = field(default_factory=list)
    _task_key: web.AppKey[asyncio.Task[None]] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._task_key = web.AppKey(f"worker:{self.name}", asyncio.Task)

    async def start(self, app: web.Application) -> None:
        app[self._task_key] = asyncio.create_task(self._loop())

    async def stop(self, app: web.Application) -> None:
        task = app.get(self._task_key)
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def run_once(self, now: datetime | None = None) -> None:
        """Run every task a single time."""
        now = now or datetime.now(timezone.utc)
        for task in self.tasks:
            try:
                summary = await task.fn(now)
            except Exception:
                logger.exception("background task failed", worker=self.name, task=task.name)
                continue
            if summary:
                logger.info("background task completed", worker=self.name, task=task.name, summary=summary)

    async def _loop(self) -> None:
        logger.info(
            "background worker started",
            worker=self.name,
            interval_seconds=self.interval_seconds,
            tasks=[t.name for t in self.tasks],
        )
        while True:
            try:
                await asyncio.sleep(self.interval_seconds)
                await self.run_once()
            except asyncio.CancelledError:
                logger.info("background worker stopped", worker=self.name)
                raise
            except Exception:
                logger.exception("background worker sweep failed", worker=self.name)
