"""Unit tests for backend_common.worker.BackgroundWorker.

Pure async tests: no database or aiohttp test server required.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest
from aiohttp import web

from backend_common.worker import BackgroundWorker, WorkerTask


@pytest.mark.asyncio
async def test_worker_runs_tasks_periodically():
    called_with: list[datetime] = []

    async def task_fn(now: datetime) -> str | None:
        called_with.append(now)
        return "ok"

    worker = BackgroundWorker(interval_seconds=0.05, tasks=[WorkerTask(name="tick", fn=task_fn)])
    app = web.Application()
    await worker.start(app)
    await asyncio.sleep(0.2)
    await worker.stop(app)

    assert len(called_with) >= 2
    assert all(dt.tzinfo is not None for dt in called_with)


@pytest.mark.asyncio
async def test_worker_task_failure_does_not_stop_others():
    good_count = 0

    async def bad_task(now: datetime) -> str | None:
        raise RuntimeError("boom")

    async def good_task(now: datetime) -> str | None:
        nonlocal good_count
        good_count += 1
        return None

    worker = BackgroundWorker(
        interval_seconds=0.05,
        tasks=[WorkerTask(name="bad", fn=bad_task), WorkerTask(name="good", fn=good_task)],
    )
    app = web.Application()
    await worker.start(app)
    await asyncio.sleep(0.2)
    await worker.stop(app)

    assert good_count >= 2


@pytest.mark.asyncio
async def test_run_once_passes_given_time():
    seen: list[datetime] = []

    async def task_fn(now: datetime) -> str | None:
        seen.append(now)
        return None

    worker = BackgroundWorker(tasks=[WorkerTask(name="t", fn=task_fn)])
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    await worker.run_once(now)
    assert seen == [now]


@pytest.mark.asyncio
async def test_stop_without_start_is_noop():
    worker = BackgroundWorker(interval_seconds=0.05)
    await worker.stop(web.Application())


@pytest.mark.asyncio
async def test_stop_cancels_loop():
    worker = BackgroundWorker(interval_seconds=10)
    app = web.Application()
    await worker.start(app)
    await worker.stop(app)
    task = next(v for v in app.values() if isinstance(v, asyncio.Task))
    assert task.done()
