from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from admin_service.core.exceptions import (
    AlreadyRunningError,
    ExecutionError,
    NotFoundError,
    ValidationError,
)
from admin_service.domain.dto import ScheduledTaskUpdateDTO
from admin_service.domain.enums import TaskResult, TaskStatus, TaskType
from admin_service.domain.models import ScheduledTask
from admin_service.services.scheduler import TaskScheduler
from admin_service.services.task_handlers import TaskHandlerRegistry
from tests.fakes import FakeScheduledTaskRepository

START = datetime(2024, 1, 1, 10, 2, tzinfo=timezone.utc)


class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class RecordingHandler:
    """Task body stub; fails for tasks whose command is ``fail``."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    async def __call__(self, task: ScheduledTask) -> str | None:
        self.calls.append(task.name)
        if task.command == "fail":
            raise ExecutionError("boom")
        return "done"


def make_scheduler(handler, clock, **kwargs) -> tuple[TaskScheduler, FakeScheduledTaskRepository]:
    repo = FakeScheduledTaskRepository()
    registry = TaskHandlerRegistry({t: handler for t in TaskType})
    scheduler = TaskScheduler(repo, registry, tz="UTC", clock=clock, **kwargs)  # type: ignore[arg-type]
    return scheduler, repo


@pytest.fixture
def clock():
    return Clock(START)


@pytest.fixture
def handler():
    return RecordingHandler()


@pytest.fixture
def scheduler(handler, clock):
    return make_scheduler(handler, clock)[0]


async def create(scheduler: TaskScheduler, name="job", schedule="*/5 * * * *", command=None):
    return await scheduler.create_task(
        name=name, description=None, schedule=schedule, task_type="custom", command=command
    )


async def test_create_task_computes_next_run(scheduler):
    task = await create(scheduler)
    assert task.status is TaskStatus.ACTIVE
    assert task.run_count == 0
    assert task.last_run is None
    assert task.next_run == datetime(2024, 1, 1, 10, 5, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    ("name", "schedule", "task_type"),
    [
        ("", "* * * * *", "custom"),
        ("   ", "* * * * *", "custom"),
        ("job", "bad", "custom"),
        ("job", "* * * *", "custom"),
        ("job", "* * * * *", "reboot"),
    ],
)
async def test_create_task_rejects_invalid_input(scheduler, name, schedule, task_type):
    with pytest.raises(ValidationError):
        await scheduler.create_task(name=name, schedule=schedule, task_type=task_type)
    assert await scheduler.list_tasks() == []


async def test_tick_runs_due_task_and_advances_next_run(scheduler, handler, clock):
    task = await create(scheduler)
    clock.now = datetime(2024, 1, 1, 10, 5, 30, tzinfo=timezone.utc)

    summary = await scheduler.tick()

    assert handler.calls == ["job"]
    assert summary == "due=1 ran=1 failed=0 skipped=0"
    updated = await scheduler.get_task(task.id)
    assert updated.run_count == 1
    assert updated.last_result is TaskResult.SUCCESS
    assert updated.last_error is None
    assert updated.last_run == clock.now
    assert updated.next_run == datetime(2024, 1, 1, 10, 10, tzinfo=timezone.utc)
    assert updated.next_run > updated.last_run


async def test_tick_ignores_tasks_not_yet_due(scheduler, handler, clock):
    await create(scheduler)
    clock.now = datetime(2024, 1, 1, 10, 4, 59, tzinfo=timezone.utc)
    assert await scheduler.tick() is None
    assert handler.calls == []


async def test_tick_with_explicit_now(scheduler, handler):
    await create(scheduler)
    await scheduler.tick(datetime(2024, 1, 1, 10, 6, tzinfo=timezone.utc))
    assert handler.calls == ["job"]


async def test_paused_task_never_runs_automatically(scheduler, handler, clock):
    task = await create(scheduler)
    await scheduler.pause(task.id)
    clock.now = START + timedelta(hours=1)

    await scheduler.tick()

    assert handler.calls == []
    paused = await scheduler.get_task(task.id)
    assert paused.status is TaskStatus.PAUSED
    assert paused.run_count == 0
    assert paused.next_run == task.next_run


async def test_failed_task_is_recorded_and_does_not_block_others(scheduler, handler, clock):
    failing = await create(scheduler, name="failing", command="fail")
    healthy = await create(scheduler, name="healthy")
    clock.now = datetime(2024, 1, 1, 10, 5, tzinfo=timezone.utc)

    summary = await scheduler.tick()

    assert sorted(handler.calls) == ["failing", "healthy"]
    assert summary == "due=2 ran=2 failed=1 skipped=0"
    failed = await scheduler.get_task(failing.id)
    assert failed.last_result is TaskResult.FAILURE
    assert failed.last_error == "boom"
    assert failed.run_count == 1
    assert failed.next_run == datetime(2024, 1, 1, 10, 10, tzinfo=timezone.utc)
    ok = await scheduler.get_task(healthy.id)
    assert ok.last_result is TaskResult.SUCCESS


async def test_run_now_keeps_status_and_next_run(scheduler, handler):
    task = await create(scheduler)
    await scheduler.pause(task.id)

    outcome = await scheduler.run_now(task.id)

    assert outcome.result is TaskResult.SUCCESS
    assert outcome.error is None
    assert outcome.task.status is TaskStatus.PAUSED
    assert outcome.task.next_run == task.next_run
    assert outcome.task.run_count == 1
    assert outcome.task.last_run == START


async def test_run_now_reports_failure(scheduler):
    task = await create(scheduler, command="fail")
    outcome = await scheduler.run_now(task.id)
    assert outcome.result is TaskResult.FAILURE
    assert outcome.error == "boom"
    assert outcome.task.last_error == "boom"


async def test_run_now_unknown_task(scheduler):
    task = await create(scheduler)
    await scheduler.delete_task(task.id)
    with pytest.raises(NotFoundError):
        await scheduler.run_now(task.id)


async def test_pause_and_resume_are_idempotent(scheduler, clock):
    task = await create(scheduler)

    resumed = await scheduler.resume(task.id)
    assert resumed == task

    paused = await scheduler.pause(task.id)
    again = await scheduler.pause(task.id)
    assert paused.status is TaskStatus.PAUSED
    assert again == paused


@pytest.mark.parametrize(
    ("command", "result", "error"),
    [(None, TaskResult.SUCCESS, None), ("fail", TaskResult.FAILURE, "boom")],
)
async def test_pause_resume_keeps_run_history(scheduler, clock, command, result, error):
    task = await create(scheduler, command=command)
    await scheduler.run_now(task.id)
    await scheduler.run_now(task.id)

    await scheduler.pause(task.id)
    clock.now = START + timedelta(hours=2)
    resumed = await scheduler.resume(task.id)

    assert resumed.run_count == 2
    assert resumed.last_result is result
    assert resumed.last_error == error
    assert resumed.last_run == START


async def test_resume_recomputes_next_run_from_now(scheduler, clock):
    task = await create(scheduler)
    await scheduler.pause(task.id)
    clock.now = datetime(2024, 1, 1, 12, 31, tzinfo=timezone.utc)

    resumed = await scheduler.resume(task.id)

    assert resumed.status is TaskStatus.ACTIVE
    assert resumed.next_run == datetime(2024, 1, 1, 12, 35, tzinfo=timezone.utc)


async def test_update_schedule_recomputes_next_run(scheduler):
    task = await create(scheduler)
    updated = await scheduler.update_task(
        task.id, ScheduledTaskUpdateDTO.model_validate({"schedule": "0 3 * * *", "name": "nightly"})
    )
    assert updated.name == "nightly"
    assert updated.schedule == "0 3 * * *"
    assert updated.next_run == datetime(2024, 1, 2, 3, 0, tzinfo=timezone.utc)


async def test_update_rejects_invalid_schedule(scheduler):
    task = await create(scheduler)
    with pytest.raises(ValidationError):
        await scheduler.update_task(task.id, ScheduledTaskUpdateDTO.model_validate({"schedule": "* *"}))
    assert (await scheduler.get_task(task.id)).schedule == "*/5 * * * *"


async def test_list_active_tasks_excludes_paused(scheduler):
    first = await create(scheduler, name="first")
    second = await create(scheduler, name="second")
    await scheduler.pause(first.id)
    assert [t.id for t in await scheduler.list_active_tasks()] == [second.id]
    assert {t.id for t in await scheduler.list_tasks()} == {first.id, second.id}


async def test_concurrent_run_of_same_task_is_rejected(clock):
    started = asyncio.Event()
    release = asyncio.Event()
    calls = 0

    async def blocking(task: ScheduledTask) -> str | None:
        nonlocal calls
        calls += 1
        started.set()
        await release.wait()
        return None

    scheduler, _ = make_scheduler(blocking, clock)
    task = await create(scheduler)

    first = asyncio.create_task(scheduler.run_now(task.id))
    await asyncio.wait_for(started.wait(), timeout=1)
    assert scheduler.is_running(task.id)

    with pytest.raises(AlreadyRunningError):
        await scheduler.run_now(task.id)

    # a due tick skips the busy task and leaves next_run for a later tick
    clock.now = datetime(2024, 1, 1, 10, 5, tzinfo=timezone.utc)
    assert await scheduler.tick() == "due=1 ran=0 failed=0 skipped=1"
    assert (await scheduler.get_task(task.id)).next_run == task.next_run

    release.set()
    outcome = await first
    assert outcome.task.run_count == 1
    assert calls == 1
    assert not scheduler.is_running(task.id)


async def test_overlapping_tick_is_skipped(clock):
    started = asyncio.Event()
    release = asyncio.Event()

    async def blocking(task: ScheduledTask) -> str | None:
        started.set()
        await release.wait()
        return None

    scheduler, _ = make_scheduler(blocking, clock)
    await create(scheduler)
    clock.now = datetime(2024, 1, 1, 10, 5, tzinfo=timezone.utc)

    first = asyncio.create_task(scheduler.tick())
    await asyncio.wait_for(started.wait(), timeout=1)
    assert await scheduler.tick() is None

    release.set()
    assert await first == "due=1 ran=1 failed=0 skipped=0"


async def test_task_timeout_is_a_failure(clock):
    async def slow(task: ScheduledTask) -> str | None:
        await asyncio.sleep(5)
        return None

    scheduler, _ = make_scheduler(slow, clock, task_timeout_seconds=0.05)
    task = await create(scheduler)

    outcome = await scheduler.run_now(task.id)

    assert outcome.result is TaskResult.FAILURE
    assert "timed out" in (outcome.error or "")
    assert not scheduler.is_running(task.id)


async def test_delete_task(scheduler):
    task = await create(scheduler)
    await scheduler.delete_task(task.id)
    with pytest.raises(NotFoundError):
        await scheduler.get_task(task.id)
    with pytest.raises(NotFoundError):
        await scheduler.delete_task(task.id)
