"""Scheduled task service: definitions, state transitions and execution."""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, List
from uuid import UUID

import structlog

from admin_service.core.exceptions import AlreadyRunningError, ValidationError
from admin_service.domain.dto import ScheduledTaskUpdateDTO
from admin_service.domain.enums import TaskResult, TaskStatus, TaskType
from admin_service.domain.models import ScheduledTask, TaskRunOutcome
from admin_service.repositories.scheduled_tasks import ScheduledTaskRepository
from admin_service.services.cron import next_run_after
from admin_service.services.task_handlers import TaskHandlerRegistry

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskScheduler:
    """Owns task lifecycle and runs task bodies.

    A task id is never executed twice at the same time: a manual run of a
    busy task raises :class:`AlreadyRunningError`, and :meth:`tick` leaves
    busy tasks for a later tick.
    """

    def __init__(
        self,
        repository: ScheduledTaskRepository,
        handlers: TaskHandlerRegistry,
        *,
        tz: str | None = None,
        task_timeout_seconds: float = 300.0,
        clock: Clock = _utcnow,
    ):
        self._tasks = repository
        self._handlers = handlers
        self._tz = tz
        self._task_timeout = task_timeout_seconds
        self._clock = clock
        self._running: set[UUID] = set()
        self._tick_lock = asyncio.Lock()

    def is_running(self, task_id: UUID) -> bool:
        return task_id in self._running

    def _next_run(self, schedule: str, after: datetime) -> datetime:
        next_run = next_run_after(schedule, after, self._tz)
        if next_run is None:
            raise ValidationError(f"Schedule {schedule!r} never fires")
        return next_run

    async def create_task(
        self,
        *,
        name: str,
        schedule: str,
        task_type: TaskType | str,
        description: str | None = None,
        command: str | None = None,
    ) -> ScheduledTask:
        name = (name or "").strip()
        if not name:
            raise ValidationError("name: must not be empty")
        try:
            task_type = TaskType(task_type)
        except ValueError as exc:
            raise ValidationError(f"type: unknown task type {task_type!r}") from exc
        schedule = " ".join((schedule or "").split())
        next_run = self._next_run(schedule, self._clock())
        task = await self._tasks.create(
            name=name,
            description=description,
            schedule=schedule,
            task_type=task_type,
            command=command,
            next_run=next_run,
        )
        logger.info("scheduled task created", task_id=str(task.id), schedule=schedule, next_run=str(next_run))
        return task

    async def update_task(self, task_id: UUID, updates: ScheduledTaskUpdateDTO) -> ScheduledTask:
        task = await self._tasks.get(task_id)
        changes: dict[str, Any] = updates.model_dump(exclude_unset=True)
        for required in ("name", "schedule", "task_type"):
            if changes.get(required) is None:
                changes.pop(required, None)
        if "schedule" in changes:
            changes["schedule"] = " ".join(changes["schedule"].split())
            next_run = self._next_run(changes["schedule"], self._clock())
            if task.is_active:
                changes["next_run"] = next_run
        return await self._tasks.update(task_id, changes)

    async def get_task(self, task_id: UUID) -> ScheduledTask:
        return await self._tasks.get(task_id)

    async def list_tasks(self) -> List[ScheduledTask]:
        return await self._tasks.list_all()

    async def list_active_tasks(self) -> List[ScheduledTask]:
        return await self._tasks.list_active()

    async def pause(self, task_id: UUID) -> ScheduledTask:
        task = await self._tasks.get(task_id)
        if task.status is TaskStatus.PAUSED:
            return task
        task = await self._tasks.set_status(task_id, TaskStatus.PAUSED)
        logger.info("scheduled task paused", task_id=str(task_id))
        return task

    async def resume(self, task_id: UUID) -> ScheduledTask:
        task = await self._tasks.get(task_id)
        if task.is_active:
            return task
        next_run = self._next_run(task.schedule, self._clock())
        task = await self._tasks.set_status(task_id, TaskStatus.ACTIVE, next_run=next_run)
        logger.info("scheduled task resumed", task_id=str(task_id), next_run=str(next_run))
        return task

    async def delete_task(self, task_id: UUID) -> None:
        await self._tasks.delete(task_id)
        logger.info("scheduled task deleted", task_id=str(task_id))

    async def run_now(self, task_id: UUID) -> TaskRunOutcome:
        """Run a task immediately; status and next_run stay as they are."""
        task = await self._tasks.get(task_id)
        return await self._execute(task, advance=False)

    async def tick(self, now: datetime | None = None) -> str | None:
        """Run every active task that is due, once. Never raises for a task failure."""
        if self._tick_lock.locked():
            logger.warning("scheduler tick skipped, previous tick still running")
            return None
        async with self._tick_lock:
            now = now or self._clock()
            due = await self._tasks.list_due(now)
            if not due:
                return None
            outcomes = await asyncio.gather(*(self._run_due(task) for task in due))
        ran = [o for o in outcomes if o is not None]
        failed = sum(1 for o in ran if o.result is TaskResult.FAILURE)
        skipped = len(outcomes) - len(ran)
        return f"due={len(due)} ran={len(ran)} failed={failed} skipped={skipped}"

    async def _run_due(self, task: ScheduledTask) -> TaskRunOutcome | None:
        try:
            return await self._execute(task, advance=True)
        except AlreadyRunningError:
            logger.info("scheduled task still running, skipped", task_id=str(task.id))
        except Exception:
            logger.exception("scheduled task could not be recorded", task_id=str(task.id))
        return None

    def _claim(self, task_id: UUID) -> None:
        if task_id in self._running:
            raise AlreadyRunningError("Task is already running")
        self._running.add(task_id)

    async def _execute(self, task: ScheduledTask, *, advance: bool) -> TaskRunOutcome:
        self._claim(task.id)
        try:
            result, error = await self._run_body(task)
            ran_at = self._clock()
            next_run = None
            if advance:
                try:
                    next_run = self._next_run(task.schedule, ran_at)
                except ValidationError:
                    logger.error("cannot compute next run", task_id=str(task.id), schedule=task.schedule)
            updated = await self._tasks.record_run(
                task.id,
                result=result,
                error=error,
                ran_at=ran_at,
                next_run=next_run,
            )
        finally:
            self._running.discard(task.id)
        return TaskRunOutcome(task=updated, result=result, error=error)

    async def _run_body(self, task: ScheduledTask) -> tuple[TaskResult, str | None]:
        log = logger.bind(task_id=str(task.id), task_type=task.task_type.value)
        try:
            summary = await asyncio.wait_for(self._handlers.execute(task), timeout=self._task_timeout)
        except asyncio.TimeoutError:
            log.warning("scheduled task timed out", timeout_seconds=self._task_timeout)
            return TaskResult.FAILURE, f"Task timed out after {self._task_timeout:g}s"
        except Exception as exc:
            log.warning("scheduled task failed", error=str(exc), error_type=type(exc).__name__)
            return TaskResult.FAILURE, str(exc) or type(exc).__name__
        log.info("scheduled task succeeded", summary=summary)
        return TaskResult.SUCCESS, None
