"""Scheduled task repository."""
from __future__ import annotations

from datetime import datetime
from typing import Any, List
from uuid import UUID

from asyncpg import Pool, Record  # type: ignore[import-untyped]

from admin_service.core.exceptions import NotFoundError
from admin_service.domain.enums import TaskResult, TaskStatus, TaskType
from admin_service.domain.models import ScheduledTask
from admin_service.repositories.base import BaseRepository

UPDATABLE_COLUMNS = frozenset({"name", "description", "schedule", "task_type", "command", "next_run"})


class ScheduledTaskRepository(BaseRepository):
    def __init__(self, pool: Pool):
        super().__init__(pool)

    @staticmethod
    def _to_model(record: Record) -> ScheduledTask:
        return ScheduledTask.model_validate(dict(record))

    async def create(
        self,
        *,
        name: str,
        description: str | None,
        schedule: str,
        task_type: TaskType,
        command: str | None,
        next_run: datetime | None,
    ) -> ScheduledTask:
        record = await self._fetchrow(
            """
            INSERT INTO scheduled_tasks (name, description, schedule, task_type, command, status, next_run)
            VALUES ($1, $2, $3, $4, $5, 'active', $6)
            RETURNING *
            """,
            name,
            description,
            schedule,
            task_type.value,
            command,
            next_run,
        )
        assert record is not None
        return self._to_model(record)

    async def get(self, task_id: UUID) -> ScheduledTask:
        record = await self._fetchrow("SELECT * FROM scheduled_tasks WHERE id = $1", task_id)
        if record is None:
            raise NotFoundError("Scheduled task not found")
        return self._to_model(record)

    async def list_all(self) -> List[ScheduledTask]:
        records = await self._fetch("SELECT * FROM scheduled_tasks ORDER BY created_at DESC")
        return [self._to_model(r) for r in records]

    async def list_active(self) -> List[ScheduledTask]:
        records = await self._fetch(
            """
            SELECT * FROM scheduled_tasks
            WHERE status = 'active'
            ORDER BY next_run ASC NULLS LAST
            """
        )
        return [self._to_model(r) for r in records]

    async def list_due(self, now: datetime) -> List[ScheduledTask]:
        records = await self._fetch(
            """
            SELECT * FROM scheduled_tasks
            WHERE status = 'active'
              AND next_run IS NOT NULL
              AND next_run <= $1
            ORDER BY next_run ASC
            """,
            now,
        )
        return [self._to_model(r) for r in records]

    async def update(self, task_id: UUID, updates: dict[str, Any]) -> ScheduledTask:
        unknown = set(updates) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Unsupported columns: {sorted(unknown)}")
        if not updates:
            return await self.get(task_id)
        values = {k: (v.value if isinstance(v, TaskType) else v) for k, v in updates.items()}
        set_sql, args = self._set_clause(values)
        record = await self._fetchrow(
            f"UPDATE scheduled_tasks SET {set_sql} WHERE id = ${len(args) + 1} RETURNING *",
            *args,
            task_id,
        )
        if record is None:
            raise NotFoundError("Scheduled task not found")
        return self._to_model(record)

    async def set_status(
        self, task_id: UUID, status: TaskStatus, *, next_run: datetime | None = None
    ) -> ScheduledTask:
        """Change status; ``next_run`` is only overwritten when given."""
        record = await self._fetchrow(
            """
            UPDATE scheduled_tasks
            SET status = $2,
                next_run = COALESCE($3, next_run),
                updated_at = now()
            WHERE id = $1
            RETURNING *
            """,
            task_id,
            status.value,
            next_run,
        )
        if record is None:
            raise NotFoundError("Scheduled task not found")
        return self._to_model(record)

    async def record_run(
        self,
        task_id: UUID,
        *,
        result: TaskResult,
        error: str | None,
        ran_at: datetime,
        next_run: datetime | None = None,
    ) -> ScheduledTask:
        """Store the outcome of a run; ``next_run`` is only overwritten when given."""
        record = await self._fetchrow(
            """
            UPDATE scheduled_tasks
            SET last_run = $2,
                last_result = $3,
                last_error = $4,
                run_count = run_count + 1,
                next_run = COALESCE($5, next_run),
                updated_at = now()
            WHERE id = $1
            RETURNING *
            """,
            task_id,
            ran_at,
            result.value,
            error,
            next_run,
        )
        if record is None:
            raise NotFoundError("Scheduled task not found")
        return self._to_model(record)

    async def delete(self, task_id: UUID) -> None:
        record = await self._fetchrow(
            "DELETE FROM scheduled_tasks WHERE id = $1 RETURNING id",
            task_id,
        )
        if record is None:
            raise NotFoundError("Scheduled task not found")
