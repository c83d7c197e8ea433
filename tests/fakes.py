"""In-memory repositories mirroring the asyncpg ones, for tests without PostgreSQL."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from admin_service.core.exceptions import NotFoundError
from admin_service.domain.enums import TaskResult, TaskStatus, TaskType, WebhookStatus
from admin_service.domain.models import ScheduledTask, User, Webhook, WebhookLog
from admin_service.repositories import Repositories


def _now() -> datetime:
    return datetime.now(timezone.utc)


class FakeScheduledTaskRepository:
    def __init__(self) -> None:
        self.rows: dict[UUID, ScheduledTask] = {}

    def _get(self, task_id: UUID) -> ScheduledTask:
        try:
            return self.rows[task_id]
        except KeyError:
            raise NotFoundError("Scheduled task not found") from None

    def _save(self, task_id: UUID, **changes: Any) -> ScheduledTask:
        task = self._get(task_id).model_copy(update={**changes, "updated_at": _now()})
        self.rows[task_id] = task
        return task

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
        now = _now()
        task = ScheduledTask(
            id=uuid4(),
            name=name,
            description=description,
            schedule=schedule,
            task_type=task_type,
            command=command,
            status=TaskStatus.ACTIVE,
            next_run=next_run,
            created_at=now,
            updated_at=now,
        )
        self.rows[task.id] = task
        return task

    async def get(self, task_id: UUID) -> ScheduledTask:
        return self._get(task_id)

    async def list_all(self) -> list[ScheduledTask]:
        return list(reversed(self.rows.values()))

    async def list_active(self) -> list[ScheduledTask]:
        active = [t for t in self.rows.values() if t.status is TaskStatus.ACTIVE]
        return sorted(active, key=lambda t: (t.next_run is None, t.next_run or _now()))

    async def list_due(self, now: datetime) -> list[ScheduledTask]:
        due = [
            t
            for t in self.rows.values()
            if t.status is TaskStatus.ACTIVE and t.next_run is not None and t.next_run <= now
        ]
        return sorted(due, key=lambda t: t.next_run)  # type: ignore[arg-type, return-value]

    async def update(self, task_id: UUID, updates: dict[str, Any]) -> ScheduledTask:
        if not updates:
            return self._get(task_id)
        return self._save(task_id, **updates)

    async def set_status(
        self, task_id: UUID, status: TaskStatus, *, next_run: datetime | None = None
    ) -> ScheduledTask:
        changes: dict[str, Any] = {"status": status}
        if next_run is not None:
            changes["next_run"] = next_run
        return self._save(task_id, **changes)

    async def record_run(
        self,
        task_id: UUID,
        *,
        result: TaskResult,
        error: str | None,
        ran_at: datetime,
        next_run: datetime | None = None,
    ) -> ScheduledTask:
        task = self._get(task_id)
        changes: dict[str, Any] = {
            "last_run": ran_at,
            "last_result": result,
            "last_error": error,
            "run_count": task.run_count + 1,
        }
        if next_run is not None:
            changes["next_run"] = next_run
        return self._save(task_id, **changes)

    async def delete(self, task_id: UUID) -> None:
        self._get(task_id)
        del self.rows[task_id]


class FakeWebhookRepository:
    def __init__(self, logs: "FakeWebhookLogRepository") -> None:
        self.rows: dict[UUID, Webhook] = {}
        self._logs = logs

    def _get(self, webhook_id: UUID) -> Webhook:
        try:
            return self.rows[webhook_id]
        except KeyError:
            raise NotFoundError("Webhook not found") from None

    def _save(self, webhook_id: UUID, **changes: Any) -> Webhook:
        webhook = self._get(webhook_id).model_copy(update={**changes, "updated_at": _now()})
        self.rows[webhook_id] = webhook
        return webhook

    async def create(
        self,
        *,
        name: str,
        url: str,
        events: list[str],
        status: WebhookStatus,
        secret: str,
    ) -> Webhook:
        now = _now()
        webhook = Webhook(
            id=uuid4(),
            name=name,
            url=url,
            events=list(events),
            status=status,
            secret=secret,
            created_at=now,
            updated_at=now,
        )
        self.rows[webhook.id] = webhook
        return webhook

    async def get(self, webhook_id: UUID) -> Webhook:
        return self._get(webhook_id)

    async def list_all(self) -> list[Webhook]:
        return list(reversed(self.rows.values()))

    async def list_active_for_event(self, event: str) -> list[Webhook]:
        return [w for w in self.rows.values() if w.status is WebhookStatus.ACTIVE and event in w.events]

    async def update(self, webhook_id: UUID, updates: dict[str, Any]) -> Webhook:
        if not updates:
            return self._get(webhook_id)
        return self._save(webhook_id, **updates)

    async def record_delivery(self, webhook_id: UUID, *, success: bool, triggered_at: datetime) -> None:
        webhook = self.rows.get(webhook_id)
        if webhook is None:
            return
        if success:
            self._save(webhook_id, success_count=webhook.success_count + 1, last_triggered=triggered_at)
        else:
            self._save(webhook_id, failure_count=webhook.failure_count + 1, last_triggered=triggered_at)

    async def delete(self, webhook_id: UUID) -> None:
        self._get(webhook_id)
        del self.rows[webhook_id]
        await self._logs.delete_by_webhook(webhook_id)


class FakeWebhookLogRepository:
    def __init__(self) -> None:
        self.rows: list[WebhookLog] = []

    async def create(
        self,
        *,
        webhook_id: UUID,
        event: str,
        payload: dict[str, Any],
        response_status: int | None,
        response_body: str | None,
        success: bool,
        duration_ms: int,
    ) -> WebhookLog:
        log = WebhookLog(
            id=uuid4(),
            webhook_id=webhook_id,
            event=event,
            payload=payload,
            response_status=response_status,
            response_body=response_body,
            success=success,
            duration_ms=duration_ms,
            created_at=_now(),
        )
        self.rows.append(log)
        return log

    async def list_by_webhook(self, webhook_id: UUID, *, limit: int = 50) -> list[WebhookLog]:
        logs = [log for log in reversed(self.rows) if log.webhook_id == webhook_id]
        return logs[:limit]

    async def delete_by_webhook(self, webhook_id: UUID) -> int:
        before = len(self.rows)
        self.rows = [log for log in self.rows if log.webhook_id != webhook_id]
        return before - len(self.rows)

    async def delete_older_than(self, cutoff: datetime) -> int:
        before = len(self.rows)
        self.rows = [log for log in self.rows if log.created_at >= cutoff]
        return before - len(self.rows)


class FakeUserRepository:
    def __init__(self) -> None:
        self.rows: dict[UUID, User] = {}

    async def get(self, user_id: UUID) -> User | None:
        return self.rows.get(user_id)

    async def get_by_username(self, username: str) -> User | None:
        return next((u for u in self.rows.values() if u.username == username), None)

    async def create(self, *, username: str, email: str | None, password_hash: str, role: str) -> User:
        user = User(
            id=uuid4(),
            username=username,
            email=email,
            password_hash=password_hash,
            role=role,
            created_at=_now(),
        )
        self.rows[user.id] = user
        return user


def make_repositories() -> Repositories:
    logs = FakeWebhookLogRepository()
    return Repositories(
        tasks=FakeScheduledTaskRepository(),  # type: ignore[arg-type]
        webhooks=FakeWebhookRepository(logs),  # type: ignore[arg-type]
        webhook_logs=logs,  # type: ignore[arg-type]
        users=FakeUserRepository(),  # type: ignore[arg-type]
    )
