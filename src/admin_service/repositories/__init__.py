"""Repository package exports."""
from __future__ import annotations

from dataclasses import dataclass

from asyncpg import Pool  # type: ignore[import-untyped]

from admin_service.repositories.scheduled_tasks import ScheduledTaskRepository
from admin_service.repositories.users import UserRepository
from admin_service.repositories.webhooks import WebhookLogRepository, WebhookRepository


@dataclass
class Repositories:
    """Every repository the service uses, built once per application."""

    tasks: ScheduledTaskRepository
    webhooks: WebhookRepository
    webhook_logs: WebhookLogRepository
    users: UserRepository

    @classmethod
    def from_pool(cls, pool: Pool) -> "Repositories":
        return cls(
            tasks=ScheduledTaskRepository(pool),
            webhooks=WebhookRepository(pool),
            webhook_logs=WebhookLogRepository(pool),
            users=UserRepository(pool),
        )


__all__ = [
    "Repositories",
    "ScheduledTaskRepository",
    "UserRepository",
    "WebhookLogRepository",
    "WebhookRepository",
]
