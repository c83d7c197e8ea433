"""Pydantic models representing key domain entities.

Attributes are snake_case (matching table columns); JSON dumps use the
camelCase aliases the admin UI expects: ``model_dump(mode="json", by_alias=True)``.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from admin_service.domain.enums import TaskResult, TaskStatus, TaskType, WebhookStatus


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ScheduledTask(_CamelModel):
    id: UUID
    name: str
    description: str | None = None
    schedule: str
    task_type: TaskType = Field(alias="type")
    command: str | None = None
    status: TaskStatus = TaskStatus.ACTIVE
    last_run: datetime | None = None
    next_run: datetime | None = None
    last_result: TaskResult | None = None
    last_error: str | None = None
    run_count: int = 0
    created_at: datetime
    updated_at: datetime

    @property
    def is_active(self) -> bool:
        return self.status is TaskStatus.ACTIVE


class Webhook(_CamelModel):
    id: UUID
    name: str
    url: str
    events: list[str] = Field(default_factory=list)
    status: WebhookStatus = WebhookStatus.ACTIVE
    secret: str
    success_count: int = 0
    failure_count: int = 0
    last_triggered: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @property
    def is_active(self) -> bool:
        return self.status is WebhookStatus.ACTIVE


class WebhookLog(_CamelModel):
    id: UUID
    webhook_id: UUID
    event: str
    payload: dict[str, Any] = Field(default_factory=dict)
    response_status: int | None = None
    response_body: str | None = None
    success: bool
    duration_ms: int = 0
    created_at: datetime


class User(_CamelModel):
    id: UUID
    username: str
    email: str | None = None
    password_hash: str = Field(exclude=True)
    role: str
    created_at: datetime


class TaskRunOutcome(_CamelModel):
    """Result of one execution of a task body."""

    task: ScheduledTask
    result: TaskResult
    error: str | None = None


class DeliveryResult(_CamelModel):
    """Result of one webhook delivery attempt."""

    success: bool
    status: int | None = None
    body: str | None = None
    duration_ms: int = 0
