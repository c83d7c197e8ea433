"""Webhook repositories (subscriptions + delivery logs)."""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, List
from uuid import UUID

from asyncpg import Pool, Record  # type: ignore[import-untyped]

from admin_service.core.exceptions import NotFoundError
from admin_service.domain.enums import WebhookStatus
from admin_service.domain.models import Webhook, WebhookLog
from admin_service.repositories.base import BaseRepository

UPDATABLE_COLUMNS = frozenset({"name", "url", "events", "status", "secret"})


class WebhookRepository(BaseRepository):
    def __init__(self, pool: Pool):
        super().__init__(pool)

    @staticmethod
    def _to_model(record: Record) -> Webhook:
        return Webhook.model_validate(dict(record))

    async def create(
        self,
        *,
        name: str,
        url: str,
        events: list[str],
        status: WebhookStatus,
        secret: str,
    ) -> Webhook:
        record = await self._fetchrow(
            """
            INSERT INTO webhooks (name, url, events, status, secret)
            VALUES ($1, $2, $3::text[], $4, $5)
            RETURNING *
            """,
            name,
            url,
            events,
            status.value,
            secret,
        )
        assert record is not None
        return self._to_model(record)

    async def get(self, webhook_id: UUID) -> Webhook:
        record = await self._fetchrow("SELECT * FROM webhooks WHERE id = $1", webhook_id)
        if record is None:
            raise NotFoundError("Webhook not found")
        return self._to_model(record)

    async def list_all(self) -> List[Webhook]:
        records = await self._fetch("SELECT * FROM webhooks ORDER BY created_at DESC")
        return [self._to_model(r) for r in records]

    async def list_active_for_event(self, event: str) -> List[Webhook]:
        records = await self._fetch(
            """
            SELECT *
            FROM webhooks
            WHERE status = 'active'
              AND $1 = ANY(events)
            ORDER BY created_at ASC
            """,
            event,
        )
        return [self._to_model(r) for r in records]

    async def update(self, webhook_id: UUID, updates: dict[str, Any]) -> Webhook:
        unknown = set(updates) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Unsupported columns: {sorted(unknown)}")
        if not updates:
            return await self.get(webhook_id)
        values = {k: (v.value if isinstance(v, WebhookStatus) else v) for k, v in updates.items()}
        set_sql, args = self._set_clause(values)
        record = await self._fetchrow(
            f"UPDATE webhooks SET {set_sql} WHERE id = ${len(args) + 1} RETURNING *",
            *args,
            webhook_id,
        )
        if record is None:
            raise NotFoundError("Webhook not found")
        return self._to_model(record)

    async def record_delivery(self, webhook_id: UUID, *, success: bool, triggered_at: datetime) -> None:
        """Bump the success or failure counter after a completed attempt."""
        counter = "success_count" if success else "failure_count"
        await self._execute(
            f"""
            UPDATE webhooks
            SET {counter} = {counter} + 1,
                last_triggered = $2,
                updated_at = now()
            WHERE id = $1
            """,
            webhook_id,
            triggered_at,
        )

    async def delete(self, webhook_id: UUID) -> None:
        # webhook_logs rows go with it (ON DELETE CASCADE)
        record = await self._fetchrow("DELETE FROM webhooks WHERE id = $1 RETURNING id", webhook_id)
        if record is None:
            raise NotFoundError("Webhook not found")


class WebhookLogRepository(BaseRepository):
    def __init__(self, pool: Pool):
        super().__init__(pool)

    @staticmethod
    def _to_model(record: Record) -> WebhookLog:
        payload = dict(record)
        value = payload.get("payload")
        if isinstance(value, str):
            payload["payload"] = json.loads(value)
        return WebhookLog.model_validate(payload)

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
        record = await self._fetchrow(
            """
            INSERT INTO webhook_logs (
                webhook_id, event, payload, response_status, response_body, success, duration_ms
            )
            VALUES ($1, $2, $3::jsonb, $4, $5, $6, $7)
            RETURNING *
            """,
            webhook_id,
            event,
            json.dumps(payload),
            response_status,
            response_body,
            success,
            duration_ms,
        )
        assert record is not None
        return self._to_model(record)

    async def list_by_webhook(self, webhook_id: UUID, *, limit: int = 50) -> List[WebhookLog]:
        records = await self._fetch(
            """
            SELECT *
            FROM webhook_logs
            WHERE webhook_id = $1
            ORDER BY created_at DESC
            LIMIT $2
            """,
            webhook_id,
            limit,
        )
        return [self._to_model(r) for r in records]

    async def delete_by_webhook(self, webhook_id: UUID) -> int:
        status = await self._execute("DELETE FROM webhook_logs WHERE webhook_id = $1", webhook_id)
        return self._affected(status)

    async def delete_older_than(self, cutoff: datetime) -> int:
        status = await self._execute("DELETE FROM webhook_logs WHERE created_at < $1", cutoff)
        return self._affected(status)
