"""Webhook domain service (subscriptions) and HTTP delivery."""
from __future__ import annotations

import asyncio
import time
import uuid
from datetime import datetime, timezone
from typing import Any, List
from uuid import UUID

import structlog
from aiohttp import ClientError, ClientSession, ClientTimeout

from admin_service.core.exceptions import DeliveryError
from admin_service.domain.dto import WebhookCreateDTO, WebhookUpdateDTO, parse_dto
from admin_service.domain.events import EVENT_CATALOG, PING_EVENT, EventType, is_known_event, sample_payload
from admin_service.domain.models import DeliveryResult, Webhook, WebhookLog
from admin_service.repositories.webhooks import WebhookLogRepository, WebhookRepository
from admin_service.services.signing import encode_body, generate_secret, sign

logger = structlog.get_logger(__name__)

MAX_LOG_LIMIT = 100


class WebhookDispatcher:
    """Delivers events to subscribed webhooks and records every attempt.

    One attempt produces exactly one :class:`WebhookLog` row and one counter
    increment. Nothing here raises to the caller; failures become
    ``DeliveryResult(success=False)``.
    """

    def __init__(
        self,
        webhooks: WebhookRepository,
        logs: WebhookLogRepository,
        *,
        timeout_seconds: float = 3.0,
        max_concurrency: int = 10,
        response_body_limit: int = 1000,
        session: ClientSession | None = None,
    ):
        self._webhooks = webhooks
        self._logs = logs
        self._timeout_seconds = timeout_seconds
        self._body_limit = response_body_limit
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._session = session
        self._owns_session = session is None
        self._pending: set[asyncio.Task[List[DeliveryResult]]] = set()

    async def start(self) -> None:
        if self._session is None:
            self._session = ClientSession(timeout=ClientTimeout(total=self._timeout_seconds))

    async def close(self) -> None:
        await self.drain()
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def drain(self) -> None:
        """Wait for fire-and-forget emissions still in flight."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    def emit(self, event: str, payload: dict[str, Any]) -> asyncio.Task[List[DeliveryResult]]:
        """Schedule :meth:`dispatch` without waiting for it."""
        task = asyncio.create_task(self.dispatch(event, payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def dispatch(self, event: str, payload: dict[str, Any]) -> List[DeliveryResult]:
        """Deliver ``event`` to every active subscriber, concurrently and independently."""
        try:
            webhooks = await self._webhooks.list_active_for_event(event)
        except Exception:
            logger.exception("webhook subscriber lookup failed", event_name=event)
            return []
        if not webhooks:
            return []
        results = await asyncio.gather(*(self._deliver_bounded(w, event, payload) for w in webhooks))
        delivered = sum(1 for r in results if r.success)
        logger.info("webhook event dispatched", event_name=event, subscribers=len(webhooks), delivered=delivered)
        return list(results)

    async def _deliver_bounded(self, webhook: Webhook, event: str, payload: dict[str, Any]) -> DeliveryResult:
        async with self._semaphore:
            return await self.attempt(webhook, event, payload)

    async def attempt(self, webhook: Webhook, event: str, payload: dict[str, Any]) -> DeliveryResult:
        """Same as :meth:`deliver` but never raises."""
        try:
            return await self.deliver(webhook, event, payload)
        except Exception as exc:
            logger.exception("webhook delivery crashed", webhook_id=str(webhook.id), event_name=event)
            return DeliveryResult(success=False, status=None, body=str(exc) or type(exc).__name__)

    async def deliver(self, webhook: Webhook, event: str, payload: dict[str, Any]) -> DeliveryResult:
        """One signed POST to ``webhook.url``; the attempt is logged and counted."""
        timestamp = datetime.now(timezone.utc).isoformat()
        body = {"event": event, "payload": payload, "timestamp": timestamp}
        started = time.monotonic()
        try:
            result = await self._post(webhook, event, body, timestamp)
        except DeliveryError as exc:
            result = DeliveryResult(
                success=False,
                status=None,
                body=str(exc)[: self._body_limit],
                duration_ms=_elapsed_ms(started),
            )
        await self._logs.create(
            webhook_id=webhook.id,
            event=event,
            payload=body,
            response_status=result.status,
            response_body=result.body,
            success=result.success,
            duration_ms=result.duration_ms,
        )
        await self._webhooks.record_delivery(
            webhook.id, success=result.success, triggered_at=datetime.now(timezone.utc)
        )
        log = logger.bind(webhook_id=str(webhook.id), event_name=event, status=result.status)
        if result.success:
            log.info("webhook delivered", duration_ms=result.duration_ms)
        else:
            log.warning("webhook delivery failed", duration_ms=result.duration_ms, error=result.body)
        return result

    async def _post(
        self, webhook: Webhook, event: str, body: dict[str, Any], timestamp: str
    ) -> DeliveryResult:
        """POST ``body``; raise DeliveryError when no HTTP response arrives."""
        if self._session is None:
            await self.start()
        assert self._session is not None
        body_bytes = encode_body(body)
        headers = {
            "Content-Type": "application/json",
            "X-Webhook-Event": event,
            "X-Webhook-Timestamp": timestamp,
            "X-Webhook-Delivery-Id": str(uuid.uuid4()),
            "X-Webhook-Signature": sign(webhook.secret, body_bytes),
        }
        started = time.monotonic()
        try:
            async with self._session.post(
                webhook.url,
                data=body_bytes,
                headers=headers,
                timeout=ClientTimeout(total=self._timeout_seconds),
            ) as resp:
                text = await resp.text(errors="replace")
                return DeliveryResult(
                    success=200 <= resp.status < 300,
                    status=resp.status,
                    body=text[: self._body_limit],
                    duration_ms=_elapsed_ms(started),
                )
        except asyncio.TimeoutError as exc:
            raise DeliveryError(f"Request timed out after {self._timeout_seconds:g}s") from exc
        except ClientError as exc:
            raise DeliveryError(str(exc) or type(exc).__name__) from exc



def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class WebhookService:
    def __init__(
        self,
        webhook_repository: WebhookRepository,
        log_repository: WebhookLogRepository,
        dispatcher: WebhookDispatcher,
    ):
        self._webhooks = webhook_repository
        self._logs = log_repository
        self._dispatcher = dispatcher

    @staticmethod
    def list_events() -> tuple[EventType, ...]:
        return EVENT_CATALOG

    async def create_webhook(
        self,
        *,
        name: Any,
        url: Any,
        events: Any,
        status: Any = None,
    ) -> Webhook:
        data = {"name": name, "url": url, "events": events}
        if status is not None:
            data["status"] = status
        dto: WebhookCreateDTO = parse_dto(WebhookCreateDTO, data)
        webhook = await self._webhooks.create(
            name=dto.name,
            url=dto.url,
            events=dto.events,
            status=dto.status,
            secret=generate_secret(),
        )
        logger.info("webhook created", webhook_id=str(webhook.id), events=",".join(webhook.events))
        return webhook

    async def update_webhook(self, webhook_id: UUID, data: dict[str, Any]) -> Webhook:
        dto: WebhookUpdateDTO = parse_dto(WebhookUpdateDTO, data)
        await self._webhooks.get(webhook_id)
        changes = {k: v for k, v in dto.model_dump(exclude_unset=True).items() if v is not None}
        return await self._webhooks.update(webhook_id, changes)

    async def get_webhook(self, webhook_id: UUID) -> Webhook:
        return await self._webhooks.get(webhook_id)

    async def list_webhooks(self) -> List[Webhook]:
        return await self._webhooks.list_all()

    async def list_logs(self, webhook_id: UUID, *, limit: int = 50) -> List[WebhookLog]:
        await self._webhooks.get(webhook_id)
        limit = max(1, min(limit, MAX_LOG_LIMIT))
        return await self._logs.list_by_webhook(webhook_id, limit=limit)

    async def purge_logs(self, webhook_id: UUID) -> int:
        await self._webhooks.get(webhook_id)
        deleted = await self._logs.delete_by_webhook(webhook_id)
        logger.info("webhook logs purged", webhook_id=str(webhook_id), deleted=deleted)
        return deleted

    async def toggle(self, webhook_id: UUID) -> Webhook:
        webhook = await self._webhooks.get(webhook_id)
        return await self._webhooks.update(webhook_id, {"status": webhook.status.toggled()})

    async def regenerate_secret(self, webhook_id: UUID) -> Webhook:
        webhook = await self._webhooks.update(webhook_id, {"secret": generate_secret()})
        logger.info("webhook secret rotated", webhook_id=str(webhook_id))
        return webhook

    async def delete_webhook(self, webhook_id: UUID) -> None:
        await self._webhooks.delete(webhook_id)
        logger.info("webhook deleted", webhook_id=str(webhook_id))

    async def test(self, webhook_id: UUID) -> DeliveryResult:
        """Send a sample delivery now, whatever the webhook's status."""
        webhook = await self._webhooks.get(webhook_id)
        event = next((e for e in webhook.events if is_known_event(e)), PING_EVENT)
        return await self._dispatcher.attempt(webhook, event, sample_payload(event))
