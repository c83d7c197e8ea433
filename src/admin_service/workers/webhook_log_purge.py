"""Worker: purge webhook delivery logs past the retention window."""
from __future__ import annotations

from datetime import datetime, timedelta

from backend_common.worker import TaskFn

from admin_service.repositories.webhooks import WebhookLogRepository


def make_webhook_log_purge(logs: WebhookLogRepository, retention_days: int) -> TaskFn:
    async def webhook_log_purge(now: datetime) -> str | None:
        """Delete logs older than ``retention_days``."""
        purged = await logs.delete_older_than(now - timedelta(days=retention_days))
        return f"purged={purged}" if purged else None

    return webhook_log_purge
