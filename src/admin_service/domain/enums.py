"""Domain enums."""
from __future__ import annotations

from enum import Enum


class TaskType(str, Enum):
    """What a scheduled task does when it fires."""

    BACKUP = "backup"
    EMAIL = "email"
    MAINTENANCE = "maintenance"
    CUSTOM = "custom"


class TaskStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"


class TaskResult(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class WebhookStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"

    def toggled(self) -> "WebhookStatus":
        return WebhookStatus.INACTIVE if self is WebhookStatus.ACTIVE else WebhookStatus.ACTIVE
