"""Domain services exports."""

from admin_service.services.auth import AuthService
from admin_service.services.scheduler import TaskScheduler
from admin_service.services.task_handlers import TaskHandlerRegistry, build_task_handlers
from admin_service.services.webhooks import WebhookDispatcher, WebhookService

__all__ = [
    "AuthService",
    "TaskHandlerRegistry",
    "TaskScheduler",
    "WebhookDispatcher",
    "WebhookService",
    "build_task_handlers",
]
