"""Route modules."""

from . import auth, scheduled_tasks, webhooks

__all__ = ["auth", "scheduled_tasks", "webhooks"]
