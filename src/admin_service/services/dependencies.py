"""Application-scoped components and accessors for aiohttp handlers."""
from __future__ import annotations

from aiohttp import web

from admin_service.domain.models import User
from admin_service.repositories import Repositories
from admin_service.services.auth import AuthService
from admin_service.services.scheduler import TaskScheduler
from admin_service.services.webhooks import WebhookDispatcher, WebhookService
from admin_service.settings import Settings

SETTINGS_KEY = web.AppKey("settings", Settings)
REPOSITORIES_KEY = web.AppKey("repositories", Repositories)
AUTH_SERVICE_KEY = web.AppKey("auth_service", AuthService)
SCHEDULER_KEY = web.AppKey("task_scheduler", TaskScheduler)
DISPATCHER_KEY = web.AppKey("webhook_dispatcher", WebhookDispatcher)
WEBHOOK_SERVICE_KEY = web.AppKey("webhook_service", WebhookService)

CURRENT_USER_KEY = "admin_user"


def _component(request: web.Request, key: web.AppKey):
    component = request.app.get(key)
    if component is None:
        raise RuntimeError(f"{key} is not initialized")
    return component


def get_settings(request: web.Request) -> Settings:
    return _component(request, SETTINGS_KEY)


def get_auth_service(request: web.Request) -> AuthService:
    return _component(request, AUTH_SERVICE_KEY)


def get_scheduler(request: web.Request) -> TaskScheduler:
    return _component(request, SCHEDULER_KEY)


def get_webhook_service(request: web.Request) -> WebhookService:
    return _component(request, WEBHOOK_SERVICE_KEY)


def get_dispatcher(request: web.Request) -> WebhookDispatcher:
    return _component(request, DISPATCHER_KEY)


def require_current_user(request: web.Request) -> User:
    """The admin resolved by the auth middleware."""
    user = request.get(CURRENT_USER_KEY)
    if user is None:
        raise web.HTTPUnauthorized(text="Authentication required")
    return user
