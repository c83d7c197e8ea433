"""Error and admin-session middlewares."""
from __future__ import annotations

from typing import Iterable

import structlog
from aiohttp import web

from admin_service.core.exceptions import (
    AlreadyRunningError,
    AuthError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from admin_service.services.dependencies import CURRENT_USER_KEY, get_auth_service, get_settings

logger = structlog.get_logger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[Exception], int], ...] = (
    (ValidationError, 400),
    (AuthError, 401),
    (PermissionDeniedError, 403),
    (NotFoundError, 404),
    (AlreadyRunningError, 409),
)

PUBLIC_API_PATHS = frozenset({"/api/auth/login"})


def error_body(message: str, status: int) -> web.Response:
    return web.json_response({"message": message}, status=status)


@web.middleware
async def error_middleware(request: web.Request, handler):
    """Render every failure as ``{"message": ...}`` with the matching status."""
    try:
        return await handler(request)
    except web.HTTPException as exc:
        if exc.empty_body or exc.status < 400:
            raise
        return error_body(exc.text or exc.reason, exc.status)
    except Exception as exc:
        for error_type, status in _STATUS_BY_ERROR:
            if isinstance(exc, error_type):
                return error_body(str(exc), status)
        logger.exception("unhandled error")
        return error_body("Internal server error", 500)


def create_auth_middleware(public_paths: Iterable[str] = PUBLIC_API_PATHS):
    """Require an admin session cookie on ``/api/*`` except ``public_paths``."""
    public = frozenset(public_paths)

    @web.middleware
    async def auth_middleware(request: web.Request, handler):
        if request.method == "OPTIONS" or not request.path.startswith("/api/") or request.path in public:
            return await handler(request)
        settings = get_settings(request)
        token = request.cookies.get(settings.session_cookie_name)
        request[CURRENT_USER_KEY] = await get_auth_service(request).authenticate(token)
        return await handler(request)

    return auth_middleware
