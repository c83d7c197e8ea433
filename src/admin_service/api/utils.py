"""Helper utilities for API handlers."""
from __future__ import annotations

from uuid import UUID

from aiohttp import web

# Re-exported so route modules import request helpers from one place.
from backend_common.aiohttp_app import read_json as read_json  # noqa: F401

from admin_service.core.exceptions import NotFoundError


def parse_uuid(value: str, not_found: str) -> UUID:
    """Path ids are UUIDs; anything else cannot match a row."""
    try:
        return UUID(value)
    except (ValueError, TypeError) as exc:
        raise NotFoundError(not_found) from exc


def limit_param(request: web.Request, *, default: int = 50, maximum: int = 100) -> int:
    raw = request.rel_url.query.get("limit")
    if raw is None:
        return default
    try:
        limit = int(raw)
    except ValueError as exc:
        raise web.HTTPBadRequest(text="limit must be an integer") from exc
    if limit <= 0:
        return default
    return min(limit, maximum)
