"""API router composition for aiohttp."""
from __future__ import annotations

from aiohttp import web

from admin_service.api.routes import auth, scheduled_tasks, webhooks

ROUTE_MODULES = [
    auth,
    scheduled_tasks,
    webhooks,
]


def setup_routes(app: web.Application) -> None:
    """Attach domain routes to the aiohttp application."""
    for module in ROUTE_MODULES:
        app.add_routes(module.routes)
