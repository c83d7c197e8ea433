from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import pytest
from aiohttp import web

from admin_service.main import create_app
from admin_service.services.auth import hash_password
from admin_service.settings import Settings
from tests.fakes import make_repositories

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "correct horse battery"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        session_secret="test-session-secret",
        bcrypt_rounds=4,
        scheduler_timezone="UTC",
        scheduler_tick_seconds=3600,
        webhook_request_timeout_seconds=0.5,
        backup_dir=tmp_path / "backups",
    )


@pytest.fixture
def repositories():
    return make_repositories()


@pytest.fixture
async def admin_user(repositories):
    return await repositories.users.create(
        username=ADMIN_USERNAME,
        email="admin@example.com",
        password_hash=hash_password(ADMIN_PASSWORD, rounds=4),
        role="Admin",
    )


@pytest.fixture
async def service_client(aiohttp_client, settings, repositories):
    """Unauthenticated client for an app backed by in-memory repositories."""
    app = create_app(settings, repositories=repositories)
    return await aiohttp_client(app)


@pytest.fixture
async def admin_client(service_client, admin_user):
    """Client holding a valid admin session cookie."""
    resp = await service_client.post(
        "/api/auth/login",
        json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD},
    )
    assert resp.status == 200
    return service_client


@dataclass
class Receiver:
    """Local HTTP endpoint recording webhook deliveries."""

    base_url: str
    requests: list[tuple[dict[str, str], bytes]] = field(default_factory=list)
    status: int = 200
    body: str = "ok"
    delay: float = 0.0

    def url(self, path: str = "/hook") -> str:
        return f"{self.base_url}{path}"


@pytest.fixture
async def receiver(aiohttp_server):
    state: dict[str, Receiver] = {}

    async def handler(request: web.Request) -> web.Response:
        recv = state["receiver"]
        raw = await request.read()
        recv.requests.append((dict(request.headers), raw))
        if recv.delay:
            await asyncio.sleep(recv.delay)
        return web.Response(status=recv.status, text=recv.body)

    app = web.Application()
    app.router.add_post("/hook", handler)
    server = await aiohttp_server(app)
    state["receiver"] = Receiver(base_url=str(server.make_url("")).rstrip("/"))
    return state["receiver"]
