"""Admin session endpoints."""
from __future__ import annotations

from aiohttp import web

from admin_service.api.utils import read_json
from admin_service.domain.dto import LoginDTO, parse_dto
from admin_service.services.dependencies import get_auth_service, get_settings, require_current_user

routes = web.RouteTableDef()


@routes.post("/api/auth/login")
async def login(request: web.Request):
    body = await read_json(request)
    dto: LoginDTO = parse_dto(LoginDTO, body)
    auth = get_auth_service(request)
    user = await auth.login(dto.username, dto.password)
    settings = get_settings(request)
    response = web.json_response({"user": user.to_json()})
    response.set_cookie(
        settings.session_cookie_name,
        auth.create_session_token(user),
        max_age=settings.session_ttl_sec,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="Lax",
        path="/",
    )
    return response


@routes.post("/api/auth/logout")
async def logout(request: web.Request):
    response = web.json_response({"success": True})
    response.del_cookie(get_settings(request).session_cookie_name, path="/")
    return response


@routes.get("/api/auth/me")
async def me(request: web.Request):
    return web.json_response(require_current_user(request).to_json())
