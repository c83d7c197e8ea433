"""Webhook endpoints."""
from __future__ import annotations

from aiohttp import web

from admin_service.api.utils import limit_param, parse_uuid, read_json
from admin_service.services.dependencies import get_webhook_service

routes = web.RouteTableDef()

_NOT_FOUND = "Webhook not found"


def _webhook_id(request: web.Request):
    return parse_uuid(request.match_info["webhook_id"], _NOT_FOUND)


@routes.get("/api/webhooks")
async def list_webhooks(request: web.Request):
    webhooks = await get_webhook_service(request).list_webhooks()
    return web.json_response([webhook.to_json() for webhook in webhooks])


# registered before /api/webhooks/{webhook_id} so "events" is not taken for an id
@routes.get("/api/webhooks/events")
async def list_events(request: web.Request):
    events = get_webhook_service(request).list_events()
    return web.json_response([event.to_json() for event in events])


@routes.post("/api/webhooks")
async def create_webhook(request: web.Request):
    body = await read_json(request)
    webhook = await get_webhook_service(request).create_webhook(
        name=body.get("name"),
        url=body.get("url"),
        events=body.get("events"),
        status=body.get("status"),
    )
    return web.json_response(webhook.to_json(), status=201)


@routes.get("/api/webhooks/{webhook_id}")
async def get_webhook(request: web.Request):
    webhook = await get_webhook_service(request).get_webhook(_webhook_id(request))
    return web.json_response(webhook.to_json())


@routes.patch("/api/webhooks/{webhook_id}")
async def update_webhook(request: web.Request):
    webhook_id = _webhook_id(request)
    body = await read_json(request)
    webhook = await get_webhook_service(request).update_webhook(webhook_id, body)
    return web.json_response(webhook.to_json())


@routes.get("/api/webhooks/{webhook_id}/logs")
async def list_logs(request: web.Request):
    webhook_id = _webhook_id(request)
    logs = await get_webhook_service(request).list_logs(webhook_id, limit=limit_param(request))
    return web.json_response([log.to_json() for log in logs])


@routes.delete("/api/webhooks/{webhook_id}/logs")
async def purge_logs(request: web.Request):
    deleted = await get_webhook_service(request).purge_logs(_webhook_id(request))
    return web.json_response({"success": True, "deleted": deleted})


@routes.post("/api/webhooks/{webhook_id}/test")
async def test_webhook(request: web.Request):
    result = await get_webhook_service(request).test(_webhook_id(request))
    return web.json_response(result.to_json())


@routes.post("/api/webhooks/{webhook_id}/toggle")
async def toggle_webhook(request: web.Request):
    webhook = await get_webhook_service(request).toggle(_webhook_id(request))
    return web.json_response(webhook.to_json())


@routes.post("/api/webhooks/{webhook_id}/regenerate-secret")
async def regenerate_secret(request: web.Request):
    webhook = await get_webhook_service(request).regenerate_secret(_webhook_id(request))
    return web.json_response(webhook.to_json())


@routes.delete("/api/webhooks/{webhook_id}")
async def delete_webhook(request: web.Request):
    await get_webhook_service(request).delete_webhook(_webhook_id(request))
    return web.json_response({"success": True})
