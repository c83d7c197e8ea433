"""Scheduled task endpoints."""
from __future__ import annotations

from aiohttp import web

from admin_service.api.utils import parse_uuid, read_json
from admin_service.domain.dto import ScheduledTaskCreateDTO, ScheduledTaskUpdateDTO, parse_dto
from admin_service.services.dependencies import get_scheduler

routes = web.RouteTableDef()

_NOT_FOUND = "Scheduled task not found"


def _task_id(request: web.Request):
    return parse_uuid(request.match_info["task_id"], _NOT_FOUND)


@routes.get("/api/scheduled-tasks")
async def list_tasks(request: web.Request):
    tasks = await get_scheduler(request).list_tasks()
    return web.json_response([task.to_json() for task in tasks])


@routes.get("/api/scheduled-tasks/active")
async def list_active_tasks(request: web.Request):
    tasks = await get_scheduler(request).list_active_tasks()
    return web.json_response([task.to_json() for task in tasks])


@routes.post("/api/scheduled-tasks")
async def create_task(request: web.Request):
    body = await read_json(request)
    dto: ScheduledTaskCreateDTO = parse_dto(ScheduledTaskCreateDTO, body)
    task = await get_scheduler(request).create_task(
        name=dto.name,
        description=dto.description,
        schedule=dto.schedule,
        task_type=dto.task_type,
        command=dto.command,
    )
    return web.json_response(task.to_json(), status=201)


@routes.get("/api/scheduled-tasks/{task_id}")
async def get_task(request: web.Request):
    task = await get_scheduler(request).get_task(_task_id(request))
    return web.json_response(task.to_json())


@routes.patch("/api/scheduled-tasks/{task_id}")
async def update_task(request: web.Request):
    task_id = _task_id(request)
    body = await read_json(request)
    dto: ScheduledTaskUpdateDTO = parse_dto(ScheduledTaskUpdateDTO, body)
    task = await get_scheduler(request).update_task(task_id, dto)
    return web.json_response(task.to_json())


@routes.post("/api/scheduled-tasks/{task_id}/pause")
async def pause_task(request: web.Request):
    task = await get_scheduler(request).pause(_task_id(request))
    return web.json_response(task.to_json())


@routes.post("/api/scheduled-tasks/{task_id}/resume")
async def resume_task(request: web.Request):
    task = await get_scheduler(request).resume(_task_id(request))
    return web.json_response(task.to_json())


@routes.post("/api/scheduled-tasks/{task_id}/run")
async def run_task(request: web.Request):
    outcome = await get_scheduler(request).run_now(_task_id(request))
    return web.json_response(outcome.to_json())


@routes.delete("/api/scheduled-tasks/{task_id}")
async def delete_task(request: web.Request):
    await get_scheduler(request).delete_task(_task_id(request))
    return web.json_response({"success": True})
