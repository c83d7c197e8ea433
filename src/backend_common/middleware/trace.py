"""Middleware binding trace_id / request_id into the structlog context."""
from __future__ import annotations

import time
from uuid import UUID, uuid4

import structlog
from aiohttp import web

TRACE_ID_HEADER = "X-Trace-Id"
REQUEST_ID_HEADER = "X-Request-Id"

logger = structlog.get_logger(__name__)


def is_valid_uuid(value: str) -> bool:
    try:
        UUID(value)
        return True
    except (ValueError, AttributeError, TypeError):
        return False


def _incoming_or_new(request: web.Request, header: str) -> str:
    value = request.headers.get(header)
    if value and is_valid_uuid(value):
        return value
    return str(uuid4())


def create_trace_middleware(service_name: str):
    """Create a middleware that tags every log line of a request with its ids."""

    @web.middleware
    async def trace_middleware(request: web.Request, handler):
        started = time.monotonic()
        trace_id = _incoming_or_new(request, TRACE_ID_HEADER)
        request_id = _incoming_or_new(request, REQUEST_ID_HEADER)
        request["trace_id"] = trace_id
        request["request_id"] = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            trace_id=trace_id,
            request_id=request_id,
            service=service_name,
            method=request.method,
            path=request.path,
        )
        try:
            response = await handler(request)
        except web.HTTPException as exc:
            logger.warning(
                "request failed",
                status_code=exc.status_code,
                duration_ms=round((time.monotonic() - started) * 1000, 2),
            )
            raise
        except Exception:
            logger.exception(
                "request crashed",
                duration_ms=round((time.monotonic() - started) * 1000, 2),
            )
            raise
        else:
            duration_ms = round((time.monotonic() - started) * 1000, 2)
            if response.status >= 400:
                logger.warning("request completed with error status", status_code=response.status, duration_ms=duration_ms)
            else:
                logger.info("request completed", status_code=response.status, duration_ms=duration_ms)
            response.headers[TRACE_ID_HEADER] = trace_id
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            structlog.contextvars.clear_contextvars()

    return trace_middleware
