"""
RequestContext Middleware - Adds request tracking to HTTP requests.

Every request gets a request_id that is:
- stored on request.state
- bound into the structlog context, so every log line of the request carries it
- echoed back in the X-Request-ID response header

WebSocket upgrades are passed through untouched; realtime logs carry user_id
instead.
"""

import uuid

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from messenger.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        # Reuse an upstream id when the proxy already assigned one
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        logger.debug(
            "Request started",
            method=request.method,
            path=request.url.path,
            ip_address=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        response.headers["X-Request-ID"] = request_id
        return response
