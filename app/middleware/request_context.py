"""
RequestContext Middleware - request tracing and access logging.

For every HTTP request:
- reuses the caller's X-Request-ID or generates one
- binds it into structlog contextvars so every log line carries it
- logs method, path, status and duration once the response is ready
- echoes X-Request-ID on the response

Socket.IO traffic is handled by the ASGI wrapper in front of FastAPI and
never passes through here.
"""

import time
import uuid

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.infrastructure.observability.logging import log_request


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start_time = time.time()
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        duration_ms = round((time.time() - start_time) * 1000, 2)
        log_request(
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            user_id=getattr(request.state, "user_id", None),
        )

        response.headers["X-Request-ID"] = request_id
        return response
