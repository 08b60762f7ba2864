"""
Request ID middleware.

Every request gets an ID (the client's X-Request-ID, or a new UUID). It is
stored on request.state, echoed in the response headers and attached to
every log record written while the request is handled.
"""

import contextvars
import logging
import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

_request_id: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")


class RequestIDFilter(logging.Filter):
    """Copies the current request ID onto each log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get()
        return True


class RequestIDMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        # Handlers run in copies of this context (tasks and threadpool
        # workers), so the ID follows the request into sync endpoints.
        token = _request_id.set(request_id)
        try:
            response: Response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            _request_id.reset(token)


def get_request_id(request: Request) -> str:
    """Request ID from request state, or "no-request-id" outside the middleware."""
    return getattr(request.state, "request_id", "no-request-id")
