"""
Request Middleware

Correlation ID: assigns a unique ID to each request so every log line written
while handling it (including dispatches triggered by an approval) can be traced.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.shared.core.logging import set_correlation_id


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    - Accepts an incoming X-Request-ID header (distributed tracing)
    - Otherwise generates req-xxxxxxxx
    - Echoes the ID back in the X-Request-ID response header
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = set_correlation_id(request.headers.get("X-Request-ID"))

        response = await call_next(request)

        response.headers["X-Request-ID"] = correlation_id
        return response
