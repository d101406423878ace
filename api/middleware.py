"""Request-scoped middleware for API requests."""

from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tags every request with an id and echoes it as X-Request-ID.

    A well-formed incoming X-Request-ID is reused so callers can correlate
    their own logs.
    """

    HEADER = "X-Request-ID"

    async def dispatch(self, request: Request, call_next):
        incoming = request.headers.get(self.HEADER, "")
        request_id = incoming if 0 < len(incoming) <= 64 and incoming.isprintable() else str(uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers[self.HEADER] = request_id
        return response
