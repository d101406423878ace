"""Security middleware for FastAPI - bearer validation and request context."""

import ipaddress
import logging

from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from auth.context import RequestContext
from auth.exceptions import NotAuthenticatedError
from auth.session import SessionManager
from api.base import error_response, ErrorCodes

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str | None:
    """Extract valid IP address from request, or None if invalid."""
    if not request.client:
        return None
    host = request.client.host
    try:
        ipaddress.ip_address(host)
        return host
    except ValueError:
        return None


def get_bearer(request: Request) -> str | None:
    """Token from 'Authorization: Bearer <token>', or None."""
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


class AuthMiddleware(BaseHTTPMiddleware):
    """Resolves the caller's session and records it on request.state.auth.

    Every request gets a RequestContext holding the client's user agent
    and IP. When a valid bearer value is presented, the context also holds
    the session and its user. Protected routes without one get a 401.
    """

    # (method, path); method None matches any
    PUBLIC_ROUTES = [
        ("POST", "/sign_in"),
        ("POST", "/sign_up"),
        ("GET", "/identity/email_verification"),
        ("POST", "/identity/password_reset"),
        ("GET", "/identity/password_reset/edit"),
        ("PATCH", "/identity/password_reset"),
        (None, "/health"),
        (None, "/docs"),
        (None, "/openapi.json"),
    ]

    def __init__(self, app, session_manager: SessionManager):
        super().__init__(app)
        self._session_manager = session_manager

    def _is_public(self, method: str, path: str) -> bool:
        path = path.rstrip("/") or "/"
        for public_method, public_path in self.PUBLIC_ROUTES:
            if path == public_path and public_method in (None, method):
                return True
        return False

    async def dispatch(self, request: Request, call_next):
        """Process request through middleware."""
        context = RequestContext(
            user_agent=request.headers.get("User-Agent"),
            ip_address=get_client_ip(request),
        )
        request.state.auth = context

        bearer = get_bearer(request)
        if bearer:
            try:
                context.session, context.user = await run_in_threadpool(
                    self._session_manager.resolve, bearer
                )
            except NotAuthenticatedError as e:
                logger.info(f"Rejected bearer on {request.method} {request.url.path}: {e}")

        if not context.authenticated and not self._is_public(request.method, request.url.path):
            return JSONResponse(
                status_code=401,
                content=error_response(
                    ErrorCodes.NOT_AUTHENTICATED,
                    "Authentication required",
                ).model_dump(mode="json"),
            )

        return await call_next(request)
