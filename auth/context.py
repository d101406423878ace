"""Per-request authentication context.

Built by AuthMiddleware for every request, stored on request.state.auth,
and handed to route handlers through the current_context dependency. It
lives exactly as long as the request object and is never shared.
"""

from dataclasses import dataclass

from fastapi import Request

from auth.exceptions import NotAuthenticatedError
from auth.types import Session, User


@dataclass
class RequestContext:
    """Who is calling, from where, over which session."""

    user_agent: str | None = None
    ip_address: str | None = None
    session: Session | None = None
    user: User | None = None

    @property
    def authenticated(self) -> bool:
        return self.session is not None and self.user is not None

    def require_user(self) -> User:
        """The signed-in user, or NotAuthenticatedError."""
        if self.user is None:
            raise NotAuthenticatedError("Authentication required")
        return self.user


def current_context(request: Request) -> RequestContext:
    """FastAPI dependency returning this request's context."""
    context = getattr(request.state, "auth", None)
    if context is None:
        context = RequestContext()
        request.state.auth = context
    return context
