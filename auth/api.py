"""HTTP routes for authentication and account management.

Handlers are plain functions so bcrypt and database calls run on the
threadpool rather than the event loop.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import JSONResponse

from auth.context import RequestContext, current_context
from auth.exceptions import (
    InvalidCredentialsError,
    InvalidTokenError,
    SessionNotFoundError,
    UserNotVerifiedError,
)
from auth.service import AuthService
from auth.types import (
    EmailUpdateRequest,
    PasswordResetRequest,
    PasswordResetUpdate,
    PasswordUpdateRequest,
    SignInRequest,
    SignUpRequest,
)
from api.base import success_response, error_response, ErrorCodes

EMAIL_VERIFICATION_INVALID = "That email verification link is invalid"
PASSWORD_RESET_INVALID = "That password reset link is invalid"


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_response(code, message).model_dump(mode="json"),
    )


def _created(data) -> JSONResponse:
    return JSONResponse(
        status_code=201,
        content=success_response(data).model_dump(mode="json"),
    )


def _parse_session_id(session_id: str) -> UUID:
    try:
        return UUID(session_id)
    except ValueError:
        raise SessionNotFoundError(f"Session {session_id} not found")


def create_auth_router(auth_service: AuthService) -> APIRouter:
    """Create auth router with injected service."""
    router = APIRouter(tags=["auth"])

    # ------------------------------------------------------------------
    # Sign-in / sign-up
    # ------------------------------------------------------------------

    @router.post("/sign_in", status_code=201)
    def sign_in(body: SignInRequest, context: RequestContext = Depends(current_context)):
        """Exchange email and password for a session bearer value.

        The bearer value is returned in the body and the X-Session-Token
        header.
        """
        try:
            result = auth_service.sign_in(body.email, body.password, context)
        except InvalidCredentialsError:
            return _error(401, ErrorCodes.NOT_AUTHENTICATED, "Invalid email or password")

        response = _created(result.model_dump(mode="json"))
        response.headers["X-Session-Token"] = result.token
        return response

    @router.post("/sign_up", status_code=201)
    def sign_up(body: SignUpRequest):
        """Register a user. Field errors come back as 422."""
        user = auth_service.register(
            body.email,
            body.password,
            body.password_confirmation,
        )
        return _created(user.model_dump(mode="json"))

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    @router.get("/sessions")
    def list_sessions(context: RequestContext = Depends(current_context)):
        sessions = auth_service.list_sessions(context.require_user())
        return success_response([s.model_dump(mode="json") for s in sessions])

    @router.get("/sessions/{session_id}")
    def show_session(session_id: str, context: RequestContext = Depends(current_context)):
        session = auth_service.get_session(
            context.require_user(), _parse_session_id(session_id)
        )
        return success_response(session.model_dump(mode="json"))

    @router.delete("/sessions/{session_id}", status_code=204)
    def destroy_session(session_id: str, context: RequestContext = Depends(current_context)):
        """Sign out one session. Destroying the current one signs the caller out."""
        auth_service.destroy_session(
            context.require_user(), _parse_session_id(session_id)
        )
        return Response(status_code=204)

    # ------------------------------------------------------------------
    # Password
    # ------------------------------------------------------------------

    @router.patch("/password")
    def update_password(
        body: PasswordUpdateRequest,
        context: RequestContext = Depends(current_context),
    ):
        """Change password behind the challenge. Other sessions are revoked."""
        user = auth_service.change_password(
            context,
            body.password,
            body.password_confirmation,
            body.password_challenge,
        )
        return success_response(user.model_dump(mode="json"))

    # ------------------------------------------------------------------
    # Email
    # ------------------------------------------------------------------

    @router.patch("/identity/email")
    def update_email(
        body: EmailUpdateRequest,
        context: RequestContext = Depends(current_context),
    ):
        result = auth_service.update_email(
            context.require_user(),
            body.email,
            body.password_challenge,
        )
        return success_response(result.user.model_dump(mode="json"))

    @router.get("/identity/email_verification", status_code=204)
    def verify_email(sid: str | None = Query(None)):
        try:
            auth_service.verify_email(sid)
        except InvalidTokenError:
            return _error(400, ErrorCodes.INVALID_TOKEN, EMAIL_VERIFICATION_INVALID)
        return Response(status_code=204)

    @router.post("/identity/email_verification", status_code=204)
    def resend_email_verification(context: RequestContext = Depends(current_context)):
        auth_service.resend_email_verification(context.require_user())
        return Response(status_code=204)

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    @router.post("/identity/password_reset", status_code=204)
    def request_password_reset(body: PasswordResetRequest):
        try:
            auth_service.request_password_reset(body.email)
        except UserNotVerifiedError:
            return _error(400, ErrorCodes.INVALID_REQUEST, "User not verified")
        return Response(status_code=204)

    @router.get("/identity/password_reset/edit", status_code=204)
    def check_password_reset(sid: str | None = Query(None)):
        """Confirm a reset link still works before showing the new-password form."""
        try:
            auth_service.check_password_reset_token(sid)
        except InvalidTokenError:
            return _error(400, ErrorCodes.INVALID_TOKEN, PASSWORD_RESET_INVALID)
        return Response(status_code=204)

    @router.patch("/identity/password_reset")
    def reset_password(body: PasswordResetUpdate):
        try:
            user = auth_service.reset_password(
                body.sid,
                body.password,
                body.password_confirmation,
            )
        except InvalidTokenError:
            return _error(400, ErrorCodes.INVALID_TOKEN, PASSWORD_RESET_INVALID)
        return success_response(user.model_dump(mode="json"))

    return router
