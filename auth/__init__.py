"""Authentication and account management modules."""

from auth.exceptions import (
    AuthError,
    FieldValidationError,
    PasswordChallengeError,
    EmailTakenError,
    InvalidTokenError,
    InvalidCredentialsError,
    NotAuthenticatedError,
    SessionNotFoundError,
    UserNotVerifiedError,
)
from auth.types import (
    User,
    Session,
    AuthenticatedUser,
    EmailChange,
)
from auth.config import AuthConfig
from auth.signing import MessageSigner
from auth.tokens import TokenPurpose, TokenService
from auth.database import AuthDatabase
from auth.memory import InMemoryAuthDatabase
from auth.session import SessionManager
from auth.mailer import UserMailer
from auth.context import RequestContext, current_context
from auth.service import AuthService
from auth.security_middleware import AuthMiddleware
from auth.api import create_auth_router
