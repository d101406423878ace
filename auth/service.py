"""Authentication service - credentials, sessions, and account recovery flows."""

import logging
import re
from uuid import UUID

from auth.challenge import check_password_challenge
from auth.config import AuthConfig
from auth.context import RequestContext
from auth.exceptions import (
    EmailTakenError,
    FieldValidationError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotAuthenticatedError,
    UserNotVerifiedError,
)
from auth.mailer import UserMailer
from auth.passwords import (
    burn_password_check,
    hash_password,
    password_errors,
    verify_password,
)
from auth.session import SessionManager
from auth.tokens import TokenPurpose, TokenService
from auth.types import AuthenticatedUser, EmailChange, Session, User

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(
    r"\A[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*\Z"
)

EMAIL_TAKEN_MESSAGE = "has already been taken"


def normalize_email(email: str | None) -> str:
    """Strip surrounding whitespace and lowercase."""
    return (email or "").strip().lower()


def email_errors(email: str) -> list[str]:
    """Format errors for an already-normalized email."""
    if not email:
        return ["can't be blank"]
    if not EMAIL_PATTERN.match(email):
        return ["is invalid"]
    return []


class AuthService:
    """Orchestrates password authentication and account changes.

    Handles:
    - Registration and sign-in
    - Session listing and sign-out
    - Email and password changes behind the password challenge
    - Email verification and password reset via purpose-bound tokens
    - Revoking sibling sessions whenever the password changes
    """

    def __init__(
        self,
        config: AuthConfig,
        auth_db,
        session_manager: SessionManager,
        token_service: TokenService,
        mailer: UserMailer,
    ):
        self._config = config
        self._auth_db = auth_db
        self._session_manager = session_manager
        self._tokens = token_service
        self._mailer = mailer

    # ------------------------------------------------------------------
    # Registration and sign-in
    # ------------------------------------------------------------------

    def register(
        self,
        email: str | None,
        password: str | None,
        password_confirmation: str | None,
        verified: bool = True,
    ) -> User:
        """Create a user and queue an email verification message.

        Raises:
            FieldValidationError: With every problem found, keyed by field.
        """
        email = normalize_email(email)
        errors: dict[str, list[str]] = {}

        problems = email_errors(email)
        if not problems and self._auth_db.get_user_by_email(email) is not None:
            problems = [EMAIL_TAKEN_MESSAGE]
        if problems:
            errors["email"] = problems

        errors.update(
            password_errors(
                password,
                password_confirmation,
                self._config.password_min_length,
                require_confirmation=False,
            )
        )
        if errors:
            raise FieldValidationError(errors)

        try:
            user = self._auth_db.create_user(
                email=email,
                password_digest=hash_password(password, self._config.bcrypt_rounds),
                verified=verified,
            )
        except EmailTakenError:
            raise FieldValidationError.single("email", EMAIL_TAKEN_MESSAGE)

        logger.info(f"User {user.id} registered")
        self._mailer.deliver_email_verification(user)
        return user

    def authenticate(self, email: str | None, password: str | None) -> User | None:
        """Return the user when email and password match, else None.

        Unknown emails and wrong passwords are indistinguishable, in result
        and in timing.
        """
        email = normalize_email(email)
        password = password or ""

        user = self._auth_db.get_user_by_email(email) if email else None
        if user is None:
            burn_password_check(password)
            return None

        if not verify_password(password, user.password_digest):
            return None
        return user

    def sign_in(
        self,
        email: str | None,
        password: str | None,
        context: RequestContext,
    ) -> AuthenticatedUser:
        """Authenticate and open a session for the requesting client.

        Raises:
            InvalidCredentialsError: If email/password do not match.
        """
        user = self.authenticate(email, password)
        if user is None:
            logger.info("Sign-in failed")
            raise InvalidCredentialsError("Invalid email or password")

        session, token = self._session_manager.create_session(
            user.id,
            user_agent=context.user_agent,
            ip_address=context.ip_address,
        )
        return AuthenticatedUser(user=user, session=session, token=token)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def list_sessions(self, user: User) -> list[Session]:
        return self._session_manager.list_sessions(user.id)

    def get_session(self, user: User, session_id: UUID) -> Session:
        return self._session_manager.get_session(user.id, session_id)

    def destroy_session(self, user: User, session_id: UUID) -> None:
        """Sign out one of user's sessions.

        Raises:
            SessionNotFoundError: If absent or owned by someone else.
        """
        session = self._session_manager.get_session(user.id, session_id)
        self._session_manager.revoke_session(session)

    # ------------------------------------------------------------------
    # Email changes and verification
    # ------------------------------------------------------------------

    def update_email(
        self,
        user: User,
        email: str | None,
        password_challenge: str | None,
    ) -> EmailChange:
        """Change user's email behind the password challenge.

        A blank email fails before the challenge is consulted. Submitting
        the current email is a no-op and needs no challenge. A real change
        clears the verified flag and queues a verification message.

        Raises:
            FieldValidationError: On the email field.
            PasswordChallengeError: If the challenge is blank or wrong.
        """
        if email is None or not email.strip():
            raise FieldValidationError.single("email", "is required")

        email = normalize_email(email)
        if email == user.email:
            return EmailChange(user=user, changed=False)

        problems = email_errors(email)
        if problems:
            raise FieldValidationError({"email": problems})

        # Whether an address is registered is only revealed past the challenge.
        check_password_challenge(user, password_challenge)

        if self._auth_db.get_user_by_email(email) is not None:
            raise FieldValidationError.single("email", EMAIL_TAKEN_MESSAGE)

        try:
            updated = self._auth_db.update_user_email(user.id, email)
        except EmailTakenError:
            raise FieldValidationError.single("email", EMAIL_TAKEN_MESSAGE)
        if updated is None:
            raise NotAuthenticatedError("Account no longer exists")

        logger.info(f"User {user.id} changed email")
        self._mailer.deliver_email_verification(updated)
        return EmailChange(user=updated, changed=True)

    def resend_email_verification(self, user: User) -> None:
        """Queue a fresh verification message for user's current email."""
        self._mailer.deliver_email_verification(user)

    def verify_email(self, token: str | None) -> User:
        """Redeem an email verification token and mark its user verified.

        Redeeming an already-redeemed, still-valid token is harmless. The
        write only lands while the address is still the one the token was
        issued for.

        Raises:
            InvalidTokenError: If the token does not redeem, or the address
                changed after redemption.
        """
        user = self._tokens.redeem(TokenPurpose.EMAIL_VERIFICATION, token)
        if user.verified:
            return user
        updated = self._auth_db.mark_verified(user.id, email=user.email)
        if updated is None:
            raise InvalidTokenError("Invalid or expired token")
        return updated

    # ------------------------------------------------------------------
    # Password changes and reset
    # ------------------------------------------------------------------

    def update_password(
        self,
        user: User,
        password: str | None,
        password_confirmation: str | None,
        password_challenge: str | None = None,
        *,
        current_session_id: UUID | None = None,
        require_challenge: bool = True,
    ) -> User:
        """Set a new password, then revoke every other session of the user.

        require_challenge is False only for a freshly redeemed reset token.
        That write is conditional on the digest the token was checked
        against, so one token can set the password at most once.
        current_session_id, when given, survives the revocation.

        Raises:
            FieldValidationError: On password or password_confirmation.
            PasswordChallengeError: If the challenge is required and fails.
            InvalidTokenError: If the digest moved after reset redemption.
        """
        errors = password_errors(
            password,
            password_confirmation,
            self._config.password_min_length,
        )
        if errors:
            raise FieldValidationError(errors)

        if require_challenge:
            check_password_challenge(user, password_challenge)

        digest = hash_password(password, self._config.bcrypt_rounds)
        if require_challenge:
            updated = self._auth_db.update_password_digest(user.id, digest)
            if updated is None:
                raise NotAuthenticatedError("Account no longer exists")
        else:
            updated = self._auth_db.update_password_digest(
                user.id, digest, expected_digest=user.password_digest
            )
            if updated is None:
                raise InvalidTokenError("Invalid or expired token")

        if updated.password_digest != user.password_digest:
            self._session_manager.revoke_other_sessions(user.id, current_session_id)

        logger.info(f"User {user.id} changed password")
        return updated

    def change_password(
        self,
        context: RequestContext,
        password: str | None,
        password_confirmation: str | None,
        password_challenge: str | None,
    ) -> User:
        """Self-service password change from a signed-in session."""
        user = context.require_user()
        return self.update_password(
            user,
            password,
            password_confirmation,
            password_challenge,
            current_session_id=context.session.id if context.session else None,
        )

    def request_password_reset(self, email: str | None) -> None:
        """Queue a reset message if a verified user owns email.

        Raises:
            UserNotVerifiedError: For unknown and unverified emails alike.
        """
        user = self._auth_db.get_user_by_email(normalize_email(email))
        if user is None or not user.verified:
            raise UserNotVerifiedError("User not verified")
        self._mailer.deliver_password_reset(user)

    def check_password_reset_token(self, token: str | None) -> User:
        """Raise InvalidTokenError unless token would redeem right now."""
        return self._tokens.redeem(TokenPurpose.PASSWORD_RESET, token)

    def reset_password(
        self,
        token: str | None,
        password: str | None,
        password_confirmation: str | None,
    ) -> User:
        """Redeem a reset token and set the new password without a challenge.

        All of the user's sessions are revoked.

        Raises:
            InvalidTokenError: If the token does not redeem.
            FieldValidationError: On password or password_confirmation.
        """
        user = self._tokens.redeem(TokenPurpose.PASSWORD_RESET, token)
        return self.update_password(
            user,
            password,
            password_confirmation,
            require_challenge=False,
        )
