"""Typed exceptions for auth failures."""


class AuthError(Exception):
    """Base class for authentication/authorization errors."""


class FieldValidationError(AuthError):
    """
    User-correctable input problems, keyed by field.

    errors maps a field name to its list of messages, e.g.
    {"email": ["has already been taken"]}.
    """

    def __init__(self, errors: dict[str, list[str]]):
        self.errors = errors
        summary = "; ".join(
            f"{field} {message}"
            for field, messages in errors.items()
            for message in messages
        )
        super().__init__(summary or "Validation failed")

    @classmethod
    def single(cls, field: str, message: str) -> "FieldValidationError":
        return cls({field: [message]})


class PasswordChallengeError(FieldValidationError):
    """
    Password challenge was missing or wrong.

    reason is "required" or "invalid"; both are reported to the user
    on the password_challenge field.
    """

    FIELD = "password_challenge"
    MESSAGES = {
        "required": "is required",
        "invalid": "is invalid",
    }

    def __init__(self, reason: str):
        if reason not in self.MESSAGES:
            raise ValueError(f"Unknown challenge failure reason: {reason}")
        self.reason = reason
        super().__init__({self.FIELD: [self.MESSAGES[reason]]})


class EmailTakenError(AuthError):
    """Email already belongs to another user (unique constraint)."""


class InvalidTokenError(AuthError):
    """
    Purpose-bound token failed verification.

    Raised for bad signature, wrong purpose, expiry, stale state, or a
    vanished user. The reason is deliberately not carried.
    """


class InvalidCredentialsError(AuthError):
    """Email/password pair did not match. Never says which half was wrong."""


class NotAuthenticatedError(AuthError):
    """Bearer value missing, malformed, badly signed, or its session is gone."""


class SessionNotFoundError(AuthError):
    """
    Session does not exist or belongs to someone else.

    The two cases are indistinguishable to callers.
    """


class UserNotVerifiedError(AuthError):
    """
    No verified user with that email.

    Covers unknown emails too, so the response never reveals which.
    """
