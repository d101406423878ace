"""Password challenge: re-entry of the current password before a sensitive change."""

from auth.exceptions import PasswordChallengeError
from auth.passwords import verify_password
from auth.types import User


def check_password_challenge(user: User, supplied_password: str | None) -> None:
    """Pass silently if supplied_password matches the user's current password.

    Raises:
        PasswordChallengeError: reason "required" when blank or absent,
            reason "invalid" when it does not match.
    """
    if supplied_password is None or not supplied_password.strip():
        raise PasswordChallengeError("required")

    if not verify_password(supplied_password, user.password_digest):
        raise PasswordChallengeError("invalid")
