"""bcrypt password hashing and input checks."""

import bcrypt

# bcrypt only looks at the first 72 bytes; longer input is rejected outright.
MAX_PASSWORD_BYTES = 72

# Compared against when no user matches, so unknown emails cost the same time.
DUMMY_HASH = bcrypt.hashpw(b"dummy-password-for-timing", bcrypt.gensalt(rounds=4))


def hash_password(password: str, rounds: int) -> str:
    """Hash a plaintext password with a fresh salt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_digest: str) -> bool:
    """Check plaintext against a stored digest. False for over-long input."""
    encoded = password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        return False
    return bcrypt.checkpw(encoded, password_digest.encode("utf-8"))


def burn_password_check(password: str) -> None:
    """Spend a bcrypt comparison when there is no user to compare against."""
    bcrypt.checkpw(password.encode("utf-8")[:MAX_PASSWORD_BYTES], DUMMY_HASH)


def password_errors(
    password: str | None,
    password_confirmation: str | None,
    min_length: int,
    require_confirmation: bool = True,
) -> dict[str, list[str]]:
    """Collect field errors for a new password and its confirmation."""
    errors: dict[str, list[str]] = {}

    if not password:
        errors.setdefault("password", []).append("can't be blank")
    else:
        if len(password) < min_length:
            errors.setdefault("password", []).append(
                f"is too short (minimum is {min_length} characters)"
            )
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            errors.setdefault("password", []).append(
                f"is too long (maximum is {MAX_PASSWORD_BYTES} bytes)"
            )

    if require_confirmation and not password_confirmation:
        errors.setdefault("password_confirmation", []).append("can't be blank")
    elif password_confirmation is not None and password_confirmation != password:
        errors.setdefault("password_confirmation", []).append("doesn't match Password")

    return errors
