"""Tests for auth/passwords.py - bcrypt hashing and password checks."""

from auth.passwords import (
    MAX_PASSWORD_BYTES,
    burn_password_check,
    hash_password,
    password_errors,
    verify_password,
)


class TestHashing:
    """bcrypt hash and verify."""

    def test_verify_matches(self):
        digest = hash_password("secret-password", 4)
        assert verify_password("secret-password", digest)

    def test_verify_rejects_wrong_password(self):
        digest = hash_password("secret-password", 4)
        assert not verify_password("other-password", digest)

    def test_fresh_salt_each_time(self):
        """Same password hashes differently every time."""
        assert hash_password("secret-password", 4) != hash_password("secret-password", 4)

    def test_overlong_password_never_verifies(self):
        """Input past bcrypt's limit is rejected rather than truncated."""
        base = "a" * MAX_PASSWORD_BYTES
        digest = hash_password(base, 4)
        assert not verify_password(base + "extra", digest)

    def test_burn_check_returns_none(self):
        assert burn_password_check("anything") is None


class TestPasswordErrors:
    """password_errors collects field messages."""

    def test_valid_password(self):
        assert password_errors("long-enough", "long-enough", 8) == {}

    def test_blank_password(self):
        errors = password_errors("", "", 8)
        assert errors["password"] == ["can't be blank"]
        assert errors["password_confirmation"] == ["can't be blank"]

    def test_too_short(self):
        errors = password_errors("short", "short", 8)
        assert errors == {"password": ["is too short (minimum is 8 characters)"]}

    def test_too_long(self):
        long_password = "a" * (MAX_PASSWORD_BYTES + 1)
        errors = password_errors(long_password, long_password, 8)
        assert errors == {"password": ["is too long (maximum is 72 bytes)"]}

    def test_multibyte_length_counts_bytes(self):
        """40 two-byte characters exceed the 72-byte limit."""
        password = "é" * 40
        errors = password_errors(password, password, 8)
        assert "password" in errors

    def test_mismatch(self):
        errors = password_errors("long-enough", "different", 8)
        assert errors == {"password_confirmation": ["doesn't match Password"]}

    def test_missing_confirmation_allowed_when_optional(self):
        assert password_errors("long-enough", None, 8, require_confirmation=False) == {}

    def test_mismatch_checked_when_optional(self):
        errors = password_errors("long-enough", "nope", 8, require_confirmation=False)
        assert errors == {"password_confirmation": ["doesn't match Password"]}
