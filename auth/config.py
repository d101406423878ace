"""Authentication configuration."""

from pydantic import BaseModel, Field


class AuthConfig(BaseModel):
    """
    Authentication configuration.

    Built once at startup and injected into every component that signs or
    verifies tokens. Frozen so no request can mutate the signing secret.
    """

    model_config = {"frozen": True}

    # Signing
    secret_key: str = Field(
        ...,
        description="Process-wide secret used to derive signing keys",
        min_length=32,
    )

    # Purpose-bound token lifetimes
    email_verification_expiry_hours: int = Field(
        default=48,
        description="How long email verification links remain valid",
        ge=1,
        le=168,
    )
    password_reset_expiry_minutes: int = Field(
        default=20,
        description="How long password reset links remain valid",
        ge=5,
        le=60,
    )

    # Passwords
    password_min_length: int = Field(
        default=8,
        description="Minimum password length in characters",
        ge=8,
        le=72,
    )
    bcrypt_rounds: int = Field(
        default=12,
        description="bcrypt cost factor",
        ge=4,
        le=16,
    )

    # Application
    app_base_url: str = Field(
        default="http://localhost:8000",
        description="Base URL for links in outbound email",
    )
    app_name: str = Field(
        default="Identity",
        description="Application name for emails",
    )
