"""Pydantic models for auth domain."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class User(BaseModel):
    """A registered user of the system."""

    id: UUID
    email: str
    password_digest: str = Field(..., exclude=True, repr=False)
    verified: bool = True
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class Session(BaseModel):
    """A persisted, revocable sign-in of one user on one client."""

    id: UUID
    user_id: UUID
    user_agent: str | None = None
    ip_address: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AuthenticatedUser(BaseModel):
    """Result of a successful sign-in."""

    user: User
    session: Session
    token: str = Field(..., description="Bearer value for the new session")


class EmailChange(BaseModel):
    """Result of an email update request."""

    user: User
    changed: bool


# Request bodies. Fields default to None so missing input surfaces as
# field-level validation errors from the service, not as schema errors.


class SignInRequest(BaseModel):
    email: str | None = None
    password: str | None = None


class SignUpRequest(BaseModel):
    email: str | None = None
    password: str | None = None
    password_confirmation: str | None = None


class EmailUpdateRequest(BaseModel):
    email: str | None = None
    password_challenge: str | None = ""


class PasswordUpdateRequest(BaseModel):
    password: str | None = None
    password_confirmation: str | None = None
    password_challenge: str | None = ""


class PasswordResetRequest(BaseModel):
    email: str | None = None


class PasswordResetUpdate(BaseModel):
    sid: str | None = None
    password: str | None = None
    password_confirmation: str | None = None
