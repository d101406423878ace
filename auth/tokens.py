"""
Purpose-bound, self-invalidating tokens for out-of-band flows.

A token names a user, a purpose, an expiry, and a digest of a snapshot of
mutable user state taken at issuance. Redemption recomputes the snapshot
from the current user; once that state changes every outstanding token for
the purpose stops working, with no server-side record of issued tokens.

Snapshots per purpose:
- email_verification: the current email address
- password_reset: the last 10 characters of the current password digest
"""

import hashlib
import hmac
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Callable
from uuid import UUID

from auth.config import AuthConfig
from auth.exceptions import InvalidTokenError
from auth.signing import BadSignature, MessageSigner
from auth.types import User
from utils.timezone import now_utc

PASSWORD_SNAPSHOT_LENGTH = 10


class TokenPurpose(str, Enum):
    """Closed set of out-of-band flows that may mint tokens."""

    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"


@dataclass(frozen=True)
class TokenPolicy:
    """Lifetime and state binding for one purpose."""

    lifetime: timedelta
    snapshot: Callable[[User], str]


def _email_snapshot(user: User) -> str:
    return user.email


def _password_snapshot(user: User) -> str:
    return user.password_digest[-PASSWORD_SNAPSHOT_LENGTH:]


def build_policies(config: AuthConfig) -> dict[TokenPurpose, TokenPolicy]:
    """One policy per purpose. Every TokenPurpose must appear here."""
    return {
        TokenPurpose.EMAIL_VERIFICATION: TokenPolicy(
            lifetime=timedelta(hours=config.email_verification_expiry_hours),
            snapshot=_email_snapshot,
        ),
        TokenPurpose.PASSWORD_RESET: TokenPolicy(
            lifetime=timedelta(minutes=config.password_reset_expiry_minutes),
            snapshot=_password_snapshot,
        ),
    }


class TokenService:
    """Issue and redeem purpose-bound tokens.

    Redemption only identifies the user; applying the effect (marking
    verified, allowing a password change) is the caller's job.
    """

    def __init__(self, config: AuthConfig, signer: MessageSigner, auth_db):
        self._signer = signer
        self._auth_db = auth_db
        self._policies = build_policies(config)

        missing = set(TokenPurpose) - set(self._policies)
        if missing:
            raise ValueError(
                f"No token policy for: {', '.join(sorted(p.value for p in missing))}"
            )

    def _digest(self, purpose: TokenPurpose, user: User) -> str:
        snapshot = self._policies[purpose].snapshot(user)
        return hashlib.sha256(snapshot.encode("utf-8")).hexdigest()

    def _signing_purpose(self, purpose: TokenPurpose) -> str:
        return f"token:{purpose.value}"

    def issue(self, purpose: TokenPurpose, user: User) -> str:
        """Mint a token for user, valid for the purpose's lifetime from now."""
        claims = {
            "sub": str(user.id),
            "snap": self._digest(purpose, user),
            "exp": now_utc() + self._policies[purpose].lifetime,
        }
        return self._signer.sign(claims, self._signing_purpose(purpose))

    def redeem(self, purpose: TokenPurpose, token: str | None) -> User:
        """Return the user the token was issued to, if it is still valid.

        Raises:
            InvalidTokenError: For any signature, purpose, expiry, user, or
                snapshot failure. The cause is not distinguished.
        """
        if not token:
            raise InvalidTokenError("Invalid or expired token")

        try:
            claims = self._signer.verify(
                token,
                self._signing_purpose(purpose),
                required=("exp", "sub"),
            )
            user_id = UUID(str(claims["sub"]))
        except (BadSignature, ValueError):
            raise InvalidTokenError("Invalid or expired token")

        user = self._auth_db.get_user_by_id(user_id)
        if user is None:
            raise InvalidTokenError("Invalid or expired token")

        embedded = claims.get("snap")
        if not isinstance(embedded, str) or not hmac.compare_digest(
            embedded, self._digest(purpose, user)
        ):
            raise InvalidTokenError("Invalid or expired token")

        return user
