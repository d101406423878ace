"""
JWT signing for bearer values and purpose-bound tokens.

Values are HS256 JWTs signed with the process secret. The audience claim
names the purpose, so a value signed for one purpose never verifies under
another. Expiry, when present, is enforced by PyJWT on decode.
"""

from typing import Any

import jwt

from auth.config import AuthConfig

_ALGORITHM = "HS256"


class BadSignature(Exception):
    """Signed value is malformed, expired, or its signature does not verify."""


class MessageSigner:
    """Sign and verify JWT claims scoped to a purpose."""

    def __init__(self, config: AuthConfig):
        self._secret = config.secret_key

    def sign(self, claims: dict[str, Any], purpose: str) -> str:
        """Encode claims as a JWT whose audience is purpose."""
        return jwt.encode({**claims, "aud": purpose}, self._secret, algorithm=_ALGORITHM)

    def verify(
        self,
        value: str,
        purpose: str,
        required: tuple[str, ...] = (),
    ) -> dict[str, Any]:
        """Return the claims if value was signed for purpose.

        Args:
            value: Encoded JWT.
            purpose: Expected audience.
            required: Claims that must be present besides aud.

        Raises:
            BadSignature: On any malformed, forged, mis-scoped or expired input.
        """
        try:
            claims = jwt.decode(
                value,
                self._secret,
                algorithms=[_ALGORITHM],
                audience=purpose,
                options={"require": ["aud", *required]},
            )
        except jwt.PyJWTError as e:
            raise BadSignature(str(e)) from e
        claims.pop("aud", None)
        return claims
