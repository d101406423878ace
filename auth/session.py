"""Session lifecycle management.

Sessions are rows in the sessions table. The bearer value handed to the
client is the session id signed with the process secret; it carries no
other state. Deleting the row is enough to invalidate every bearer value
ever derived from it.
"""

import logging
from uuid import UUID

from auth.exceptions import NotAuthenticatedError, SessionNotFoundError
from auth.signing import BadSignature, MessageSigner
from auth.types import Session, User

logger = logging.getLogger(__name__)

_SIGNING_PURPOSE = "session"


class SessionManager:
    """Create, resolve, list and revoke persisted sessions."""

    def __init__(self, auth_db, signer: MessageSigner):
        self._auth_db = auth_db
        self._signer = signer

    def bearer_for(self, session: Session) -> str:
        """Signed bearer value naming session."""
        return self._signer.sign({"sid": str(session.id)}, _SIGNING_PURPOSE)

    def create_session(
        self,
        user_id: UUID,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> tuple[Session, str]:
        """Persist a new session capturing the requester's client details.

        Returns:
            Tuple of (session, bearer value)
        """
        session = self._auth_db.create_session(user_id, user_agent, ip_address)
        logger.info(f"Session {session.id} created for user {user_id}")
        return session, self.bearer_for(session)

    def validate_session(self, bearer: str | None) -> Session:
        """Resolve a bearer value to its live session.

        Raises:
            NotAuthenticatedError: If the value is missing, malformed, badly
                signed, or the session no longer exists.
        """
        if not bearer:
            raise NotAuthenticatedError("Authentication required")

        try:
            payload = self._signer.verify(bearer, _SIGNING_PURPOSE, required=("sid",))
            session_id = UUID(str(payload.get("sid")))
        except (BadSignature, ValueError):
            raise NotAuthenticatedError("Invalid session token")

        session = self._auth_db.get_session(session_id)
        if session is None:
            raise NotAuthenticatedError("Session not found")
        return session

    def resolve(self, bearer: str | None) -> tuple[Session, User]:
        """Resolve a bearer value to its session and owning user.

        Raises:
            NotAuthenticatedError: As validate_session, or if the owner
                was deleted mid-request.
        """
        session = self.validate_session(bearer)
        user = self._auth_db.get_user_by_id(session.user_id)
        if user is None:
            raise NotAuthenticatedError("Session not found")
        return session, user

    def list_sessions(self, user_id: UUID) -> list[Session]:
        """Sessions owned by user, newest first."""
        return self._auth_db.list_sessions(user_id)

    def get_session(self, user_id: UUID, session_id: UUID) -> Session:
        """Fetch one of user's sessions.

        Raises:
            SessionNotFoundError: If absent or owned by another user.
        """
        session = self._auth_db.get_user_session(user_id, session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        return session

    def revoke_session(self, session: Session) -> None:
        """Delete the session (sign-out).

        Safe to call for a session that is already gone.
        """
        self._auth_db.delete_session(session.id)
        logger.info(f"Session {session.id} revoked")

    def revoke_other_sessions(self, user_id: UUID, keep_session_id: UUID | None) -> int:
        """Delete all of user's sessions except keep_session_id, atomically.

        With keep_session_id None every session goes.

        Returns:
            Number of sessions revoked.
        """
        revoked = self._auth_db.delete_sessions_except(user_id, keep_session_id)
        logger.info(f"Revoked {revoked} session(s) for user {user_id}")
        return revoked
