"""In-memory user and session storage.

Same interface as AuthDatabase. Every operation holds one lock, so a
multi-row delete is observed either fully or not at all by readers.
Used by the test suite and for local development without PostgreSQL.
"""

import threading
from uuid import UUID, uuid4

from auth.exceptions import EmailTakenError, NotAuthenticatedError
from auth.types import Session, User
from utils.timezone import now_utc


class InMemoryAuthDatabase:
    """Dict-backed store guarded by an RLock."""

    def __init__(self):
        self._users: dict[UUID, User] = {}
        self._user_ids_by_email: dict[str, UUID] = {}
        self._sessions: dict[UUID, Session] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def get_user_by_email(self, email: str) -> User | None:
        with self._lock:
            user_id = self._user_ids_by_email.get(email)
            return self._users.get(user_id) if user_id else None

    def get_user_by_id(self, user_id: UUID) -> User | None:
        with self._lock:
            return self._users.get(user_id)

    def create_user(self, email: str, password_digest: str, verified: bool) -> User:
        with self._lock:
            if email in self._user_ids_by_email:
                raise EmailTakenError(email)
            now = now_utc()
            user = User(
                id=uuid4(),
                email=email,
                password_digest=password_digest,
                verified=verified,
                created_at=now,
                updated_at=now,
            )
            self._users[user.id] = user
            self._user_ids_by_email[email] = user.id
            return user

    def _update_user(self, user_id: UUID, **changes) -> User | None:
        user = self._users.get(user_id)
        if user is None:
            return None
        updated = user.model_copy(update={**changes, "updated_at": now_utc()})
        self._users[user_id] = updated
        return updated

    def update_user_email(self, user_id: UUID, email: str) -> User | None:
        with self._lock:
            owner = self._user_ids_by_email.get(email)
            if owner is not None and owner != user_id:
                raise EmailTakenError(email)
            user = self._users.get(user_id)
            if user is None:
                return None
            del self._user_ids_by_email[user.email]
            self._user_ids_by_email[email] = user_id
            return self._update_user(user_id, email=email, verified=False)

    def update_password_digest(
        self,
        user_id: UUID,
        password_digest: str,
        expected_digest: str | None = None,
    ) -> User | None:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            if expected_digest is not None and user.password_digest != expected_digest:
                return None
            return self._update_user(user_id, password_digest=password_digest)

    def mark_verified(self, user_id: UUID, email: str | None = None) -> User | None:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            if email is not None and user.email != email:
                return None
            return self._update_user(user_id, verified=True)

    def delete_user(self, user_id: UUID) -> bool:
        with self._lock:
            user = self._users.pop(user_id, None)
            if user is None:
                return False
            del self._user_ids_by_email[user.email]
            self.delete_sessions_except(user_id, None)
            return True

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(
        self,
        user_id: UUID,
        user_agent: str | None,
        ip_address: str | None,
    ) -> Session:
        with self._lock:
            if user_id not in self._users:
                raise NotAuthenticatedError("Account no longer exists")
            now = now_utc()
            session = Session(
                id=uuid4(),
                user_id=user_id,
                user_agent=user_agent,
                ip_address=ip_address,
                created_at=now,
                updated_at=now,
            )
            self._sessions[session.id] = session
            return session

    def get_session(self, session_id: UUID) -> Session | None:
        with self._lock:
            return self._sessions.get(session_id)

    def get_user_session(self, user_id: UUID, session_id: UUID) -> Session | None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or session.user_id != user_id:
                return None
            return session

    def list_sessions(self, user_id: UUID) -> list[Session]:
        with self._lock:
            # Reverse insertion order first so equal timestamps stay newest first.
            owned = [s for s in reversed(self._sessions.values()) if s.user_id == user_id]
            return sorted(owned, key=lambda s: s.created_at, reverse=True)

    def delete_session(self, session_id: UUID) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def delete_sessions_except(self, user_id: UUID, keep_session_id: UUID | None) -> int:
        with self._lock:
            doomed = [
                session_id
                for session_id, session in self._sessions.items()
                if session.user_id == user_id and session_id != keep_session_id
            ]
            for session_id in doomed:
                del self._sessions[session_id]
            return len(doomed)
