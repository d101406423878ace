"""Database operations for users and sessions.

Tables: users, sessions (see schema.sql). sessions.user_id references
users.id with ON DELETE CASCADE.
"""

from uuid import UUID

from psycopg2 import errors as pg_errors

from clients.postgres_client import PostgresClient
from auth.exceptions import EmailTakenError, NotAuthenticatedError
from auth.types import Session, User
from utils.timezone import to_utc

_USER_COLUMNS = "id, email, password_digest, verified, created_at, updated_at"
_SESSION_COLUMNS = "id, user_id, user_agent, ip_address, created_at, updated_at"


def _as_uuid(value) -> UUID:
    return UUID(value) if isinstance(value, str) else value


def _user_from_row(row: dict) -> User:
    return User(
        id=_as_uuid(row["id"]),
        email=row["email"],
        password_digest=row["password_digest"],
        verified=row["verified"],
        created_at=to_utc(row["created_at"]),
        updated_at=to_utc(row["updated_at"]),
    )


def _session_from_row(row: dict) -> Session:
    return Session(
        id=_as_uuid(row["id"]),
        user_id=_as_uuid(row["user_id"]),
        user_agent=row["user_agent"],
        ip_address=str(row["ip_address"]) if row["ip_address"] else None,
        created_at=to_utc(row["created_at"]),
        updated_at=to_utc(row["updated_at"]),
    )


class AuthDatabase:
    """PostgreSQL-backed user and session storage."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def get_user_by_email(self, email: str) -> User | None:
        """Find user by normalized email."""
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE email = %s",
            (email,),
        )
        return _user_from_row(row) if row else None

    def get_user_by_id(self, user_id: UUID) -> User | None:
        """Find user by ID."""
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = %s",
            (user_id,),
        )
        return _user_from_row(row) if row else None

    def create_user(self, email: str, password_digest: str, verified: bool) -> User:
        """Insert a user.

        Raises:
            EmailTakenError: If the email is already registered.
        """
        try:
            rows = self._db.execute_returning(
                f"""INSERT INTO users (email, password_digest, verified)
                    VALUES (%s, %s, %s)
                    RETURNING {_USER_COLUMNS}""",
                (email, password_digest, verified),
            )
        except pg_errors.UniqueViolation:
            raise EmailTakenError(email)
        return _user_from_row(rows[0])

    def update_user_email(self, user_id: UUID, email: str) -> User | None:
        """Change email and clear the verified flag in one statement.

        Raises:
            EmailTakenError: If another user already has the email.
        """
        try:
            rows = self._db.execute_returning(
                f"""UPDATE users
                    SET email = %s, verified = false, updated_at = now()
                    WHERE id = %s
                    RETURNING {_USER_COLUMNS}""",
                (email, user_id),
            )
        except pg_errors.UniqueViolation:
            raise EmailTakenError(email)
        return _user_from_row(rows[0]) if rows else None

    def update_password_digest(
        self,
        user_id: UUID,
        password_digest: str,
        expected_digest: str | None = None,
    ) -> User | None:
        """Store a new password digest.

        With expected_digest, the row is only written while its digest still
        equals it, so two writers racing from the same read cannot both win.

        Returns:
            Updated user, or None if the user is gone or the digest moved.
        """
        query = """UPDATE users
                   SET password_digest = %s, updated_at = now()
                   WHERE id = %s"""
        params = [password_digest, user_id]
        if expected_digest is not None:
            query += " AND password_digest = %s"
            params.append(expected_digest)
        rows = self._db.execute_returning(
            f"{query} RETURNING {_USER_COLUMNS}",
            tuple(params),
        )
        return _user_from_row(rows[0]) if rows else None

    def mark_verified(self, user_id: UUID, email: str | None = None) -> User | None:
        """Set verified = true, only while the address is still email if given."""
        query = """UPDATE users
                   SET verified = true, updated_at = now()
                   WHERE id = %s"""
        params = [user_id]
        if email is not None:
            query += " AND email = %s"
            params.append(email)
        rows = self._db.execute_returning(
            f"{query} RETURNING {_USER_COLUMNS}",
            tuple(params),
        )
        return _user_from_row(rows[0]) if rows else None

    def delete_user(self, user_id: UUID) -> bool:
        """Permanently delete user; sessions go with it via the foreign key.

        Returns:
            True if user was found and deleted, False if not found.
        """
        rows = self._db.execute_returning(
            "DELETE FROM users WHERE id = %s RETURNING id",
            (user_id,),
        )
        return len(rows) > 0

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(
        self,
        user_id: UUID,
        user_agent: str | None,
        ip_address: str | None,
    ) -> Session:
        """Insert a session row for user.

        Raises:
            NotAuthenticatedError: If the user no longer exists.
        """
        try:
            rows = self._db.execute_returning(
                f"""INSERT INTO sessions (user_id, user_agent, ip_address)
                    VALUES (%s, %s, %s)
                    RETURNING {_SESSION_COLUMNS}""",
                (user_id, user_agent, ip_address),
            )
        except pg_errors.ForeignKeyViolation:
            raise NotAuthenticatedError("Account no longer exists")
        return _session_from_row(rows[0])

    def get_session(self, session_id: UUID) -> Session | None:
        """Find session by ID."""
        row = self._db.execute_single(
            f"SELECT {_SESSION_COLUMNS} FROM sessions WHERE id = %s",
            (session_id,),
        )
        return _session_from_row(row) if row else None

    def get_user_session(self, user_id: UUID, session_id: UUID) -> Session | None:
        """Find session by ID, only if owned by user."""
        row = self._db.execute_single(
            f"SELECT {_SESSION_COLUMNS} FROM sessions WHERE id = %s AND user_id = %s",
            (session_id, user_id),
        )
        return _session_from_row(row) if row else None

    def list_sessions(self, user_id: UUID) -> list[Session]:
        """All sessions for user, newest first."""
        rows = self._db.execute(
            f"""SELECT {_SESSION_COLUMNS} FROM sessions
                WHERE user_id = %s
                ORDER BY created_at DESC, id DESC""",
            (user_id,),
        )
        return [_session_from_row(row) for row in rows]

    def delete_session(self, session_id: UUID) -> bool:
        """Delete one session. Returns False if it was already gone."""
        rows = self._db.execute_returning(
            "DELETE FROM sessions WHERE id = %s RETURNING id",
            (session_id,),
        )
        return len(rows) > 0

    def delete_sessions_except(self, user_id: UUID, keep_session_id: UUID | None) -> int:
        """Delete every session of user except keep_session_id, in one statement.

        Returns:
            Number of sessions deleted.
        """
        if keep_session_id is None:
            rows = self._db.execute_returning(
                "DELETE FROM sessions WHERE user_id = %s RETURNING id",
                (user_id,),
            )
        else:
            rows = self._db.execute_returning(
                "DELETE FROM sessions WHERE user_id = %s AND id <> %s RETURNING id",
                (user_id, keep_session_id),
            )
        return len(rows)
