"""Tests for SessionManager - persisted session lifecycle."""

import threading
from concurrent.futures import ThreadPoolExecutor
from uuid import uuid4

import pytest

from auth.exceptions import NotAuthenticatedError, SessionNotFoundError


class TestCreateSession:
    """Test session creation."""

    def test_returns_session_and_bearer(self, session_manager, alice):
        """Created session belongs to the user and comes with a bearer value."""
        session, bearer = session_manager.create_session(alice.id)

        assert session.user_id == alice.id
        assert len(bearer) > 20

    def test_captures_client_details(self, session_manager, alice):
        session, _ = session_manager.create_session(
            alice.id, user_agent="Firefox", ip_address="10.0.0.1"
        )

        assert session.user_agent == "Firefox"
        assert session.ip_address == "10.0.0.1"

    def test_sessions_get_distinct_bearers(self, session_manager, alice):
        _, first = session_manager.create_session(alice.id)
        _, second = session_manager.create_session(alice.id)

        assert first != second


class TestValidateSession:
    """Test bearer resolution."""

    def test_valid_bearer_returns_session(self, session_manager, alice):
        created, bearer = session_manager.create_session(alice.id)

        assert session_manager.validate_session(bearer).id == created.id

    @pytest.mark.parametrize("bearer", [None, "", "not-a-bearer", "a.b"])
    def test_garbage_rejected(self, session_manager, bearer):
        with pytest.raises(NotAuthenticatedError):
            session_manager.validate_session(bearer)

    def test_forged_session_id_rejected(self, session_manager, signer, alice):
        """A well-formed bearer for a session that never existed fails."""
        bearer = signer.sign({"sid": str(uuid4())}, "session")
        with pytest.raises(NotAuthenticatedError):
            session_manager.validate_session(bearer)

    def test_non_uuid_sid_rejected(self, session_manager, signer):
        bearer = signer.sign({"sid": "not-a-uuid"}, "session")
        with pytest.raises(NotAuthenticatedError):
            session_manager.validate_session(bearer)

    def test_revoked_session_rejected(self, session_manager, alice):
        """Deleting the row is enough to kill the bearer value."""
        session, bearer = session_manager.create_session(alice.id)
        session_manager.revoke_session(session)

        with pytest.raises(NotAuthenticatedError):
            session_manager.validate_session(bearer)

    def test_resolve_returns_owner(self, session_manager, alice):
        _, bearer = session_manager.create_session(alice.id)
        session, user = session_manager.resolve(bearer)

        assert session.user_id == user.id == alice.id


class TestGetSession:
    """Ownership checks."""

    def test_own_session(self, session_manager, alice):
        session, _ = session_manager.create_session(alice.id)
        assert session_manager.get_session(alice.id, session.id).id == session.id

    def test_other_users_session_not_found(self, session_manager, alice, make_user):
        bob = make_user(email="bob@example.com")
        session, _ = session_manager.create_session(bob.id)

        with pytest.raises(SessionNotFoundError):
            session_manager.get_session(alice.id, session.id)

    def test_missing_session_not_found(self, session_manager, alice):
        with pytest.raises(SessionNotFoundError):
            session_manager.get_session(alice.id, uuid4())


class TestRevokeOtherSessions:
    """Bulk revocation used after a password change."""

    def test_keeps_named_session(self, session_manager, alice):
        keep, _ = session_manager.create_session(alice.id)
        session_manager.create_session(alice.id)
        session_manager.create_session(alice.id)

        revoked = session_manager.revoke_other_sessions(alice.id, keep.id)

        assert revoked == 2
        assert [s.id for s in session_manager.list_sessions(alice.id)] == [keep.id]

    def test_none_revokes_everything(self, session_manager, alice):
        session_manager.create_session(alice.id)
        session_manager.create_session(alice.id)

        assert session_manager.revoke_other_sessions(alice.id, None) == 2
        assert session_manager.list_sessions(alice.id) == []

    def test_other_users_untouched(self, session_manager, alice, make_user):
        bob = make_user(email="bob@example.com")
        bob_session, _ = session_manager.create_session(bob.id)
        session_manager.create_session(alice.id)

        session_manager.revoke_other_sessions(alice.id, None)

        assert [s.id for s in session_manager.list_sessions(bob.id)] == [bob_session.id]


class TestRevocationUnderConcurrency:
    """Readers racing the cascade see it whole or not at all."""

    READERS = 4
    SESSIONS = 50

    def _scan(self, session_manager, bearers, start):
        start.wait()
        outcomes = []
        for bearer in bearers:
            try:
                session_manager.validate_session(bearer)
                outcomes.append(True)
            except NotAuthenticatedError:
                outcomes.append(False)
        return outcomes

    def test_readers_never_observe_partial_cascade(self, session_manager, alice):
        kept, kept_bearer = session_manager.create_session(alice.id)
        bearers = [session_manager.create_session(alice.id)[1] for _ in range(self.SESSIONS)]
        start = threading.Barrier(self.READERS + 1)

        with ThreadPoolExecutor(max_workers=self.READERS) as pool:
            scans = [
                pool.submit(self._scan, session_manager, bearers, start)
                for _ in range(self.READERS)
            ]
            start.wait()
            revoked = session_manager.revoke_other_sessions(alice.id, kept.id)
            results = [scan.result() for scan in scans]

        assert revoked == self.SESSIONS
        for outcomes in results:
            # Once one bearer is rejected, every later one in the scan is too.
            assert outcomes == sorted(outcomes, reverse=True)

        for bearer in bearers:
            with pytest.raises(NotAuthenticatedError):
                session_manager.validate_session(bearer)
        assert session_manager.validate_session(kept_bearer).id == kept.id
