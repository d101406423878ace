"""Tests for InMemoryAuthDatabase - the dict-backed store."""

import threading
from concurrent.futures import ThreadPoolExecutor
from uuid import uuid4

import pytest

from auth.exceptions import EmailTakenError, NotAuthenticatedError


class TestUsers:

    def test_create_and_lookup(self, auth_db):
        user = auth_db.create_user("a@example.com", "digest", verified=False)

        assert auth_db.get_user_by_email("a@example.com").id == user.id
        assert auth_db.get_user_by_id(user.id).verified is False

    def test_duplicate_email_rejected(self, auth_db):
        auth_db.create_user("a@example.com", "digest", verified=True)
        with pytest.raises(EmailTakenError):
            auth_db.create_user("a@example.com", "digest", verified=True)

    def test_email_update_clears_verified(self, auth_db):
        user = auth_db.create_user("a@example.com", "digest", verified=True)
        updated = auth_db.update_user_email(user.id, "b@example.com")

        assert updated.email == "b@example.com"
        assert updated.verified is False
        assert auth_db.get_user_by_email("a@example.com") is None
        assert auth_db.get_user_by_email("b@example.com").id == user.id

    def test_email_update_to_taken_email_rejected(self, auth_db):
        user = auth_db.create_user("a@example.com", "digest", verified=True)
        auth_db.create_user("b@example.com", "digest", verified=True)

        with pytest.raises(EmailTakenError):
            auth_db.update_user_email(user.id, "b@example.com")

    def test_update_missing_user_returns_none(self, auth_db):
        assert auth_db.update_password_digest(uuid4(), "digest") is None
        assert auth_db.mark_verified(uuid4()) is None

    def test_updates_bump_updated_at(self, auth_db):
        user = auth_db.create_user("a@example.com", "digest", verified=False)
        updated = auth_db.mark_verified(user.id)

        assert updated.verified is True
        assert updated.updated_at >= user.updated_at

    def test_delete_user_cascades_to_sessions(self, auth_db):
        user = auth_db.create_user("a@example.com", "digest", verified=True)
        session = auth_db.create_session(user.id, None, None)

        assert auth_db.delete_user(user.id) is True
        assert auth_db.get_session(session.id) is None
        assert auth_db.get_user_by_email("a@example.com") is None

    def test_delete_missing_user(self, auth_db):
        assert auth_db.delete_user(uuid4()) is False


class TestSessions:

    def test_create_for_unknown_user_rejected(self, auth_db):
        """Same typed error as the SQL store's foreign key violation."""
        with pytest.raises(NotAuthenticatedError):
            auth_db.create_session(uuid4(), None, None)

    def test_list_newest_first(self, auth_db):
        user = auth_db.create_user("a@example.com", "digest", verified=True)
        first = auth_db.create_session(user.id, None, None)
        second = auth_db.create_session(user.id, None, None)
        third = auth_db.create_session(user.id, None, None)

        assert [s.id for s in auth_db.list_sessions(user.id)] == [third.id, second.id, first.id]

    def test_get_user_session_checks_owner(self, auth_db):
        owner = auth_db.create_user("a@example.com", "digest", verified=True)
        other = auth_db.create_user("b@example.com", "digest", verified=True)
        session = auth_db.create_session(owner.id, None, None)

        assert auth_db.get_user_session(owner.id, session.id).id == session.id
        assert auth_db.get_user_session(other.id, session.id) is None

    def test_delete_session_twice(self, auth_db):
        user = auth_db.create_user("a@example.com", "digest", verified=True)
        session = auth_db.create_session(user.id, None, None)

        assert auth_db.delete_session(session.id) is True
        assert auth_db.delete_session(session.id) is False


class TestConditionalWrites:

    def test_password_write_requires_expected_digest(self, auth_db):
        user = auth_db.create_user("a@example.com", "old-digest", verified=True)

        assert auth_db.update_password_digest(user.id, "new", expected_digest="stale") is None
        assert auth_db.get_user_by_id(user.id).password_digest == "old-digest"

        updated = auth_db.update_password_digest(user.id, "new", expected_digest="old-digest")
        assert updated.password_digest == "new"

    def test_mark_verified_requires_current_email(self, auth_db):
        user = auth_db.create_user("a@example.com", "digest", verified=False)
        auth_db.update_user_email(user.id, "b@example.com")

        assert auth_db.mark_verified(user.id, email="a@example.com") is None
        assert auth_db.get_user_by_id(user.id).verified is False
        assert auth_db.mark_verified(user.id, email="b@example.com").verified is True

    def test_racing_password_writes_from_same_read_one_wins(self, auth_db):
        user = auth_db.create_user("a@example.com", "old-digest", verified=True)
        writers = 8
        start = threading.Barrier(writers)

        def write(n):
            start.wait()
            return auth_db.update_password_digest(user.id, f"new-{n}", expected_digest="old-digest")

        with ThreadPoolExecutor(max_workers=writers) as pool:
            results = list(pool.map(write, range(writers)))

        winners = [result for result in results if result is not None]
        assert len(winners) == 1
        assert auth_db.get_user_by_id(user.id).password_digest == winners[0].password_digest
