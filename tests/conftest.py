"""Shared test fixtures for the identity service test suite."""

import re
from concurrent.futures import Executor, Future
from unittest.mock import Mock
from urllib.parse import unquote

import pytest
from fastapi.testclient import TestClient

from app import create_app
from auth.config import AuthConfig
from auth.mailer import UserMailer
from auth.memory import InMemoryAuthDatabase
from auth.passwords import hash_password
from auth.service import AuthService
from auth.session import SessionManager
from auth.signing import MessageSigner
from auth.tokens import TokenService
from clients.email_client import EmailGatewayClient


# =============================================================================
# TEST CONSTANTS
# =============================================================================

TEST_SECRET = "test-secret-key-that-is-at-least-32-characters"
TEST_PASSWORD = "correct-horse-battery"

ALICE_EMAIL = "alice@example.com"
BOB_EMAIL = "bob@example.com"


class ImmediateExecutor(Executor):
    """Runs submitted work inline so deliveries finish before asserts."""

    def submit(self, fn, /, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except BaseException as e:
            future.set_exception(e)
        return future


# =============================================================================
# CORE FIXTURES
# =============================================================================


@pytest.fixture
def config() -> AuthConfig:
    """Config with cheap bcrypt so the suite stays fast."""
    return AuthConfig(
        secret_key=TEST_SECRET,
        bcrypt_rounds=4,
        app_base_url="https://id.example.com",
        app_name="Example",
    )


@pytest.fixture
def auth_db() -> InMemoryAuthDatabase:
    """Fresh in-memory store per test."""
    return InMemoryAuthDatabase()


@pytest.fixture
def signer(config) -> MessageSigner:
    return MessageSigner(config)


@pytest.fixture
def session_manager(auth_db, signer) -> SessionManager:
    return SessionManager(auth_db, signer)


@pytest.fixture
def token_service(config, signer, auth_db) -> TokenService:
    return TokenService(config, signer, auth_db)


@pytest.fixture
def email_client():
    """Gateway double; inspect send_email.call_args for delivered mail."""
    return Mock(spec=EmailGatewayClient)


@pytest.fixture
def mailer(config, token_service, email_client) -> UserMailer:
    return UserMailer(config, token_service, email_client, executor=ImmediateExecutor())


@pytest.fixture
def auth_service(config, auth_db, session_manager, token_service, mailer) -> AuthService:
    return AuthService(config, auth_db, session_manager, token_service, mailer)


# =============================================================================
# DATA HELPERS
# =============================================================================


@pytest.fixture
def make_user(auth_db, config):
    """Factory creating users directly in the store (no emails sent)."""

    def _make(email: str = ALICE_EMAIL, password: str = TEST_PASSWORD, verified: bool = True):
        return auth_db.create_user(
            email=email,
            password_digest=hash_password(password, config.bcrypt_rounds),
            verified=verified,
        )

    return _make


@pytest.fixture
def password() -> str:
    """Password every make_user() user starts with."""
    return TEST_PASSWORD


@pytest.fixture
def alice(make_user):
    """Verified user with TEST_PASSWORD."""
    return make_user()


@pytest.fixture
def last_link_token(email_client):
    """Return the sid token from the most recent email sent to the gateway."""

    def _extract(subject: str | None = None) -> str:
        calls = email_client.send_email.call_args_list
        if subject is not None:
            calls = [c for c in calls if c.kwargs["subject"] == subject]
        assert calls, "no matching email was sent"
        match = re.search(r"[?&]sid=([^\s&]+)", calls[-1].kwargs["body"])
        assert match, "email body has no sid link"
        return unquote(match.group(1))

    return _extract


# =============================================================================
# HTTP FIXTURES
# =============================================================================


@pytest.fixture
def client(config, auth_db, email_client):
    """TestClient over the full app with in-memory storage."""
    application = create_app(config, auth_db, email_client, executor=ImmediateExecutor())
    with TestClient(application) as test_client:
        yield test_client
