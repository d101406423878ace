"""FastAPI application assembly.

create_app wires explicit dependencies and is what tests use.
create_app_from_vault builds the production wiring from Vault secrets.
"""

import logging
from concurrent.futures import Executor
from contextlib import asynccontextmanager

from fastapi import FastAPI

from api.base import success_response
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from auth.api import create_auth_router
from auth.config import AuthConfig
from auth.mailer import UserMailer
from auth.security_middleware import AuthMiddleware
from auth.service import AuthService
from auth.session import SessionManager
from auth.signing import MessageSigner
from auth.tokens import TokenService
from clients.email_client import EmailGatewayClient

logger = logging.getLogger(__name__)


def create_app(
    config: AuthConfig,
    auth_db,
    email_client: EmailGatewayClient,
    executor: Executor | None = None,
) -> FastAPI:
    """Build the app around a storage backend and email client.

    auth_db is an AuthDatabase or InMemoryAuthDatabase.
    """
    signer = MessageSigner(config)
    session_manager = SessionManager(auth_db, signer)
    token_service = TokenService(config, signer, auth_db)
    mailer = UserMailer(config, token_service, email_client, executor=executor)
    auth_service = AuthService(config, auth_db, session_manager, token_service, mailer)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        mailer.shutdown()

    app = FastAPI(title=config.app_name, lifespan=lifespan)
    app.state.auth_service = auth_service
    app.state.mailer = mailer

    register_error_handlers(app)
    # Last added runs first: request id wraps authentication
    app.add_middleware(AuthMiddleware, session_manager=session_manager)
    app.add_middleware(RequestIDMiddleware)

    app.include_router(create_auth_router(auth_service))

    @app.get("/health")
    def health():
        return success_response({"status": "ok"})

    return app


def create_app_from_vault() -> FastAPI:
    """Production app: Postgres storage, gateway email, secrets from Vault."""
    from auth.database import AuthDatabase
    from clients.postgres_client import PostgresClient
    from clients.vault_client import get_database_url, get_email_config, get_secret_key

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = AuthConfig(secret_key=get_secret_key())
    auth_db = AuthDatabase(PostgresClient(get_database_url()))
    email_client = EmailGatewayClient(**get_email_config())

    logger.info("Identity service configured from Vault")
    return create_app(config, auth_db, email_client)
