"""Account emails: verification and password reset links.

Tokens are minted when a message is queued, so the link binds to the
user's state at that moment. Delivery runs on a worker pool and never
blocks or fails the request that queued it.
"""

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from urllib.parse import urlencode

from auth.config import AuthConfig
from auth.tokens import TokenPurpose, TokenService
from auth.types import User
from clients.email_client import EmailGatewayClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccountEmail:
    """A rendered message ready for the gateway."""

    to: str
    subject: str
    body: str


class UserMailer:
    """Render and queue account emails."""

    def __init__(
        self,
        config: AuthConfig,
        token_service: TokenService,
        email_client: EmailGatewayClient,
        executor: Executor | None = None,
    ):
        self._config = config
        self._tokens = token_service
        self._email_client = email_client
        self._executor = executor or ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="mailer"
        )

    def _link(self, path: str, token: str) -> str:
        base = self._config.app_base_url.rstrip("/")
        return f"{base}{path}?{urlencode({'sid': token})}"

    def email_verification(self, user: User) -> AccountEmail:
        """Render the 'Verify your email' message for user's current email."""
        token = self._tokens.issue(TokenPurpose.EMAIL_VERIFICATION, user)
        link = self._link("/identity/email_verification", token)
        hours = self._config.email_verification_expiry_hours
        body = (
            f"Hey there,\n\n"
            f"This is to confirm that {user.email} is the email you want to use "
            f"on your {self._config.app_name} account.\n\n"
            f"Yes, use this email for my account:\n{link}\n\n"
            f"This link expires in {hours} hours."
        )
        return AccountEmail(to=user.email, subject="Verify your email", body=body)

    def password_reset(self, user: User) -> AccountEmail:
        """Render the 'Reset your password' message."""
        token = self._tokens.issue(TokenPurpose.PASSWORD_RESET, user)
        link = self._link("/identity/password_reset/edit", token)
        minutes = self._config.password_reset_expiry_minutes
        body = (
            f"Hey there,\n\n"
            f"Can't remember your password for {user.email}? That's OK, it happens. "
            f"Just follow the link below to set a new one.\n\n"
            f"Reset my password:\n{link}\n\n"
            f"This link expires in {minutes} minutes. If you did not ask for a "
            f"password reset, you can ignore this email."
        )
        return AccountEmail(to=user.email, subject="Reset your password", body=body)

    def deliver_later(self, message: AccountEmail) -> Future:
        """Queue message for delivery. Failures are logged, not raised."""
        return self._executor.submit(self._deliver, message)

    def _deliver(self, message: AccountEmail) -> None:
        try:
            self._email_client.send_email(
                to=message.to,
                subject=message.subject,
                body=message.body,
                sender="auth",
            )
        except Exception:
            logger.exception(f"Delivery failed for '{message.subject}'")

    def deliver_email_verification(self, user: User) -> Future:
        return self.deliver_later(self.email_verification(user))

    def deliver_password_reset(self, user: User) -> Future:
        return self.deliver_later(self.password_reset(user))

    def shutdown(self) -> None:
        """Wait for queued deliveries and stop the worker pool."""
        self._executor.shutdown(wait=True)
