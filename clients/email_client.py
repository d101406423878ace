"""
Email gateway client for account emails.

Posts JSON to an HTTP gateway. Each request carries an API key and an
HMAC-SHA256 signature of the exact body bytes.
"""

import hashlib
import hmac
import json
import logging

import requests

logger = logging.getLogger(__name__)

VALID_SENDERS = ("auth", "system")


class EmailGatewayError(Exception):
    """Raised when email gateway request fails."""


class EmailGatewayClient:
    """Send emails via HTTP gateway with HMAC signature verification."""

    def __init__(self, gateway_url: str, api_key: str, hmac_secret: str, timeout: float = 10):
        """
        Args:
            gateway_url: Full URL to the email gateway endpoint
            api_key: API key for X-API-Key header
            hmac_secret: Secret for HMAC-SHA256 signature
            timeout: Seconds before the HTTP request is abandoned

        Raises:
            ValueError: If any credential is empty
        """
        for name, value in (
            ("gateway_url", gateway_url),
            ("api_key", api_key),
            ("hmac_secret", hmac_secret),
        ):
            if not value:
                raise ValueError(f"{name} is required")

        self.gateway_url = gateway_url
        self.api_key = api_key
        self.hmac_secret = hmac_secret
        self.timeout = timeout

    def sign(self, body: str) -> str:
        """Hex HMAC-SHA256 of body under the gateway secret."""
        return hmac.new(
            self.hmac_secret.encode("utf-8"),
            body.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def _post(self, payload: dict) -> None:
        """
        Sign payload and post it to the gateway.

        Raises:
            EmailGatewayError: On connection failure, bad JSON, or a
                non-success reply.
        """
        body = json.dumps(payload, separators=(",", ":"))
        headers = {
            "Content-Type": "application/json",
            "X-API-Key": self.api_key,
            "X-Signature": self.sign(body),
        }

        try:
            response = requests.post(
                self.gateway_url,
                data=body,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Email gateway connection failed: {e}")
            raise EmailGatewayError(f"Connection failed: {e}")

        try:
            reply = response.json()
        except ValueError:
            logger.error(f"Email gateway returned invalid JSON (status {response.status_code})")
            raise EmailGatewayError("Invalid response from gateway")

        if response.status_code != 200 or not reply.get("success"):
            error_msg = reply.get("message", "Unknown error")
            logger.error(f"Email gateway error: {error_msg}")
            raise EmailGatewayError(f"Gateway error: {error_msg}")

    def send_email(self, to: str, subject: str, body: str, sender: str = "auth") -> None:
        """
        Send a plain-text email.

        Args:
            to: Recipient email address
            subject: Subject line
            body: Plain text body
            sender: Sender identity, "auth" or "system"

        Raises:
            ValueError: If sender is invalid
            EmailGatewayError: On gateway failure
        """
        if sender not in VALID_SENDERS:
            raise ValueError(f"sender must be one of {VALID_SENDERS}, got '{sender}'")

        self._post({
            "type": "custom",
            "email": to,
            "subject": subject,
            "body": body,
            "sender": sender,
        })
        logger.info(f"Email sent: {subject}")
