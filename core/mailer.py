"""
core/mailer.py -- Outbound email delivery.

Two implementations of the same send(message) contract:

  EmailGatewayClient: POSTs the message as JSON to an HTTP email gateway.
      Requests are authenticated with an X-API-Key header and an
      HMAC-SHA256 signature over the exact JSON body (X-Signature).

  LogMailer: writes the message to the log instead of sending it. Used when
      no gateway is configured (local development).

Every failure surfaces as DeliveryError. Callers decide what a failed send
means for their own state; this module never retries.

Layer rule: core/ is the kernel. No imports from api/ or auth/.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from dataclasses import dataclass

import requests

logger = logging.getLogger("tourguard.mailer")


class DeliveryError(Exception):
    """Raised when an email could not be handed to the delivery service."""


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    body: str


class EmailGatewayClient:
    """Send emails via HTTP gateway with HMAC signature verification."""

    def __init__(self, gateway_url: str, api_key: str, hmac_secret: str, timeout: float = 10.0) -> None:
        """
        Args:
            gateway_url: Full URL to the email gateway endpoint
            api_key:     API key for the X-API-Key header
            hmac_secret: Secret for the HMAC-SHA256 signature
            timeout:     Seconds before the HTTP call is abandoned

        Raises:
            ValueError: If any credential is empty
        """
        if not gateway_url:
            raise ValueError("gateway_url is required")
        if not api_key:
            raise ValueError("api_key is required")
        if not hmac_secret:
            raise ValueError("hmac_secret is required")

        self.gateway_url = gateway_url
        self.api_key = api_key
        self.hmac_secret = hmac_secret
        self.timeout = timeout
        self._session = requests.Session()
        self._session.max_redirects = 3

    def _sign(self, payload_json: str) -> str:
        return hmac.new(
            self.hmac_secret.encode("utf-8"),
            payload_json.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def send(self, message: EmailMessage) -> None:
        """Deliver one message through the gateway.

        Raises:
            DeliveryError: connection failure, timeout, a reply that is not a
                JSON object, or a reply that is not a 200 with success=true.
        """
        payload_json = json.dumps(
            {"email": message.to, "subject": message.subject, "body": message.body},
            separators=(",", ":"),
        )
        headers = {
            "Content-Type": "application/json",
            "X-API-Key": self.api_key,
            "X-Signature": self._sign(payload_json),
        }

        try:
            response = self._session.post(self.gateway_url, data=payload_json, headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as exc:
            logger.error("Email gateway connection failed: %s", exc)
            raise DeliveryError(f"Connection failed: {exc}") from exc

        try:
            response_data = response.json()
        except ValueError as exc:
            logger.error("Email gateway returned invalid JSON (HTTP %d)", response.status_code)
            raise DeliveryError("Invalid response from gateway") from exc

        if not isinstance(response_data, dict):
            logger.error("Email gateway returned a non-object reply (HTTP %d)", response.status_code)
            raise DeliveryError("Invalid response from gateway")

        if response.status_code != 200 or not response_data.get("success"):
            error_msg = response_data.get("message", "Unknown error")
            logger.error("Email gateway error (HTTP %d): %s", response.status_code, error_msg)
            raise DeliveryError(f"Gateway error: {error_msg}")

        logger.info("Email sent to %s: %s", message.to, message.subject)

    def close(self) -> None:
        self._session.close()


class LogMailer:
    """Development mailer: logs the message and reports success."""

    def send(self, message: EmailMessage) -> None:
        logger.info("Email to %s\nSubject: %s\n\n%s", message.to, message.subject, message.body)

    def close(self) -> None:
        pass
