"""Outbound account notifications.

Notifications are fire-and-forget. They are scheduled with
``core.on_commit`` so they only go out once the state change they announce
is durable, and a delivery failure is logged rather than raised.

Two implementations:
- LoggingNotifier: writes the notification to the log (default)
- HttpNotifier: posts a broadcast request to the BFF notification endpoint

The active notifier is chosen from settings on first use and can be
replaced with set_notifier() (tests install a recording notifier).
"""

import logging
from enum import Enum
from typing import Any, Protocol

import requests

from ..config import settings

logger = logging.getLogger(__name__)


class NotificationPurpose(str, Enum):
    STUDENT_REGISTERED = "STUDENT_REGISTERED"
    VERIFICATION_CODE_RESENT = "VERIFICATION_CODE_RESENT"
    STUDENT_VERIFIED = "STUDENT_VERIFIED"


# Email title and body per purpose; bodies are formatted with the payload
TEMPLATES = {
    NotificationPurpose.STUDENT_REGISTERED: (
        "Verify your account",
        "Welcome! Your verification code is {code}. It expires in {ttl_minutes} minutes.",
    ),
    NotificationPurpose.VERIFICATION_CODE_RESENT: (
        "Your new verification code",
        "Your new verification code is {code}. It expires in {ttl_minutes} minutes.",
    ),
    NotificationPurpose.STUDENT_VERIFIED: (
        "Account verified",
        "Your account is verified. Your student code number is {code}.",
    ),
}


class Notifier(Protocol):
    def notify(self, account_id: str, purpose: NotificationPurpose, payload: dict[str, Any]) -> None:
        ...


class LoggingNotifier:
    """Notifier that only records notifications in the log."""

    def notify(self, account_id: str, purpose: NotificationPurpose, payload: dict[str, Any]) -> None:
        logger.info(f"Notification {purpose.value} for account {account_id}")


class HttpNotifier:
    """Notifier that delivers email through the BFF broadcast endpoint."""

    def __init__(
        self,
        base_url: str,
        endpoint: str = "/internal/notifications/broadcast",
        service_token: str = "",
        timeout: float = 5.0,
        session: requests.Session | None = None,
    ):
        self.url = base_url.rstrip("/") + endpoint
        self.service_token = service_token
        self.timeout = timeout
        self.session = session or requests.Session()

    def build_request(
        self,
        account_id: str,
        purpose: NotificationPurpose,
        payload: dict[str, Any]
    ) -> dict[str, Any]:
        """Build the broadcast request body for one notification."""
        title, body = TEMPLATES[purpose]
        return {
            "targetUserIds": [account_id],
            "channels": ["EMAIL"],
            "title": title,
            "body": body.format(**payload),
        }

    def notify(self, account_id: str, purpose: NotificationPurpose, payload: dict[str, Any]) -> None:
        headers = {
            "Content-Type": "application/json",
            settings.service_token_header: self.service_token,
        }
        try:
            response = self.session.post(
                self.url,
                json=self.build_request(account_id, purpose, payload),
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to send {purpose.value} notification for account {account_id}: {e}")
            return

        logger.info(f"Sent {purpose.value} notification for account {account_id}")


_notifier: Notifier | None = None


def get_notifier() -> Notifier:
    """Return the active notifier, creating it from settings on first use."""
    global _notifier
    if _notifier is None:
        if settings.notifier_base_url:
            _notifier = HttpNotifier(
                settings.notifier_base_url,
                endpoint=settings.notifier_endpoint,
                service_token=settings.internal_service_token,
                timeout=settings.notifier_timeout_seconds,
            )
        else:
            _notifier = LoggingNotifier()
    return _notifier


def set_notifier(notifier: Notifier | None) -> None:
    """Replace the active notifier; None re-reads settings on next use."""
    global _notifier
    _notifier = notifier
