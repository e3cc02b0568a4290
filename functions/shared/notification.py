"""
Error Notification
==================

Formats and sends alert emails to the configured administrators.

Body layout::

    An automated process encountered an error.

    Error:
    <error text>

    Original JSON Payload:
    <payload>            (only when a payload is given)

Sending is fire-and-forget: a missing recipient list or mail transport only
produces a log entry, and nothing here raises for delivery problems.
"""

import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Protocol, Union

from .helpers import format_payload_for_email, parse_recipients
from .power_automate import NotificationFlow, get_notification_flow

logger = logging.getLogger(__name__)

DEFAULT_SUBJECT = "[System Alert] Error Notification"
INTEGRATION_SUBJECT_PREFIX = "Alert: Jira Integration Failed - "
DEFAULT_ERROR_TEXT = "No error text provided."
BODY_INTRO = "An automated process encountered an error."


class Mailer(Protocol):
    """Ambient mail-sending capability."""

    def send_mail(self, recipients: List[str], subject: str, body: str, correlation_id: str = "") -> bool:
        ...


class PowerAutomateMailer:
    """Mailer that hands messages to the notification flow."""

    def __init__(self, flow: Optional[NotificationFlow] = None):
        self._flow = flow

    @property
    def flow(self) -> NotificationFlow:
        return self._flow or get_notification_flow()

    def send_mail(self, recipients: List[str], subject: str, body: str, correlation_id: str = "") -> bool:
        result = self.flow.send(to=recipients, subject=subject, body=body, correlation_id=correlation_id)
        return result.accepted


@dataclass
class NotificationMessage:
    subject: str
    body: str


def format_notification(
    error_text: Optional[str],
    payload: Any = None,
    subject: str = DEFAULT_SUBJECT,
) -> NotificationMessage:
    """Build the subject and two-part body of an alert."""
    parts = [
        BODY_INTRO,
        "Error:\n" + (error_text or DEFAULT_ERROR_TEXT),
    ]
    payload_text = format_payload_for_email(payload)
    if payload_text:
        parts.append("Original JSON Payload:\n" + payload_text)
    return NotificationMessage(subject=subject, body="\n\n".join(parts))


def integration_subject(reason: str) -> str:
    return INTEGRATION_SUBJECT_PREFIX + reason


class ErrorNotifier:
    """Sends formatted alerts to a fixed recipient list."""

    def __init__(self, mailer: Mailer, recipients: Union[str, List[str], None]):
        self.mailer = mailer
        self.recipients = parse_recipients(recipients)

    def notify(
        self,
        error_text: Optional[str],
        payload: Any = None,
        subject: str = DEFAULT_SUBJECT,
        correlation_id: str = "",
    ) -> bool:
        """
        Send one alert.

        Returns:
            True if the mail transport accepted the message, False if it was
            skipped or failed
        """
        if not self.recipients:
            logger.warning(
                f"[{correlation_id}] ERROR_EMAIL_RECIPIENTS not configured - skipping alert email"
            )
            return False

        message = format_notification(error_text, payload, subject)
        try:
            sent = self.mailer.send_mail(self.recipients, message.subject, message.body, correlation_id)
        except Exception as e:
            logger.error(f"[{correlation_id}] Failed to send alert email: {e}")
            return False

        if sent:
            logger.info(f"[{correlation_id}] Sent error notification email to: {', '.join(self.recipients)}")
        else:
            logger.warning(f"[{correlation_id}] Error notification email was not sent")
        return sent
