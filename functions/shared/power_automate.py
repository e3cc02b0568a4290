"""
Power Automate Notification Flow
================================

Hands alert emails to a Power Automate HTTP-triggered flow, which sends them
with its Outlook connector. The flow receives::

    {"to": "a@x.com,b@x.com", "subject": "...", "body": "...", "correlation_id": "..."}

Behaviour:
- One pooled requests.Session per process
- Connect/read timeouts from FLOW_CONNECT_TIMEOUT / FLOW_READ_TIMEOUT
- No retries unless FLOW_MAX_RETRIES is set
- Fire-and-forget by default: a read timeout after the request was sent
  counts as accepted
- ``send`` never raises; the outcome is a ``FlowResult``

Usage:
    from shared.power_automate import get_notification_flow

    result = get_notification_flow().send(
        to=["ops@company.com"],
        subject="[System Alert] Error Notification",
        body="...",
        correlation_id="trace-123",
    )
"""

import os
import time
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

ACCEPTED_STATUSES = (200, 201, 202)
RETRYABLE_STATUSES = (429, 500, 502, 503, 504)


@dataclass
class FlowResult:
    """Outcome of one flow invocation."""

    accepted: bool
    correlation_id: str
    status_code: Optional[int] = None
    error_message: Optional[str] = None
    elapsed_ms: float = 0.0


@dataclass
class FlowSettings:
    """Where and how the notification flow is called."""

    url: Optional[str] = None
    max_retries: int = 0
    backoff_factor: float = 0.5
    connect_timeout: float = 5.0
    read_timeout: float = 10.0
    fire_and_forget: bool = True

    @classmethod
    def from_environment(cls, environ: Optional[Mapping[str, str]] = None) -> "FlowSettings":
        env = os.environ if environ is None else environ
        return cls(
            url=(env.get("POWER_AUTOMATE_SEND_NOTIFICATION_URL") or "").strip() or None,
            max_retries=int(env.get("FLOW_MAX_RETRIES", "0")),
            connect_timeout=float(env.get("FLOW_CONNECT_TIMEOUT", "5.0")),
            read_timeout=float(env.get("FLOW_READ_TIMEOUT", "10.0")),
            fire_and_forget=env.get("FLOW_FIRE_AND_FORGET", "true").strip().lower() == "true",
        )

    @property
    def timeout(self) -> tuple:
        return (self.connect_timeout, self.read_timeout)


def _build_session(settings: FlowSettings) -> requests.Session:
    session = requests.Session()
    if settings.max_retries > 0:
        adapter = HTTPAdapter(max_retries=Retry(
            total=settings.max_retries,
            backoff_factor=settings.backoff_factor,
            status_forcelist=list(RETRYABLE_STATUSES),
            allowed_methods=["POST"],
            raise_on_status=False,
        ))
        session.mount("https://", adapter)
        session.mount("http://", adapter)
    session.headers.update({"Content-Type": "application/json", "Accept": "application/json"})
    return session


class NotificationFlow:
    """Client for the alert email flow."""

    def __init__(self, settings: Optional[FlowSettings] = None):
        self.settings = settings or FlowSettings.from_environment()
        self._session = _build_session(self.settings)

    def send(self, to: List[str], subject: str, body: str, correlation_id: str = "") -> FlowResult:
        """
        Ask the flow to email ``to``.

        Returns:
            FlowResult; ``accepted`` is False when the URL is missing, the
            flow answered with a non-2xx status, or the request failed
        """
        if not self.settings.url:
            logger.warning(
                f"[{correlation_id}] POWER_AUTOMATE_SEND_NOTIFICATION_URL not configured - email not sent"
            )
            return FlowResult(False, correlation_id, error_message="Flow URL not configured")

        payload = {
            "to": ",".join(to),
            "subject": subject,
            "body": body,
            "correlation_id": correlation_id,
        }
        return self._post(payload, correlation_id)

    def _post(self, payload: Dict[str, Any], correlation_id: str) -> FlowResult:
        started = time.time()

        def outcome(accepted: bool, status_code: Optional[int] = None, error: Optional[str] = None) -> FlowResult:
            return FlowResult(accepted, correlation_id, status_code, error, (time.time() - started) * 1000)

        logger.info(f"[{correlation_id}] Posting alert email to notification flow")
        try:
            response = self._session.post(self.settings.url, json=payload, timeout=self.settings.timeout)
        except requests.exceptions.Timeout as e:
            if self.settings.fire_and_forget:
                logger.info(f"[{correlation_id}] Notification flow timed out; treating as accepted")
                return outcome(True, error="Timeout (fire-and-forget, flow may still complete)")
            logger.error(f"[{correlation_id}] Notification flow timed out: {e}")
            return outcome(False, error=f"Timeout: {e}")
        except requests.exceptions.ConnectionError as e:
            logger.error(f"[{correlation_id}] Could not reach notification flow: {e}")
            return outcome(False, error=f"Connection error: {e}")
        except requests.exceptions.RequestException as e:
            logger.error(f"[{correlation_id}] Notification flow request failed: {e}")
            return outcome(False, error=f"Request failed: {e}")

        if response.status_code in ACCEPTED_STATUSES:
            logger.info(f"[{correlation_id}] Notification flow accepted (status={response.status_code})")
            return outcome(True, response.status_code)

        logger.warning(f"[{correlation_id}] Notification flow rejected (status={response.status_code})")
        return outcome(False, response.status_code, f"Flow returned status {response.status_code}")

    def close(self):
        self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


_notification_flow: Optional[NotificationFlow] = None
_notification_flow_lock = threading.Lock()


def get_notification_flow() -> NotificationFlow:
    """Process-wide NotificationFlow built from the environment (thread-safe)."""
    global _notification_flow
    if _notification_flow is None:
        with _notification_flow_lock:
            if _notification_flow is None:
                _notification_flow = NotificationFlow()
    return _notification_flow


def reset_notification_flow() -> None:
    """Forget the shared instance so the next call re-reads the environment."""
    global _notification_flow
    with _notification_flow_lock:
        _notification_flow = None
