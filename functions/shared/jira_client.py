"""
Jira Issue Client
=================

Creates one Jira issue per call with a single synchronous POST.

- Basic auth (Jira Cloud: ``base64(email:api_token)``) or Bearer PAT
  (Jira Server/DC)
- REST API v2 or v3 (chosen by configuration)
- Connection pooling via requests.Session
- Never retries and never raises for remote failures; every outcome is an
  ``IssueCreateResult``

Usage:
    from shared.jira_client import JiraClient

    client = JiraClient.from_config(config)
    result = client.create_issue(payload, correlation_id=trace_id)
    if result.success:
        print(result.issue_key)
"""

import json
import time
import base64
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import requests

from .config import ConfigurationError, IntegrationConfig
from .models import JiraAuthType

logger = logging.getLogger(__name__)


class JiraConfigurationError(ConfigurationError):
    """Raised when the client cannot be built from the given settings."""
    pass


@dataclass
class IssueCreateResult:
    """Outcome of a create-issue request."""

    success: bool
    issue_key: Optional[str] = None
    status_code: Optional[int] = None
    response_text: str = ""
    error_message: Optional[str] = None
    payload_json: str = ""
    elapsed_ms: float = 0.0

    @property
    def is_http_error(self) -> bool:
        """True when Jira answered with a non-success status."""
        return not self.success and self.status_code is not None


class TicketApi(Protocol):
    """Capability used by the submission handler to create tickets."""

    def create_issue(self, payload: Dict[str, Any], correlation_id: str = "") -> IssueCreateResult:
        ...


def build_auth_header(
    auth_type: JiraAuthType,
    token: str,
    email: Optional[str] = None,
) -> str:
    """Build the Authorization header value."""
    if auth_type == JiraAuthType.BEARER:
        return f"Bearer {token}"
    if not email:
        raise JiraConfigurationError("Basic auth requires JIRA_EMAIL")
    encoded = base64.b64encode(f"{email}:{token}".encode("utf-8")).decode("ascii")
    return f"Basic {encoded}"


class JiraClient:
    """Minimal Jira REST client for issue creation."""

    def __init__(
        self,
        *,
        base_url: str,
        token: str,
        email: Optional[str] = None,
        auth_type: JiraAuthType = JiraAuthType.BASIC,
        api_version: int = 3,
        timeout_seconds: float = 30.0,
        connect_timeout: float = 5.0,
    ) -> None:
        self.base_url = (base_url or "").rstrip("/")
        if not self.base_url:
            raise JiraConfigurationError("Missing Jira base URL. Set JIRA_DOMAIN.")
        token = str(token or "").strip()
        if not token:
            raise JiraConfigurationError("Missing Jira API token. Set JIRA_API_TOKEN.")
        if api_version not in (2, 3):
            raise JiraConfigurationError(f"Unsupported Jira API version: {api_version}")

        self.api_version = api_version
        self.timeout = (float(connect_timeout), float(timeout_seconds))

        self.session = requests.Session()
        self.session.headers.update({
            "Authorization": build_auth_header(auth_type, token, email),
            "Content-Type": "application/json",
            "Accept": "application/json",
        })

    @classmethod
    def from_config(cls, config: IntegrationConfig) -> "JiraClient":
        return cls(
            base_url=config.jira_domain or "",
            token=config.jira_api_token or "",
            email=config.jira_email,
            auth_type=config.jira_auth_type,
            api_version=config.jira_api_version,
            timeout_seconds=config.jira_timeout_seconds,
        )

    @property
    def issue_url(self) -> str:
        return f"{self.base_url}/rest/api/{self.api_version}/issue"

    def create_issue(self, payload: Dict[str, Any], correlation_id: str = "") -> IssueCreateResult:
        """
        POST the payload and extract the created issue key.

        2xx with a ``key`` in the body is a success. Any other status is a
        failure carrying the status and body. Transport errors and unreadable
        bodies are failures with no status.
        """
        payload_json = json.dumps(payload, default=str)
        logger.info(f"[{correlation_id}] Sending payload to {self.issue_url}: {payload_json}")

        start_time = time.time()
        try:
            response = self.session.post(self.issue_url, data=payload_json, timeout=self.timeout)
            elapsed_ms = (time.time() - start_time) * 1000
            status = response.status_code
            body = response.text or ""

            if 200 <= status < 300:
                issue_key = (json.loads(body) or {}).get("key")
                if not issue_key:
                    raise ValueError(f"Response did not contain an issue key: {body[:500]}")
                logger.info(f"[{correlation_id}] Created {issue_key} (status={status}, elapsed={elapsed_ms:.0f}ms)")
                return IssueCreateResult(
                    success=True,
                    issue_key=issue_key,
                    status_code=status,
                    response_text=body,
                    payload_json=payload_json,
                    elapsed_ms=elapsed_ms,
                )

            logger.error(f"[{correlation_id}] Jira error ({status}): {body}")
            return IssueCreateResult(
                success=False,
                status_code=status,
                response_text=body,
                error_message=f"Jira returned status {status}",
                payload_json=payload_json,
                elapsed_ms=elapsed_ms,
            )

        except requests.exceptions.RequestException as e:
            elapsed_ms = (time.time() - start_time) * 1000
            logger.error(f"[{correlation_id}] Jira request failed: {e}")
            return IssueCreateResult(
                success=False,
                error_message=f"Request failed: {e}",
                payload_json=payload_json,
                elapsed_ms=elapsed_ms,
            )

        except (ValueError, AttributeError) as e:
            elapsed_ms = (time.time() - start_time) * 1000
            logger.error(f"[{correlation_id}] Could not read Jira response: {e}")
            return IssueCreateResult(
                success=False,
                error_message=f"Invalid response: {e}",
                payload_json=payload_json,
                elapsed_ms=elapsed_ms,
            )

    def close(self):
        if self.session:
            self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
