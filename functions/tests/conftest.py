"""
Pytest Configuration and Fixtures for Form Submission Tests

This file provides:
- In-memory spreadsheet tab implementing SheetAccess
- Recording mailer and fake Jira client
- Submission and configuration factories
- HTTP request mocking for Azure Functions
"""

import pytest
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from shared.config import DictConfigStore, IntegrationConfig
from shared.jira_client import IssueCreateResult
from shared.models import SubmissionRecord


# ============== Custom Pytest Markers ==============

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual modules")
    config.addinivalue_line("markers", "integration: Integration tests")


# ============== In-memory Sheet ==============

class InMemorySheet:
    """
    One spreadsheet tab held as a list of rows (1-based, like the real API).

    Records every read window and every write so tests can assert the
    bounded-scan and write-back behaviour.
    """

    def __init__(self, rows: Optional[List[List[Any]]] = None):
        self.rows: List[List[Any]] = [list(r) for r in (rows or [])]
        self.reads: List[Dict[str, int]] = []
        self.writes: List[Dict[str, Any]] = []

    def append(self, *values: Any) -> int:
        self.rows.append(list(values))
        return len(self.rows)

    def get_last_row(self) -> int:
        return len(self.rows)

    def get_column_values(self, start_row: int, column: int, num_rows: int) -> List[Any]:
        self.reads.append({"start_row": start_row, "column": column, "num_rows": num_rows})
        values = []
        for row in range(start_row, start_row + num_rows):
            cells = self.rows[row - 1] if 0 < row <= len(self.rows) else []
            values.append(cells[column - 1] if len(cells) >= column else None)
        return values

    def set_value(self, row: int, column: int, value: Any) -> None:
        while len(self.rows) < row:
            self.rows.append([])
        cells = self.rows[row - 1]
        while len(cells) < column:
            cells.append(None)
        cells[column - 1] = value
        self.writes.append({"row": row, "column": column, "value": value})

    def cell(self, row: int, column: int) -> Any:
        cells = self.rows[row - 1]
        return cells[column - 1] if len(cells) >= column else None


# ============== Recording Mailer ==============

class RecordingMailer:
    """Mailer that keeps every message instead of sending it."""

    def __init__(self, accept: bool = True):
        self.accept = accept
        self.sent: List[Dict[str, Any]] = []

    def send_mail(self, recipients: List[str], subject: str, body: str, correlation_id: str = "") -> bool:
        self.sent.append({
            "recipients": list(recipients),
            "subject": subject,
            "body": body,
            "correlation_id": correlation_id,
        })
        return self.accept


# ============== Fake Jira ==============

class FakeJira:
    """TicketApi returning a canned result and recording payloads."""

    def __init__(self, result: Optional[IssueCreateResult] = None):
        self.result = result or IssueCreateResult(success=True, issue_key="PROJ-1", status_code=201)
        self.payloads: List[Dict[str, Any]] = []

    def create_issue(self, payload: Dict[str, Any], correlation_id: str = "") -> IssueCreateResult:
        self.payloads.append(payload)
        if not self.result.payload_json:
            self.result.payload_json = json.dumps(payload)
        return self.result


# ============== Test Data Factories ==============

SUBMITTED_AT = datetime(2026, 1, 5, 10, 15, 30, tzinfo=timezone.utc)


class SubmissionFactory:
    """Factory for creating test data."""

    @staticmethod
    def create_submission(
        answers: Optional[Dict[str, Any]] = None,
        respondent_email: Optional[str] = "requester@company.com",
        timestamp: datetime = SUBMITTED_AT,
    ) -> SubmissionRecord:
        if answers is None:
            answers = {
                "Short Request Summary": "VPN access",
                "Detailed Description": "Need VPN\nfor remote work",
            }
        return SubmissionRecord(
            timestamp=timestamp,
            respondent_email=respondent_email,
            responses=[{"title": t, "answer": a} for t, a in answers.items()],
        )

    @staticmethod
    def create_body(
        answers: Optional[Dict[str, Any]] = None,
        respondent_email: Optional[str] = "requester@company.com",
        timestamp: str = "2026-01-05T10:15:30Z",
    ) -> Dict[str, Any]:
        answers = answers if answers is not None else {"Short Request Summary": "VPN access"}
        return {
            "timestamp": timestamp,
            "respondentEmail": respondent_email,
            "responses": [{"title": t, "answer": a} for t, a in answers.items()],
        }

    @staticmethod
    def create_config(**overrides: Any) -> IntegrationConfig:
        values = {
            "jira_domain": "https://acme.atlassian.net",
            "jira_email": "bot@acme.com",
            "jira_api_token": "token-123",
            "jira_project_key": "PROJ",
            "jira_field_ids": {
                "department": "customfield_10001",
                "request_type": "customfield_10002",
                "due_date": "customfield_10003",
                "budget_code": "customfield_10004",
            },
            "spreadsheet_id": "sheet-abc",
            "sheet_output_column": 10,
            "error_email_recipients": ["ops@acme.com"],
        }
        values.update(overrides)
        return IntegrationConfig(**values)

    @staticmethod
    def sheet_with_submissions(timestamps: List[datetime]) -> InMemorySheet:
        sheet = InMemorySheet([["Timestamp"]])
        for ts in timestamps:
            sheet.append(ts)
        return sheet


class MockHttpRequest:
    """Mock Azure Functions HttpRequest."""

    def __init__(self, body: Any = None, headers: Optional[Dict[str, str]] = None, raw: Optional[bytes] = None):
        self._body = raw if raw is not None else json.dumps(body if body is not None else {}).encode()
        self.headers = headers or {}

    def get_json(self) -> Any:
        return json.loads(self._body)

    def get_body(self) -> bytes:
        return self._body


# ============== Fixtures ==============

@pytest.fixture
def factory():
    return SubmissionFactory


@pytest.fixture
def in_memory_sheet():
    return InMemorySheet([["Timestamp"]])


@pytest.fixture
def recording_mailer():
    return RecordingMailer()


@pytest.fixture
def fake_jira():
    return FakeJira()


@pytest.fixture
def make_jira():
    """Factory for fake Jira clients with a canned result."""
    return FakeJira


@pytest.fixture
def mock_http_request():
    """Factory for mock HTTP requests."""
    def _create(body: Any = None, headers: Optional[Dict[str, str]] = None, raw: Optional[bytes] = None):
        return MockHttpRequest(body, headers, raw)
    return _create


@pytest.fixture
def dict_store():
    """Factory for in-memory property stores."""
    def _create(values: Optional[Dict[str, Any]] = None) -> DictConfigStore:
        return DictConfigStore(values)
    return _create


@pytest.fixture
def clean_env():
    """Remove integration settings from the environment for the test."""
    original_env = os.environ.copy()
    prefixes = (
        "JIRA_", "CASCADING_", "GOOGLE_", "SHEET_", "ERROR_EMAIL_", "ADMIN_EMAIL",
        "POWER_AUTOMATE_", "FLOW_",
    )
    for key in list(os.environ.keys()):
        if key.startswith(prefixes):
            del os.environ[key]
    yield
    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture(autouse=True)
def reset_notification_flow_singleton():
    """Reset the shared NotificationFlow around each test."""
    from shared.power_automate import reset_notification_flow
    reset_notification_flow()
    yield
    reset_notification_flow()
