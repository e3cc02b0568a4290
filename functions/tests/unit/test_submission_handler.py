"""
Unit Tests for the Submission Handler

Runs the full submission flow against the in-memory sheet, the recording
mailer and a fake Jira client.
"""

import pytest
import json
from datetime import timedelta
from unittest.mock import MagicMock, patch

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from shared.config import DictConfigStore
from shared.forms import CASCADING_REQUEST_FORM, STANDARD_REQUEST_FORM
from shared.jira_client import IssueCreateResult, JiraClient
from shared.models import SubmissionStatus
from shared.notification import ErrorNotifier
from shared.sheets_client import SheetsError
from shared.submission_handler import SubmissionHandler, create_submission_handler, process_submission

from tests.conftest import SUBMITTED_AT, InMemorySheet


OUTPUT_COLUMN = 10
SUBMISSION_ROW = 3


class FailingWriteSheet(InMemorySheet):
    """Sheet whose write-back always fails."""

    def set_value(self, row, column, value):
        raise SheetsError("quota exceeded")


class UnreadableSheet(InMemorySheet):
    """Sheet whose reads fail with an error outside SheetsError."""

    def get_last_row(self):
        raise ValueError("Expecting value: line 1 column 1 (char 0)")


@pytest.fixture
def sheet(factory):
    # Row 2 is an earlier submission, row 3 is the one being handled
    return factory.sheet_with_submissions([SUBMITTED_AT - timedelta(minutes=2), SUBMITTED_AT])


@pytest.fixture
def build_handler(factory, recording_mailer, sheet):
    def _build(jira, form=STANDARD_REQUEST_FORM, sheet=sheet, **config_overrides):
        config = factory.create_config(**config_overrides)
        notifier = ErrorNotifier(recording_mailer, config.error_email_recipients)
        return SubmissionHandler(config=config, form=form, jira=jira, notifier=notifier, sheet=sheet)
    return _build


@pytest.mark.unit
class TestSuccessfulSubmission:
    """Tests for the created-issue path."""

    def test_writes_issue_key(self, build_handler, fake_jira, sheet, recording_mailer, factory):
        handler = build_handler(fake_jira)

        result = handler.handle(factory.create_submission(), "trace-001")

        assert result.status == SubmissionStatus.CREATED
        assert result.issue_key == "PROJ-1"
        assert result.row == SUBMISSION_ROW
        assert result.written_value == "PROJ-1"
        assert sheet.cell(SUBMISSION_ROW, OUTPUT_COLUMN) == "PROJ-1"
        assert sheet.writes == [{"row": SUBMISSION_ROW, "column": OUTPUT_COLUMN, "value": "PROJ-1"}]
        assert recording_mailer.sent == []

    def test_payload_sent_to_jira(self, build_handler, fake_jira, factory):
        handler = build_handler(fake_jira)

        handler.handle(factory.create_submission({
            "Short Request Summary": "VPN access",
            "Request Type": ["Access", "Hardware"],
        }), "trace-001")

        fields = fake_jira.payloads[0]["fields"]
        assert fields["summary"] == "VPN access"
        assert fields["customfield_10002"] == [{"value": "Access"}, {"value": "Hardware"}]

    def test_summary_fallback_reaches_jira(self, build_handler, fake_jira, factory):
        handler = build_handler(fake_jira)

        handler.handle(factory.create_submission({"Budget Code": "CC-1"}), "trace-001")

        assert fake_jira.payloads[0]["fields"]["summary"] == "New Request from requester@company.com"

    def test_row_not_found_still_creates_issue(self, build_handler, fake_jira, factory):
        sheet = factory.sheet_with_submissions([SUBMITTED_AT - timedelta(hours=1)])
        handler = build_handler(fake_jira, sheet=sheet)

        result = handler.handle(factory.create_submission(), "trace-001")

        assert result.status == SubmissionStatus.CREATED
        assert result.row is None
        assert result.written_value is None
        assert sheet.writes == []

    def test_without_sheet(self, build_handler, fake_jira, factory):
        handler = build_handler(fake_jira, sheet=None)

        result = handler.handle(factory.create_submission(), "trace-001")

        assert result.status == SubmissionStatus.CREATED
        assert result.row is None

    def test_write_back_disabled_without_output_column(self, build_handler, fake_jira, sheet, factory):
        handler = build_handler(fake_jira, sheet_output_column=None)

        result = handler.handle(factory.create_submission(), "trace-001")

        assert result.status == SubmissionStatus.CREATED
        assert sheet.reads == []
        assert sheet.writes == []

    def test_write_failure_does_not_fail_submission(self, build_handler, fake_jira, factory):
        sheet = FailingWriteSheet([["Timestamp"], [SUBMITTED_AT]])
        handler = build_handler(fake_jira, sheet=sheet)

        result = handler.handle(factory.create_submission(), "trace-001")

        assert result.status == SubmissionStatus.CREATED
        assert result.row == 2
        assert result.written_value is None

    def test_unexpected_lookup_error_still_creates_issue(self, build_handler, fake_jira, factory):
        handler = build_handler(fake_jira, sheet=UnreadableSheet([["Timestamp"], [SUBMITTED_AT]]))

        result = handler.handle(factory.create_submission(), "trace-001")

        assert result.status == SubmissionStatus.CREATED
        assert result.issue_key == "PROJ-1"
        assert result.row is None
        assert len(fake_jira.payloads) == 1


@pytest.mark.unit
class TestFailedSubmission:
    """Tests for Jira failures."""

    def test_http_error_writes_status_and_alerts(self, build_handler, make_jira, sheet, recording_mailer, factory):
        response_text = '{"errorMessages":[],"errors":{"customfield_10001":"Option not valid"}}'
        jira = make_jira(IssueCreateResult(
            success=False,
            status_code=400,
            response_text=response_text,
            error_message="Jira returned status 400",
            payload_json='{"fields": {"summary": "VPN access"}}',
        ))
        handler = build_handler(jira)

        result = handler.handle(factory.create_submission(), "trace-002")

        assert result.status == SubmissionStatus.FAILED
        assert sheet.cell(SUBMISSION_ROW, OUTPUT_COLUMN).startswith("Error: 400")
        assert result.written_value == "Error: 400"
        assert result.notified is True

        assert len(recording_mailer.sent) == 1
        message = recording_mailer.sent[0]
        assert message["subject"] == "Alert: Jira Integration Failed - Jira API Error"
        assert message["recipients"] == ["ops@acme.com"]
        assert message["correlation_id"] == "trace-002"
        assert "Error:\n" + response_text in message["body"]
        assert 'Original JSON Payload:\n{"fields": {"summary": "VPN access"}}' in message["body"]

    def test_transport_error_alerts_without_write(self, build_handler, make_jira, sheet, recording_mailer, factory):
        jira = make_jira(IssueCreateResult(
            success=False,
            error_message="Request failed: connection refused",
            payload_json="{}",
        ))
        handler = build_handler(jira)

        result = handler.handle(factory.create_submission(), "trace-003")

        assert result.status == SubmissionStatus.FAILED
        assert result.written_value is None
        assert sheet.writes == []
        assert recording_mailer.sent[0]["subject"] == "Alert: Jira Integration Failed - Script Runtime Error"
        assert "connection refused" in recording_mailer.sent[0]["body"]

    def test_no_recipients(self, build_handler, make_jira, recording_mailer, factory):
        jira = make_jira(IssueCreateResult(success=False, status_code=500, response_text="oops"))
        handler = build_handler(jira, error_email_recipients=[])

        result = handler.handle(factory.create_submission(), "trace-004")

        assert result.status == SubmissionStatus.FAILED
        assert result.notified is False
        assert recording_mailer.sent == []


@pytest.mark.unit
class TestSkippedSubmission:
    """Tests for incomplete submissions."""

    def test_missing_summary_without_email(self, build_handler, fake_jira, sheet, recording_mailer, factory):
        handler = build_handler(fake_jira)
        submission = factory.create_submission({"Budget Code": "CC-1"}, respondent_email=None)

        result = handler.handle(submission, "trace-005")

        assert result.status == SubmissionStatus.SKIPPED
        assert result.missing_fields == ["summary"]
        assert fake_jira.payloads == []
        assert sheet.writes == []
        assert recording_mailer.sent == []

    def test_cascading_form_missing_category(self, build_handler, fake_jira, factory):
        handler = build_handler(fake_jira, form=CASCADING_REQUEST_FORM)

        result = handler.handle(factory.create_submission({"Request Title": "Laptop"}), "trace-006")

        assert result.status == SubmissionStatus.SKIPPED
        assert result.missing_fields == ["category"]


@pytest.mark.unit
class TestProcessSubmission:
    """Tests for the HTTP-facing wrapper."""

    def test_invalid_body(self):
        status_code, body = process_submission({"responses": []}, STANDARD_REQUEST_FORM, "trace-010")

        assert status_code == 400
        assert body["status"] == "ERROR"
        assert body["trace_id"] == "trace-010"

    def test_non_object_body(self):
        status_code, _ = process_submission(["not", "an", "object"], STANDARD_REQUEST_FORM, "trace-011")
        assert status_code == 400

    def test_invalid_configuration(self, factory):
        store = DictConfigStore({"JIRA_API_VERSION": "9"})

        status_code, body = process_submission(factory.create_body(), STANDARD_REQUEST_FORM, "trace-012", store)

        assert status_code == 500
        assert "Configuration error" in body["message"]

    def test_missing_jira_domain(self, factory):
        store = DictConfigStore({"JIRA_API_TOKEN": "t", "JIRA_EMAIL": "bot@acme.com"})

        status_code, body = process_submission(factory.create_body(), STANDARD_REQUEST_FORM, "trace-013", store)

        assert status_code == 500
        assert "JIRA_DOMAIN" in body["message"]

    @pytest.mark.parametrize("status,expected_code", [
        (SubmissionStatus.CREATED, 200),
        (SubmissionStatus.SKIPPED, 422),
        (SubmissionStatus.FAILED, 502),
    ])
    def test_status_codes(self, factory, build_handler, make_jira, status, expected_code):
        results = {
            SubmissionStatus.CREATED: IssueCreateResult(success=True, issue_key="PROJ-1", status_code=201),
            SubmissionStatus.FAILED: IssueCreateResult(success=False, status_code=400, response_text="bad"),
        }
        handler = build_handler(make_jira(results.get(status, results[SubmissionStatus.CREATED])))
        answers = {"Budget Code": "x"} if status == SubmissionStatus.SKIPPED else None
        body = factory.create_body(answers, respondent_email=None) if answers else factory.create_body()

        with patch("shared.submission_handler.create_submission_handler", return_value=handler):
            status_code, result = process_submission(body, STANDARD_REQUEST_FORM, "trace-014", DictConfigStore())

        assert status_code == expected_code
        assert result["status"] == status.value
        assert result["trace_id"] == "trace-014"
        json.dumps(result)

    def test_handler_closed_after_run(self, factory, build_handler, fake_jira):
        handler = build_handler(fake_jira)
        handler.close = MagicMock()

        with patch("shared.submission_handler.create_submission_handler", return_value=handler):
            process_submission(factory.create_body(), STANDARD_REQUEST_FORM, "trace-015", DictConfigStore())

        handler.close.assert_called_once()


@pytest.mark.unit
class TestCreateSubmissionHandler:
    """Tests for wiring the production collaborators."""

    def test_bad_google_key_disables_write_back(self, factory):
        config = factory.create_config(service_account_json="{not json")

        handler = create_submission_handler(config, STANDARD_REQUEST_FORM, "trace-020")

        assert isinstance(handler.jira, JiraClient)
        assert handler.sheet is None
        handler.close()

    def test_no_sheet_without_spreadsheet(self, factory):
        handler = create_submission_handler(factory.create_config(spreadsheet_id=None), STANDARD_REQUEST_FORM)

        assert handler.sheet is None
        handler.close()

    def test_close_releases_clients(self, factory, recording_mailer):
        jira, sheet = MagicMock(), MagicMock()
        config = factory.create_config()
        handler = SubmissionHandler(
            config=config,
            form=STANDARD_REQUEST_FORM,
            jira=jira,
            notifier=ErrorNotifier(recording_mailer, config.error_email_recipients),
            sheet=sheet,
        )

        handler.close()

        jira.close.assert_called_once()
        sheet.close.assert_called_once()

    def test_close_skips_clients_without_close(self, build_handler, fake_jira):
        build_handler(fake_jira).close()
