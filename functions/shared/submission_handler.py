"""
Submission Handler
==================

Runs one form submission end to end:

1. Parse responses against the form's title table
2. Locate the submission's sheet row (for write-back)
3. Skip if required answers are missing
4. Build the Jira payload and create the issue
5. Write the issue key, or ``Error: <status>``, into the row
6. Email administrators on any Jira failure

Every collaborator is injected, so the flow can run against in-memory fakes.
A failed or misconfigured sheet never blocks ticket creation, and nothing
is retried.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError

from .config import ConfigStore, ConfigurationError, EnvironmentConfigStore, IntegrationConfig
from .forms import FormDefinition
from .jira_client import IssueCreateResult, JiraClient, TicketApi
from .models import SubmissionRecord, SubmissionResult, SubmissionStatus
from .notification import ErrorNotifier, PowerAutomateMailer, integration_subject
from .response_parser import parse_responses
from .row_locator import RowNotFoundError, SheetAccess, find_row_by_timestamp, write_back
from .sheets_client import GoogleSheetAccess, SheetsError

logger = logging.getLogger(__name__)

JIRA_API_ERROR = "Jira API Error"
RUNTIME_ERROR = "Script Runtime Error"


class SubmissionHandler:
    """Form submission → Jira issue → sheet write-back."""

    def __init__(
        self,
        config: IntegrationConfig,
        form: FormDefinition,
        jira: TicketApi,
        notifier: ErrorNotifier,
        sheet: Optional[SheetAccess] = None,
    ):
        self.config = config
        self.form = form
        self.jira = jira
        self.notifier = notifier
        self.sheet = sheet

    def handle(self, submission: SubmissionRecord, trace_id: str) -> SubmissionResult:
        logger.info(
            f"[{trace_id}] New submission for '{self.form.name}': "
            f"{submission.respondent_email} at {submission.timestamp.isoformat()}"
        )

        parsed = parse_responses(submission, self.form.mapping)
        row = self._locate_row(submission, trace_id)

        if not parsed.is_complete:
            logger.error(
                f"[{trace_id}] Missing required answers {parsed.missing_fields} - ticket not created"
            )
            return SubmissionResult(
                status=SubmissionStatus.SKIPPED,
                trace_id=trace_id,
                form_name=self.form.name,
                row=row,
                message="Required answers missing",
                missing_fields=list(parsed.missing_fields),
            )

        payload = self.form.build_payload(parsed, self.config, submission.respondent_email)
        created = self.jira.create_issue(payload, correlation_id=trace_id)

        if created.success:
            written = self._write_back(row, created.issue_key, trace_id)
            return SubmissionResult(
                status=SubmissionStatus.CREATED,
                trace_id=trace_id,
                form_name=self.form.name,
                issue_key=created.issue_key,
                row=row,
                written_value=written,
                message=f"Created {created.issue_key}",
            )

        return self._handle_failure(created, row, trace_id)

    # ---------------------------
    # Steps
    # ---------------------------

    def _locate_row(self, submission: SubmissionRecord, trace_id: str) -> Optional[int]:
        if self.sheet is None or not self.config.sheet_output_column:
            logger.debug(f"[{trace_id}] Write-back not configured - skipping row lookup")
            return None
        try:
            return find_row_by_timestamp(
                self.sheet,
                submission.timestamp,
                self.config.sheet_timestamp_column,
                self.config.sheet_lookback_rows,
            )
        except (RowNotFoundError, SheetsError) as e:
            logger.warning(f"[{trace_id}] Row lookup failed: {e}")
            return None
        except Exception as e:
            logger.exception(f"[{trace_id}] Unexpected row lookup error: {e}")
            return None

    def _write_back(self, row: Optional[int], value: str, trace_id: str) -> Optional[str]:
        if row is None or self.sheet is None:
            return None
        try:
            write_back(self.sheet, row, self.config.sheet_output_column, value)
        except SheetsError as e:
            logger.error(f"[{trace_id}] Write-back to row {row} failed: {e}")
            return None
        except Exception as e:
            logger.exception(f"[{trace_id}] Unexpected write-back error for row {row}: {e}")
            return None
        return value

    def _handle_failure(self, created: IssueCreateResult, row: Optional[int], trace_id: str) -> SubmissionResult:
        written = None
        if created.is_http_error:
            written = self._write_back(row, f"Error: {created.status_code}", trace_id)
            reason, details = JIRA_API_ERROR, created.response_text or created.error_message
        else:
            reason, details = RUNTIME_ERROR, created.error_message

        notified = self.notifier.notify(
            error_text=details,
            payload=created.payload_json,
            subject=integration_subject(reason),
            correlation_id=trace_id,
        )
        return SubmissionResult(
            status=SubmissionStatus.FAILED,
            trace_id=trace_id,
            form_name=self.form.name,
            row=row,
            written_value=written,
            notified=notified,
            message=created.error_message or reason,
        )

    def close(self) -> None:
        """Release the HTTP sessions held by the Jira and sheet clients."""
        for resource in (self.jira, self.sheet):
            close = getattr(resource, "close", None)
            if close is not None:
                close()


def create_submission_handler(
    config: IntegrationConfig,
    form: FormDefinition,
    trace_id: str = "",
) -> SubmissionHandler:
    """
    Wire the production collaborators for a form.

    Unusable Google settings only disable the write-back.

    Raises:
        JiraConfigurationError: If the Jira domain or token is missing
    """
    jira = JiraClient.from_config(config)
    notifier = ErrorNotifier(PowerAutomateMailer(), config.error_email_recipients)

    sheet = None
    if config.write_back_enabled:
        try:
            sheet = GoogleSheetAccess.from_config(config)
        except ConfigurationError as e:
            logger.warning(f"[{trace_id}] Sheet write-back disabled: {e}")

    return SubmissionHandler(config=config, form=form, jira=jira, notifier=notifier, sheet=sheet)


# ============== HTTP-facing entry ==============

STATUS_CODES = {
    SubmissionStatus.CREATED: 200,
    SubmissionStatus.SKIPPED: 422,
    SubmissionStatus.FAILED: 502,
}


def process_submission(
    body: Any,
    form: FormDefinition,
    trace_id: str,
    store: Optional[ConfigStore] = None,
) -> Tuple[int, Dict[str, Any]]:
    """
    Validate a request body, run the handler and map the outcome to an HTTP
    status and JSON body.

    Returns:
        (status_code, body): 200 CREATED, 422 SKIPPED, 502 FAILED,
        400 invalid body, 500 configuration error
    """
    try:
        submission = SubmissionRecord.model_validate(body)
    except ValidationError as e:
        logger.error(f"[{trace_id}] Request validation failed: {e}")
        return 400, {
            "status": "ERROR",
            "message": f"Invalid request: {e}",
            "trace_id": trace_id,
        }

    try:
        config = IntegrationConfig.from_store(
            store or EnvironmentConfigStore(),
            prefix=form.config_prefix,
            defaults=form.config_defaults,
        )
        handler = create_submission_handler(config, form, trace_id)
    except ConfigurationError as e:
        logger.error(f"[{trace_id}] Configuration error: {e}")
        return 500, {
            "status": "ERROR",
            "message": f"Configuration error: {e}",
            "trace_id": trace_id,
        }

    try:
        result = handler.handle(submission, trace_id)
    finally:
        handler.close()
    return STATUS_CODES[result.status], result.to_dict()
