"""
Shared Library for Azure Functions
===================================

Utilities, models and clients shared by the form submission functions
(fn_form_to_jira, fn_cascading_request, fn_error_notification).

Modules
-------
config
    Property-store backed IntegrationConfig
models
    Pydantic models for request validation, result records
response_parser
    Question title -> field table parsing
payload_builder
    Jira issue payloads (ADF, selects, cascading selects)
forms
    Form definitions tying parser, builder and config defaults together
jira_client
    Jira REST issue creation
sheets_client
    Response sheet access through gspread
row_locator
    Timestamp row lookup and write-back
notification / power_automate
    Alert emails through a Power Automate flow
submission_handler
    End-to-end submission flow
helpers
    Trace IDs, recipients, spreadsheet dates

Quick Start
-----------
>>> from shared import (
...     STANDARD_REQUEST_FORM,
...     generate_trace_id,
...     process_submission,
... )
>>>
>>> trace_id = generate_trace_id()
>>> status_code, body = process_submission(
...     {"timestamp": "2026-01-05T10:15:30Z", "respondentEmail": "user@company.com",
...      "responses": [{"title": "Short Request Summary", "answer": "VPN access"}]},
...     STANDARD_REQUEST_FORM,
...     trace_id,
... )
"""

# Data models
from .models import (
    AnswerKind,
    SubmissionStatus,
    JiraAuthType,
    ItemResponse,
    SubmissionRecord,
    ErrorNotificationRequest,
    ParsedRequest,
    SubmissionResult,
)

# Configuration
from .config import (
    ConfigKey,
    ConfigurationError,
    ConfigStore,
    EnvironmentConfigStore,
    DictConfigStore,
    IntegrationConfig,
)

# Helpers
from .helpers import (
    generate_trace_id,
    parse_recipients,
    serial_to_datetime,
    format_date_for_jira,
    format_payload_for_email,
    parse_int_safe,
)

# Parsing and payloads
from .response_parser import (
    FieldSpec,
    FormMapping,
    parse_responses,
)
from .payload_builder import (
    to_adf,
    single_select,
    multi_select,
    cascading_select,
    build_standard_payload,
    build_cascading_payload,
)
from .forms import (
    FormDefinition,
    STANDARD_REQUEST_FORM,
    CASCADING_REQUEST_FORM,
)

# Clients
from .jira_client import (
    JiraClient,
    JiraConfigurationError,
    IssueCreateResult,
)
from .sheets_client import (
    GoogleSheetAccess,
    SheetsError,
    SheetsNotFoundError,
)
from .power_automate import (
    NotificationFlow,
    FlowSettings,
    FlowResult,
    get_notification_flow,
)

# Row lookup
from .row_locator import (
    RowNotFoundError,
    find_row_by_timestamp,
    write_back,
)

# Notification
from .notification import (
    ErrorNotifier,
    PowerAutomateMailer,
    format_notification,
    integration_subject,
)

# Submission flow
from .submission_handler import (
    SubmissionHandler,
    create_submission_handler,
    process_submission,
)

__all__ = [
    # Models
    "AnswerKind",
    "SubmissionStatus",
    "JiraAuthType",
    "ItemResponse",
    "SubmissionRecord",
    "ErrorNotificationRequest",
    "ParsedRequest",
    "SubmissionResult",
    # Config
    "ConfigKey",
    "ConfigurationError",
    "ConfigStore",
    "EnvironmentConfigStore",
    "DictConfigStore",
    "IntegrationConfig",
    # Helpers
    "generate_trace_id",
    "parse_recipients",
    "serial_to_datetime",
    "format_date_for_jira",
    "format_payload_for_email",
    "parse_int_safe",
    # Parsing and payloads
    "FieldSpec",
    "FormMapping",
    "parse_responses",
    "to_adf",
    "single_select",
    "multi_select",
    "cascading_select",
    "build_standard_payload",
    "build_cascading_payload",
    "FormDefinition",
    "STANDARD_REQUEST_FORM",
    "CASCADING_REQUEST_FORM",
    # Clients
    "JiraClient",
    "JiraConfigurationError",
    "IssueCreateResult",
    "GoogleSheetAccess",
    "SheetsError",
    "SheetsNotFoundError",
    "NotificationFlow",
    "FlowSettings",
    "FlowResult",
    "get_notification_flow",
    # Row lookup
    "RowNotFoundError",
    "find_row_by_timestamp",
    "write_back",
    # Notification
    "ErrorNotifier",
    "PowerAutomateMailer",
    "format_notification",
    "integration_subject",
    # Submission flow
    "SubmissionHandler",
    "create_submission_handler",
    "process_submission",
]
