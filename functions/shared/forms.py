"""
Form Definitions
================

The two request forms handled by this app. Each definition ties together the
question-title table, the payload builder and the configuration defaults for
its Jira instance.

Standard request form (fn_form_to_jira)
    Jira Cloud, REST v3, Basic auth (email + API token), ADF descriptions.

Catalogue request form (fn_cascading_request)
    Jira Server/DC, REST v2, Bearer PAT, plain-text descriptions, three-level
    cascading category. Settings may be namespaced with ``CASCADING_``.

Question titles must match the form exactly. Custom field ids below are
placeholders; override them per instance with ``JIRA_FIELD_MAP``.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from .config import IntegrationConfig
from .models import AnswerKind, JiraAuthType, ParsedRequest
from .payload_builder import build_cascading_payload, build_standard_payload
from .response_parser import DESCRIPTION_FIELD, SUMMARY_FIELD, FieldSpec, FormMapping

PayloadBuilder = Callable[[ParsedRequest, IntegrationConfig, Optional[str]], Dict[str, Any]]


@dataclass(frozen=True)
class FormDefinition:
    """Everything that differs between two form handlers."""
    name: str
    mapping: FormMapping
    build_payload: PayloadBuilder
    config_prefix: str = ""
    config_defaults: Dict[str, Any] = field(default_factory=dict)


STANDARD_REQUEST_FORM = FormDefinition(
    name="standard_request",
    mapping=FormMapping(
        name="standard_request",
        fields=[
            FieldSpec("Short Request Summary", SUMMARY_FIELD),
            FieldSpec("Detailed Description", DESCRIPTION_FIELD),
            FieldSpec("Which Department is this for?", "department", AnswerKind.SINGLE_SELECT),
            FieldSpec("Request Type", "request_type", AnswerKind.MULTI_SELECT),
            FieldSpec("Desired Due Date", "due_date", AnswerKind.DATE),
            FieldSpec("Budget Code", "budget_code"),
        ],
        required=(SUMMARY_FIELD,),
    ),
    build_payload=build_standard_payload,
    config_defaults={
        "jira_auth_type": JiraAuthType.BASIC,
        "jira_api_version": 3,
        "jira_field_ids": {
            "department": "customfield_10001",
            "request_type": "customfield_10002",
            "due_date": "customfield_10003",
            "budget_code": "customfield_10004",
        },
    },
)


CASCADING_REQUEST_FORM = FormDefinition(
    name="cascading_request",
    mapping=FormMapping(
        name="cascading_request",
        fields=[
            FieldSpec("Request Title", SUMMARY_FIELD),
            FieldSpec("Describe your request", DESCRIPTION_FIELD),
            FieldSpec("Category", "category", AnswerKind.SINGLE_SELECT),
            FieldSpec("Sub-category", "subcategory", AnswerKind.SINGLE_SELECT),
            FieldSpec("Item", "item", AnswerKind.SINGLE_SELECT),
            FieldSpec("Business Justification", "business_justification"),
            FieldSpec("Requested For", "requested_for"),
            FieldSpec("Needed By", "needed_by", AnswerKind.DATE),
        ],
        required=(SUMMARY_FIELD, "category"),
    ),
    build_payload=build_cascading_payload,
    config_prefix="CASCADING_",
    config_defaults={
        "jira_auth_type": JiraAuthType.BEARER,
        "jira_api_version": 2,
        "jira_field_ids": {
            "request_category": "customfield_10100",
            "business_justification": "customfield_10101",
            "requested_for": "customfield_10102",
            "needed_by": "customfield_10103",
        },
    },
)
