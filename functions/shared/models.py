"""
Shared Data Models for Form Submission Functions
================================================

Pydantic models for request validation and plain dataclasses for the
in-memory records passed between the parser, payload builder, Jira client
and sheet write-back.

Model Categories
----------------
Enumerations
    AnswerKind, SubmissionStatus, JiraAuthType

Request Models
    ItemResponse, SubmissionRecord, ErrorNotificationRequest

Transient Records
    ParsedRequest, SubmissionResult

Usage Examples
--------------
Validating an incoming submission:
    >>> record = SubmissionRecord(
    ...     timestamp="2026-01-05T10:15:30Z",
    ...     respondentEmail="user@company.com",
    ...     responses=[{"title": "Short Request Summary", "answer": "VPN access"}],
    ... )
    >>> record.answers()
    [('Short Request Summary', 'VPN access')]
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AnswerKind(str, Enum):
    """How a form answer is normalised and rendered into the payload."""
    TEXT = "text"
    SINGLE_SELECT = "single_select"
    MULTI_SELECT = "multi_select"
    DATE = "date"


class SubmissionStatus(str, Enum):
    """Outcome of a single form submission."""
    CREATED = "CREATED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class JiraAuthType(str, Enum):
    """Authorization header style."""
    BASIC = "basic"
    BEARER = "bearer"


# ============== Request Models ==============

class ItemResponse(BaseModel):
    """One answered question of a form submission."""
    title: str
    answer: Any = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("title", mode="before")
    @classmethod
    def coerce_title(cls, v):
        if v is None:
            return ""
        return str(v)


class SubmissionRecord(BaseModel):
    """
    A single form submission as delivered to a function.

    Accepts both the camelCase names used by the form-side forwarder and
    snake_case names.
    """
    timestamp: datetime
    respondent_email: Optional[str] = Field(default=None, alias="respondentEmail")
    responses: List[ItemResponse] = Field(default_factory=list, alias="itemResponses")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("respondent_email", mode="before")
    @classmethod
    def blank_email_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    def answers(self) -> List[Tuple[str, Any]]:
        """Ordered (question title, answer) pairs."""
        return [(item.title, item.answer) for item in self.responses]


class ErrorNotificationRequest(BaseModel):
    """Body accepted by fn_error_notification."""
    error_text: Optional[str] = Field(default=None, alias="errorText")
    payload: Any = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ============== Transient Records ==============

@dataclass
class ParsedRequest:
    """Flat record produced by the response parser."""
    summary: str = ""
    description: str = ""
    fields: Dict[str, Any] = field(default_factory=dict)
    missing_fields: List[str] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)


@dataclass
class SubmissionResult:
    """Result returned by the submission handler and serialised by functions."""
    status: SubmissionStatus
    trace_id: str
    form_name: str
    issue_key: Optional[str] = None
    row: Optional[int] = None
    written_value: Optional[str] = None
    notified: bool = False
    message: str = ""
    missing_fields: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "trace_id": self.trace_id,
            "form": self.form_name,
            "issue_key": self.issue_key,
            "row": self.row,
            "written_value": self.written_value,
            "notified": self.notified,
            "message": self.message,
            "missing_fields": self.missing_fields,
        }
