"""
Integration Configuration
=========================

Single configuration object passed into each handler invocation.

Values are read from a flat key-value property store. In Azure the store is
the Function App's application settings (environment variables); tests use a
``DictConfigStore``.

Configuration Keys
------------------
Use ConfigKey rather than hardcoded strings:

    >>> from shared.config import ConfigKey, DictConfigStore, IntegrationConfig
    >>> store = DictConfigStore({
    ...     ConfigKey.JIRA_DOMAIN.value: "https://acme.atlassian.net",
    ...     ConfigKey.SHEET_OUTPUT_COLUMN.value: "10",
    ... })
    >>> config = IntegrationConfig.from_store(store)
    >>> config.sheet_output_column
    10

Prefixes
--------
A function can read its own namespace first (``CASCADING_JIRA_PROJECT_KEY``)
and fall back to the shared key (``JIRA_PROJECT_KEY``), so credentials can be
configured once for every function in the app.
"""

import os
import json
import logging
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .models import JiraAuthType
from .helpers import parse_int_safe, parse_recipients

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when configuration values are present but invalid."""
    pass


class ConfigKey(str, Enum):
    """Keys read from the property store."""
    JIRA_DOMAIN = "JIRA_DOMAIN"
    JIRA_EMAIL = "JIRA_EMAIL"
    JIRA_API_TOKEN = "JIRA_API_TOKEN"
    JIRA_AUTH_TYPE = "JIRA_AUTH_TYPE"
    JIRA_API_VERSION = "JIRA_API_VERSION"
    JIRA_PROJECT_KEY = "JIRA_PROJECT_KEY"
    JIRA_ISSUE_TYPE = "JIRA_ISSUE_TYPE"
    JIRA_REPORTER_ID = "JIRA_REPORTER_ID"
    JIRA_FIELD_MAP = "JIRA_FIELD_MAP"
    JIRA_LABELS = "JIRA_LABELS"
    JIRA_TIMEOUT_SECONDS = "JIRA_TIMEOUT_SECONDS"
    GOOGLE_SPREADSHEET_ID = "GOOGLE_SPREADSHEET_ID"
    GOOGLE_SERVICE_ACCOUNT_JSON = "GOOGLE_SERVICE_ACCOUNT_JSON"
    SHEET_NAME = "SHEET_NAME"
    SHEET_TIMESTAMP_COLUMN = "SHEET_TIMESTAMP_COLUMN"
    SHEET_OUTPUT_COLUMN = "SHEET_OUTPUT_COLUMN"
    SHEET_LOOKBACK_ROWS = "SHEET_LOOKBACK_ROWS"
    ERROR_EMAIL_RECIPIENTS = "ERROR_EMAIL_RECIPIENTS"
    ADMIN_EMAIL = "ADMIN_EMAIL"


DEFAULT_SHEET_NAME = "Form Responses 1"
DEFAULT_ISSUE_TYPE = "Task"
DEFAULT_LABELS = ["google-form-generated"]
DEFAULT_LOOKBACK_ROWS = 20


# ============== Property Stores ==============

class ConfigStore(Protocol):
    """Flat key-value property store."""

    def get(self, key: str) -> Optional[str]:
        ...


class EnvironmentConfigStore:
    """Property store backed by environment variables (Function App settings)."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self._environ = environ if environ is not None else os.environ

    def get(self, key: str) -> Optional[str]:
        value = self._environ.get(key)
        if value is None:
            return None
        value = value.strip()
        return value or None


class DictConfigStore:
    """In-memory property store."""

    def __init__(self, values: Optional[Dict[str, Any]] = None):
        self._values = dict(values or {})

    def get(self, key: str) -> Optional[str]:
        value = self._values.get(key)
        if value is None:
            return None
        value = str(value).strip()
        return value or None


# ============== Configuration Model ==============

class IntegrationConfig(BaseModel):
    """
    Everything a form handler needs, resolved once per invocation.

    Missing optional values switch off the dependent action (write-back,
    notification, reporter) instead of failing the invocation.
    """

    # Jira
    jira_domain: Optional[str] = None
    jira_email: Optional[str] = None
    jira_api_token: Optional[str] = None
    jira_auth_type: JiraAuthType = JiraAuthType.BASIC
    jira_api_version: int = 3
    jira_project_key: Optional[str] = None
    jira_issue_type: str = DEFAULT_ISSUE_TYPE
    jira_reporter_id: Optional[str] = None
    jira_field_ids: Dict[str, str] = Field(default_factory=dict)
    jira_labels: List[str] = Field(default_factory=lambda: list(DEFAULT_LABELS))
    jira_timeout_seconds: float = 30.0

    # Spreadsheet
    spreadsheet_id: Optional[str] = None
    service_account_json: Optional[str] = None
    sheet_name: str = DEFAULT_SHEET_NAME
    sheet_timestamp_column: int = 1
    sheet_output_column: Optional[int] = None
    sheet_lookback_rows: int = DEFAULT_LOOKBACK_ROWS

    # Notification
    error_email_recipients: List[str] = Field(default_factory=list)

    @field_validator("jira_domain", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v):
        if v is None:
            return None
        return str(v).rstrip("/") or None

    @field_validator("jira_api_version")
    @classmethod
    def supported_api_version(cls, v):
        if v not in (2, 3):
            raise ValueError(f"JIRA_API_VERSION must be 2 or 3, got {v}")
        return v

    @field_validator("sheet_timestamp_column", "sheet_output_column", "sheet_lookback_rows")
    @classmethod
    def positive_index(cls, v):
        if v is not None and v < 1:
            raise ValueError(f"must be >= 1, got {v}")
        return v

    @model_validator(mode="after")
    def output_column_is_not_timestamp_column(self):
        if self.sheet_output_column is not None and self.sheet_output_column == self.sheet_timestamp_column:
            raise ValueError(
                "SHEET_OUTPUT_COLUMN must differ from SHEET_TIMESTAMP_COLUMN "
                "(write-back would overwrite the submission timestamp)"
            )
        return self

    # ---------------------------
    # Derived settings
    # ---------------------------

    @property
    def write_back_enabled(self) -> bool:
        return bool(self.spreadsheet_id and self.sheet_output_column)

    def field_id(self, name: str) -> Optional[str]:
        return self.jira_field_ids.get(name)

    # ---------------------------
    # Loading
    # ---------------------------

    @classmethod
    def from_store(
        cls,
        store: ConfigStore,
        prefix: str = "",
        defaults: Optional[Dict[str, Any]] = None,
    ) -> "IntegrationConfig":
        """
        Build configuration from a property store.

        Args:
            store: Property store to read
            prefix: Optional key namespace tried before the shared key
            defaults: Per-form defaults keyed by field name
                (e.g. ``{"jira_api_version": 2, "jira_field_ids": {...}}``)

        Raises:
            ConfigurationError: If a present value is invalid
        """
        defaults = dict(defaults or {})

        def read(key: ConfigKey) -> Optional[str]:
            if prefix:
                value = store.get(prefix + key.value)
                if value is not None:
                    return value
            return store.get(key.value)

        def read_int(key: ConfigKey) -> Optional[int]:
            raw = read(key)
            if raw is None:
                return None
            value = parse_int_safe(raw)
            if value is None:
                raise ConfigurationError(f"{key.value} must be an integer, got {raw!r}")
            return value

        values: Dict[str, Any] = dict(defaults)

        simple = {
            "jira_domain": ConfigKey.JIRA_DOMAIN,
            "jira_email": ConfigKey.JIRA_EMAIL,
            "jira_api_token": ConfigKey.JIRA_API_TOKEN,
            "jira_project_key": ConfigKey.JIRA_PROJECT_KEY,
            "jira_issue_type": ConfigKey.JIRA_ISSUE_TYPE,
            "jira_reporter_id": ConfigKey.JIRA_REPORTER_ID,
            "spreadsheet_id": ConfigKey.GOOGLE_SPREADSHEET_ID,
            "service_account_json": ConfigKey.GOOGLE_SERVICE_ACCOUNT_JSON,
            "sheet_name": ConfigKey.SHEET_NAME,
        }
        for name, key in simple.items():
            value = read(key)
            if value is not None:
                values[name] = value

        auth_type = read(ConfigKey.JIRA_AUTH_TYPE)
        if auth_type is not None:
            try:
                values["jira_auth_type"] = JiraAuthType(auth_type.lower())
            except ValueError:
                raise ConfigurationError(
                    f"JIRA_AUTH_TYPE must be 'basic' or 'bearer', got {auth_type!r}"
                )

        ints = {
            "jira_api_version": ConfigKey.JIRA_API_VERSION,
            "sheet_timestamp_column": ConfigKey.SHEET_TIMESTAMP_COLUMN,
            "sheet_output_column": ConfigKey.SHEET_OUTPUT_COLUMN,
            "sheet_lookback_rows": ConfigKey.SHEET_LOOKBACK_ROWS,
        }
        for name, key in ints.items():
            value = read_int(key)
            if value is not None:
                values[name] = value

        timeout = read(ConfigKey.JIRA_TIMEOUT_SECONDS)
        if timeout is not None:
            try:
                values["jira_timeout_seconds"] = float(timeout)
            except ValueError:
                raise ConfigurationError(f"JIRA_TIMEOUT_SECONDS must be a number, got {timeout!r}")

        # Field map from the store overrides per-form defaults key by key
        field_ids = dict(defaults.get("jira_field_ids") or {})
        raw_map = read(ConfigKey.JIRA_FIELD_MAP)
        if raw_map is not None:
            try:
                overrides = json.loads(raw_map)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"JIRA_FIELD_MAP is not valid JSON: {e}")
            if not isinstance(overrides, dict):
                raise ConfigurationError("JIRA_FIELD_MAP must be a JSON object")
            field_ids.update({str(k): str(v) for k, v in overrides.items() if v})
        values["jira_field_ids"] = field_ids

        labels = read(ConfigKey.JIRA_LABELS)
        if labels is not None:
            values["jira_labels"] = parse_recipients(labels)

        recipients = read(ConfigKey.ERROR_EMAIL_RECIPIENTS) or read(ConfigKey.ADMIN_EMAIL)
        values["error_email_recipients"] = parse_recipients(recipients)

        try:
            config = cls(**values)
        except ValidationError as e:
            raise ConfigurationError(str(e)) from e

        if not config.sheet_output_column and config.spreadsheet_id:
            logger.warning(
                "SHEET_OUTPUT_COLUMN not configured - issue keys will not be written back"
            )
        return config
