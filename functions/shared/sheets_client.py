"""
Google Sheets Access
====================

The response sheet behind the write-back, reached through gspread.

Features:
- **Service-account auth** via google-auth (key JSON from settings, or
  application default credentials) handed to ``gspread.authorize``
- **Lazy open**: the spreadsheet is opened on first use, so a sheet outage
  surfaces inside the row lookup and never while wiring the handler
- **Date handling**: cells are read unformatted with serial-number dates and
  converted to timezone-aware datetimes in the spreadsheet's own time zone
- **RAW writes**: values such as ``Error: 400`` are stored as text, never
  parsed as formulas
- **One error type**: gspread, transport and undecodable-response failures
  all surface as SheetsError

Usage:
    sheet = GoogleSheetAccess.from_config(config)
    last_row = sheet.get_last_row()
    values = sheet.get_column_values(last_row - 19, 1, 20)
"""

import json
import logging
from contextlib import contextmanager
from datetime import timezone, tzinfo
from typing import Any, Iterator, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import gspread
import google.auth
import requests
from google.auth.exceptions import DefaultCredentialsError, GoogleAuthError
from google.oauth2 import service_account
from gspread.exceptions import APIError, GSpreadException, SpreadsheetNotFound, WorksheetNotFound
from gspread.utils import DateTimeOption, ValueRenderOption, rowcol_to_a1

from .config import ConfigurationError, IntegrationConfig
from .helpers import serial_to_datetime

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
DEFAULT_TIMEOUT_SECONDS = 30.0


# ============== Custom Exceptions ==============

class SheetsError(Exception):
    """Base exception for spreadsheet operations."""
    pass


class SheetsNotFoundError(SheetsError):
    """Raised when the spreadsheet or tab does not exist."""
    pass


@contextmanager
def sheets_errors(action: str) -> Iterator[None]:
    """Re-raise anything the Sheets call can fail with as SheetsError."""
    try:
        yield
    except (SpreadsheetNotFound, WorksheetNotFound) as e:
        raise SheetsNotFoundError(f"{action}: not found ({e})") from e
    except APIError as e:
        raise SheetsError(f"{action}: Sheets API error {e.response.status_code}: {e}") from e
    except GoogleAuthError as e:
        raise SheetsError(f"{action}: could not authorize with Google: {e}") from e
    except requests.exceptions.RequestException as e:
        raise SheetsError(f"{action}: request failed: {e}") from e
    except (GSpreadException, ValueError, AttributeError) as e:
        # Undecodable or unexpectedly shaped response bodies
        raise SheetsError(f"{action}: unreadable response: {e}") from e


def load_credentials(service_account_json: Optional[str] = None):
    """
    Resolve Google credentials.

    Uses the service-account key JSON when given, otherwise application
    default credentials (GOOGLE_APPLICATION_CREDENTIALS, workload identity).
    """
    if service_account_json:
        try:
            info = json.loads(service_account_json)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"GOOGLE_SERVICE_ACCOUNT_JSON is not valid JSON: {e}")
        try:
            return service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
        except ValueError as e:
            raise ConfigurationError(f"GOOGLE_SERVICE_ACCOUNT_JSON is not a service account key: {e}")
    try:
        credentials, _ = google.auth.default(scopes=SCOPES)
    except DefaultCredentialsError as e:
        raise ConfigurationError(f"No Google credentials available: {e}")
    return credentials


def _zone(name: Optional[str]) -> tzinfo:
    if not name:
        return timezone.utc
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError:
        logger.warning(f"Unknown spreadsheet time zone '{name}', using UTC")
        return timezone.utc


# ============== Sheet Access ==============

class GoogleSheetAccess:
    """
    One tab of a spreadsheet, exposed as the SheetAccess capability.

    Numeric cells read through ``get_column_values`` are treated as serial
    dates; the only column this app reads is the submission timestamp.
    """

    def __init__(
        self,
        client: gspread.Client,
        spreadsheet_id: str,
        sheet_name: str,
        last_row_column: int = 1,
    ):
        if not spreadsheet_id:
            raise ConfigurationError("Missing spreadsheet id. Set GOOGLE_SPREADSHEET_ID.")
        self.client = client
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = sheet_name
        self.last_row_column = last_row_column
        self._worksheet: Optional[gspread.Worksheet] = None
        self._time_zone: Optional[tzinfo] = None

    @classmethod
    def from_config(
        cls,
        config: IntegrationConfig,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> "GoogleSheetAccess":
        """
        Authorize a gspread client for the configured spreadsheet.

        Raises:
            ConfigurationError: If the spreadsheet id or credentials are unusable
        """
        client = gspread.authorize(load_credentials(config.service_account_json))
        client.set_timeout(timeout)
        return cls(
            client,
            config.spreadsheet_id or "",
            config.sheet_name,
            last_row_column=config.sheet_timestamp_column,
        )

    def _open(self) -> gspread.Worksheet:
        if self._worksheet is None:
            with sheets_errors(f"Opening '{self.sheet_name}'"):
                spreadsheet = self.client.open_by_key(self.spreadsheet_id)
                worksheet = spreadsheet.worksheet(self.sheet_name)
                self._time_zone = _zone(spreadsheet.timezone)
            self._worksheet = worksheet
        return self._worksheet

    @property
    def worksheet(self) -> gspread.Worksheet:
        return self._open()

    @property
    def time_zone(self) -> tzinfo:
        """Spreadsheet time zone, read when the spreadsheet is opened."""
        if self._time_zone is None:
            self._open()
        return self._time_zone

    def get_last_row(self) -> int:
        """
        Index of the last row holding data in the reference column.

        The Sheets API has no "last row" call, so this reads the one
        reference column; the API trims it at the last filled cell. That is
        one request of a single column, never the whole grid.
        """
        with sheets_errors("Reading last row"):
            values = self.worksheet.col_values(
                self.last_row_column,
                value_render_option=ValueRenderOption.unformatted,
            )
        return len(values)

    def get_column_values(self, start_row: int, column: int, num_rows: int) -> List[Any]:
        if num_rows < 1:
            return []
        end_row = start_row + num_rows - 1
        range_name = f"{rowcol_to_a1(start_row, column)}:{rowcol_to_a1(end_row, column)}"
        with sheets_errors(f"Reading {range_name}"):
            rows = self.worksheet.get(
                range_name,
                value_render_option=ValueRenderOption.unformatted,
                date_time_render_option=DateTimeOption.serial_number,
            )
        tz = self.time_zone

        values: List[Any] = []
        for i in range(num_rows):
            row = rows[i] if i < len(rows) else []
            cell = row[0] if row else None
            if isinstance(cell, bool):
                values.append(cell)
            elif isinstance(cell, (int, float)):
                values.append(serial_to_datetime(cell, tz))
            elif cell == "":
                values.append(None)
            else:
                values.append(cell)
        return values

    def set_value(self, row: int, column: int, value: Any) -> None:
        cell = rowcol_to_a1(row, column)
        with sheets_errors(f"Writing {cell}"):
            self.worksheet.update(range_name=cell, values=[[value]], raw=True)
        logger.info(f"Updated '{self.sheet_name}'!{cell}")

    def close(self) -> None:
        self.client.http_client.session.close()
