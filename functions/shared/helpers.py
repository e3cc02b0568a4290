"""
Helper utilities for the form submission functions.
Includes trace IDs, recipient parsing and spreadsheet dates.
"""

import json
import uuid
import logging
from datetime import date, datetime, timedelta, tzinfo
from typing import Any, List, Optional, Union

logger = logging.getLogger(__name__)

# Day zero of Google Sheets serial date numbers
SHEETS_EPOCH = datetime(1899, 12, 30)


def generate_trace_id() -> str:
    """Generate a unique trace ID for correlation across systems."""
    return f"trace-{uuid.uuid4().hex[:12]}"


def parse_recipients(value: Optional[Union[str, List[str]]]) -> List[str]:
    """
    Split a comma-separated recipient list.

    Blank entries are dropped, so "" and " , " both yield [].
    """
    if not value:
        return []
    if isinstance(value, str):
        parts = value.split(",")
    else:
        parts = list(value)
    return [p.strip() for p in parts if p and p.strip()]


def serial_to_datetime(serial: float, tz: Optional[tzinfo] = None) -> datetime:
    """
    Convert a spreadsheet serial date number to a datetime.

    The serial is wall-clock time in the spreadsheet's time zone, so the
    result is attached to ``tz`` rather than converted.
    """
    value = SHEETS_EPOCH + timedelta(days=float(serial))
    # Serial fractions carry float noise; snap to the nearest millisecond
    micro = round(value.microsecond / 1000) * 1000
    if micro == 1_000_000:
        value = value.replace(microsecond=0) + timedelta(seconds=1)
    else:
        value = value.replace(microsecond=micro)
    if tz is not None:
        value = value.replace(tzinfo=tz)
    return value


def format_date_for_jira(value: Any) -> Optional[str]:
    """Format date-like answers as YYYY-MM-DD; strings pass through."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def format_payload_for_email(payload: Any) -> str:
    """Render a payload for a notification body (pretty JSON for structures)."""
    if payload is None:
        return ""
    if isinstance(payload, str):
        return payload
    try:
        return json.dumps(payload, indent=2, default=str)
    except (TypeError, ValueError):
        return str(payload)


def parse_int_safe(value: Any, default: Optional[int] = None) -> Optional[int]:
    """Parse int, returning default on failure."""
    if value is None or value == "":
        return default
    try:
        return int(str(value).strip())
    except (ValueError, TypeError):
        return default
