"""
Row Locator & Write-back
========================

Finds the spreadsheet row a form submission was appended to, and writes the
created issue key (or an error marker) into it.

Two submissions can land close together, so "the last row" is not always
the submission's row. The last ``lookback`` rows of the timestamp column are
scanned from the newest upward and the first cell within one second of the
submission timestamp wins.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, List, Protocol

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK = 20
MATCH_TOLERANCE = timedelta(seconds=1)


class RowNotFoundError(Exception):
    """Raised when no row in the lookback window matches the timestamp."""
    pass


class SheetAccess(Protocol):
    """Capability over one spreadsheet tab. Rows and columns are 1-based."""

    def get_last_row(self) -> int:
        ...

    def get_column_values(self, start_row: int, column: int, num_rows: int) -> List[Any]:
        ...

    def set_value(self, row: int, column: int, value: Any) -> None:
        ...


def _align(cell: datetime, target: datetime) -> datetime:
    """Read naive cell values in the target's time zone."""
    if cell.tzinfo is None and target.tzinfo is not None:
        return cell.replace(tzinfo=target.tzinfo)
    if cell.tzinfo is not None and target.tzinfo is None:
        return cell.replace(tzinfo=None)
    return cell


def find_row_by_timestamp(
    sheet: SheetAccess,
    timestamp: datetime,
    column: int,
    lookback: int = DEFAULT_LOOKBACK,
) -> int:
    """
    Return the row whose cell in ``column`` is within one second of ``timestamp``.

    Only rows ``max(1, last_row - lookback + 1) .. last_row`` are read, newest
    first.

    Raises:
        RowNotFoundError: Invalid timestamp, empty sheet, or no match in window
    """
    if not isinstance(timestamp, datetime):
        raise RowNotFoundError(f"Invalid timestamp: {timestamp!r}")

    last_row = sheet.get_last_row()
    if last_row < 1:
        raise RowNotFoundError(f"Row not found for timestamp {timestamp.isoformat()}: sheet is empty")

    start_row = max(1, last_row - lookback + 1)
    num_rows = last_row - start_row + 1
    values = sheet.get_column_values(start_row, column, num_rows)

    for offset in range(len(values) - 1, -1, -1):
        cell = values[offset]
        if not isinstance(cell, datetime):
            continue
        if abs(_align(cell, timestamp) - timestamp) < MATCH_TOLERANCE:
            row = start_row + offset
            logger.info(f"Matched submission {timestamp.isoformat()} to row {row}")
            return row

    raise RowNotFoundError(
        f"Row not found for timestamp {timestamp.isoformat()} "
        f"in rows {start_row}-{last_row}"
    )


def write_back(sheet: SheetAccess, row: int, column: int, value: str) -> None:
    """Write a single string into the designated output cell."""
    sheet.set_value(row, column, value)
    logger.info(f"Wrote '{value}' to row {row}, column {column}")
