"""
fn_form_to_jira: Standard Request Form → Jira Cloud
===================================================

Creates one Jira Cloud issue (REST v3, Basic auth, ADF description) for each
submission of the standard request form, then writes the issue key back into
the submission's row of the response sheet.

Request Format
--------------
{
    "timestamp": "2026-01-05T10:15:30Z",       // REQUIRED - submission time
    "respondentEmail": "user@company.com",     // Optional
    "responses": [                             // Ordered answers
        {"title": "Short Request Summary", "answer": "VPN access"},
        {"title": "Request Type", "answer": ["Access", "Hardware"]}
    ]
}

Response Codes
--------------
200 OK
    - "CREATED": Issue created (and written back when configured)

422 Unprocessable Entity
    - "SKIPPED": Required answers missing, no issue created

502 Bad Gateway
    - "FAILED": Jira rejected the request or was unreachable

400 Bad Request
    - "ERROR": Invalid request format

500 Internal Server Error
    - "ERROR": Invalid configuration or unexpected error
"""

import logging
import json
import azure.functions as func

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from shared import (
    STANDARD_REQUEST_FORM,
    generate_trace_id,
    process_submission,
)


logger = logging.getLogger(__name__)


def main(req: func.HttpRequest) -> func.HttpResponse:
    """
    Main entry point for standard request submissions.

    Flow:
    1. Parse request body
    2. Load configuration for the standard form
    3. Parse answers, locate the sheet row
    4. Create the Jira issue
    5. Write back the key (or error) and alert on failure
    """
    trace_id = req.headers.get("x-trace-id") or generate_trace_id()

    try:
        try:
            body = req.get_json()
        except ValueError as e:
            logger.error(f"[{trace_id}] Request body is not JSON: {e}")
            return func.HttpResponse(
                json.dumps({
                    "status": "ERROR",
                    "message": f"Invalid request: {str(e)}",
                    "trace_id": trace_id
                }),
                status_code=400,
                mimetype="application/json"
            )

        status_code, result = process_submission(body, STANDARD_REQUEST_FORM, trace_id)
        return func.HttpResponse(
            json.dumps(result),
            status_code=status_code,
            mimetype="application/json"
        )

    except Exception as e:
        logger.exception(f"[{trace_id}] Unexpected error: {e}")
        return func.HttpResponse(
            json.dumps({
                "status": "ERROR",
                "message": f"Internal server error: {str(e)}",
                "trace_id": trace_id
            }),
            status_code=500,
            mimetype="application/json"
        )
