"""
fn_cascading_request: Catalogue Request Form → Jira Server/DC
=============================================================

Same flow as fn_form_to_jira for the catalogue request form, against a Jira
Server/Data Center instance: REST v2, Bearer personal access token, plain
text description, and the Category / Sub-category / Item answers sent as one
three-level cascading select.

Settings prefixed with ``CASCADING_`` (e.g. ``CASCADING_JIRA_DOMAIN``) take
precedence over the shared keys.

Request Format
--------------
{
    "timestamp": "2026-01-05T10:15:30Z",
    "respondentEmail": "user@company.com",
    "responses": [
        {"title": "Request Title", "answer": "New laptop"},
        {"title": "Category", "answer": "Hardware"},
        {"title": "Sub-category", "answer": "Laptop"},
        {"title": "Item", "answer": "Standard 14-inch"}
    ]
}

Response Codes
--------------
200 "CREATED", 422 "SKIPPED", 502 "FAILED", 400/500 "ERROR"
(see fn_form_to_jira)
"""

import logging
import json
import azure.functions as func

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from shared import (
    CASCADING_REQUEST_FORM,
    generate_trace_id,
    process_submission,
)


logger = logging.getLogger(__name__)


def main(req: func.HttpRequest) -> func.HttpResponse:
    """Main entry point for catalogue request submissions."""
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

        status_code, result = process_submission(body, CASCADING_REQUEST_FORM, trace_id)
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
