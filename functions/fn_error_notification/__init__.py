"""
fn_error_notification: Administrator Alert Email
================================================

Sends the generic "[System Alert] Error Notification" email to the
administrators listed in ERROR_EMAIL_RECIPIENTS (falls back to ADMIN_EMAIL).
Other automations call this to report their own failures.

Request Format
--------------
{
    "errorText": "Timeout calling vendor API",   // Optional
    "payload": {"order": 42}                     // Optional - string or JSON
}

Response Codes
--------------
200 OK
    - "SENT": Email handed to the mail flow
    - "SKIPPED": No recipients configured

502 Bad Gateway
    - "FAILED": The mail flow rejected the message or was unreachable

400 Bad Request
    - "ERROR": Invalid request format
"""

import logging
import json
import azure.functions as func
from pydantic import ValidationError

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from shared import (
    ConfigKey,
    EnvironmentConfigStore,
    ErrorNotificationRequest,
    ErrorNotifier,
    PowerAutomateMailer,
    generate_trace_id,
)


logger = logging.getLogger(__name__)


def _response(body: dict, status_code: int) -> func.HttpResponse:
    return func.HttpResponse(
        json.dumps(body),
        status_code=status_code,
        mimetype="application/json"
    )


def main(req: func.HttpRequest) -> func.HttpResponse:
    """Main entry point for alert emails."""
    trace_id = req.headers.get("x-trace-id") or generate_trace_id()

    try:
        # 1. Parse request
        try:
            body = req.get_json()
            request = ErrorNotificationRequest.model_validate(body or {})
        except (ValueError, ValidationError) as e:
            logger.error(f"[{trace_id}] Request validation failed: {e}")
            return _response({
                "status": "ERROR",
                "message": f"Invalid request: {str(e)}",
                "trace_id": trace_id
            }, 400)

        # 2. Resolve recipients
        store = EnvironmentConfigStore()
        recipients = (
            store.get(ConfigKey.ERROR_EMAIL_RECIPIENTS.value)
            or store.get(ConfigKey.ADMIN_EMAIL.value)
        )
        notifier = ErrorNotifier(PowerAutomateMailer(), recipients)

        if not notifier.recipients:
            logger.warning(f"[{trace_id}] ERROR_EMAIL_RECIPIENTS not configured - skipping alert email")
            return _response({
                "status": "SKIPPED",
                "message": "No recipients configured",
                "trace_id": trace_id
            }, 200)

        # 3. Send
        sent = notifier.notify(
            error_text=request.error_text,
            payload=request.payload,
            correlation_id=trace_id,
        )
        if not sent:
            return _response({
                "status": "FAILED",
                "message": "Alert email could not be sent",
                "trace_id": trace_id
            }, 502)

        return _response({
            "status": "SENT",
            "recipients": notifier.recipients,
            "trace_id": trace_id
        }, 200)

    except Exception as e:
        logger.exception(f"[{trace_id}] Unexpected error: {e}")
        return _response({
            "status": "ERROR",
            "message": f"Internal server error: {str(e)}",
            "trace_id": trace_id
        }, 500)
