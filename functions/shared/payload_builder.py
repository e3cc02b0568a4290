"""
Jira Payload Builder
====================

Maps a ``ParsedRequest`` into the body of ``POST /rest/api/{2|3}/issue``.

Field rendering rules
---------------------
- Single select  -> ``{"value": answer}``
- Multi select   -> ``[{"value": a}, {"value": b}, ...]`` (order preserved)
- Cascading      -> ``{"value": l1, "child": {"value": l2, "child": {...}}}``
- Date           -> ``"YYYY-MM-DD"``
- Free text      -> plain string (REST v2) or ADF document (REST v3)

Custom fields are addressed by the identifiers in
``IntegrationConfig.jira_field_ids``; a field with no identifier is left out
of the payload with a warning. Custom fields whose value is ``None`` or
empty text are left out.

No I/O happens here; the only log output is the unmapped-field warning.
"""

import re
import logging
from typing import Any, Dict, List, Optional, Sequence

from .config import IntegrationConfig
from .helpers import format_date_for_jira
from .models import ParsedRequest

logger = logging.getLogger(__name__)

_LINE_SPLIT = re.compile(r"\r?\n")


# ============== Field Renderers ==============

def to_adf(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Convert plain text to an Atlassian Document Format document.

    One paragraph per line; blank lines become empty paragraphs so the
    layout of the original answer survives. Returns None for empty input.
    """
    if not text:
        return None
    paragraphs = []
    for line in _LINE_SPLIT.split(str(text)):
        paragraphs.append({
            "type": "paragraph",
            "content": [{"type": "text", "text": line}] if line.strip() else [],
        })
    return {"type": "doc", "version": 1, "content": paragraphs}


def single_select(value: Any) -> Optional[Dict[str, str]]:
    if value is None or value == "":
        return None
    return {"value": str(value)}


def multi_select(values: Optional[Sequence[Any]]) -> List[Dict[str, str]]:
    return [{"value": str(v)} for v in (values or [])]


def cascading_select(levels: Sequence[Any]) -> Optional[Dict[str, Any]]:
    """
    Nest option levels parent-first, stopping at the first empty level.

    >>> cascading_select(["Hardware", "Laptop", ""])
    {'value': 'Hardware', 'child': {'value': 'Laptop'}}
    """
    chain = []
    for level in levels:
        if level is None or str(level).strip() == "":
            break
        chain.append(str(level))
    if not chain:
        return None

    node: Optional[Dict[str, Any]] = None
    for value in reversed(chain):
        current: Dict[str, Any] = {"value": value}
        if node is not None:
            current["child"] = node
        node = current
    return node


def render_text(text: Optional[str], api_version: int) -> Any:
    """Rich text for v3, plain string for v2."""
    if api_version >= 3:
        return to_adf(text)
    return text or None


def reporter_field(reporter_id: Optional[str], api_version: int) -> Optional[Dict[str, str]]:
    if not reporter_id:
        return None
    if api_version >= 3:
        return {"accountId": reporter_id}
    return {"name": reporter_id}


# ============== Payload Assembly ==============

def build_base_fields(parsed: ParsedRequest, config: IntegrationConfig) -> Dict[str, Any]:
    """Standard fields shared by every form."""
    fields: Dict[str, Any] = {
        "project": {"key": config.jira_project_key},
        "issuetype": {"name": config.jira_issue_type},
        "summary": parsed.summary,
    }

    description = render_text(parsed.description, config.jira_api_version)
    if description is not None:
        fields["description"] = description

    reporter = reporter_field(config.jira_reporter_id, config.jira_api_version)
    if reporter is not None:
        fields["reporter"] = reporter

    if config.jira_labels:
        fields["labels"] = list(config.jira_labels)

    return fields


def set_custom_field(
    fields: Dict[str, Any],
    config: IntegrationConfig,
    name: str,
    value: Any,
) -> None:
    """Place a rendered value under the configured custom field id."""
    if value is None or value == "":
        return
    field_id = config.field_id(name)
    if not field_id:
        logger.warning(f"No Jira field id configured for '{name}' - value not sent")
        return
    fields[field_id] = value


def build_standard_payload(
    parsed: ParsedRequest,
    config: IntegrationConfig,
    _respondent_email: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Payload for the standard request form.

    Custom fields: budget_code (text), due_date (date),
    department (single select), request_type (multi select).
    The respondent email is not part of this form's payload.
    """
    fields = build_base_fields(parsed, config)

    set_custom_field(fields, config, "budget_code", parsed.get("budget_code"))
    set_custom_field(fields, config, "due_date", format_date_for_jira(parsed.get("due_date")))
    set_custom_field(fields, config, "department", single_select(parsed.get("department")))
    set_custom_field(fields, config, "request_type", multi_select(parsed.get("request_type")))

    return {"fields": fields}


def build_cascading_payload(
    parsed: ParsedRequest,
    config: IntegrationConfig,
    respondent_email: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Payload for the catalogue request form.

    Custom fields: request_category (three-level cascading select),
    business_justification and requested_for (free text), needed_by (date).
    The respondent's email is recorded in requested_for when the form leaves
    it blank.
    """
    fields = build_base_fields(parsed, config)

    category = cascading_select([
        parsed.get("category"),
        parsed.get("subcategory"),
        parsed.get("item"),
    ])
    set_custom_field(fields, config, "request_category", category)

    justification = parsed.get("business_justification")
    set_custom_field(
        fields, config, "business_justification",
        render_text(justification, config.jira_api_version),
    )

    requested_for = parsed.get("requested_for") or respondent_email
    set_custom_field(fields, config, "requested_for", requested_for or None)

    set_custom_field(fields, config, "needed_by", format_date_for_jira(parsed.get("needed_by")))

    return {"fields": fields}
