"""
Form Response Parser
====================

Turns the ordered (question title, answer) pairs of a submission into a flat
``ParsedRequest``.

Titles are matched exactly against a fixed table per form; answers to any
other question are ignored. The table is the place to edit when a question is
renamed on the form.

    >>> mapping = FormMapping(
    ...     name="example",
    ...     fields=[
    ...         FieldSpec("Short Request Summary", "summary"),
    ...         FieldSpec("Request Type", "request_type", AnswerKind.MULTI_SELECT),
    ...     ],
    ... )
    >>> parsed = parse_responses(record, mapping)
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .models import AnswerKind, ParsedRequest, SubmissionRecord

logger = logging.getLogger(__name__)

SUMMARY_FIELD = "summary"
DESCRIPTION_FIELD = "description"
FALLBACK_SUMMARY_PREFIX = "New Request from "


@dataclass(frozen=True)
class FieldSpec:
    """One expected form question."""
    title: str
    name: str
    kind: AnswerKind = AnswerKind.TEXT


@dataclass
class FormMapping:
    """Title table for one form."""
    name: str
    fields: Sequence[FieldSpec]
    required: Sequence[str] = (SUMMARY_FIELD,)
    _by_title: Dict[str, FieldSpec] = field(init=False, repr=False)

    def __post_init__(self):
        self._by_title = {spec.title: spec for spec in self.fields}

    def lookup(self, title: str) -> Optional[FieldSpec]:
        return self._by_title.get(title)

    def empty_values(self) -> Dict[str, Any]:
        """Initial value for every named field."""
        values: Dict[str, Any] = {}
        for spec in self.fields:
            if spec.kind == AnswerKind.MULTI_SELECT:
                values[spec.name] = []
            elif spec.kind == AnswerKind.TEXT:
                values[spec.name] = ""
            else:
                values[spec.name] = None
        return values


def normalize_multi_select(answer: Any) -> List[str]:
    """Checkbox answers always become a list of strings, one per item."""
    if answer is None or answer == "":
        return []
    if isinstance(answer, (list, tuple)):
        return ["" if item is None else str(item) for item in answer]
    return [str(answer)]


def _is_blank(value: Any) -> bool:
    if value is None or value == "":
        return True
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def parse_responses(record: SubmissionRecord, mapping: FormMapping) -> ParsedRequest:
    """
    Parse a submission against a form mapping.

    - Unknown titles are ignored.
    - Multi-select answers are normalised to lists; other answers pass through.
    - An empty summary falls back to "New Request from <respondent email>".
    - Required fields that are still empty are listed in ``missing_fields``.
    """
    values = mapping.empty_values()
    ignored = 0

    for title, answer in record.answers():
        spec = mapping.lookup(title)
        if spec is None:
            ignored += 1
            continue
        if spec.kind == AnswerKind.MULTI_SELECT:
            values[spec.name] = normalize_multi_select(answer)
        else:
            values[spec.name] = answer

    if ignored:
        logger.debug(f"Ignored {ignored} unmapped responses for form '{mapping.name}'")

    summary = values.pop(SUMMARY_FIELD, "")
    description = values.pop(DESCRIPTION_FIELD, "")

    if _is_blank(summary) and record.respondent_email:
        summary = FALLBACK_SUMMARY_PREFIX + record.respondent_email
        logger.info(f"No summary answered, using fallback: {summary}")

    parsed = ParsedRequest(
        summary="" if summary is None else str(summary),
        description="" if description is None else str(description),
        fields=values,
    )

    for name in mapping.required:
        if name == SUMMARY_FIELD:
            value = parsed.summary
        elif name == DESCRIPTION_FIELD:
            value = parsed.description
        else:
            value = parsed.fields.get(name)
        if _is_blank(value):
            parsed.missing_fields.append(name)

    return parsed
