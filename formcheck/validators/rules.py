"""Deterministic, signal-free checks on a single submitted value.

The repeated-word check runs here for every free-text field, including
fields that have not opted in to semantic checks.
"""

import logging
import re
from collections import Counter

from formcheck.core.form_spec import FieldSpec
from formcheck.validators.models import ValidationFinding
from formcheck.validators.wordlists import find_profanity, sanitize

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
NUMBER_RE = re.compile(r"^-?\d*\.?\d+$")

_NUMBER_SEARCH_RE = re.compile(r"-?\d+(?:\.\d+)?")
_NUMERIC_LABEL_RE = re.compile(r"\b(number|amount|quantity|count)\b", re.IGNORECASE)
_EMAIL_LABEL_RE = re.compile(r"e-?mail", re.IGNORECASE)
_EMAIL_JUNK_RE = re.compile(r"[\s,;:<>()\[\]\\\"']")
_LETTER_RE = re.compile(r"[a-zA-Z]")

MIN_VISIBLE_CHARS = 3
MAX_LENGTH = 5000
SHOUTING_RATIO = 0.5
SHOUTING_MIN_LENGTH = 5
SPECIAL_CHAR_RATIO = 0.3
SPECIAL_CHAR_MIN_LENGTH = 10
REPEAT_MIN_TOKEN_LENGTH = 3
REPEAT_MAX_OCCURRENCES = 3

EMAIL_HELP = "Enter an email address like name@example.com"


# ── Public API ───────────────────────────────────────────────────────


def validate(field: FieldSpec, raw_value) -> list[ValidationFinding]:
    """Run every rule check for one field value.

    Pure and idempotent. Blank values only get the required/blank check.
    """
    value = "" if raw_value is None else str(raw_value)
    findings: list[ValidationFinding] = []

    blank = check_blank(field, value)
    if blank is not None:
        return [blank]
    if not value:
        return findings

    for check in _VALUE_CHECKS:
        finding = check(field, value)
        if finding is not None:
            findings.append(finding)

    if findings:
        logger.debug(
            "Field %s: %d rule finding(s): %s",
            field.id, len(findings), ", ".join(f.type for f in findings),
        )
    return findings


def is_numeric_field(field: FieldSpec) -> bool:
    if field.declared_type == "number":
        return True
    # Label hints only apply to free-text inputs
    return field.declared_type in ("text", "textarea") and bool(_NUMERIC_LABEL_RE.search(field.label))


# ── Presence ─────────────────────────────────────────────────────────


def check_blank(field: FieldSpec, value: str) -> ValidationFinding | None:
    if not value:
        if field.required:
            return ValidationFinding(
                type="format",
                issue="This field is required. Please provide an answer.",
                severity="error",
            )
        return None

    if not value.strip():
        # Whitespace-only answers are rejected whether or not the field is required
        return ValidationFinding(
            type="format",
            issue="Please enter a valid answer. Blank spaces are not accepted.",
            severity="error",
        )
    return None


# ── Shape ────────────────────────────────────────────────────────────


def check_email(field: FieldSpec, value: str) -> ValidationFinding | None:
    if field.declared_type != "email" or EMAIL_RE.match(value):
        return None

    candidate = _EMAIL_JUNK_RE.sub("", value)
    if "@" in candidate and candidate != value.strip():
        correction = candidate
    else:
        correction = EMAIL_HELP

    return ValidationFinding(
        type="format",
        issue="Please enter a valid email address.",
        correction=correction,
        severity="error",
    )


def check_number(field: FieldSpec, value: str) -> ValidationFinding | None:
    if not is_numeric_field(field):
        return None

    trimmed = value.strip()
    if NUMBER_RE.match(trimmed):
        return None

    if EMAIL_RE.match(trimmed):
        issue = "Email addresses are not allowed. Please enter numbers only."
    elif _LETTER_RE.search(trimmed):
        issue = "Text is not allowed. Please enter numbers only."
    else:
        issue = "Please enter a valid number. Only numeric values are accepted."

    match = _NUMBER_SEARCH_RE.search(trimmed)
    return ValidationFinding(
        type="format",
        issue=issue,
        correction=match.group(0) if match else None,
        # A label that merely mentions a quantity is a hint, not a declared type
        severity="error" if field.declared_type == "number" else "warning",
    )


def check_text_shape(field: FieldSpec, value: str) -> ValidationFinding | None:
    if field.declared_type != "text" or field.is_quiz or is_numeric_field(field):
        return None

    trimmed = value.strip()
    if trimmed.isdigit():
        return ValidationFinding(
            type="format",
            issue="Text fields cannot be all numbers. Please enter text only.",
            severity="error",
        )
    if EMAIL_RE.match(trimmed) and not _EMAIL_LABEL_RE.search(field.label):
        return ValidationFinding(
            type="format",
            issue="Email addresses are not allowed in text fields. Please enter text only.",
            severity="error",
        )
    return None


# ── Length & Style ───────────────────────────────────────────────────


def _is_free_text(field: FieldSpec) -> bool:
    return field.declared_type in ("text", "textarea") and not field.is_quiz


def check_length(field: FieldSpec, value: str) -> ValidationFinding | None:
    if not _is_free_text(field):
        return None

    visible = sum(1 for c in value if not c.isspace())
    if visible < MIN_VISIBLE_CHARS:
        return ValidationFinding(
            type="length",
            issue="Your answer is very short. Please provide more detail.",
            severity="warning",
        )
    if len(value) > MAX_LENGTH:
        return ValidationFinding(
            type="length",
            issue=f"Your answer is longer than {MAX_LENGTH} characters.",
            correction="Consider splitting your answer into shorter parts.",
            severity="warning",
        )
    return None


def check_repetition(field: FieldSpec, value: str) -> ValidationFinding | None:
    if not _is_free_text(field):
        return None

    counts = Counter(value.lower().split())
    offenders = [
        (token, n) for token, n in counts.most_common()
        if len(token) > REPEAT_MIN_TOKEN_LENGTH and n > REPEAT_MAX_OCCURRENCES
    ]
    if not offenders:
        return None

    token, n = offenders[0]
    return ValidationFinding(
        type="style",
        issue=f"The word '{token}' is repeated {n} times.",
        correction="Vary your wording to avoid repeating the same word.",
        severity="warning",
    )


def check_profanity(field: FieldSpec, value: str) -> ValidationFinding | None:
    matches = find_profanity(value)
    if not matches:
        return None

    return ValidationFinding(
        type="content",
        issue="Your answer contains inappropriate language.",
        correction=sanitize(value),
        severity="error",
    )


def check_shouting(field: FieldSpec, value: str) -> ValidationFinding | None:
    if len(value) <= SHOUTING_MIN_LENGTH:
        return None

    letters = [c for c in value if c.isalpha()]
    if not letters:
        return None
    upper = sum(1 for c in letters if c.isupper())
    if upper / len(letters) <= SHOUTING_RATIO:
        return None

    return ValidationFinding(
        type="style",
        issue="Your answer uses too many capital letters.",
        correction=to_sentence_case(value),
        severity="warning",
    )


def check_special_chars(field: FieldSpec, value: str) -> ValidationFinding | None:
    if len(value) <= SPECIAL_CHAR_MIN_LENGTH:
        return None

    special = sum(1 for c in value if not c.isalnum() and not c.isspace())
    if special / len(value) <= SPECIAL_CHAR_RATIO:
        return None

    return ValidationFinding(
        type="style",
        issue="Your answer contains too many special characters.",
        correction="Use mostly letters and numbers.",
        severity="warning",
    )


# ── Helpers ──────────────────────────────────────────────────────────


def to_sentence_case(text: str) -> str:
    """First character upper, the rest lower."""
    text = text.strip()
    if not text:
        return text
    return text[0].upper() + text[1:].lower()


_VALUE_CHECKS = (
    check_email,
    check_number,
    check_text_shape,
    check_length,
    check_repetition,
    check_profanity,
    check_shouting,
    check_special_chars,
)
