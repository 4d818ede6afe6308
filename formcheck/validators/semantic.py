"""Signal-driven checks: tone, name/company plausibility, sentence completeness."""

import logging
import re

from formcheck.core.form_spec import FieldSpec
from formcheck.signals.models import TextSignal
from formcheck.validators.models import ValidationFinding
from formcheck.validators.wordlists import find_negative_terms, find_profanity, soften

logger = logging.getLogger(__name__)

NEGATIVE_WARNING_SCORE = -0.6
NEGATIVE_ERROR_SCORE = -0.8

INCOMPLETE_MIN_TEXT = 10
INCOMPLETE_REPORT_TEXT = 20
INCOMPLETE_SENTENCE_LENGTH = 5

_ENTITY_LABEL_RE = re.compile(r"name|company|organization|business", re.IGNORECASE)
# Checked before the name pattern: "Company Name" is a company field
_COMPANY_LABEL_RE = re.compile(r"company|organization|business", re.IGNORECASE)

NEUTRAL_LANGUAGE_HELP = "Please use more neutral language to describe your experience."


# ── Public API ───────────────────────────────────────────────────────


def analyze(field: FieldSpec, raw_value: str, signals: TextSignal) -> list[ValidationFinding]:
    """Evaluate all signal-driven rules for one field value.

    Neutral signals (disabled provider) pass every rule. Raises TypeError when
    ``signals`` is not a TextSignal.
    """
    if not isinstance(signals, TextSignal):
        raise TypeError(f"Expected TextSignal, got {type(signals).__name__}")

    if signals.neutral or not raw_value:
        return []

    findings: list[ValidationFinding] = []
    for check in (check_tone, check_entity, check_sentences):
        finding = check(field, raw_value, signals)
        if finding is not None:
            findings.append(finding)
    return findings


# ── Tone ─────────────────────────────────────────────────────────────


def check_tone(field: FieldSpec, text: str, signals: TextSignal) -> ValidationFinding | None:
    score = signals.sentiment_score
    if score >= NEGATIVE_WARNING_SCORE:
        return None

    if find_negative_terms(text) or find_profanity(text):
        correction = soften(text)
    else:
        correction = NEUTRAL_LANGUAGE_HELP

    logger.debug("Field %s: negative tone (score=%.2f)", field.id, score)
    return ValidationFinding(
        type="sentiment",
        issue="The tone of your input is very negative. Please consider rephrasing.",
        correction=correction,
        severity="error" if score < NEGATIVE_ERROR_SCORE else "warning",
    )


# ── Name / Company Plausibility ──────────────────────────────────────


def entity_intent(field: FieldSpec) -> str | None:
    """'company', 'name', or None for fields the plausibility check ignores.

    Company wording wins over name wording, so "Company Name" expects an
    organization rather than a person.
    """
    if field.is_quiz or not _ENTITY_LABEL_RE.search(field.label):
        return None
    if _COMPANY_LABEL_RE.search(field.label):
        return "company"
    return "name"


def check_entity(field: FieldSpec, text: str, signals: TextSignal) -> ValidationFinding | None:
    intent = entity_intent(field)
    if intent is None:
        return None

    if intent == "company":
        if signals.has_entity_type("ORGANIZATION"):
            return None
        return ValidationFinding(
            type="entity",
            issue="This doesn't look like a typical company or organization name.",
            correction="Enter the full organization name, e.g. 'Acme Corporation'.",
            severity="error",
        )

    if signals.has_entity_type("PERSON"):
        return None
    return ValidationFinding(
        type="entity",
        issue="This doesn't look like a typical person's name.",
        correction="Enter a first and last name, e.g. 'Jane Smith'.",
        severity="error",
    )


# ── Sentence Completeness ────────────────────────────────────────────


def check_sentences(field: FieldSpec, text: str, signals: TextSignal) -> ValidationFinding | None:
    if len(text) <= INCOMPLETE_MIN_TEXT:
        return None

    short = [
        s for s in signals.sentences
        if 0 < len(s.text.strip()) < INCOMPLETE_SENTENCE_LENGTH
    ]
    if not short or len(text) <= INCOMPLETE_REPORT_TEXT:
        return None

    return ValidationFinding(
        type="grammar",
        issue="Some sentences appear incomplete.",
        correction="Write each thought as a complete sentence.",
        severity="warning",
    )
