"""Quiz answer grading under exact or case-insensitive matching."""

import logging
from typing import Optional

from pydantic import BaseModel

from formcheck.core.form_spec import QuizData
from formcheck.signals.models import TextSignal
from formcheck.validators.models import ValidationFinding

logger = logging.getLogger(__name__)

NEAR_MATCH_ISSUE = "Your answer is close but may not be exactly correct. Please review."


class GradeResult(BaseModel):
    correct: bool
    finding: Optional[ValidationFinding] = None
    points: int = 0


# ── Matching ─────────────────────────────────────────────────────────


def normalize(answer: str, match_mode: str) -> str:
    """Trim; case-fold as well unless the match mode is exact."""
    answer = answer.strip()
    if match_mode == "case_insensitive":
        answer = answer.casefold()
    return answer


def entities_overlap(answer_signals: TextSignal, key_signals: TextSignal) -> bool:
    """True when an entity name on one side contains one from the other side."""
    answer_names = answer_signals.entity_names()
    key_names = key_signals.entity_names()
    return any(a in k or k in a for a in answer_names for k in key_names)


# ── Grading ──────────────────────────────────────────────────────────


def grade(
    quiz: QuizData,
    raw_answer: Optional[str],
    signals: Optional[TextSignal] = None,
    key_signals: Optional[TextSignal] = None,
) -> GradeResult:
    """Grade one answer against its key. Never raises.

    Multiple-choice and true/false answers must match exactly after
    normalization. Fill-in-the-blank answers that contain (or are contained
    in) the key, or that share an entity with it, count as a near-match:
    a warning, not an error, though the answer still earns no points.
    """
    if raw_answer is None or not str(raw_answer).strip():
        return GradeResult(correct=False)

    submitted = normalize(str(raw_answer), quiz.match_mode)
    expected = normalize(quiz.correct_answer, quiz.match_mode)

    if submitted == expected:
        return GradeResult(correct=True, points=quiz.points)

    if quiz.question_kind == "fill_blank":
        return GradeResult(correct=False, finding=_grade_fill_blank(
            quiz, submitted, expected, signals, key_signals,
        ))

    return GradeResult(
        correct=False,
        finding=ValidationFinding(
            type="quiz",
            issue="Your answer is not correct.",
            correction=f"Correct answer: {quiz.correct_answer}",
            severity="error",
        ),
    )


def _grade_fill_blank(
    quiz: QuizData,
    submitted: str,
    expected: str,
    signals: Optional[TextSignal],
    key_signals: Optional[TextSignal],
) -> ValidationFinding:
    # Short keys make containment very lenient ("a" is inside most answers);
    # this is accepted behaviour for fill-in-the-blank questions.
    near = submitted in expected or expected in submitted
    if not near and signals is not None and key_signals is not None:
        near = entities_overlap(signals, key_signals)

    if near:
        logger.debug("Fill-blank near-match: %r vs %r", submitted, expected)
        return ValidationFinding(
            type="quiz",
            issue=NEAR_MATCH_ISSUE,
            correction=f"Correct answer: {quiz.correct_answer}",
            severity="warning",
        )

    return ValidationFinding(
        type="quiz",
        issue="Your answer does not match the expected answer. Please review and try again.",
        correction=quiz.correct_answer,
        severity="error",
    )
