"""Submission handling: evaluate, then reject with findings or persist answers."""

import logging
from typing import Mapping, Optional

from pydantic import BaseModel, Field

from formcheck.core.database import SubmissionDatabase
from formcheck.core.form_spec import FormSpec
from formcheck.pipeline.aggregator import ValidationAggregator
from formcheck.pipeline.models import AnswerRecord, SubmissionOutcome
from formcheck.validators.models import ValidationFinding

logger = logging.getLogger(__name__)


class FieldError(BaseModel):
    """An error finding tagged with the field it belongs to."""

    field_id: str
    label: str
    finding: ValidationFinding


class SubmissionReceipt(BaseModel):
    """What the caller reports back to the submitter."""

    accepted: bool
    submission_id: Optional[int] = None
    message: str
    errors: list[FieldError] = Field(default_factory=list)
    outcome: SubmissionOutcome


# ── Answer Records ───────────────────────────────────────────────────


def build_answer_records(
    form: FormSpec,
    values: Mapping,
    outcome: SubmissionOutcome,
) -> list[AnswerRecord]:
    """One record per field, with legacy flags derived from its findings."""
    not_evaluated = set(outcome.not_evaluated)
    records = []
    for field in form.fields:
        value = values.get(field.id)
        records.append(
            AnswerRecord.from_findings(
                field_id=field.id,
                value="" if value is None else str(value),
                findings=outcome.findings_for(field.id),
                not_evaluated=field.id in not_evaluated,
                quiz_correct=outcome.quiz_results.get(field.id),
            )
        )
    return records


# ── Submit ───────────────────────────────────────────────────────────


def submit_form(
    db: SubmissionDatabase,
    form: FormSpec,
    values: Mapping,
    aggregator: ValidationAggregator,
    submitted_by: str | None = None,
) -> SubmissionReceipt:
    """Validate a submission and store it when accepted.

    Rejected submissions are not stored; the receipt carries every error so
    all problems can be fixed in one round trip.
    """
    values = {str(k): v for k, v in values.items()}
    outcome = aggregator.evaluate(form.fields, values)

    for field_id in outcome.not_evaluated:
        db.log_audit(
            "ai_validation_failed",
            entity_type="form_field",
            entity_id=field_id,
            metadata={"form": form.title},
        )

    if not outcome.accepted:
        errors = [
            FieldError(field_id=fid, label=form.field(fid).label, finding=finding)
            for fid, finding in outcome.errors()
        ]
        db.log_audit(
            "submission_rejected",
            entity_type="form",
            entity_id=form.title,
            metadata={"errors": len(errors), "fields": sorted({e.field_id for e in errors})},
        )
        logger.info("Submission to '%s' rejected with %d error(s)", form.title, len(errors))
        return SubmissionReceipt(
            accepted=False,
            message="Some answers need review based on validation checks.",
            errors=errors,
            outcome=outcome,
        )

    records = build_answer_records(form, values, outcome)
    submission_id = db.add_submission(
        form_title=form.title,
        form_version=form.version,
        definition_hash=form.definition_hash(),
        answers=records,
        quiz_score=outcome.quiz_score,
        submitted_by=submitted_by,
    )
    db.log_audit(
        "form_submitted",
        entity_type="form",
        entity_id=form.title,
        metadata={"submission_id": submission_id},
    )

    warnings = len(outcome.all_findings())
    message = "Form submitted successfully."
    if warnings:
        message += f" {warnings} answer note(s) were recorded for review."
    return SubmissionReceipt(
        accepted=True,
        submission_id=submission_id,
        message=message,
        outcome=outcome,
    )
