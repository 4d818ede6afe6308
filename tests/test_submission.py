"""Tests for submitting forms: rejection, storage and audit events."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from formcheck.core.database import SubmissionDatabase
from formcheck.core.form_spec import load_form_spec
from formcheck.pipeline.aggregator import ValidationAggregator
from formcheck.pipeline.models import SubmissionOutcome
from formcheck.pipeline.submission import build_answer_records, submit_form
from formcheck.signals.provider import DisabledSignalProvider
from formcheck.validators.models import ValidationFinding

FORMS_DIR = Path(__file__).resolve().parent.parent / "forms"
FEEDBACK_PATH = FORMS_DIR / "customer_feedback.yaml"
QUIZ_PATH = FORMS_DIR / "general_knowledge_quiz.yaml"

FEEDBACK_VALUES = {
    "full_name": "Jane Smith",
    "email": "jane@example.com",
    "contact_number": "5551234",
    "subject": "Late delivery",
    "description": "The parcel arrived two days late but was intact.",
    "company": "Acme Corporation",
}


@pytest.fixture()
def db(tmp_path):
    sdb = SubmissionDatabase("test_submit", data_root=tmp_path)
    yield sdb
    sdb.close()


@pytest.fixture()
def aggregator():
    return ValidationAggregator(DisabledSignalProvider())


@pytest.fixture(scope="module")
def feedback_form():
    return load_form_spec(FEEDBACK_PATH)


# ── Accepted Submissions ─────────────────────────────────────────────


def test_accepted_submission_is_stored(db, aggregator, feedback_form):
    receipt = submit_form(db, feedback_form, FEEDBACK_VALUES, aggregator, submitted_by="jane")

    assert receipt.accepted
    assert receipt.message == "Form submitted successfully."
    assert receipt.errors == []

    sub = db.get_submission(receipt.submission_id)
    assert sub["submitted_by"] == "jane"
    assert sub["definition_hash"] == feedback_form.definition_hash()
    assert sub["quiz_score"] is None
    assert [a["field_id"] for a in db.get_answers(receipt.submission_id)] == [
        f.id for f in feedback_form.fields
    ]
    assert [e["action"] for e in db.get_audit_log()] == ["form_submitted"]


def test_warnings_noted_in_message(db, aggregator, feedback_form):
    values = dict(FEEDBACK_VALUES, subject="LATE DELIVERY AGAIN")
    receipt = submit_form(db, feedback_form, values, aggregator)

    assert receipt.accepted
    assert "1 answer note(s)" in receipt.message
    answers = {a["field_id"]: a for a in db.get_answers(receipt.submission_id)}
    assert answers["subject"]["findings"][0]["type"] == "style"


def test_quiz_submission_stores_score(db, aggregator):
    form = load_form_spec(QUIZ_PATH)
    values = {
        "student_name": "Ada Lovelace",
        "capital": "Paris",
        "largest_animal": "Blue Whale",
        "boiling_point": "True",
        "chemical_symbol": "Na",
    }
    receipt = submit_form(db, form, values, aggregator)

    assert receipt.accepted
    assert db.get_submission(receipt.submission_id)["quiz_score"] == 7
    answers = {a["field_id"]: a for a in db.get_answers(receipt.submission_id)}
    assert answers["capital"]["quiz_correct"] is True
    assert answers["student_name"]["quiz_correct"] is None


# ── Rejected Submissions ─────────────────────────────────────────────


def test_rejected_submission_not_stored(db, aggregator, feedback_form):
    values = dict(FEEDBACK_VALUES, email="jane.example.com", subject="")
    receipt = submit_form(db, feedback_form, values, aggregator)

    assert not receipt.accepted
    assert receipt.submission_id is None
    assert receipt.message == "Some answers need review based on validation checks."
    assert [(e.field_id, e.label) for e in receipt.errors] == [
        ("email", "Email Address"),
        ("subject", "Subject"),
    ]
    assert db.get_submissions() == []

    events = db.get_audit_log("submission_rejected")
    assert events[0]["metadata"] == {"errors": 2, "fields": ["email", "subject"]}


def test_not_evaluated_fields_audited(db, feedback_form):
    outcome = SubmissionOutcome(
        findings_by_field={f.id: [] for f in feedback_form.fields},
        field_status={"full_name": "evaluated", "company": "not_evaluated"},
    )
    aggregator = MagicMock()
    aggregator.evaluate.return_value = outcome

    receipt = submit_form(db, feedback_form, FEEDBACK_VALUES, aggregator)

    assert receipt.accepted
    failed = db.get_audit_log("ai_validation_failed")
    assert [e["entity_id"] for e in failed] == ["company"]
    answers = {a["field_id"]: a for a in db.get_answers(receipt.submission_id)}
    assert answers["company"]["not_evaluated"] is True
    assert answers["full_name"]["not_evaluated"] is False


# ── Answer Records ───────────────────────────────────────────────────


def test_build_answer_records_flags(feedback_form):
    tone = ValidationFinding(type="sentiment", issue="Negative.", severity="warning")
    entity = ValidationFinding(type="entity", issue="Not a company.", severity="error")
    outcome = SubmissionOutcome(
        findings_by_field={"description": [tone], "company": [entity]},
    )

    records = {r.field_id: r for r in build_answer_records(feedback_form, {"contact_number": 5551234}, outcome)}

    assert records["description"].sentiment_flag
    assert records["company"].entity_flag
    assert not records["full_name"].sentiment_flag
    assert records["contact_number"].value == "5551234"
    assert records["email"].value == ""
