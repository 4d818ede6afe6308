"""Tests for the validation aggregator: rules, signals and quiz grading together."""

import threading
import time
from pathlib import Path

import pytest

from formcheck.core.form_spec import FieldSpec, QuizData, load_form_spec
from formcheck.core.settings import EngineSettings
from formcheck.pipeline.aggregator import ValidationAggregator
from formcheck.signals.models import Entity, EntityResult, Sentence, SentimentResult, SyntaxResult
from formcheck.signals.provider import DisabledSignalProvider, TextSignalProvider

FORMS_DIR = Path(__file__).resolve().parent.parent / "forms"
FEEDBACK_PATH = FORMS_DIR / "customer_feedback.yaml"
QUIZ_PATH = FORMS_DIR / "general_knowledge_quiz.yaml"


# ── Test Doubles ─────────────────────────────────────────────────────


class StaticSignalProvider(TextSignalProvider):
    """Answers from lookup tables keyed by text; records every call."""

    def __init__(self, sentiment=None, entities=None, delays=None):
        self.sentiment = sentiment or {}
        self.entities = entities or {}
        self.delays = delays or {}
        self.calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def _record(self, kind, text):
        with self._lock:
            self.calls.append((kind, text))
        if text in self.delays:
            time.sleep(self.delays[text])

    def sentiment_of(self, text):
        self._record("sentiment", text)
        score = self.sentiment.get(text, 0.0)
        return SentimentResult(score=score, magnitude=abs(score))

    def entities_of(self, text):
        self._record("entities", text)
        return EntityResult(entities=[
            Entity(name=name, type=etype, salience=0.5)
            for name, etype in self.entities.get(text, [])
        ])

    def syntax_of(self, text):
        self._record("syntax", text)
        return SyntaxResult(sentences=[Sentence(text=text)])


class FailingSignalProvider(TextSignalProvider):
    def sentiment_of(self, text):
        raise ConnectionError("signal service unreachable")

    def entities_of(self, text):
        raise ConnectionError("signal service unreachable")

    def syntax_of(self, text):
        raise ConnectionError("signal service unreachable")


class BlockingSignalProvider(StaticSignalProvider):
    """Blocks on selected texts until released."""

    def __init__(self, blocked, **kw):
        super().__init__(**kw)
        self.blocked = set(blocked)
        self.release = threading.Event()

    def sentiment_of(self, text):
        if text in self.blocked:
            self.release.wait(5)
        return super().sentiment_of(text)


def _semantic(fid, label, declared_type="text", **kw):
    return FieldSpec(id=fid, label=label, declared_type=declared_type,
                     semantic_check_enabled=True, **kw)


FEEDBACK_VALUES = {
    "full_name": "Jane Smith",
    "email": "jane@example.com",
    "contact_number": "5551234",
    "subject": "Late delivery",
    "description": "The parcel arrived two days late but was intact.",
    "company": "Acme Corporation",
}


# ── End-to-End Scenarios ─────────────────────────────────────────────


def test_company_field_without_organization_rejected():
    agg = ValidationAggregator(StaticSignalProvider())
    outcome = agg.evaluate([_semantic("c", "Company Name")], {"c": "my company"})

    findings = outcome.findings_for("c")
    assert [(f.type, f.severity) for f in findings] == [("entity", "error")]
    assert not outcome.accepted
    assert outcome.field_status["c"] == "evaluated"


def test_valid_email_accepted():
    agg = ValidationAggregator(StaticSignalProvider())
    field = FieldSpec(id="e", label="Email", declared_type="email")
    outcome = agg.evaluate([field], {"e": "user@example.com"})

    assert outcome.findings_for("e") == []
    assert outcome.accepted
    assert outcome.quiz_score is None


def test_fill_blank_case_insensitive_correct():
    quiz = QuizData(question_kind="fill_blank", correct_answer="Blue Whale")
    field = FieldSpec(id="q", label="Largest animal?", quiz=quiz)
    provider = StaticSignalProvider()
    outcome = ValidationAggregator(provider).evaluate([field], {"q": "blue whale"})

    assert outcome.quiz_results == {"q": True}
    assert outcome.findings_for("q") == []
    assert outcome.quiz_score == 1
    # Exact matches need no entity lookup
    assert provider.calls == []


def test_disabled_provider_marks_fields_neutral():
    agg = ValidationAggregator(DisabledSignalProvider())
    form = load_form_spec(FEEDBACK_PATH)
    values = dict(FEEDBACK_VALUES, company="my company", description="This was awful and I hate it.")

    outcome = agg.evaluate(form.fields, values)

    semantic_types = {"sentiment", "entity", "grammar"}
    assert not [f for f in outcome.all_findings() if f.type in semantic_types]
    for fid in ("full_name", "description", "company"):
        assert outcome.field_status[fid] == "neutral"
    assert outcome.not_evaluated == []
    assert outcome.accepted


# ── Fail-Open ────────────────────────────────────────────────────────


def test_provider_failure_is_not_evaluated_and_accepted():
    agg = ValidationAggregator(FailingSignalProvider())
    outcome = agg.evaluate([_semantic("c", "Company Name")], {"c": "my company"})

    assert outcome.findings_for("c") == []
    assert outcome.field_status["c"] == "not_evaluated"
    assert outcome.not_evaluated == ["c"]
    assert outcome.accepted


def test_provider_failure_does_not_hide_rule_errors():
    agg = ValidationAggregator(FailingSignalProvider())
    field = _semantic("n", "Full Name", required=True)
    outcome = agg.evaluate([field], {"n": ""})

    assert [(f.type, f.severity) for f in outcome.findings_for("n")] == [("format", "error")]
    # Blank value: no fetch, so nothing was skipped because of the failure
    assert outcome.field_status["n"] == "skipped"
    assert not outcome.accepted


def test_fill_blank_failure_falls_back_to_containment():
    quiz = QuizData(question_kind="fill_blank", correct_answer="Blue Whale")
    field = FieldSpec(id="q", label="Largest animal?", quiz=quiz)
    outcome = ValidationAggregator(FailingSignalProvider()).evaluate([field], {"q": "the blue whale"})

    assert outcome.findings_for("q")[0].severity == "warning"
    assert outcome.field_status["q"] == "not_evaluated"
    assert outcome.accepted


def test_failed_key_lookup_marks_semantic_quiz_field_not_evaluated():
    class KeyLookupFails(StaticSignalProvider):
        def entities_of(self, text):
            if text == "Blue Whale":
                raise ConnectionError("signal service unreachable")
            return super().entities_of(text)

    quiz = QuizData(question_kind="fill_blank", correct_answer="Blue Whale")
    field = _semantic("q", "Largest animal?", quiz=quiz)
    outcome = ValidationAggregator(KeyLookupFails()).evaluate([field], {"q": "the whale shark"})

    assert outcome.field_status == {"q": "not_evaluated"}
    assert outcome.not_evaluated == ["q"]
    # Grading falls back to containment, which does not match
    assert outcome.findings_for("q")[-1].type == "quiz"
    assert outcome.findings_for("q")[-1].severity == "error"


def test_slow_provider_times_out_per_field():
    slow_text = "The staff were friendly and helpful."
    provider = BlockingSignalProvider(blocked=[slow_text])
    agg = ValidationAggregator(provider, max_workers=2, timeout=0.2)
    fields = [
        _semantic("d", "Feedback", "textarea"),
        _semantic("n", "Full Name"),
    ]
    provider.entities["Jane Smith"] = [("Jane Smith", "PERSON")]

    try:
        outcome = agg.evaluate(fields, {"d": slow_text, "n": "Jane Smith"})
    finally:
        provider.release.set()

    assert outcome.field_status == {"d": "not_evaluated", "n": "evaluated"}
    assert outcome.accepted


# ── Semantic Findings Through the Aggregator ─────────────────────────


def test_very_negative_feedback_rejected():
    text = "I really did not like the product at all."
    agg = ValidationAggregator(StaticSignalProvider(sentiment={text: -0.9}))
    outcome = agg.evaluate([_semantic("d", "Feedback", "textarea")], {"d": text})

    errors = outcome.errors()
    assert [(fid, f.type) for fid, f in errors] == [("d", "sentiment")]
    assert not outcome.accepted


def test_negative_warning_still_accepted():
    text = "The checkout was slower than expected."
    agg = ValidationAggregator(StaticSignalProvider(sentiment={text: -0.7}))
    outcome = agg.evaluate([_semantic("d", "Feedback", "textarea")], {"d": text})

    assert outcome.findings_for("d")[0].severity == "warning"
    assert outcome.accepted


def test_opted_out_field_never_calls_provider():
    provider = StaticSignalProvider()
    field = FieldSpec(id="s", label="Subject")
    outcome = ValidationAggregator(provider).evaluate([field], {"s": "Late delivery"})

    assert provider.calls == []
    assert outcome.field_status["s"] == "skipped"


def test_short_value_skips_syntax_call():
    provider = StaticSignalProvider(entities={"Jane Doe": [("Jane Doe", "PERSON")]})
    ValidationAggregator(provider).evaluate([_semantic("n", "Full Name")], {"n": "Jane Doe"})
    assert ("syntax", "Jane Doe") not in provider.calls


def test_fill_blank_entity_overlap_is_warning():
    quiz = QuizData(question_kind="fill_blank", correct_answer="The French capital")
    field = FieldSpec(id="q", label="Name the city", quiz=quiz)
    provider = StaticSignalProvider(entities={
        "City of Light": [("Paris", "LOCATION")],
        "The French capital": [("Paris", "LOCATION"), ("France", "LOCATION")],
    })

    outcome = ValidationAggregator(provider).evaluate([field], {"q": "City of Light"})

    assert outcome.findings_for("q")[0].severity == "warning"
    assert outcome.quiz_results == {"q": False}
    assert outcome.quiz_score == 0
    assert ("sentiment", "City of Light") not in provider.calls


# ── Quiz Scoring ─────────────────────────────────────────────────────


def test_quiz_form_all_correct():
    form = load_form_spec(QUIZ_PATH)
    values = {
        "student_name": "Ada Lovelace",
        "capital": "Paris",
        "largest_animal": "blue whale",
        "boiling_point": "true",
        "chemical_symbol": "Na",
    }
    outcome = ValidationAggregator(DisabledSignalProvider()).evaluate(form.fields, values)

    assert outcome.quiz_score == 7
    assert all(outcome.quiz_results.values())
    assert outcome.accepted


def test_quiz_form_wrong_choice_rejected():
    form = load_form_spec(QUIZ_PATH)
    values = {
        "student_name": "Ada Lovelace",
        "capital": "Berlin",
        "largest_animal": "Blue Whale",
        "boiling_point": "True",
        "chemical_symbol": "NaCl",
    }
    outcome = ValidationAggregator(DisabledSignalProvider()).evaluate(form.fields, values)

    assert outcome.quiz_results["capital"] is False
    # "NaCl" contains the exact key "Na": a near-match, not an error
    assert outcome.findings_for("chemical_symbol")[0].severity == "warning"
    assert outcome.quiz_score == 4
    assert [fid for fid, _ in outcome.errors()] == ["capital"]
    assert not outcome.accepted


def test_quiz_score_equals_sum_of_correct_points():
    form = load_form_spec(QUIZ_PATH)
    values = {"student_name": "Ada", "capital": "Paris", "largest_animal": "whale shark"}
    outcome = ValidationAggregator(DisabledSignalProvider()).evaluate(form.fields, values)

    points = {f.id: f.quiz.points for f in form.quiz_fields()}
    expected = sum(points[fid] for fid, ok in outcome.quiz_results.items() if ok)
    assert outcome.quiz_score == expected == 2


def test_no_quiz_fields_means_no_score():
    form = load_form_spec(FEEDBACK_PATH)
    outcome = ValidationAggregator(DisabledSignalProvider()).evaluate(form.fields, FEEDBACK_VALUES)
    assert outcome.quiz_score is None
    assert outcome.quiz_results == {}


# ── Ordering & Acceptance ────────────────────────────────────────────


def test_findings_keep_declaration_order_under_concurrency():
    texts = {
        "a": "First field text that is slow to analyze.",
        "b": "Second field text answered quickly.",
        "c": "Third field text with a medium delay.",
    }
    provider = StaticSignalProvider(
        sentiment={t: -0.9 for t in texts.values()},
        delays={texts["a"]: 0.15, texts["c"]: 0.05},
    )
    fields = [_semantic(fid, f"Comment {fid}", "textarea") for fid in texts]

    outcome = ValidationAggregator(provider, max_workers=3).evaluate(fields, texts)

    assert list(outcome.findings_by_field) == ["a", "b", "c"]
    assert [fid for fid, _ in outcome.errors()] == ["a", "b", "c"]


def test_accepted_iff_no_error_findings():
    form = load_form_spec(FEEDBACK_PATH)
    agg = ValidationAggregator(DisabledSignalProvider())

    good = agg.evaluate(form.fields, FEEDBACK_VALUES)
    bad = agg.evaluate(form.fields, dict(FEEDBACK_VALUES, email="not-an-email"))

    for outcome in (good, bad):
        assert outcome.accepted == (not any(f.is_error for f in outcome.all_findings()))
    assert good.accepted
    assert not bad.accepted


def test_missing_values_treated_as_empty():
    form = load_form_spec(FEEDBACK_PATH)
    outcome = ValidationAggregator(DisabledSignalProvider()).evaluate(form.fields, {})

    required = {f.id for f in form.fields if f.required}
    assert {fid for fid, _ in outcome.errors()} == required


def test_integer_keys_and_values_coerced():
    field = FieldSpec(id=3, label="Age", declared_type="number")
    outcome = ValidationAggregator(DisabledSignalProvider()).evaluate([field], {3: 42})
    assert outcome.findings_for("3") == []


def test_from_settings():
    settings = EngineSettings(_env_file=None, max_workers=2, signal_timeout_seconds=3.0)
    agg = ValidationAggregator.from_settings(settings)
    assert isinstance(agg.provider, DisabledSignalProvider)
    assert agg.max_workers == 2
    assert agg.timeout == 3.0


@pytest.mark.parametrize("provider", [DisabledSignalProvider(), StaticSignalProvider()])
def test_evaluate_is_idempotent(provider):
    agg = ValidationAggregator(provider)
    fields = [_semantic("n", "Full Name"), FieldSpec(id="e", label="Email", declared_type="email")]
    values = {"n": "jane", "e": "jane@"}
    assert agg.evaluate(fields, values) == agg.evaluate(fields, values)
