"""Run rule, semantic and quiz checks over every field of a submission."""

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Mapping, Optional, Sequence

from pydantic import BaseModel

from formcheck.core.form_spec import FieldSpec
from formcheck.core.settings import EngineSettings
from formcheck.grading import quiz as quiz_grader
from formcheck.pipeline.models import FieldStatus, SubmissionOutcome
from formcheck.signals.collect import SignalResult, collect_signals
from formcheck.signals.provider import TextSignalProvider, build_provider
from formcheck.validators import rules, semantic
from formcheck.validators.models import ValidationFinding

logger = logging.getLogger(__name__)


class FieldSignals(BaseModel):
    """Signals fetched for one field: the answer and, for quizzes, the key."""

    answer: Optional[SignalResult] = None
    key: Optional[SignalResult] = None

    @property
    def degraded(self) -> bool:
        return any(r is not None and r.status == "degraded" for r in (self.answer, self.key))


class _FetchPlan(BaseModel):
    semantic: bool = False
    quiz_entities: bool = False

    @property
    def needed(self) -> bool:
        return self.semantic or self.quiz_entities


# ── Aggregator ───────────────────────────────────────────────────────


class ValidationAggregator:
    """Evaluates submissions against their field definitions.

    The signal provider is injected; a disabled provider yields neutral
    signals and a failing one marks the affected fields as not evaluated
    without blocking the rest of the submission.
    """

    def __init__(
        self,
        provider: TextSignalProvider,
        max_workers: int = 4,
        timeout: Optional[float] = 10.0,
    ):
        self.provider = provider
        self.max_workers = max_workers
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: EngineSettings) -> "ValidationAggregator":
        return cls(
            build_provider(settings),
            max_workers=settings.max_workers,
            timeout=settings.signal_timeout_seconds,
        )

    def evaluate(
        self,
        form_fields: Sequence[FieldSpec],
        submitted_values: Mapping,
    ) -> SubmissionOutcome:
        """Validate every field in declaration order and decide acceptance."""
        values = {str(k): _as_text(v) for k, v in submitted_values.items()}

        # Step 1: rules, no I/O
        rule_findings = {f.id: rules.validate(f, values.get(f.id)) for f in form_fields}

        # Step 2: signal fetches, possibly concurrent
        plans = {f.id: self._plan(f, values.get(f.id, "")) for f in form_fields}
        fetched = self._fetch_all(form_fields, values, plans)

        # Step 3: merge per field in declaration order
        outcome = SubmissionOutcome()
        score = 0
        for field in form_fields:
            value = values.get(field.id, "")
            signals = fetched.get(field.id, FieldSignals())
            findings = list(rule_findings[field.id])

            status: FieldStatus = "skipped"
            if plans[field.id].semantic:
                status, semantic_findings = self._run_semantic(field, value, signals.answer)
                findings.extend(semantic_findings)
            if signals.degraded:
                # Covers a failed quiz key lookup on a field whose semantic step succeeded
                status = "not_evaluated"

            if field.is_quiz:
                result = quiz_grader.grade(
                    field.quiz,
                    value,
                    signals=_ok_signals(signals.answer),
                    key_signals=_ok_signals(signals.key),
                )
                if result.finding is not None:
                    findings.append(result.finding)
                outcome.quiz_results[field.id] = result.correct
                score += result.points

            outcome.findings_by_field[field.id] = findings
            outcome.field_status[field.id] = status

        if outcome.quiz_results:
            outcome.quiz_score = score

        _log_summary(outcome)
        return outcome

    # ── Planning ─────────────────────────────────────────────

    def _plan(self, field: FieldSpec, value: str) -> _FetchPlan:
        wants_semantic = field.semantic_check_enabled and bool(value.strip())

        quiz_entities = False
        if field.is_quiz and field.quiz.question_kind == "fill_blank" and self.provider.enabled:
            submitted = quiz_grader.normalize(value, field.quiz.match_mode)
            expected = quiz_grader.normalize(field.quiz.correct_answer, field.quiz.match_mode)
            quiz_entities = bool(submitted) and submitted != expected

        return _FetchPlan(semantic=wants_semantic, quiz_entities=quiz_entities)

    # ── Signal Fetching ──────────────────────────────────────

    def _fetch_field(self, field: FieldSpec, value: str, plan: _FetchPlan) -> FieldSignals:
        signals = FieldSignals()
        if plan.semantic:
            signals.answer = collect_signals(self.provider, value)
        if plan.quiz_entities:
            if signals.answer is None:
                signals.answer = collect_signals(self.provider, value, sentiment=False, syntax=False)
            signals.key = collect_signals(
                self.provider, field.quiz.correct_answer, sentiment=False, syntax=False,
            )
        return signals

    def _fetch_all(
        self,
        form_fields: Sequence[FieldSpec],
        values: dict[str, str],
        plans: dict[str, _FetchPlan],
    ) -> dict[str, FieldSignals]:
        jobs = [f for f in form_fields if plans[f.id].needed]
        if not jobs:
            return {}

        executor = ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(jobs)),
            thread_name_prefix="formcheck-signals",
        )
        futures = {
            executor.submit(self._fetch_field, f, values.get(f.id, ""), plans[f.id]): f.id
            for f in jobs
        }
        done, pending = wait(futures, timeout=self.timeout)
        for future in pending:
            future.cancel()
        # In-flight provider calls are abandoned rather than awaited
        executor.shutdown(wait=False, cancel_futures=True)

        results: dict[str, FieldSignals] = {}
        for future, field_id in futures.items():
            if future in done:
                try:
                    results[field_id] = future.result()
                    continue
                except Exception as exc:
                    error = f"{type(exc).__name__}: {exc}"
                    logger.warning("Field %s: signal fetch failed: %s", field_id, error)
            else:
                error = f"timed out after {self.timeout}s"
                logger.warning("Field %s: signal fetch %s", field_id, error)
            results[field_id] = FieldSignals(answer=SignalResult(status="degraded", error=error))
        return results

    # ── Semantic Step ────────────────────────────────────────

    def _run_semantic(
        self,
        field: FieldSpec,
        value: str,
        result: Optional[SignalResult],
    ) -> tuple[FieldStatus, list[ValidationFinding]]:
        if result is None or result.status == "degraded":
            logger.warning(
                "Field %s: semantic checks not evaluated (%s)",
                field.id, result.error if result else "no signals",
            )
            return "not_evaluated", []

        try:
            findings = semantic.analyze(field, value, result.signals)
        except Exception as exc:
            logger.warning("Field %s: semantic checks failed: %s", field.id, exc)
            return "not_evaluated", []

        return ("neutral" if result.status == "neutral" else "evaluated"), findings


# ── Helpers ──────────────────────────────────────────────────────────


def _as_text(value) -> str:
    return "" if value is None else str(value)


def _ok_signals(result: Optional[SignalResult]):
    if result is None or result.status != "ok":
        return None
    return result.signals


def _log_summary(outcome: SubmissionOutcome) -> None:
    findings = outcome.all_findings()
    errors = sum(1 for f in findings if f.is_error)
    logger.info(
        "Evaluated %d fields: %s; %d errors, %d warnings, %d not evaluated%s",
        len(outcome.findings_by_field),
        "accepted" if outcome.accepted else "rejected",
        errors,
        len(findings) - errors,
        len(outcome.not_evaluated),
        f", quiz score {outcome.quiz_score}" if outcome.quiz_score is not None else "",
    )
