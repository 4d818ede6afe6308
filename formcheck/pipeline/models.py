"""Submission-level results and persisted answer rows."""

import json
from typing import Literal, Optional

from pydantic import BaseModel, Field, computed_field

from formcheck.validators.models import ValidationFinding

# evaluated      signals were fetched and every semantic rule ran
# neutral        the provider is disabled; semantic rules passed trivially
# not_evaluated  the signal fetch failed or timed out
# skipped        no semantic check requested (opted out or blank value)
FieldStatus = Literal["evaluated", "neutral", "not_evaluated", "skipped"]


class SubmissionOutcome(BaseModel):
    """Everything one validation pass decided about a submission."""

    findings_by_field: dict[str, list[ValidationFinding]] = Field(default_factory=dict)
    quiz_score: Optional[int] = None
    quiz_results: dict[str, bool] = Field(default_factory=dict)
    field_status: dict[str, FieldStatus] = Field(default_factory=dict)

    @computed_field
    @property
    def accepted(self) -> bool:
        return not any(f.is_error for f in self.all_findings())

    @property
    def not_evaluated(self) -> list[str]:
        return [fid for fid, status in self.field_status.items() if status == "not_evaluated"]

    def findings_for(self, field_id: str) -> list[ValidationFinding]:
        return self.findings_by_field.get(str(field_id), [])

    def all_findings(self) -> list[ValidationFinding]:
        return [f for findings in self.findings_by_field.values() for f in findings]

    def errors(self) -> list[tuple[str, ValidationFinding]]:
        """(field_id, finding) for every error, in field order."""
        return [
            (fid, f)
            for fid, findings in self.findings_by_field.items()
            for f in findings
            if f.is_error
        ]


class AnswerRecord(BaseModel):
    """One stored answer: the value, its findings, and the legacy flag columns."""

    field_id: str
    value: str
    findings: list[ValidationFinding] = Field(default_factory=list)
    sentiment_flag: bool = False
    entity_flag: bool = False
    not_evaluated: bool = False
    quiz_correct: Optional[bool] = None

    @classmethod
    def from_findings(
        cls,
        field_id: str,
        value: str,
        findings: list[ValidationFinding],
        not_evaluated: bool = False,
        quiz_correct: Optional[bool] = None,
    ) -> "AnswerRecord":
        return cls(
            field_id=field_id,
            value=value,
            findings=findings,
            sentiment_flag=any(f.type == "sentiment" for f in findings),
            entity_flag=any(f.type == "entity" for f in findings),
            not_evaluated=not_evaluated,
            quiz_correct=quiz_correct,
        )

    def findings_json(self) -> str:
        return json.dumps([f.model_dump() for f in self.findings])
