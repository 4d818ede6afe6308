"""Finding model shared by rule, semantic and quiz checks."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

FindingType = Literal[
    "sentiment",
    "entity",
    "format",
    "length",
    "grammar",
    "style",
    "content",
    "quiz",
]

Severity = Literal["warning", "error"]


class ValidationFinding(BaseModel):
    """One reported problem with a submitted value."""

    model_config = ConfigDict(frozen=True)

    type: FindingType
    issue: str
    correction: Optional[str] = None
    severity: Severity

    @property
    def is_error(self) -> bool:
        return self.severity == "error"
