"""Data models for text-analysis signals."""

from pydantic import BaseModel, Field


class Entity(BaseModel):
    """A named entity detected in the text."""

    name: str
    type: str = Field(description="PERSON, ORGANIZATION, LOCATION, EVENT, OTHER, ...")
    salience: float = Field(default=0.0, ge=0.0, le=1.0)


class Sentence(BaseModel):
    text: str


class Token(BaseModel):
    text: str


# ── Provider Results ─────────────────────────────────────────────────


class SentimentResult(BaseModel):
    """Document-level sentiment."""

    score: float = Field(ge=-1.0, le=1.0)
    magnitude: float = Field(ge=0.0)


class EntityResult(BaseModel):
    entities: list[Entity] = Field(default_factory=list)


class SyntaxResult(BaseModel):
    sentences: list[Sentence] = Field(default_factory=list)
    tokens: list[Token] = Field(default_factory=list)


# ── Combined Signal ──────────────────────────────────────────────────


class TextSignal(BaseModel):
    """Everything the semantic checks know about one piece of text.

    ``neutral`` marks the constant answer of a disabled provider, which is a
    deterministic "nothing to report" rather than a missing result.
    """

    sentiment_score: float = Field(default=0.0, ge=-1.0, le=1.0)
    sentiment_magnitude: float = Field(default=0.0, ge=0.0)
    entities: list[Entity] = Field(default_factory=list)
    sentences: list[Sentence] = Field(default_factory=list)
    tokens: list[Token] = Field(default_factory=list)
    neutral: bool = False

    @classmethod
    def neutral_signal(cls) -> "TextSignal":
        return cls(neutral=True)

    def entity_names(self) -> list[str]:
        """Case-folded, non-empty entity names."""
        return [e.name.lower() for e in self.entities if e.name]

    def has_entity_type(self, entity_type: str) -> bool:
        return any(e.type.upper() == entity_type for e in self.entities)
