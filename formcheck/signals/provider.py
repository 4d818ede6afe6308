"""Text signal providers: the sentiment / entity / syntax capability boundary."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import ollama
from pydantic import BaseModel

from formcheck.core.settings import EngineSettings
from formcheck.signals.models import EntityResult, SentimentResult, SyntaxResult

logger = logging.getLogger(__name__)

MODEL = "qwen3:8b"


class TextSignalProvider(ABC):
    """Capability that turns raw text into sentiment, entity and syntax signals.

    A disabled provider must answer with neutral constants and never touch
    the network.
    """

    enabled: bool = True

    @abstractmethod
    def sentiment_of(self, text: str) -> SentimentResult: ...

    @abstractmethod
    def entities_of(self, text: str) -> EntityResult: ...

    @abstractmethod
    def syntax_of(self, text: str) -> SyntaxResult: ...


class DisabledSignalProvider(TextSignalProvider):
    """Administratively disabled provider: neutral answers, no I/O."""

    enabled = False

    def sentiment_of(self, text: str) -> SentimentResult:
        return SentimentResult(score=0.0, magnitude=0.0)

    def entities_of(self, text: str) -> EntityResult:
        return EntityResult(entities=[])

    def syntax_of(self, text: str) -> SyntaxResult:
        return SyntaxResult(sentences=[], tokens=[])


# ── Ollama-backed Provider ───────────────────────────────────────────

_SYSTEM_PROMPT = (
    "You are a text analysis service for a form validation system. "
    "Analyze the user's text exactly as written and respond ONLY with JSON "
    "matching the requested schema."
)

_SENTIMENT_PROMPT = """/no_think
Analyze the overall sentiment of the text below.

- score: from -1.0 (very negative) to 1.0 (very positive), 0.0 is neutral.
- magnitude: overall emotional strength, 0.0 or greater, regardless of direction.

TEXT:
{text}

Respond with JSON: {{"score": 0.0, "magnitude": 0.0}}"""

_ENTITIES_PROMPT = """/no_think
List the named entities mentioned in the text below.

For each entity give:
- name: the entity as written in the text
- type: one of PERSON, ORGANIZATION, LOCATION, EVENT, WORK_OF_ART, CONSUMER_GOOD, OTHER
- salience: importance of the entity to the text, 0.0 to 1.0

Return an empty list when the text mentions no entity.

TEXT:
{text}

Respond with JSON: {{"entities": [{{"name": "...", "type": "...", "salience": 0.0}}]}}"""

_SYNTAX_PROMPT = """/no_think
Split the text below into sentences and word tokens. Keep every sentence and
token exactly as it appears, including fragments and punctuation-only pieces.

TEXT:
{text}

Respond with JSON: {{"sentences": [{{"text": "..."}}], "tokens": [{{"text": "..."}}]}}"""


class OllamaSignalProvider(TextSignalProvider):
    """Signals from a local Ollama model using structured JSON output."""

    def __init__(
        self,
        model: str = MODEL,
        host: Optional[str] = None,
        timeout: Optional[float] = None,
        enabled: bool = True,
        client: Optional[ollama.Client] = None,
    ):
        self.model = model
        self.enabled = enabled
        self._client = client or ollama.Client(host=host, timeout=timeout)

    def sentiment_of(self, text: str) -> SentimentResult:
        if not self.enabled:
            return SentimentResult(score=0.0, magnitude=0.0)
        return self._ask(_SENTIMENT_PROMPT.format(text=text), SentimentResult)

    def entities_of(self, text: str) -> EntityResult:
        if not self.enabled:
            return EntityResult(entities=[])
        result = self._ask(_ENTITIES_PROMPT.format(text=text), EntityResult)
        for entity in result.entities:
            entity.type = entity.type.upper()
        return result

    def syntax_of(self, text: str) -> SyntaxResult:
        if not self.enabled:
            return SyntaxResult(sentences=[], tokens=[])
        return self._ask(_SYNTAX_PROMPT.format(text=text), SyntaxResult)

    def _ask(self, prompt: str, schema: type[BaseModel]):
        """One chat round trip; raises on transport errors or malformed JSON."""
        response = self._client.chat(
            model=self.model,
            messages=[
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            format=schema.model_json_schema(),
            options={"temperature": 0},
            think=False,
        )
        raw = response.message.content or ""
        return schema.model_validate_json(raw)


def build_provider(settings: EngineSettings) -> TextSignalProvider:
    """Provider for the configured deployment."""
    if not settings.signals_enabled:
        logger.info("Text signals disabled, semantic checks will be neutral")
        return DisabledSignalProvider()

    logger.info("Text signals from Ollama model %s", settings.signal_model)
    return OllamaSignalProvider(
        model=settings.signal_model,
        host=settings.ollama_host,
        timeout=settings.signal_timeout_seconds,
    )
