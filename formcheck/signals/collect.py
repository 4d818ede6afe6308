"""Fetch all signals for one text as a single step with an explicit outcome."""

import logging
from typing import Literal, Optional

from pydantic import BaseModel, Field

from formcheck.signals.models import TextSignal
from formcheck.signals.provider import TextSignalProvider

logger = logging.getLogger(__name__)

# Syntax analysis is only worth a call on text longer than this
SYNTAX_MIN_LENGTH = 10


class SignalResult(BaseModel):
    """Outcome of a signal fetch.

    ok        the provider answered
    neutral   the provider is disabled; signals are the neutral constant
    degraded  the call failed; signals are neutral and the field was not evaluated
    """

    status: Literal["ok", "neutral", "degraded"]
    signals: TextSignal = Field(default_factory=TextSignal.neutral_signal)
    error: Optional[str] = None


def collect_signals(
    provider: TextSignalProvider,
    text: str,
    *,
    sentiment: bool = True,
    syntax: Optional[bool] = None,
) -> SignalResult:
    """Run the provider's analyses for ``text`` and fold them into one TextSignal.

    Syntax defaults to on only for text longer than SYNTAX_MIN_LENGTH. Any
    exception from the provider becomes a degraded result instead of
    propagating.
    """
    if not provider.enabled:
        return SignalResult(status="neutral", signals=TextSignal.neutral_signal())

    if syntax is None:
        syntax = len(text) > SYNTAX_MIN_LENGTH

    try:
        signal = TextSignal()
        if sentiment:
            sent = provider.sentiment_of(text)
            signal.sentiment_score = sent.score
            signal.sentiment_magnitude = sent.magnitude
        signal.entities = provider.entities_of(text).entities
        if syntax:
            parsed = provider.syntax_of(text)
            signal.sentences = parsed.sentences
            signal.tokens = parsed.tokens
    except Exception as exc:
        logger.warning("Signal provider failed (%s): %s", type(exc).__name__, exc)
        return SignalResult(status="degraded", error=f"{type(exc).__name__}: {exc}")

    return SignalResult(status="ok", signals=signal)
