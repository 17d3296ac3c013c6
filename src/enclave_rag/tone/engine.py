"""Tone selection and safety boundary policy."""

from __future__ import annotations

import random

from enclave_rag.config import ToneConfig
from enclave_rag.types import Tone, ToneDecision, ToneSignals

BOUNDARY_PREFIX = "✋ Keep it respectful. "

PREFIXES: dict[Tone, tuple[str, ...]] = {
    "spicy": (
        "Alright tough guy —",
        "Say less, hotshot —",
        "Relax, gladiator. Here’s the gist:",
        "Bold mouth, tight answer:",
    ),
    "sass": (
        "Ok sass-master:",
        "Heard. Quick hits:",
        "Cool cool. TL;DR:",
        "Big talk. Short answer:",
    ),
    "neutral": (
        "Here you go:",
        "Quick answer:",
        "TL;DR:",
        "In short:",
    ),
}


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


class ToneEngine:
    """Maps tone signals to a register and an optional safety boundary.

    Prefix phrases are drawn from ``PREFIXES`` with ``rng``; pass a seeded
    ``random.Random`` for reproducible output.
    """

    def __init__(self, config: ToneConfig | None = None, rng: random.Random | None = None) -> None:
        self.config = config or ToneConfig()
        self.rng = rng or random.Random()

    def aggregate(self, signals: ToneSignals) -> float:
        return _clamp(
            self.config.toxicity_weight * signals.toxicity
            + self.config.smalltalk_weight * signals.smalltalk
            + self.config.context_edge_weight * signals.context_edge
        )

    def decide(self, signals: ToneSignals) -> ToneDecision:
        if signals.insult_target == "protected":
            return ToneDecision(tone="neutral", policy="boundary", prefix=BOUNDARY_PREFIX, suffix="")

        score = self.aggregate(signals)
        if score >= self.config.spicy_threshold:
            tone: Tone = "spicy"
        elif score >= self.config.sass_threshold:
            tone = "sass"
        else:
            tone = "neutral"
        return ToneDecision(tone=tone, policy="ok", prefix=self._pick(tone) + " ", suffix="")

    def _pick(self, tone: Tone) -> str:
        return self.rng.choice(PREFIXES[tone])


_default_engine = ToneEngine()


def decide_tone(signals: ToneSignals) -> ToneDecision:
    return _default_engine.decide(signals)
