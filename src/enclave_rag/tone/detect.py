"""Regex detectors feeding the tone engine.

Profanity and protected slurs use separate denylists: profanity can raise the
register, a slur always ends in a boundary. The insult-target guess is a
pronoun heuristic, not a classifier.
"""

from __future__ import annotations

import re

from enclave_rag.nlp.intent import classify_intent
from enclave_rag.types import InsultTarget, ToneSignals

_PROFANITY = re.compile(r"\b(fuck|shit|bitch|asshole|dick|wtf|damn)\b", re.IGNORECASE)
_PROTECTED_SLURS = re.compile(r"\b(retard(ed)?|fag(got)?|kike|chink|spic)\b", re.IGNORECASE)
_SECOND_PERSON = re.compile(r"\byou\b", re.IGNORECASE)
_SELF_INSULT = re.compile(r"\bi\b.*(suck|stupid|idiot)", re.IGNORECASE)


def detect_profanity(text: str) -> bool:
    return bool(_PROFANITY.search(text or ""))


def detect_protected_slur(text: str) -> bool:
    return bool(_PROTECTED_SLURS.search(text or ""))


def guess_insult_target(text: str) -> InsultTarget:
    if detect_protected_slur(text):
        return "protected"
    if _SECOND_PERSON.search(text or ""):
        return "other"
    if _SELF_INSULT.search(text or ""):
        return "self"
    return "none"


def signals_from_text(text: str, *, context_edge: float = 0.0) -> ToneSignals:
    """Derive tone signals from one inbound message.

    ``context_edge`` carries escalation from earlier turns.
    """
    intent = classify_intent(text)
    toxicity = 0.0
    if detect_profanity(text):
        toxicity = 1.0
    elif intent.is_abusive:
        toxicity = 0.6
    return ToneSignals(
        smalltalk=1.0 if intent.is_smalltalk else 0.0,
        toxicity=toxicity,
        insult_target=guess_insult_target(text),
        context_edge=context_edge,
        has_query=intent.intent in ("content_query", "enclave_help"),
    )
