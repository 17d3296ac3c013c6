"""Turns intent plus retrieved layer items into a reply decision."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal

from enclave_rag.types import ActionProposal, LayerItem, LayerName

CLARIFY_BELOW = 0.35
AGREEMENT_BOOST = 0.15


@dataclass(slots=True)
class Decision:
    type: Literal["clarify", "answer", "execute_action"]
    message: str
    confidence: float
    evidence: list[LayerItem] = field(default_factory=list)
    action: ActionProposal | None = None


def _by_layer(items: Sequence[LayerItem], layer: LayerName) -> list[LayerItem]:
    return [item for item in items if item.layer == layer]


def calibrate(content: Sequence[LayerItem], reference: Sequence[LayerItem]) -> float:
    """Best content/reference score, boosted when both layers agree."""
    content_top = content[0].score if content else 0.0
    reference_top = reference[0].score if reference else 0.0
    boost = AGREEMENT_BOOST if content_top > 0.6 and reference_top > 0.4 else 0.0
    return max(0.0, min(1.0, max(content_top, reference_top) + boost))


def combine(intent: str, items: Sequence[LayerItem]) -> Decision:
    content = _by_layer(items, "content")
    reference = _by_layer(items, "enclave")
    actions = _by_layer(items, "action")
    confidence = calibrate(content, reference)

    if intent == "action_request" and actions:
        return Decision(
            type="execute_action",
            message=actions[0].snippet,
            confidence=0.7,
            evidence=actions[:1],
            action=actions[0].proposal,
        )

    if intent == "enclave_help" and reference:
        if confidence < CLARIFY_BELOW:
            return Decision(
                type="clarify",
                message="hundred percent — what about Enclave do you wanna know?",
                confidence=confidence,
            )
        return Decision(
            type="answer",
            message=reference[0].snippet,
            confidence=confidence,
            evidence=reference[:1],
        )

    if intent == "content_query":
        if not content:
            return Decision(
                type="clarify",
                message="couldn't find that in your org docs — be specific, bro",
                confidence=0.2,
            )
        if confidence < CLARIFY_BELOW:
            return Decision(
                type="clarify",
                message="say less — what exactly do you need?",
                confidence=confidence,
            )
        return Decision(
            type="answer",
            message=content[0].snippet,
            confidence=confidence,
            evidence=content,
        )

    if intent == "smalltalk":
        return Decision(
            type="answer",
            message="it’s fine bro — ask me about events or docs. that’s lit.",
            confidence=0.5,
        )

    if intent == "abusive":
        return Decision(
            type="answer",
            message="come on bro — i’m here to help. try 'when is study hall'",
            confidence=0.4,
        )

    return Decision(type="clarify", message="what do you need exactly?", confidence=0.3)
