"""Turn orchestration: classify, retrieve, answer, tone, segment."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from enclave_rag.agent.generator import LlmAnswerGenerator
from enclave_rag.answer.combiner import Decision, combine
from enclave_rag.answer.composer import compose_document, compose_event, render, sanitize
from enclave_rag.config import AgentConfig, SmsConfig
from enclave_rag.nlp.intent import classify_intent
from enclave_rag.obs.tracing import Timer, TraceStore
from enclave_rag.retrieval.retriever import MultiLayerRetriever
from enclave_rag.sms.segmenter import split_message, tighten
from enclave_rag.tone.detect import signals_from_text
from enclave_rag.tone.engine import ToneEngine
from enclave_rag.types import (
    Answer,
    DocumentResult,
    EventData,
    LayerTrace,
    Record,
    ToneDecision,
)

BOUNDARY_REPLY = "Ask me about events, docs or polls."


@dataclass(slots=True)
class TurnResult:
    messages: list[str]
    answer: str
    decision: Decision
    tone: ToneDecision
    trace_id: str
    latency_ms: float


def compose_record(record: Record, query: str) -> Answer:
    """Deterministic answer for one content record."""
    if record.type == "event":
        meta = record.metadata
        return compose_event(
            EventData(
                name=record.title,
                start_at=meta.get("start_at"),
                end_at=meta.get("end_at"),
                location=meta.get("location"),
                required=bool(meta.get("required", False)),
            )
        )
    return compose_document(
        DocumentResult(title=record.title, body=record.body, source=record.metadata.get("source")),
        query,
    )


class TurnPlanner:
    """Handles one inbound message end to end and records a trace.

    With a ``generator`` the top content records are answered by the language
    model; without one, or when it fails, the deterministic composer answers.
    """

    def __init__(
        self,
        *,
        retriever: MultiLayerRetriever,
        trace_store: TraceStore,
        generator: LlmAnswerGenerator | None = None,
        tone_engine: ToneEngine | None = None,
        config: AgentConfig | None = None,
        sms_config: SmsConfig | None = None,
    ) -> None:
        self.retriever = retriever
        self.trace_store = trace_store
        self.generator = generator
        self.tone_engine = tone_engine or ToneEngine()
        self.config = config or AgentConfig()
        self.sms_config = sms_config or SmsConfig()

    async def handle_turn(
        self,
        text: str,
        sender: str,
        scope: str | Sequence[str] | None = None,
        *,
        context_edge: float = 0.0,
    ) -> TurnResult:
        layer_traces: list[LayerTrace] = []
        used_llm = False
        item_count = 0

        with Timer() as timer:
            intent = classify_intent(text)
            tone = self.tone_engine.decide(signals_from_text(text, context_edge=context_edge))

            if tone.policy == "boundary":
                decision = Decision(type="answer", message=BOUNDARY_REPLY, confidence=1.0)
                body = BOUNDARY_REPLY
            else:
                items = await self.retriever.retrieve(
                    text,
                    sender,
                    scope or self.config.default_scope,
                    observer=layer_traces.append,
                )
                item_count = len(items)
                decision = combine(intent.intent, items)
                body, used_llm = await self._answer_text(text, decision)

            if tone.prefix and (self.config.use_tone_prefix or tone.policy == "boundary"):
                body = tone.prefix + body
            segments = split_message(body, self.sms_config.max_length)

        record = self.trace_store.create_record(
            sender=sender,
            question=text,
            intent=intent.intent,
            decision=decision.type,
            answer=body,
            segments=segments,
            tone=tone.tone,
            policy=tone.policy,
            layer_traces=layer_traces,
            item_count=item_count,
            used_llm=used_llm,
            latency_ms=timer.elapsed_ms,
        )
        return TurnResult(
            messages=segments,
            answer=body,
            decision=decision,
            tone=tone,
            trace_id=record.trace_id,
            latency_ms=record.latency_ms,
        )

    async def _answer_text(self, query: str, decision: Decision) -> tuple[str, bool]:
        top = decision.evidence[0] if decision.evidence else None
        if decision.type != "answer" or top is None:
            return decision.message, False
        if top.layer != "content" or top.record is None:
            return tighten(decision.message, self.sms_config.tighten_max), False

        records = [item.record for item in decision.evidence if item.record is not None]
        if self.generator is not None:
            generated = await self.generator.generate(query, records)
            if generated:
                return sanitize(generated), True
        return render(compose_record(top.record, query)), False
