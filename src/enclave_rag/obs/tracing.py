"""Turn tracing and latency accounting."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from enclave_rag.types import LayerTrace


@dataclass(slots=True)
class TurnRecord:
    trace_id: str
    timestamp_utc: str
    sender: str
    question: str
    intent: str
    decision: str
    answer: str
    segments: list[str]
    tone: str
    policy: str
    layer_traces: list[LayerTrace]
    item_count: int
    used_llm: bool
    latency_ms: float


class TraceStore:
    """In-memory trace storage for API-level observability."""

    def __init__(self, max_records: int = 1000) -> None:
        self._records: dict[str, TurnRecord] = {}
        self._max_records = max_records

    def create_record(
        self,
        *,
        sender: str,
        question: str,
        intent: str,
        decision: str,
        answer: str,
        segments: list[str],
        tone: str,
        policy: str,
        layer_traces: list[LayerTrace],
        item_count: int,
        used_llm: bool,
        latency_ms: float,
    ) -> TurnRecord:
        record = TurnRecord(
            trace_id=str(uuid.uuid4()),
            timestamp_utc=datetime.now(timezone.utc).isoformat(),
            sender=sender,
            question=question,
            intent=intent,
            decision=decision,
            answer=answer,
            segments=segments,
            tone=tone,
            policy=policy,
            layer_traces=layer_traces,
            item_count=item_count,
            used_llm=used_llm,
            latency_ms=latency_ms,
        )
        self._records[record.trace_id] = record
        while len(self._records) > self._max_records:
            del self._records[next(iter(self._records))]
        return record

    def get(self, trace_id: str) -> TurnRecord:
        record = self._records.get(trace_id)
        if record is None:
            raise KeyError(f"Trace not found: {trace_id}")
        return record

    def list_recent(self, limit: int = 20) -> list[TurnRecord]:
        return list(self._records.values())[-limit:]

    def summary(self) -> dict[str, float | int]:
        """Aggregate turn metrics for dashboard display."""
        records = list(self._records.values())
        total = len(records)
        if total == 0:
            return {
                "total_turns": 0,
                "avg_latency_ms": 0.0,
                "p95_latency_ms": 0.0,
                "boundary_turns": 0,
                "llm_turns": 0,
                "total_segments": 0,
                "layer_failures": 0,
            }

        latencies = sorted(record.latency_ms for record in records)
        p95_index = max(0, int((len(latencies) * 0.95) - 1))
        return {
            "total_turns": total,
            "avg_latency_ms": sum(latencies) / total,
            "p95_latency_ms": latencies[p95_index],
            "boundary_turns": sum(1 for record in records if record.policy == "boundary"),
            "llm_turns": sum(1 for record in records if record.used_llm),
            "total_segments": sum(len(record.segments) for record in records),
            "layer_failures": sum(
                1
                for record in records
                for trace in record.layer_traces
                if trace.status != "ok"
            ),
        }


class Timer:
    """Simple context timer used by the retriever and planner."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0
