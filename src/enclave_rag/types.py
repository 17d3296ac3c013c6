"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

SignalSource = Literal["fts", "vector", "chunk_vector"]
LayerName = Literal["content", "convo", "action", "enclave"]
ActionKind = Literal["record_vote", "schedule_announcement", "resend_failed", "show_optin"]
InsultTarget = Literal["none", "self", "other", "protected"]
Tone = Literal["neutral", "sass", "spicy"]
TonePolicy = Literal["ok", "boundary"]


@dataclass(slots=True)
class Candidate:
    """One hit produced by a single search signal."""

    id: str
    rank_or_score: float
    source: SignalSource


@dataclass(slots=True)
class FusedResult:
    """An ID with its reciprocal-rank-fusion score."""

    id: str
    fused_score: float
    best_rank: int


@dataclass(slots=True)
class Record:
    """An expanded content resource."""

    id: str
    title: str
    type: str = "doc"
    body: str = ""
    url: str | None = None
    tags: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    updated_at: datetime | None = None


@dataclass(slots=True)
class ScoredRecord:
    """A content record with its normalized hybrid-search score."""

    record: Record
    score: float
    fused_score: float


@dataclass(slots=True)
class HistoryEntry:
    """One exchange of an SMS conversation."""

    user_message: str
    bot_response: str
    created_at: datetime


@dataclass(slots=True)
class ActionProposal:
    """A state-changing operation discovered during retrieval.

    Proposals are never executed here; the caller checks preconditions and
    runs them.
    """

    kind: ActionKind
    preview_text: str
    preconditions: dict[str, bool] = field(default_factory=dict)
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class LayerItem:
    """A scored item returned by one retrieval layer."""

    layer: LayerName
    id: str
    snippet: str
    score: float
    title: str | None = None
    uri: str | None = None
    features: dict[str, Any] = field(default_factory=dict)
    proposal: ActionProposal | None = None
    record: Record | None = None


@dataclass(slots=True)
class EventData:
    name: str
    start_at: datetime | str | None = None
    end_at: datetime | str | None = None
    location: str | None = None
    required: bool = False


@dataclass(slots=True)
class DocumentResult:
    title: str
    body: str
    source: str | None = None


@dataclass(slots=True)
class SourceRef:
    title: str
    tag: str


@dataclass(slots=True)
class Answer:
    """Fixed-shape answer: a headline, at most one detail line, sources."""

    headline: str
    details: str | None = None
    sources: list[SourceRef] | None = None


@dataclass(slots=True)
class ToneSignals:
    smalltalk: float = 0.0
    toxicity: float = 0.0
    insult_target: InsultTarget = "none"
    context_edge: float = 0.0
    has_query: bool = True


@dataclass(slots=True)
class ToneDecision:
    tone: Tone
    policy: TonePolicy
    prefix: str | None = None
    suffix: str | None = None


@dataclass(slots=True)
class LayerTrace:
    """Trace record for one retrieval layer run."""

    name: str
    status: Literal["ok", "timeout", "error"]
    item_count: int
    latency_ms: float
