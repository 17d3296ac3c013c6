"""Signal-source contracts and in-memory adapters."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from math import sqrt
from typing import Protocol

from enclave_rag.retrieval.embedder import tokenize
from enclave_rag.types import ActionProposal, HistoryEntry, Record


class SearchBackend(Protocol):
    """Document/vector/full-text store reachable by opaque search calls."""

    async def full_text_search(self, query: str, scope: str, limit: int) -> list[str]:
        """Return resource IDs ranked by lexical relevance."""

    async def vector_search(self, embedding: list[float], scope: str, limit: int) -> list[str]:
        """Return resource IDs ranked by resource-level vector similarity."""

    async def chunk_vector_search(
        self, embedding: list[float], scope: str, limit: int
    ) -> list[tuple[str, float]]:
        """Return ``(resource_id, score)`` pairs for the best matching chunks."""

    async def substring_scan(self, query: str, scope: str, limit: int) -> list[str]:
        """Return resource IDs whose title or body contains ``query``."""

    async def expand_records(self, ids: list[str]) -> list[Record]:
        """Fetch full records. Result order is unspecified."""


class HistoryStore(Protocol):
    async def get_recent_history(self, sender: str, limit: int) -> list[HistoryEntry]:
        """Most recent exchanges first."""


class ActionStore(Protocol):
    async def get_pending_action(self, sender: str) -> ActionProposal | None:
        """The sender's outstanding actionable item, if any."""


@dataclass(slots=True)
class _StoredRecord:
    record: Record
    scope: str
    embedding: list[float]
    tokens: frozenset[str]


@dataclass(slots=True)
class _StoredChunk:
    resource_id: str
    scope: str
    embedding: list[float]


class InMemorySearchBackend:
    """Deterministic search backend used for tests and local prototyping."""

    def __init__(self) -> None:
        self._records: dict[str, _StoredRecord] = {}
        self._chunks: dict[str, _StoredChunk] = {}

    def upsert(self, records: list[Record], embeddings: list[list[float]], *, scope: str) -> None:
        if len(records) != len(embeddings):
            raise ValueError("records and embeddings must have the same length")
        for record, embedding in zip(records, embeddings, strict=True):
            self._records[record.id] = _StoredRecord(
                record=record,
                scope=scope,
                embedding=embedding,
                tokens=frozenset(tokenize(f"{record.title} {record.body}")),
            )

    def upsert_chunks(
        self,
        chunks: list[tuple[str, str]],
        embeddings: list[list[float]],
        *,
        scope: str,
    ) -> None:
        """Store ``(chunk_id, resource_id)`` pairs with their embeddings."""
        if len(chunks) != len(embeddings):
            raise ValueError("chunks and embeddings must have the same length")
        for (chunk_id, resource_id), embedding in zip(chunks, embeddings, strict=True):
            self._chunks[chunk_id] = _StoredChunk(
                resource_id=resource_id, scope=scope, embedding=embedding
            )

    async def full_text_search(self, query: str, scope: str, limit: int) -> list[str]:
        query_tokens = set(tokenize(query))
        if not query_tokens:
            return []
        scored: list[tuple[float, str]] = []
        for stored in self._in_scope(scope):
            overlap = len(query_tokens & stored.tokens) / len(query_tokens)
            if overlap > 0:
                scored.append((overlap, stored.record.id))
        scored.sort(key=lambda pair: (-pair[0], pair[1]))
        return [record_id for _, record_id in scored[:limit]]

    async def vector_search(self, embedding: list[float], scope: str, limit: int) -> list[str]:
        scored = [
            (_cosine_similarity(embedding, stored.embedding), stored.record.id)
            for stored in self._in_scope(scope)
        ]
        ranked = sorted((pair for pair in scored if pair[0] > 0), key=lambda p: (-p[0], p[1]))
        return [record_id for _, record_id in ranked[:limit]]

    async def chunk_vector_search(
        self, embedding: list[float], scope: str, limit: int
    ) -> list[tuple[str, float]]:
        scored = [
            (chunk.resource_id, _cosine_similarity(embedding, chunk.embedding))
            for chunk in self._chunks.values()
            if chunk.scope == scope
        ]
        ranked = sorted((pair for pair in scored if pair[1] > 0), key=lambda p: -p[1])
        return ranked[:limit]

    async def substring_scan(self, query: str, scope: str, limit: int) -> list[str]:
        needle = query.strip().lower()
        if not needle:
            return []
        matches = [
            stored.record
            for stored in self._in_scope(scope)
            if needle in stored.record.title.lower() or needle in stored.record.body.lower()
        ]
        oldest = datetime.min.replace(tzinfo=timezone.utc)
        matches.sort(key=lambda record: _as_utc(record.updated_at) or oldest, reverse=True)
        return [record.id for record in matches[:limit]]

    async def expand_records(self, ids: list[str]) -> list[Record]:
        wanted = set(ids)
        return [stored.record for rid, stored in self._records.items() if rid in wanted]

    def _in_scope(self, scope: str) -> list[_StoredRecord]:
        return [stored for stored in self._records.values() if stored.scope == scope]


class InMemoryHistoryStore:
    """Per-sender history keeping the last ``max_entries`` exchanges."""

    def __init__(self, max_entries: int = 50) -> None:
        self._entries: dict[str, deque[HistoryEntry]] = {}
        self._max_entries = max_entries

    def append(self, sender: str, entry: HistoryEntry) -> None:
        entries = self._entries.get(sender)
        if entries is None:
            entries = self._entries[sender] = deque(maxlen=self._max_entries)
        entries.append(entry)

    async def get_recent_history(self, sender: str, limit: int) -> list[HistoryEntry]:
        entries = sorted(
            self._entries.get(sender, []),
            key=lambda entry: _as_utc(entry.created_at),
            reverse=True,
        )
        return entries[:limit]


class InMemoryActionStore:
    def __init__(self) -> None:
        self._pending: dict[str, ActionProposal] = {}

    def set_pending_poll(self, sender: str, poll_id: str, question: str) -> None:
        self._pending[sender] = ActionProposal(
            kind="record_vote",
            preview_text=f"Pending poll: {question}",
            payload={"poll_id": poll_id, "question": question},
        )

    def clear(self, sender: str) -> None:
        self._pending.pop(sender, None)

    async def get_pending_action(self, sender: str) -> ActionProposal | None:
        return self._pending.get(sender)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _cosine_similarity(a: list[float], b: list[float]) -> float:
    if not a or not b or len(a) != len(b):
        return 0.0
    numerator = sum(x * y for x, y in zip(a, b, strict=True))
    norm_a = sqrt(sum(x * x for x in a))
    norm_b = sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return numerator / (norm_a * norm_b)
