"""Independent retrieval layers merged by the multi-layer retriever."""

from __future__ import annotations

import asyncio
import re
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path

from enclave_rag.config import RetrieverConfig
from enclave_rag.retrieval.hybrid import HybridSearcher
from enclave_rag.retrieval.sources import ActionStore, HistoryStore
from enclave_rag.types import LayerItem, LayerName

_SECONDS_PER_DAY = 60 * 60 * 24
_TERM_SPLIT = re.compile(r"\W+")


class RetrievalLayer(ABC):
    """One candidate source of the multi-layer retriever."""

    name: LayerName

    @abstractmethod
    async def retrieve(self, query: str, sender: str, scopes: Sequence[str]) -> list[LayerItem]:
        """Return scored items; scores must already be capped to [0, 1]."""


class ContentLayer(RetrievalLayer):
    """Organization documents and events found by hybrid search."""

    name: LayerName = "content"

    def __init__(self, searcher: HybridSearcher, config: RetrieverConfig | None = None) -> None:
        self.searcher = searcher
        self.config = config or RetrieverConfig()

    async def retrieve(self, query: str, sender: str, scopes: Sequence[str]) -> list[LayerItem]:
        limit = self.config.content_limit
        per_scope = await asyncio.gather(
            *(self.searcher.search(query, scope, limit) for scope in scopes)
        )

        seen: set[str] = set()
        items: list[LayerItem] = []
        for results in per_scope:
            for hit in results:
                record = hit.record
                if record.id in seen:
                    continue
                seen.add(record.id)
                items.append(
                    LayerItem(
                        layer="content",
                        id=record.id,
                        title=record.title,
                        snippet=(record.body or record.title)[: self.config.content_snippet_chars],
                        uri=record.url,
                        features={"source_type": record.type or "doc", "fused_score": hit.fused_score},
                        score=hit.score,
                        record=record,
                    )
                )
        items.sort(key=lambda item: item.score, reverse=True)
        return items[:limit]


class ConvoLayer(RetrievalLayer):
    """Recent SMS exchanges, scored by linear one-day recency decay."""

    name: LayerName = "convo"

    def __init__(
        self,
        store: HistoryStore,
        config: RetrieverConfig | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.config = config or RetrieverConfig()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def retrieve(self, query: str, sender: str, scopes: Sequence[str]) -> list[LayerItem]:
        limit = self.config.convo_limit
        entries = await self.store.get_recent_history(sender, limit)
        now = self._clock()

        items: list[LayerItem] = []
        for idx, entry in enumerate(entries[:limit]):
            created_at = entry.created_at
            if created_at.tzinfo is None:
                created_at = created_at.replace(tzinfo=timezone.utc)
            age_seconds = (now - created_at).total_seconds()
            items.append(
                LayerItem(
                    layer="convo",
                    id=f"convo-{idx}",
                    snippet=f"User: {entry.user_message}\nBot: {entry.bot_response}",
                    features={"recency_ms": int(age_seconds * 1000)},
                    score=min(1.0, max(0.0, 1.0 - age_seconds / _SECONDS_PER_DAY)),
                )
            )
        return items


class ActionLayer(RetrievalLayer):
    """At most one pending actionable item per sender."""

    name: LayerName = "action"

    def __init__(self, store: ActionStore, config: RetrieverConfig | None = None) -> None:
        self.store = store
        self.config = config or RetrieverConfig()

    async def retrieve(self, query: str, sender: str, scopes: Sequence[str]) -> list[LayerItem]:
        proposal = await self.store.get_pending_action(sender)
        if proposal is None:
            return []

        poll_id = proposal.payload.get("poll_id")
        item_id = f"poll-{poll_id}" if poll_id is not None else f"action-{proposal.kind}"
        return [
            LayerItem(
                layer="action",
                id=item_id,
                snippet=proposal.preview_text,
                features={"pending_poll": proposal.kind == "record_vote"},
                score=self.config.action_score,
                proposal=proposal,
            )
        ]


@dataclass(frozen=True, slots=True)
class ReferenceCorpus:
    """Static system reference text, loaded once per process."""

    id: str
    title: str
    text: str

    @property
    def lowered(self) -> str:
        return self.text.lower()

    @classmethod
    def from_path(cls, path: str | Path, *, title: str = "Enclave System Reference") -> ReferenceCorpus:
        return cls(id="enclave_ref_v1", title=title, text=Path(path).read_text(encoding="utf-8"))

    @classmethod
    def empty(cls) -> ReferenceCorpus:
        return cls(id="enclave_ref_v1", title="Enclave System Reference", text="")


@lru_cache(maxsize=None)
def load_reference_corpus(path: str) -> ReferenceCorpus:
    """Read the corpus at ``path`` once; later calls reuse the same value."""
    return ReferenceCorpus.from_path(path)


def keyword_score(text: str, query: str) -> float:
    """Share of query terms present in ``text``, over at least three terms."""
    terms = [term for term in _TERM_SPLIT.split(query.lower()) if term]
    if not terms:
        return 0.0
    hits = sum(1 for term in terms if term in text)
    return min(1.0, hits / max(3, len(terms)))


class ReferenceLayer(RetrievalLayer):
    name: LayerName = "enclave"

    def __init__(self, corpus: ReferenceCorpus, config: RetrieverConfig | None = None) -> None:
        self.corpus = corpus
        self.config = config or RetrieverConfig()
        self._lowered = corpus.lowered

    async def retrieve(self, query: str, sender: str, scopes: Sequence[str]) -> list[LayerItem]:
        if not self.corpus.text:
            return []
        score = keyword_score(self._lowered, query)
        if score <= 0:
            return []
        return [
            LayerItem(
                layer="enclave",
                id=self.corpus.id,
                title=self.corpus.title,
                snippet=self.corpus.text[: self.config.reference_snippet_chars],
                features={"authority": 1},
                score=score,
            )
        ]
