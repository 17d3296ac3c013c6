"""Hybrid resource search: concurrent signals, RRF, explicit fallbacks."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass
from typing import TypeVar

from enclave_rag.config import FusionConfig
from enclave_rag.obs.logging import get_logger, log_with_context
from enclave_rag.retrieval.embedder import Embedder
from enclave_rag.retrieval.fusion import RankFusionEngine, best_score_per_resource
from enclave_rag.retrieval.sources import SearchBackend
from enclave_rag.types import Candidate, FusedResult, ScoredRecord, SignalSource

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class SearchRequest:
    query: str
    scope: str
    limit: int


@dataclass(slots=True)
class Ranking:
    """Fused IDs plus the number of non-empty lists that produced them."""

    results: list[FusedResult]
    list_count: int


async def absorb_failure(
    awaitable: Awaitable[T],
    default: T,
    *,
    signal: str,
    scope: str,
) -> T:
    """Await a signal call, turning any failure into ``default``.

    Cancellation is not an ``Exception`` and still propagates.
    """
    try:
        return await awaitable
    except Exception as exc:
        log_with_context(
            logger,
            logging.WARNING,
            "signal unavailable",
            signal=signal,
            scope=scope,
            error=type(exc).__name__,
        )
        return default


class SearchStrategy(ABC):
    """One step of the search fallback chain."""

    name: str = "strategy"

    @abstractmethod
    async def rank(self, request: SearchRequest) -> Ranking:
        """Return fused IDs for ``request``; empty when this step found nothing."""


class SignalFusionStrategy(SearchStrategy):
    """Full-text, resource-vector and chunk-vector signals fused with RRF.

    Full-text search runs alongside the query embedding; the two vector
    searches start as soon as the embedding is ready.
    """

    name = "signal_fusion"

    def __init__(
        self,
        backend: SearchBackend,
        embedder: Embedder,
        engine: RankFusionEngine,
        config: FusionConfig | None = None,
    ) -> None:
        self.backend = backend
        self.embedder = embedder
        self.engine = engine
        self.config = config or FusionConfig()

    async def rank(self, request: SearchRequest) -> Ranking:
        fts, (vector, chunk) = await asyncio.gather(
            self._full_text(request),
            self._vector_signals(request),
        )
        lists = [[candidate.id for candidate in signal] for signal in (fts, vector, chunk)]
        log_with_context(
            logger,
            logging.DEBUG,
            "signals collected",
            scope=request.scope,
            fts=len(fts),
            vector=len(vector),
            chunk_vector=len(chunk),
        )
        results = self.engine.fuse(lists)[: request.limit]
        return Ranking(results=results, list_count=sum(1 for ids in lists if ids))

    async def _full_text(self, request: SearchRequest) -> list[Candidate]:
        ids = await absorb_failure(
            self.backend.full_text_search(request.query, request.scope, request.limit),
            [],
            signal="fts",
            scope=request.scope,
        )
        return _candidates(ids, "fts")

    async def _vector_signals(
        self, request: SearchRequest
    ) -> tuple[list[Candidate], list[Candidate]]:
        embedding = await absorb_failure(
            asyncio.to_thread(self.embedder.embed_query, request.query),
            None,
            signal="embedding",
            scope=request.scope,
        )
        if embedding is None:
            return [], []

        chunk_limit = request.limit * self.config.chunk_limit_multiplier
        vector_ids, chunk_hits = await asyncio.gather(
            absorb_failure(
                self.backend.vector_search(embedding, request.scope, request.limit),
                [],
                signal="vector",
                scope=request.scope,
            ),
            absorb_failure(
                self.backend.chunk_vector_search(embedding, request.scope, chunk_limit),
                [],
                signal="chunk_vector",
                scope=request.scope,
            ),
        )
        return (
            _candidates(vector_ids, "vector"),
            _candidates(best_score_per_resource(chunk_hits), "chunk_vector"),
        )


class SubstringScanStrategy(SearchStrategy):
    """Plain substring match over titles and bodies."""

    name = "substring_scan"

    def __init__(self, backend: SearchBackend, engine: RankFusionEngine) -> None:
        self.backend = backend
        self.engine = engine

    async def rank(self, request: SearchRequest) -> Ranking:
        ids = await absorb_failure(
            self.backend.substring_scan(request.query, request.scope, request.limit),
            [],
            signal="substring_scan",
            scope=request.scope,
        )
        return Ranking(results=self.engine.fuse([ids]), list_count=1 if ids else 0)


class HybridSearcher:
    """Runs the fallback chain and expands the winning ranking to records."""

    def __init__(
        self,
        backend: SearchBackend,
        embedder: Embedder,
        config: FusionConfig | None = None,
        strategies: Sequence[SearchStrategy] | None = None,
    ) -> None:
        self.backend = backend
        self.config = config or FusionConfig()
        self.engine = RankFusionEngine(self.config)
        self.strategies: list[SearchStrategy] = list(
            strategies
            or (
                SignalFusionStrategy(backend, embedder, self.engine, self.config),
                SubstringScanStrategy(backend, self.engine),
            )
        )

    async def search(self, query: str, scope: str, limit: int | None = None) -> list[ScoredRecord]:
        cleaned = query.strip()
        if not cleaned:
            return []

        request = SearchRequest(query=cleaned, scope=scope, limit=limit or self.config.signal_limit)
        for position, strategy in enumerate(self.strategies):
            ranking = await strategy.rank(request)
            if not ranking.results:
                continue
            if position > 0:
                log_with_context(
                    logger,
                    logging.INFO,
                    "search fallback used",
                    strategy=strategy.name,
                    scope=scope,
                    hits=len(ranking.results),
                )
            return await self._expand(ranking, scope)
        return []

    async def _expand(self, ranking: Ranking, scope: str) -> list[ScoredRecord]:
        ids = [result.id for result in ranking.results]
        records = await absorb_failure(
            self.backend.expand_records(ids), [], signal="expand", scope=scope
        )

        order = {record_id: idx for idx, record_id in enumerate(ids)}
        fused = {result.id: result.fused_score for result in ranking.results}
        ceiling = self.engine.max_score(max(1, ranking.list_count))

        expanded: dict[str, ScoredRecord] = {}
        for record in records:
            if record.id not in order or record.id in expanded:
                continue
            expanded[record.id] = ScoredRecord(
                record=record,
                score=min(1.0, fused[record.id] / ceiling),
                fused_score=fused[record.id],
            )
        return sorted(expanded.values(), key=lambda item: order[item.record.id])


def _candidates(ids: list[str], source: SignalSource) -> list[Candidate]:
    return [Candidate(id=item_id, rank_or_score=idx, source=source) for idx, item_id in enumerate(ids)]
