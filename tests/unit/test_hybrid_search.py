import asyncio
import threading

import pytest

from enclave_rag.config import FusionConfig
from enclave_rag.retrieval.embedder import HashingEmbedder
from enclave_rag.retrieval.hybrid import (
    HybridSearcher,
    SearchRequest,
    SubstringScanStrategy,
)
from enclave_rag.retrieval.fusion import RankFusionEngine
from enclave_rag.types import Record

SCOPE = "space-1"


class ScriptedBackend:
    """Backend returning fixed rankings and recording every call."""

    def __init__(
        self,
        *,
        fts=None,
        vector=None,
        chunks=None,
        substring=None,
        records=None,
        failing=(),
    ) -> None:
        self.fts = fts or []
        self.vector = vector or []
        self.chunks = chunks or []
        self.substring = substring or []
        self.records = records or {}
        self.failing = set(failing)
        self.calls: list[str] = []

    async def _maybe_fail(self, name: str) -> None:
        self.calls.append(name)
        if name in self.failing:
            raise ConnectionError(f"{name} backend down")

    async def full_text_search(self, query, scope, limit):
        await self._maybe_fail("fts")
        return self.fts[:limit]

    async def vector_search(self, embedding, scope, limit):
        await self._maybe_fail("vector")
        return self.vector[:limit]

    async def chunk_vector_search(self, embedding, scope, limit):
        await self._maybe_fail("chunk_vector")
        return self.chunks[:limit]

    async def substring_scan(self, query, scope, limit):
        await self._maybe_fail("substring_scan")
        return self.substring[:limit]

    async def expand_records(self, ids):
        await self._maybe_fail("expand")
        # Storage order deliberately differs from the requested order.
        return [self.records[rid] for rid in sorted(ids, reverse=True) if rid in self.records]


class NullEmbedder(HashingEmbedder):
    def embed_query(self, text):
        return None


class BrokenEmbedder(HashingEmbedder):
    def embed_query(self, text):
        raise TimeoutError("embedding service down")


def _records(*ids: str) -> dict[str, Record]:
    return {rid: Record(id=rid, title=f"Title {rid}", body=f"Body of {rid}") for rid in ids}


def test_results_follow_fused_order_not_storage_order() -> None:
    backend = ScriptedBackend(
        fts=["A", "B", "C"],
        vector=["B", "A", "D"],
        records=_records("A", "B", "C", "D"),
    )
    searcher = HybridSearcher(backend, HashingEmbedder())

    hits = asyncio.run(searcher.search("active meeting", SCOPE))

    assert [hit.record.id for hit in hits] == ["A", "B", "C", "D"]
    assert hits[0].score == pytest.approx(1.0, rel=0.02)
    assert all(0.0 < hit.score <= 1.0 for hit in hits)


def test_chunk_hits_are_reduced_to_one_entry_per_resource() -> None:
    backend = ScriptedBackend(
        chunks=[("C", 0.4), ("E", 0.9), ("C", 0.95)],
        records=_records("C", "E"),
    )
    hits = asyncio.run(HybridSearcher(backend, HashingEmbedder()).search("dues", SCOPE))
    assert [hit.record.id for hit in hits] == ["C", "E"]


def test_empty_query_issues_no_signal_calls() -> None:
    backend = ScriptedBackend(fts=["A"], records=_records("A"))
    hits = asyncio.run(HybridSearcher(backend, HashingEmbedder()).search("   ", SCOPE))
    assert hits == []
    assert backend.calls == []


def test_failed_signals_are_absorbed() -> None:
    backend = ScriptedBackend(
        fts=["A"],
        vector=["B"],
        chunks=[("C", 0.5)],
        records=_records("A", "B", "C"),
        failing={"fts", "chunk_vector"},
    )
    hits = asyncio.run(HybridSearcher(backend, HashingEmbedder()).search("poll", SCOPE))
    assert [hit.record.id for hit in hits] == ["B"]
    assert hits[0].score == pytest.approx(1.0)


def test_null_embedding_skips_vector_signals() -> None:
    backend = ScriptedBackend(fts=["A"], vector=["B"], records=_records("A", "B"))
    hits = asyncio.run(HybridSearcher(backend, NullEmbedder()).search("rush", SCOPE))
    assert [hit.record.id for hit in hits] == ["A"]
    assert "vector" not in backend.calls
    assert "chunk_vector" not in backend.calls


def test_embedding_failure_is_absorbed() -> None:
    backend = ScriptedBackend(fts=["A"], records=_records("A"))
    hits = asyncio.run(HybridSearcher(backend, BrokenEmbedder()).search("rush", SCOPE))
    assert [hit.record.id for hit in hits] == ["A"]


def test_substring_scan_runs_only_when_signals_are_empty() -> None:
    backend = ScriptedBackend(substring=["S"], records=_records("S"))
    hits = asyncio.run(HybridSearcher(backend, HashingEmbedder()).search("Kelton", SCOPE))
    assert [hit.record.id for hit in hits] == ["S"]
    assert backend.calls.index("substring_scan") > backend.calls.index("fts")

    backend_with_hits = ScriptedBackend(fts=["A"], substring=["S"], records=_records("A", "S"))
    asyncio.run(HybridSearcher(backend_with_hits, HashingEmbedder()).search("Kelton", SCOPE))
    assert "substring_scan" not in backend_with_hits.calls


def test_no_results_anywhere_is_an_empty_list() -> None:
    backend = ScriptedBackend(failing={"fts", "vector", "chunk_vector", "substring_scan"})
    assert asyncio.run(HybridSearcher(backend, HashingEmbedder()).search("x", SCOPE)) == []


def test_expand_failure_yields_empty_result() -> None:
    backend = ScriptedBackend(fts=["A"], records=_records("A"), failing={"expand"})
    assert asyncio.run(HybridSearcher(backend, HashingEmbedder()).search("x", SCOPE)) == []


def test_ids_missing_from_expansion_are_dropped() -> None:
    backend = ScriptedBackend(fts=["A", "gone", "B"], records=_records("A", "B"))
    hits = asyncio.run(HybridSearcher(backend, HashingEmbedder()).search("x", SCOPE))
    assert [hit.record.id for hit in hits] == ["A", "B"]


def test_substring_strategy_is_testable_on_its_own() -> None:
    backend = ScriptedBackend(substring=["S1", "S2"])
    strategy = SubstringScanStrategy(backend, RankFusionEngine(FusionConfig()))
    ranking = asyncio.run(strategy.rank(SearchRequest(query="hall", scope=SCOPE, limit=5)))
    assert [result.id for result in ranking.results] == ["S1", "S2"]
    assert ranking.list_count == 1


def test_limit_caps_fused_results() -> None:
    ids = [f"r{i}" for i in range(8)]
    backend = ScriptedBackend(fts=ids, records=_records(*ids))
    hits = asyncio.run(HybridSearcher(backend, HashingEmbedder()).search("x", SCOPE, limit=3))
    assert [hit.record.id for hit in hits] == ["r0", "r1", "r2"]


class OverlapBackend(ScriptedBackend):
    """Each signal blocks until the call it must overlap with has started."""

    def __init__(self, embedding_started: threading.Event, **kwargs) -> None:
        super().__init__(**kwargs)
        self.embedding_started = embedding_started
        self.vector_started = asyncio.Event()
        self.chunk_started = asyncio.Event()

    async def full_text_search(self, query, scope, limit):
        while not self.embedding_started.is_set():
            await asyncio.sleep(0.005)
        return await super().full_text_search(query, scope, limit)

    async def vector_search(self, embedding, scope, limit):
        self.vector_started.set()
        await self.chunk_started.wait()
        return await super().vector_search(embedding, scope, limit)

    async def chunk_vector_search(self, embedding, scope, limit):
        self.chunk_started.set()
        await self.vector_started.wait()
        return await super().chunk_vector_search(embedding, scope, limit)


class SignallingEmbedder(HashingEmbedder):
    def __init__(self, started: threading.Event) -> None:
        super().__init__()
        self.started = started
        self.calls = 0

    def embed_query(self, text):
        self.calls += 1
        self.started.set()
        return super().embed_query(text)


def test_fts_overlaps_embedding_and_vector_signals_overlap() -> None:
    started = threading.Event()
    embedder = SignallingEmbedder(started)

    async def _run():
        backend = OverlapBackend(
            started,
            fts=["A"],
            vector=["B"],
            chunks=[("C", 0.5)],
            records=_records("A", "B", "C"),
        )
        return await asyncio.wait_for(HybridSearcher(backend, embedder).search("dues", SCOPE), 2)

    hits = asyncio.run(_run())

    assert {hit.record.id for hit in hits} == {"A", "B", "C"}
    assert embedder.calls == 1
