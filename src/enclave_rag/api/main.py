"""FastAPI entrypoint for search/ask/SMS/trace endpoints."""

from __future__ import annotations

import os
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException, Response
from pydantic import BaseModel, Field

from enclave_rag.agent.generator import LlmAnswerGenerator
from enclave_rag.agent.planner import TurnPlanner
from enclave_rag.config import AgentConfig, ContextConfig, FusionConfig, RetrieverConfig, SmsConfig
from enclave_rag.context.builder import ContextWindowBuilder
from enclave_rag.obs.logging import get_logger
from enclave_rag.obs.tracing import TraceStore
from enclave_rag.retrieval.embedder import HashingEmbedder
from enclave_rag.retrieval.hybrid import HybridSearcher
from enclave_rag.retrieval.layers import (
    ActionLayer,
    ContentLayer,
    ConvoLayer,
    ReferenceCorpus,
    ReferenceLayer,
    load_reference_corpus,
)
from enclave_rag.retrieval.retriever import MultiLayerRetriever
from enclave_rag.retrieval.sources import (
    InMemoryActionStore,
    InMemoryHistoryStore,
    InMemorySearchBackend,
)
from enclave_rag.sms.phone import normalize_e164
from enclave_rag.sms.segmenter import tighten
from enclave_rag.sms.twiml import to_twiml
from enclave_rag.types import HistoryEntry, Record

logger = get_logger(__name__)

_DEFAULT_REFERENCE = Path(__file__).resolve().parent.parent / "data" / "system_reference.md"


def _create_llm() -> Any:
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        return None

    from langchain_openai import ChatOpenAI

    return ChatOpenAI(model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"), temperature=0.2)


def _load_corpus() -> ReferenceCorpus:
    path = os.getenv("ENCLAVE_REFERENCE_PATH", str(_DEFAULT_REFERENCE))
    if not Path(path).is_file():
        logger.warning("reference corpus missing at %s; reference layer disabled", path)
        return ReferenceCorpus.empty()
    return load_reference_corpus(path)


class ResourceIn(BaseModel):
    id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    type: str = "doc"
    body: str = ""
    url: str | None = None
    tags: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class ResourceUpsertRequest(BaseModel):
    scope: str | None = None
    resources: list[ResourceIn] = Field(min_length=1)


class HybridSearchRequest(BaseModel):
    query: str = Field(min_length=1)
    scope: str | None = None
    limit: int = Field(default=10, ge=1, le=50)


class AskRequest(BaseModel):
    question: str = Field(min_length=1)
    sender: str = Field(min_length=1)
    scope: str | None = None


class InboundSms(BaseModel):
    from_number: str = Field(min_length=1)
    body: str = ""


app = FastAPI(title="Enclave SMS Answers", version="0.1.0")

_agent_config = AgentConfig()
_fusion_config = FusionConfig()
_retriever_config = RetrieverConfig()
_sms_config = SmsConfig()

_embedder = HashingEmbedder()
_backend = InMemorySearchBackend()
_history = InMemoryHistoryStore()
_actions = InMemoryActionStore()
_searcher = HybridSearcher(_backend, _embedder, _fusion_config)

_retriever = MultiLayerRetriever(
    [
        ContentLayer(_searcher, _retriever_config),
        ConvoLayer(_history, _retriever_config),
        ActionLayer(_actions, _retriever_config),
        ReferenceLayer(_load_corpus(), _retriever_config),
    ],
    _retriever_config,
)

_trace_store = TraceStore()
_llm = _create_llm()
_planner = TurnPlanner(
    retriever=_retriever,
    trace_store=_trace_store,
    generator=(
        LlmAnswerGenerator(_llm, ContextWindowBuilder(ContextConfig()))
        if _llm is not None
        else None
    ),
    config=_agent_config,
    sms_config=_sms_config,
)


@app.get("/health")
def health() -> dict[str, Any]:
    return {
        "status": "ok",
        "llm_configured": _llm is not None,
        "answer_mode": "llm" if _llm is not None else "deterministic",
        "trace_count": len(_trace_store.list_recent(limit=1000)),
    }


@app.post("/resources")
def upsert_resources(request: ResourceUpsertRequest) -> dict[str, Any]:
    records = [Record(**resource.model_dump()) for resource in request.resources]
    embeddings = _embedder.embed_documents([f"{r.title}\n{r.body}" for r in records])
    _backend.upsert(records, embeddings, scope=request.scope or _agent_config.default_scope)
    return {"upserted": len(records), "ids": [record.id for record in records]}


@app.post("/search/hybrid")
async def hybrid_search(request: HybridSearchRequest) -> dict[str, Any]:
    hits = await _searcher.search(
        request.query,
        request.scope or _agent_config.default_scope,
        request.limit,
    )
    return {
        "results": [
            {
                "id": hit.record.id,
                "title": hit.record.title,
                "type": hit.record.type,
                "url": hit.record.url,
                "score": hit.score,
                "fused_score": hit.fused_score,
                "preview": tighten(hit.record.body, _sms_config.tighten_max),
            }
            for hit in hits
        ]
    }


@app.post("/ask")
async def ask(request: AskRequest) -> dict[str, Any]:
    try:
        result = await _planner.handle_turn(
            request.question, normalize_e164(request.sender), request.scope
        )
    except Exception as exc:
        logger.exception("turn failed")
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    return {
        "answer": result.answer,
        "messages": result.messages,
        "decision": result.decision.type,
        "confidence": result.decision.confidence,
        "tone": result.tone.tone,
        "policy": result.tone.policy,
        "trace_id": result.trace_id,
        "latency_ms": result.latency_ms,
        "latency_target_met": result.latency_ms
        <= (_agent_config.target_latency_seconds * 1000.0),
    }


@app.post("/sms/inbound")
async def sms_inbound(request: InboundSms) -> Response:
    sender = normalize_e164(request.from_number)
    text = request.body.strip()
    if not text:
        return Response(content=to_twiml([]), media_type="application/xml")

    result = await _planner.handle_turn(text, sender)
    _history.append(
        sender,
        HistoryEntry(
            user_message=text,
            bot_response=result.answer,
            created_at=datetime.now(timezone.utc),
        ),
    )
    return Response(
        content=to_twiml(result.messages, _sms_config.max_length),
        media_type="application/xml",
    )


@app.get("/traces")
def traces(limit: int = 20) -> dict[str, Any]:
    records = [asdict(record) for record in _trace_store.list_recent(limit=limit)]
    return {"items": records}


@app.get("/traces/{trace_id}")
def trace_detail(trace_id: str) -> dict[str, Any]:
    try:
        record = _trace_store.get(trace_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return asdict(record)


@app.get("/metrics")
def metrics() -> dict[str, Any]:
    return _trace_store.summary()
