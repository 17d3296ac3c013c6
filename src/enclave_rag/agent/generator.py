"""LangChain answer generation over an assembled context window."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate

from enclave_rag.context.builder import ContextWindowBuilder
from enclave_rag.obs.logging import get_logger, log_with_context
from enclave_rag.types import Record

logger = get_logger(__name__)

_SYSTEM_PROMPT = """
You are a helpful assistant for a workspace, replying over SMS.

Rules:
1) Answer the user's question using ONLY the provided context.
2) If the answer isn't in the context, say you don't have that information.
3) Keep answers concise: one or two short sentences.
""".strip()

_USER_TEMPLATE = (
    "Context:\n{context}\n\nQuestion: {question}\n\n"
    "Answer based strictly on the context above."
)


class LlmAnswerGenerator:
    """Grounded free-form answers from a chat model.

    The model is a black box: any failure yields ``None`` so the caller can
    fall back to the deterministic composer.
    """

    def __init__(self, llm: Any, builder: ContextWindowBuilder | None = None) -> None:
        self.llm = llm
        self.builder = builder or ContextWindowBuilder()
        prompt = ChatPromptTemplate.from_messages(
            [("system", _SYSTEM_PROMPT), ("human", _USER_TEMPLATE)]
        )
        self.chain = prompt | llm | StrOutputParser()

    async def generate(self, question: str, records: Sequence[Record]) -> str | None:
        context = self.builder.build(records)
        if not context:
            return None
        try:
            text = await self.chain.ainvoke({"context": context, "question": question})
        except Exception as exc:
            log_with_context(
                logger,
                logging.WARNING,
                "llm generation failed",
                error=type(exc).__name__,
                context_chars=len(context),
            )
            return None
        return text.strip() or None
