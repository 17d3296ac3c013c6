"""Context window assembly for downstream language models."""

from __future__ import annotations

import re
from collections.abc import Sequence

from enclave_rag.config import ContextConfig
from enclave_rag.types import Record

_WHITESPACE = re.compile(r"\s+")
_BLOCK_SEPARATOR = "\n"


class ContextWindowBuilder:
    """Packs ranked records into a character-bounded context string.

    Blocks are atomic: packing stops before the first block that would push
    the output past the budget. Separators count toward the budget, so the
    result never exceeds ``max_chars``.
    """

    def __init__(self, config: ContextConfig | None = None) -> None:
        self.config = config or ContextConfig()

    def build(self, records: Sequence[Record], max_chars: int | None = None) -> str:
        budget = max_chars if max_chars is not None else self.config.max_chars
        if budget <= 0:
            return ""

        blocks: list[str] = []
        used = 0
        for record in records:
            block = self.render_block(record)
            cost = len(block) + (len(_BLOCK_SEPARATOR) if blocks else 0)
            if used + cost > budget:
                if not blocks and self.config.truncate_oversized_first_block:
                    blocks.append(block[: budget - 1] + "…")
                break
            blocks.append(block)
            used += cost
        return _BLOCK_SEPARATOR.join(blocks)

    def render_block(self, record: Record) -> str:
        header = f"Title: {record.title}\nType: {record.type}"
        if record.url:
            header += f"\nURL: {record.url}"
        tags = [tag for tag in record.tags if tag]
        tag_line = f"\nTags: {', '.join(tags)}" if tags else ""
        body = _WHITESPACE.sub(" ", record.body or "").strip()
        cap = self.config.snippet_chars
        snippet = body[:cap] + "…" if len(body) > cap else body
        return f"{header}{tag_line}\nContent: {snippet}\n---\n"
