"""Query/document embedding interface and a hashing baseline."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from hashlib import blake2b
from math import sqrt

_WORD = re.compile(r"[a-z0-9]+")


def tokenize(text: str) -> list[str]:
    """Lowercased alphanumeric tokens, shared by the in-memory search signals."""
    return _WORD.findall(text.lower())


class Embedder(ABC):
    """Black-box embedding model returning fixed-length vectors."""

    @abstractmethod
    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """Embed many documents."""

    @abstractmethod
    def embed_query(self, text: str) -> list[float] | None:
        """Embed one query; ``None`` when no embedding can be produced."""


class HashingEmbedder(Embedder):
    """Deterministic feature-hashing embedder for local runs and tests.

    Each token is hashed into one of ``dimension`` buckets with a hashed sign;
    the result is L2-normalized. A query without tokens has no embedding.
    """

    def __init__(self, dimension: int = 256) -> None:
        self.dimension = dimension

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self._embed(tokenize(text)) for text in texts]

    def embed_query(self, text: str) -> list[float] | None:
        tokens = tokenize(text)
        if not tokens:
            return None
        return self._embed(tokens)

    def _embed(self, tokens: list[str]) -> list[float]:
        vector = [0.0] * self.dimension
        for token in tokens:
            digest = blake2b(token.encode("utf-8"), digest_size=8).digest()
            bucket = int.from_bytes(digest[:4], "little") % self.dimension
            vector[bucket] += -1.0 if digest[4] % 2 else 1.0

        norm = sqrt(sum(value * value for value in vector))
        if norm == 0:
            return vector
        return [value / norm for value in vector]
