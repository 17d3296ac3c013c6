"""Multi-layer retriever: concurrent layers merged into one feed."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence

from enclave_rag.config import RetrieverConfig
from enclave_rag.obs.logging import get_logger, log_with_context
from enclave_rag.obs.tracing import Timer
from enclave_rag.retrieval.layers import RetrievalLayer
from enclave_rag.types import LayerItem, LayerTrace

logger = get_logger(__name__)

LayerObserver = Callable[[LayerTrace], None]


class MultiLayerRetriever:
    """Queries every layer concurrently and merges items by score.

    Each layer gets ``layer_timeout_seconds``; a layer that times out or fails
    contributes nothing. Layer scores are not normalized against each other:
    every layer is expected to cap its own scores to [0, 1]. Ties keep layer
    order.
    """

    def __init__(
        self,
        layers: Sequence[RetrievalLayer],
        config: RetrieverConfig | None = None,
    ) -> None:
        self.layers = list(layers)
        self.config = config or RetrieverConfig()

    async def retrieve(
        self,
        query: str,
        sender: str,
        scope: str | Sequence[str],
        *,
        observer: LayerObserver | None = None,
    ) -> list[LayerItem]:
        """Return items from all layers, best first.

        ``observer`` receives one ``LayerTrace`` per layer run. Cancelling the
        caller cancels every outstanding layer.
        """
        if not query.strip():
            return []

        scopes = [scope] if isinstance(scope, str) else list(scope)
        per_layer = await asyncio.gather(
            *(self._run_layer(layer, query, sender, scopes, observer) for layer in self.layers)
        )

        merged = [item for items in per_layer for item in items]
        merged.sort(key=lambda item: item.score, reverse=True)
        return merged

    async def _run_layer(
        self,
        layer: RetrievalLayer,
        query: str,
        sender: str,
        scopes: list[str],
        observer: LayerObserver | None,
    ) -> list[LayerItem]:
        status = "ok"
        items: list[LayerItem] = []
        with Timer() as timer:
            try:
                items = await asyncio.wait_for(
                    layer.retrieve(query, sender, scopes),
                    timeout=self.config.layer_timeout_seconds,
                )
            except asyncio.TimeoutError:
                status = "timeout"
                log_with_context(
                    logger,
                    logging.WARNING,
                    "layer timed out",
                    layer=layer.name,
                    timeout_s=self.config.layer_timeout_seconds,
                )
            except Exception as exc:
                status = "error"
                log_with_context(
                    logger,
                    logging.WARNING,
                    "layer failed",
                    layer=layer.name,
                    error=type(exc).__name__,
                )

        if observer is not None:
            observer(
                LayerTrace(
                    name=layer.name,
                    status=status,
                    item_count=len(items),
                    latency_ms=timer.elapsed_ms,
                )
            )
        return items
