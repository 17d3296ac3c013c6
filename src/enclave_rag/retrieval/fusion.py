"""Reciprocal rank fusion over ranked ID lists."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from enclave_rag.config import FusionConfig
from enclave_rag.types import FusedResult

# Fused scores are compared at this precision when ordering.
_SCORE_PRECISION = 12


def reciprocal_rank_fusion(lists: Sequence[Sequence[str]], k: int = 60) -> list[FusedResult]:
    """Fuse ranked ID lists into one list ordered by RRF score.

    Each ID at 0-based position ``idx`` of a list earns ``1 / (k + idx + 1)``.
    IDs absent from a list earn nothing from it, so an empty list (a failed or
    empty signal) simply contributes nothing. Equal scores are ordered by the
    best rank the ID reached in any list, then by ID.
    """
    if k <= 0:
        raise ValueError("k must be positive")

    scores: dict[str, float] = {}
    best_ranks: dict[str, int] = {}
    for ranked in lists:
        seen: set[str] = set()
        for idx, item_id in enumerate(ranked):
            if item_id in seen:
                continue
            seen.add(item_id)
            scores[item_id] = scores.get(item_id, 0.0) + 1.0 / (k + idx + 1)
            if idx < best_ranks.get(item_id, idx + 1):
                best_ranks[item_id] = idx

    ordered = sorted(
        scores,
        key=lambda item_id: (
            -round(scores[item_id], _SCORE_PRECISION),
            best_ranks[item_id],
            item_id,
        ),
    )
    return [
        FusedResult(id=item_id, fused_score=scores[item_id], best_rank=best_ranks[item_id])
        for item_id in ordered
    ]


def fuse(lists: Sequence[Sequence[str]], k: int = 60) -> list[str]:
    """Return fused IDs only, best first."""
    return [result.id for result in reciprocal_rank_fusion(lists, k)]


def best_score_per_resource(hits: Iterable[tuple[str, float]]) -> list[str]:
    """Reduce chunk-level hits to resource IDs ordered by their best chunk score."""
    best: dict[str, float] = {}
    for resource_id, score in hits:
        if resource_id not in best or score > best[resource_id]:
            best[resource_id] = score
    return sorted(best, key=lambda rid: (-best[rid], rid))


class RankFusionEngine:
    """RRF with a per-call-site ``k``.

    Call sites fusing lists of different lengths construct their own engine
    instead of sharing one constant.
    """

    def __init__(self, config: FusionConfig | None = None) -> None:
        self.config = config or FusionConfig()

    @property
    def k(self) -> int:
        return self.config.rrf_k

    def fuse(self, lists: Sequence[Sequence[str]], *, k: int | None = None) -> list[FusedResult]:
        return reciprocal_rank_fusion(lists, self.k if k is None else k)

    def max_score(self, list_count: int, *, k: int | None = None) -> float:
        """Score of an ID ranked first in ``list_count`` lists."""
        return list_count / ((self.k if k is None else k) + 1)
