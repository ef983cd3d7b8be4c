"""
Reciprocal rank fusion of the vector and keyword channels.

Scores from the two channels live on different scales (cosine
similarity vs. full-text relevance), so only rank positions are used:

    fused(item) = sum over channels containing item of 1 / (k + rank + 1)

with rank 0 for the best hit. Fused scores are then divided by the
best fused score of the query, so the top item is 1.0.

k and the over-fetch multiplier are tunables (SearchConfig); scores
are not meant to match other RRF implementations exactly.
"""

from typing import Dict, List, Sequence

from grimoire.models.search import Channel, FusedCandidate, SearchCandidate


DEFAULT_RRF_K = 60


def rrf_contribution(rank: int, k: float = DEFAULT_RRF_K) -> float:
    """Contribution of one channel hit at a 0-based rank."""
    if rank < 0:
        raise ValueError(f"rank must be >= 0, got {rank}")
    if k <= 0:
        raise ValueError(f"k must be positive, got {k}")
    return 1.0 / (k + rank + 1)


class _Accumulator:
    __slots__ = ("item_id", "score", "payload", "channels")

    def __init__(self, item_id: str, payload: object) -> None:
        self.item_id = item_id
        self.score = 0.0
        self.payload = payload
        self.channels: List[Channel] = []


def reciprocal_rank_fusion(
    vector_hits: Sequence[SearchCandidate],
    keyword_hits: Sequence[SearchCandidate],
    k: float = DEFAULT_RRF_K,
) -> List[FusedCandidate]:
    """
    Fuses two ranked candidate lists into one.

    - Each item appears once; an item in both channels gets both
      contributions summed
    - A repeated id within one channel only counts at its first rank
    - The payload kept is the first one seen, vector channel first
    - Ties keep first-encounter order (vector list, then keyword list)

    Returns:
        Candidates sorted by score descending, scores in (0, 1]
    """
    accumulated: Dict[str, _Accumulator] = {}

    for channel, hits in ((Channel.VECTOR, vector_hits), (Channel.KEYWORD, keyword_hits)):
        seen_in_channel = set()
        for hit in hits:
            if hit.item_id in seen_in_channel:
                continue
            seen_in_channel.add(hit.item_id)

            entry = accumulated.get(hit.item_id)
            if entry is None:
                entry = accumulated[hit.item_id] = _Accumulator(hit.item_id, hit.payload)
            entry.score += rrf_contribution(hit.source_rank, k)
            entry.channels.append(channel)

    if not accumulated:
        return []

    # dict preserves first-encounter order and sorted() is stable
    ordered = sorted(accumulated.values(), key=lambda entry: entry.score, reverse=True)
    best = ordered[0].score

    return [
        FusedCandidate(
            item_id=entry.item_id,
            score=min(1.0, entry.score / best),
            raw_fused_score=entry.score,
            payload=entry.payload,
            channels=tuple(entry.channels),
        )
        for entry in ordered
    ]
