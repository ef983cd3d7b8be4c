"""
Retrieval primitives.

The asset store runs the actual k-NN and full-text queries. These
protocols describe what HybridSearch expects from it, and coerce_hits
turns whatever a store adapter returns into SearchCandidates.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union

from grimoire.core.logging import logger
from grimoire.models.search import Channel, SearchCandidate


@dataclass(frozen=True)
class RawHit:
    """One ordered hit from a retrieval channel."""

    item_id: Any
    score: float = 0.0
    record: Dict[str, Any] = field(default_factory=dict)


HitLike = Union[RawHit, Sequence[Any], Mapping[str, Any]]


class VectorSearchFn(Protocol):
    async def __call__(
        self,
        query_vector: List[float],
        campaign_id: str,
        limit: int,
        record_type: Optional[str] = None,
    ) -> Sequence[HitLike]: ...  # pragma: no cover


class KeywordSearchFn(Protocol):
    async def __call__(
        self,
        keywords: str,
        campaign_id: str,
        limit: int,
        record_type: Optional[str] = None,
    ) -> Sequence[HitLike]: ...  # pragma: no cover


class CountAssetsFn(Protocol):
    async def __call__(self, campaign_id: str, record_type: Optional[str] = None) -> int: ...  # pragma: no cover


# Score keys the store pipelines project, in lookup order
SCORE_KEYS = ("score", "vectorScore", "textScore", "hybridScore")


def normalize_item_id(value: Any) -> Optional[str]:
    """
    Identifier used for dedup across channels.

    {"$oid": "..."} and plain strings both give the bare string, so
    the same asset coming back from both channels fuses into one item.
    """
    if value is None:
        return None
    if isinstance(value, Mapping):
        value = value.get("$oid")
        if value is None:
            return None
    text = str(value).strip()
    return text or None


def _unpack(hit: HitLike) -> tuple[Any, float, Dict[str, Any]]:
    if isinstance(hit, RawHit):
        return hit.item_id, hit.score, dict(hit.record)

    if isinstance(hit, Mapping):
        record = hit.get("record", hit.get("rawRecord"))
        if record is None:
            # The hit is the raw store document itself
            record = dict(hit)
        item_id = hit.get("id", hit.get("_id", record.get("_id", record.get("id"))))
        score = next((hit[key] for key in SCORE_KEYS if hit.get(key) is not None), 0.0)
        return item_id, score, dict(record)

    if isinstance(hit, (tuple, list)) and len(hit) == 3:
        item_id, score, record = hit
        return item_id, score, dict(record or {})

    raise TypeError(f"Unsupported hit type: {type(hit).__name__}")


def coerce_hits(hits: Optional[Sequence[HitLike]], channel: Channel) -> List[SearchCandidate]:
    """
    Converts one channel's ordered output into candidates.

    Ranks are assigned in order, 0 for the first usable hit. Hits
    without an identifier or with an unsupported shape are skipped.
    """
    candidates: List[SearchCandidate] = []
    for position, hit in enumerate(hits or []):
        try:
            item_id, score, record = _unpack(hit)
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning("Skipping malformed hit", channel=channel.value, position=position, error=str(e))
            continue

        normalized = normalize_item_id(item_id)
        if normalized is None:
            logger.warning("Skipping hit without identifier", channel=channel.value, position=position)
            continue

        try:
            raw_score = float(score)
        except (TypeError, ValueError):
            raw_score = 0.0

        candidates.append(
            SearchCandidate(
                item_id=normalized,
                source_rank=len(candidates),
                raw_score=raw_score,
                source_channel=channel,
                payload=record,
            )
        )
    return candidates
