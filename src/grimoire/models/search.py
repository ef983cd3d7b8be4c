"""
Search models.
Candidates live only inside one search; RankedResult and SearchPayload
are what callers receive.
"""

from enum import Enum
from typing import Any, List, Literal, Optional, Tuple
from pydantic import ConfigDict, Field

from grimoire.models.base import GrimoireBaseModel
from grimoire.models.campaign_asset import CampaignAsset, RecordType


class Channel(str, Enum):
    """The two retrieval channels."""

    VECTOR = "vector"
    KEYWORD = "keyword"


SearchMode = Literal["hybrid", "vector", "keyword", "none"]


class SearchRequest(GrimoireBaseModel):
    """
    Resolved inputs of one search.
    Kept so the metrics sampler can replay the search at a larger k.
    """

    model_config = ConfigDict(frozen=True)

    query: Optional[str] = None
    keywords: Optional[str] = None
    campaign_id: str = Field(..., min_length=1)
    limit: int = Field(..., gt=0)
    min_score: float = Field(..., ge=0.0, le=1.0)
    record_type: Optional[RecordType] = None


class SearchCandidate(GrimoireBaseModel):
    """
    One channel's hit for one item, before fusion.
    An item can show up as two candidates, one per channel.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    item_id: str = Field(..., min_length=1)
    source_rank: int = Field(..., ge=0, description="0-based position in the channel's list")
    raw_score: float = Field(0.0, description="Channel-native score, not comparable across channels")
    source_channel: Channel
    payload: Any = None


class FusedCandidate(GrimoireBaseModel):
    """An item after reciprocal rank fusion, normalized against the best item."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    item_id: str
    score: float = Field(..., ge=0.0, le=1.0)
    raw_fused_score: float = Field(..., ge=0.0)
    payload: Any = None
    channels: Tuple[Channel, ...] = ()


class RankedResult(GrimoireBaseModel):
    asset: CampaignAsset
    score: float = Field(..., ge=0.0, le=1.0)


class SearchTimings(GrimoireBaseModel):
    """Per-phase durations of one search, in milliseconds."""

    embedding: float = Field(0.0, ge=0.0)
    vector_search: float = Field(0.0, ge=0.0)
    text_search: float = Field(0.0, ge=0.0)
    fusion: float = Field(0.0, ge=0.0)
    conversion: float = Field(0.0, ge=0.0)
    total: float = Field(0.0, ge=0.0)


class SearchPayload(GrimoireBaseModel):
    assets: List[RankedResult] = Field(default_factory=list)
    timings: SearchTimings = Field(default_factory=SearchTimings)
    search_mode: SearchMode = "none"

    @property
    def scores(self) -> List[float]:
        return [result.score for result in self.assets]
