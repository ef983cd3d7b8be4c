"""
Search telemetry models.

SearchMetric is one persisted row per recorded search. The quality
fields are only filled for sampled requests; on every other row they
stay None and query/keywords are stored as "".
"""

from typing import Any, Dict, List, Optional
from pydantic import ConfigDict, Field

from grimoire.core.utils.datetime_utils import format_iso
from grimoire.models.base import GrimoireBaseModel, StandardIdMixin, TimestampMixin
from grimoire.models.search import SearchMode, SearchRequest, SearchTimings


# Filled only when the request was sampled
SAMPLED_FIELDS = (
    "precision_at_k",
    "recall_at_k",
    "f1_at_k",
    "precision_at_200",
    "recall_at_200",
    "f1_at_200",
    "coverage_ratio",
    "score_mean",
    "score_median",
    "score_min",
    "score_max",
    "score_std_dev",
    "total_assets",
)


class SearchMetricParams(GrimoireBaseModel):
    """
    Everything record_search_metrics needs about one finished search.

    query and keywords always carry the caller's text; whether it is
    stored is decided when the row is built. The request counts as
    sampled when both expanded_result_scores and total_item_count are set.
    """

    search_type: str = "campaign_asset"
    search_mode: SearchMode = "hybrid"
    campaign_id: str
    record_type_filter: Optional[str] = None
    query: Optional[str] = None
    keywords: Optional[str] = None
    limit: int = Field(..., gt=0)
    min_score: float = 0.0
    result_scores: List[float] = Field(default_factory=list)
    timings: SearchTimings = Field(default_factory=SearchTimings)
    expanded_result_scores: Optional[List[float]] = None
    total_item_count: Optional[int] = Field(None, ge=0)

    @property
    def sampled(self) -> bool:
        return self.expanded_result_scores is not None and self.total_item_count is not None


class CaptureSearchMetricsInput(GrimoireBaseModel):
    """Handed to the sampler once a search payload is ready."""

    search_input: SearchRequest
    result_scores: List[float] = Field(default_factory=list)
    timings: SearchTimings
    search_mode: SearchMode


class SearchMetric(GrimoireBaseModel, StandardIdMixin, TimestampMixin):
    """Immutable telemetry row."""

    model_config = ConfigDict(frozen=True)

    search_type: str
    search_mode: SearchMode
    campaign_id: str
    record_type_filter: Optional[str] = None

    has_results: bool
    result_count: int = Field(..., ge=0)
    requested_limit: int = Field(..., gt=0)
    min_score: float

    execution_time_ms: float = Field(..., ge=0.0)
    embedding_time_ms: float = Field(0.0, ge=0.0)
    vector_time_ms: float = Field(0.0, ge=0.0)
    text_time_ms: float = Field(0.0, ge=0.0)
    fusion_time_ms: float = Field(0.0, ge=0.0)
    conversion_time_ms: float = Field(0.0, ge=0.0)

    query: str = ""
    keywords: str = ""
    query_length: int = Field(0, ge=0)
    sampled: bool = False

    precision_at_k: Optional[float] = None
    recall_at_k: Optional[float] = None
    f1_at_k: Optional[float] = None
    precision_at_200: Optional[float] = None
    recall_at_200: Optional[float] = None
    f1_at_200: Optional[float] = None
    coverage_ratio: Optional[float] = None
    score_mean: Optional[float] = None
    score_median: Optional[float] = None
    score_min: Optional[float] = None
    score_max: Optional[float] = None
    score_std_dev: Optional[float] = None
    total_assets: Optional[int] = None

    def to_row(self) -> Dict[str, Any]:
        """Column mapping for the search_metrics table."""
        row = self.model_dump()
        row["created_at"] = format_iso(self.created_at)
        row.pop("updated_at", None)
        row["has_results"] = int(self.has_results)
        row["sampled"] = int(self.sampled)
        return row
