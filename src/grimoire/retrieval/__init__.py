"""
Retrieval module for GRIMOIRE.

Provides hybrid search over campaign assets, rank fusion, result
materialization and search quality telemetry.
"""

from grimoire.retrieval.primitives import (
    RawHit,
    VectorSearchFn,
    KeywordSearchFn,
    CountAssetsFn,
    coerce_hits,
    normalize_item_id,
)
from grimoire.retrieval.fusion import DEFAULT_RRF_K, rrf_contribution, reciprocal_rank_fusion
from grimoire.retrieval.materializer import (
    convert_object_id,
    convert_date,
    materialize_asset,
    materialize_many,
)
from grimoire.retrieval.intent import detect_query_intent, route_query
from grimoire.retrieval.metrics import (
    ScoreStats,
    PrecisionRecall,
    SampledMetrics,
    calculate_score_stats,
    calculate_precision_recall,
    collect_sampled_metrics,
    build_search_metric,
    SearchMetricsSampler,
)
from grimoire.retrieval.metric_store import SearchMetricStore
from grimoire.retrieval.hybrid_search import HybridSearch

__all__ = [
    # Primitives
    "RawHit",
    "VectorSearchFn",
    "KeywordSearchFn",
    "CountAssetsFn",
    "coerce_hits",
    "normalize_item_id",
    # Fusion
    "DEFAULT_RRF_K",
    "rrf_contribution",
    "reciprocal_rank_fusion",
    # Materializer
    "convert_object_id",
    "convert_date",
    "materialize_asset",
    "materialize_many",
    # Intent
    "detect_query_intent",
    "route_query",
    # Metrics
    "ScoreStats",
    "PrecisionRecall",
    "SampledMetrics",
    "calculate_score_stats",
    "calculate_precision_recall",
    "collect_sampled_metrics",
    "build_search_metric",
    "SearchMetricsSampler",
    "SearchMetricStore",
    # Search
    "HybridSearch",
]
