"""
Search quality telemetry.

There is no labelled relevance set, so quality is estimated with
proxies: a sampled request is replayed at k=200 and the size of that
expanded result set stands in for "all relevant items".

    precision@k   = results_at_k / k
    recall@k      = results_at_k / results_at_200   (0 when nothing at 200)
    precision@200 = results_at_200 / 200
    recall@200    = results_at_200 / total_assets   (0 when no assets)
    coverage      = results_at_k / total_assets

Every request gets a basic row (hit flag, counts, timings, query
length). Only sampled rows carry the proxies, score statistics and
the query text itself.
"""

import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Protocol, Sequence

import numpy as np

from grimoire.core.config import SearchConfig
from grimoire.core.logging import logger
from grimoire.core.tracing import MetricsCollector
from grimoire.models.search import SearchPayload, SearchRequest
from grimoire.models.search_metric import (
    CaptureSearchMetricsInput,
    SearchMetric,
    SearchMetricParams,
)
from grimoire.retrieval.primitives import CountAssetsFn


EXPANDED_K = 200

ExpandedSearchFn = Callable[[SearchRequest], Awaitable[SearchPayload]]


class MetricSink(Protocol):
    async def save(self, metric: SearchMetric) -> None: ...  # pragma: no cover


@dataclass(frozen=True)
class ScoreStats:
    mean: float = 0.0
    median: float = 0.0
    min: float = 0.0
    max: float = 0.0
    std_dev: float = 0.0


@dataclass(frozen=True)
class PrecisionRecall:
    precision_at_k: float
    recall_at_k: float
    f1_at_k: float
    precision_at_200: float
    recall_at_200: float
    f1_at_200: float
    coverage_ratio: float


@dataclass(frozen=True)
class SampledMetrics:
    total_items: int
    top_k_scores: Sequence[float]
    expanded_scores: Sequence[float]
    precision_recall: PrecisionRecall
    score_stats: ScoreStats


def calculate_score_stats(scores: Sequence[float]) -> ScoreStats:
    """Mean, median, min, max and population standard deviation; all 0 for no scores."""
    if len(scores) == 0:
        return ScoreStats()

    values = np.asarray(scores, dtype=float)
    return ScoreStats(
        mean=float(np.mean(values)),
        median=float(np.median(values)),
        min=float(np.min(values)),
        max=float(np.max(values)),
        std_dev=float(np.std(values)),
    )


def _f1(precision: float, recall: float) -> float:
    if precision + recall <= 0:
        return 0.0
    return 2 * precision * recall / (precision + recall)


def calculate_precision_recall(
    results_at_k: int, results_at_200: int, total_assets: int, k: int
) -> PrecisionRecall:
    precision_at_k = results_at_k / k if k > 0 else 0.0
    recall_at_k = results_at_k / results_at_200 if results_at_200 > 0 else 0.0
    precision_at_200 = results_at_200 / EXPANDED_K
    recall_at_200 = results_at_200 / total_assets if total_assets > 0 else 0.0
    coverage_ratio = results_at_k / total_assets if total_assets > 0 else 0.0

    return PrecisionRecall(
        precision_at_k=precision_at_k,
        recall_at_k=recall_at_k,
        f1_at_k=_f1(precision_at_k, recall_at_k),
        precision_at_200=precision_at_200,
        recall_at_200=recall_at_200,
        f1_at_200=_f1(precision_at_200, recall_at_200),
        coverage_ratio=coverage_ratio,
    )


def collect_sampled_metrics(
    result_scores: Sequence[float],
    k: int,
    expanded_scores: Sequence[float],
    total_count: int,
) -> SampledMetrics:
    """Proxies from the result counts, score statistics from the top-k scores."""
    return SampledMetrics(
        total_items=total_count,
        top_k_scores=list(result_scores),
        expanded_scores=list(expanded_scores),
        precision_recall=calculate_precision_recall(
            len(result_scores), len(expanded_scores), total_count, k
        ),
        score_stats=calculate_score_stats(result_scores),
    )


def build_search_metric(params: SearchMetricParams) -> SearchMetric:
    """
    Builds the telemetry row for one search.

    The row counts as sampled only when both expanded_result_scores and
    total_item_count are present. query and keywords are kept only on
    sampled rows; query_length is always the real character count.
    """
    expanded_scores = params.expanded_result_scores
    total_count = params.total_item_count
    sampled = expanded_scores is not None and total_count is not None
    timings = params.timings

    fields = dict(
        search_type=params.search_type,
        search_mode=params.search_mode,
        campaign_id=params.campaign_id,
        record_type_filter=params.record_type_filter,
        has_results=len(params.result_scores) > 0,
        result_count=len(params.result_scores),
        requested_limit=params.limit,
        min_score=params.min_score,
        execution_time_ms=timings.total,
        embedding_time_ms=timings.embedding,
        vector_time_ms=timings.vector_search,
        text_time_ms=timings.text_search,
        fusion_time_ms=timings.fusion,
        conversion_time_ms=timings.conversion,
        query=(params.query or "") if sampled else "",
        keywords=(params.keywords or "") if sampled else "",
        query_length=len(params.query or ""),
        sampled=sampled,
    )

    if expanded_scores is not None and total_count is not None:
        collected = collect_sampled_metrics(
            params.result_scores,
            params.limit,
            expanded_scores,
            total_count,
        )
        pr = collected.precision_recall
        stats = collected.score_stats
        fields.update(
            precision_at_k=pr.precision_at_k,
            recall_at_k=pr.recall_at_k,
            f1_at_k=pr.f1_at_k,
            precision_at_200=pr.precision_at_200,
            recall_at_200=pr.recall_at_200,
            f1_at_200=pr.f1_at_200,
            coverage_ratio=pr.coverage_ratio,
            score_mean=stats.mean,
            score_median=stats.median,
            score_min=stats.min,
            score_max=stats.max,
            score_std_dev=stats.std_dev,
            total_assets=collected.total_items,
        )

    return SearchMetric(**fields)


class SearchMetricsSampler:
    """
    Decides which searches get the expensive telemetry and records them.

    Nothing here ever raises to the search caller: every failure is
    logged at warning level and counted in the collector.
    """

    def __init__(
        self,
        store: MetricSink,
        config: Optional[SearchConfig] = None,
        rng: Optional[random.Random] = None,
        expanded_search: Optional[ExpandedSearchFn] = None,
        count_assets: Optional[CountAssetsFn] = None,
        collector: Optional[MetricsCollector] = None,
    ) -> None:
        self.store = store
        self.config = config or SearchConfig()
        self.rng = rng or random.Random()
        self.expanded_search = expanded_search
        self.count_assets = count_assets
        self.collector = collector or MetricsCollector(namespace="search.metrics")

    def bind_search(self, expanded_search: ExpandedSearchFn) -> None:
        """Sets the replay function if none was given at construction."""
        if self.expanded_search is None:
            self.expanded_search = expanded_search

    def should_sample(self) -> bool:
        return self.rng.random() < self.config.sample_rate

    async def _collect_expanded(
        self, request: SearchRequest
    ) -> tuple[Optional[list[float]], Optional[int]]:
        if self.expanded_search is None or self.count_assets is None:
            logger.debug("Sampling skipped, no expanded search or asset counter bound")
            return None, None

        expanded_request = request.model_copy(update={"limit": self.config.expanded_k})
        payload = await self.expanded_search(expanded_request)
        total = await self.count_assets(request.campaign_id, request.record_type)
        return payload.scores, int(total)

    async def capture(self, capture_input: CaptureSearchMetricsInput) -> None:
        """
        Entry point of the detached metrics task.

        When the request is sampled, the search is replayed at
        expanded_k and the campaign's assets are counted. A failed
        replay downgrades the row to basic metrics.
        """
        try:
            request = capture_input.search_input
            expanded_scores: Optional[list[float]] = None
            total_count: Optional[int] = None

            if self.should_sample():
                try:
                    expanded_scores, total_count = await self._collect_expanded(request)
                except Exception as e:
                    logger.warning(
                        "Expanded metrics search failed, recording basic metrics",
                        error=str(e),
                        campaign_id=request.campaign_id,
                    )
                    self.collector.increment("expanded_failures")
                    expanded_scores, total_count = None, None

            await self.record_search_metrics(
                SearchMetricParams(
                    search_type=self.config.search_type,
                    search_mode=capture_input.search_mode,
                    campaign_id=request.campaign_id,
                    record_type_filter=request.record_type,
                    query=request.query,
                    keywords=request.keywords,
                    limit=request.limit,
                    min_score=request.min_score,
                    result_scores=list(capture_input.result_scores),
                    timings=capture_input.timings,
                    expanded_result_scores=expanded_scores,
                    total_item_count=total_count,
                )
            )
        except Exception as e:
            logger.warning("Search metrics capture failed", error=str(e))
            self.collector.increment("failures")

    async def record_search_metrics(self, params: SearchMetricParams) -> None:
        """Builds and persists one row. Never raises."""
        try:
            metric = build_search_metric(params)
            await self.store.save(metric)
        except Exception as e:
            logger.warning(
                "Search metrics save failed",
                error=str(e),
                error_type=type(e).__name__,
                campaign_id=params.campaign_id,
            )
            self.collector.increment("failures")
            return

        self.collector.increment("recorded")
        self.collector.gauge("last_execution_time_ms", metric.execution_time_ms)
        if metric.sampled:
            self.collector.increment("sampled")
            if metric.precision_at_k is not None:
                self.collector.gauge("last_precision_at_k", metric.precision_at_k)
