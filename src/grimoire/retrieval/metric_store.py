"""
SQLite persistence for search telemetry rows.
"""

from typing import Any, Dict, List, Optional

from grimoire.core.database import DatabaseManager, FetchType
from grimoire.core.logging import logger, PerformanceLogger
from grimoire.models.search_metric import SearchMetric


COLUMNS = (
    "id",
    "created_at",
    "search_type",
    "search_mode",
    "campaign_id",
    "record_type_filter",
    "has_results",
    "result_count",
    "requested_limit",
    "min_score",
    "execution_time_ms",
    "embedding_time_ms",
    "vector_time_ms",
    "text_time_ms",
    "fusion_time_ms",
    "conversion_time_ms",
    "query",
    "keywords",
    "query_length",
    "sampled",
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

INSERT_SQL = (
    f"INSERT INTO search_metrics ({', '.join(COLUMNS)}) "
    f"VALUES ({', '.join('?' for _ in COLUMNS)})"
)


class SearchMetricStore:
    """
    Append-only store of SearchMetric rows.

    Rows are never updated or deleted here.
    """

    def __init__(self, db: DatabaseManager) -> None:
        self.db = db
        self._perf = PerformanceLogger()

    async def save(self, metric: SearchMetric) -> None:
        row = metric.to_row()
        await self.db.execute_async(INSERT_SQL, tuple(row[column] for column in COLUMNS))
        logger.debug(
            "Search metric saved",
            metric_id=metric.id,
            campaign_id=metric.campaign_id,
            sampled=metric.sampled,
        )

    async def recent(self, limit: int = 20, campaign_id: Optional[str] = None) -> List[SearchMetric]:
        """Newest rows first."""
        if campaign_id is None:
            result = await self.db.execute_async(
                "SELECT * FROM search_metrics ORDER BY created_at DESC LIMIT ?",
                (limit,),
                FetchType.ALL,
            )
        else:
            result = await self.db.execute_async(
                "SELECT * FROM search_metrics WHERE campaign_id = ? ORDER BY created_at DESC LIMIT ?",
                (campaign_id, limit),
                FetchType.ALL,
            )
        rows: List[Dict[str, Any]] = result.data or []  # type: ignore[assignment]
        return [SearchMetric(**row) for row in rows]

    async def summary(self, campaign_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Aggregates over every row (or one campaign's rows).

        Quality averages only see sampled rows since AVG skips NULL.
        """
        where = "WHERE campaign_id = ?" if campaign_id is not None else ""
        params: tuple[Any, ...] = (campaign_id,) if campaign_id is not None else ()
        with self._perf.measure("metrics_summary", campaign_id=campaign_id):
            result = await self.db.execute_async(
                f"""
                SELECT
                    COUNT(*) AS total_searches,
                    COALESCE(SUM(sampled), 0) AS sampled_searches,
                    AVG(has_results) AS hit_rate,
                    AVG(result_count) AS avg_result_count,
                    AVG(execution_time_ms) AS avg_execution_time_ms,
                    AVG(embedding_time_ms) AS avg_embedding_time_ms,
                    AVG(precision_at_k) AS avg_precision_at_k,
                    AVG(recall_at_k) AS avg_recall_at_k,
                    AVG(f1_at_k) AS avg_f1_at_k,
                    AVG(coverage_ratio) AS avg_coverage_ratio,
                    AVG(score_mean) AS avg_score_mean
                FROM search_metrics
                {where}
                """,
                params,
                FetchType.ONE,
            )
        data: Dict[str, Any] = dict(result.data or {})  # type: ignore[arg-type]
        data["campaign_id"] = campaign_id
        return data
