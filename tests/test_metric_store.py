"""
Tests for SQLite telemetry persistence.
"""

from datetime import datetime, timezone

import pytest

from grimoire.core.database import DatabaseManager, FetchType
from grimoire.core.exceptions import DatabaseError
from grimoire.models.search import SearchTimings
from grimoire.models.search_metric import SearchMetricParams
from grimoire.retrieval.metric_store import COLUMNS, SearchMetricStore
from grimoire.retrieval.metrics import build_search_metric


def _metric(campaign_id="camp1", sampled=False, created_at=None, **overrides):
    values = dict(
        campaign_id=campaign_id,
        query="harbor smugglers",
        keywords="smugglers",
        limit=10,
        result_scores=[1.0, 0.6],
        timings=SearchTimings(total=20.0, embedding=4.0),
    )
    if sampled:
        values.update(expanded_result_scores=[1.0, 0.6, 0.2, 0.1], total_item_count=8)
    values.update(overrides)
    metric = build_search_metric(SearchMetricParams(**values))
    if created_at is not None:
        metric = metric.model_copy(update={"created_at": created_at})
    return metric


class TestSchema:
    @pytest.mark.asyncio
    async def test_columns_match_table(self, db_manager):
        result = await db_manager.execute_async("PRAGMA table_info(search_metrics)", fetch=FetchType.ALL)

        assert [row["name"] for row in result.data] == list(COLUMNS)

    def test_memory_database(self):
        manager = DatabaseManager(":memory:")
        try:
            assert manager.db_path == ":memory:"
        finally:
            manager.close()

    @pytest.mark.asyncio
    async def test_sqlite_errors_are_wrapped(self, db_manager):
        with pytest.raises(DatabaseError):
            await db_manager.execute_async("SELECT * FROM missing_table", fetch=FetchType.ALL)


class TestSearchMetricStore:
    @pytest.mark.asyncio
    async def test_save_and_read_back(self, db_manager):
        store = SearchMetricStore(db_manager)
        metric = _metric(sampled=True)

        await store.save(metric)
        rows = await store.recent()

        assert len(rows) == 1
        row = rows[0]
        assert row.id == metric.id
        assert row.sampled is True
        assert row.has_results is True
        assert row.query == "harbor smugglers"
        assert row.precision_at_k == pytest.approx(metric.precision_at_k)
        assert row.total_assets == 8
        assert row.created_at == metric.created_at

    @pytest.mark.asyncio
    async def test_unsampled_columns_are_null(self, db_manager):
        store = SearchMetricStore(db_manager)
        await store.save(_metric())

        result = await db_manager.execute_async(
            "SELECT query, keywords, query_length, precision_at_k, score_mean FROM search_metrics",
            fetch=FetchType.ONE,
        )

        assert result.data == {
            "query": "",
            "keywords": "",
            "query_length": len("harbor smugglers"),
            "precision_at_k": None,
            "score_mean": None,
        }

    @pytest.mark.asyncio
    async def test_recent_newest_first(self, db_manager):
        store = SearchMetricStore(db_manager)
        older = _metric(created_at=datetime(2024, 1, 1, tzinfo=timezone.utc))
        newer = _metric(created_at=datetime(2024, 3, 1, tzinfo=timezone.utc))
        await store.save(older)
        await store.save(newer)

        rows = await store.recent()
        assert [r.id for r in rows] == [newer.id, older.id]

        rows = await store.recent(limit=1)
        assert [r.id for r in rows] == [newer.id]

    @pytest.mark.asyncio
    async def test_recent_by_campaign(self, db_manager):
        store = SearchMetricStore(db_manager)
        await store.save(_metric(campaign_id="camp1"))
        await store.save(_metric(campaign_id="camp2"))

        rows = await store.recent(campaign_id="camp2")

        assert [r.campaign_id for r in rows] == ["camp2"]

    @pytest.mark.asyncio
    async def test_summary(self, db_manager):
        store = SearchMetricStore(db_manager)
        sampled = _metric(sampled=True)
        await store.save(sampled)
        await store.save(_metric(result_scores=[]))

        summary = await store.summary()

        assert summary["total_searches"] == 2
        assert summary["sampled_searches"] == 1
        assert summary["hit_rate"] == pytest.approx(0.5)
        assert summary["avg_result_count"] == pytest.approx(1.0)
        assert summary["avg_precision_at_k"] == pytest.approx(sampled.precision_at_k)
        assert summary["campaign_id"] is None

    @pytest.mark.asyncio
    async def test_summary_empty(self, db_manager):
        summary = await SearchMetricStore(db_manager).summary(campaign_id="nobody")

        assert summary["total_searches"] == 0
        assert summary["sampled_searches"] == 0
        assert summary["hit_rate"] is None
        assert summary["campaign_id"] == "nobody"
