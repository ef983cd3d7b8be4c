"""
Tests for the grimoire command line.
"""

import asyncio

from click.testing import CliRunner

from grimoire._version import __version__
from grimoire.cli import cli
from grimoire.core.database import DatabaseManager
from grimoire.models.search import SearchTimings
from grimoire.models.search_metric import SearchMetricParams
from grimoire.retrieval.metric_store import SearchMetricStore
from grimoire.retrieval.metrics import build_search_metric


def _seed(db_path, count=1):
    manager = DatabaseManager(db_path)
    store = SearchMetricStore(manager)

    async def _save_all():
        for _ in range(count):
            await store.save(
                build_search_metric(
                    SearchMetricParams(
                        campaign_id="camp1",
                        query="harbor",
                        limit=10,
                        result_scores=[1.0],
                        timings=SearchTimings(total=12.5),
                        expanded_result_scores=[1.0, 0.4],
                        total_item_count=4,
                    )
                )
            )

    asyncio.run(_save_all())
    manager.close()


class TestCli:
    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_recent_empty(self, temp_db_path):
        result = CliRunner().invoke(cli, ["metrics", "recent", "--db", temp_db_path])

        assert result.exit_code == 0
        assert "No search metrics recorded" in result.output

    def test_recent(self, temp_db_path):
        _seed(temp_db_path, count=2)

        result = CliRunner().invoke(cli, ["metrics", "recent", "--db", temp_db_path, "-n", "5"])

        assert result.exit_code == 0
        assert "Recent searches" in result.output

    def test_recent_rejects_bad_limit(self, temp_db_path):
        result = CliRunner().invoke(cli, ["metrics", "recent", "--db", temp_db_path, "--limit", "0"])

        assert result.exit_code == 2

    def test_summary(self, temp_db_path):
        _seed(temp_db_path)

        result = CliRunner().invoke(cli, ["metrics", "summary", "--db", temp_db_path])

        assert result.exit_code == 0
        assert "total_searches" in result.output
        assert "sampled_searches" in result.output

    def test_config_show(self, clean_env):
        path = clean_env / "grimoire.yaml"
        path.write_text("search:\n  rrf_k: 42\n", encoding="utf-8")

        result = CliRunner().invoke(cli, ["config", "show", "--path", str(path)])

        assert result.exit_code == 0
        assert "rrf_k: 42" in result.output
        assert "sample_rate" in result.output
