#!/usr/bin/env python3
"""
GRIMOIRE CLI - Command Line Interface
Inspect search telemetry and effective configuration
"""

import asyncio
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click
import yaml
from rich.console import Console
from rich.table import Table

from grimoire._version import __version__
from grimoire.core.config import Settings
from grimoire.core.database import DatabaseManager
from grimoire.core.exceptions import GrimoireError
from grimoire.retrieval.metric_store import SearchMetricStore


console = Console()


def _open_store(db_path: Optional[str]) -> SearchMetricStore:
    path = db_path or Settings().get("database.path")
    return SearchMetricStore(DatabaseManager(path))


def _fmt(value: Any, digits: int = 3) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:.{digits}f}"
    return str(value)


@click.group()
@click.version_option(version=__version__, prog_name="GRIMOIRE")
def cli():
    """
    GRIMOIRE - campaign asset search

    Hybrid search telemetry and configuration tools.
    """
    pass


@cli.group()
def metrics():
    """Search telemetry"""
    pass


@metrics.command()
@click.option('--campaign', 'campaign_id', help='Only rows of this campaign')
@click.option('--db', 'db_path', help='Telemetry database (default: database.path setting)')
def summary(campaign_id: Optional[str], db_path: Optional[str]):
    """Aggregate search quality and latency"""
    store = _open_store(db_path)
    data: Dict[str, Any] = asyncio.run(store.summary(campaign_id))

    table = Table(title=f"Search metrics{f' - {campaign_id}' if campaign_id else ''}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    for key in (
        "total_searches",
        "sampled_searches",
        "hit_rate",
        "avg_result_count",
        "avg_execution_time_ms",
        "avg_embedding_time_ms",
        "avg_precision_at_k",
        "avg_recall_at_k",
        "avg_f1_at_k",
        "avg_coverage_ratio",
        "avg_score_mean",
    ):
        table.add_row(key, _fmt(data.get(key)))

    console.print(table)


@metrics.command()
@click.option('-n', '--limit', default=20, show_default=True, help='Number of rows')
@click.option('--campaign', 'campaign_id', help='Only rows of this campaign')
@click.option('--db', 'db_path', help='Telemetry database (default: database.path setting)')
def recent(limit: int, campaign_id: Optional[str], db_path: Optional[str]):
    """Most recent telemetry rows"""
    if limit <= 0:
        raise click.BadParameter("must be positive", param_hint="--limit")

    store = _open_store(db_path)
    rows = asyncio.run(store.recent(limit=limit, campaign_id=campaign_id))

    if not rows:
        console.print("No search metrics recorded")
        return

    table = Table(title="Recent searches")
    for column in ("created", "campaign", "mode", "results", "limit", "total ms", "sampled", "p@k", "query"):
        table.add_column(column)

    for row in rows:
        table.add_row(
            row.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            row.campaign_id,
            row.search_mode,
            str(row.result_count),
            str(row.requested_limit),
            _fmt(row.execution_time_ms, 1),
            "yes" if row.sampled else "no",
            _fmt(row.precision_at_k),
            row.query or "",
        )

    console.print(table)


@cli.group()
def config():
    """Configuration"""
    pass


@config.command()
@click.option('--path', 'config_path', type=click.Path(dir_okay=False), help='Configuration file')
def show(config_path: Optional[str]):
    """Print the effective configuration"""
    settings = Settings(Path(config_path) if config_path else None)
    click.echo(yaml.safe_dump(settings.config, sort_keys=False))


def main():
    """Main entry point"""
    try:
        cli()
    except KeyboardInterrupt:
        click.echo("\nOperation cancelled by user.")
        sys.exit(0)
    except GrimoireError as e:
        click.echo(click.style(f"Error: {e.message}", fg="red"))
        for suggestion in e.suggestions:
            click.echo(f"  - {suggestion}")
        sys.exit(1)
    except Exception as e:
        click.echo(click.style(f"Error: {e}", fg="red"))
        if os.environ.get('GRIMOIRE_DEBUG'):
            import traceback

            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
