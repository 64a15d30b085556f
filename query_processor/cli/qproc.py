"""Command line runner: execute one query file and stream its results."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional, TextIO

import click
import yaml

from ..catalog import Catalog
from ..config import Config, DatabaseConfig, LoggingConfig, load_config
from ..drivers import DriverRegistry, create_driver
from ..errors import QueryProcessorError
from ..processor import ExecutionResult, QueryPipeline, build_default_pipeline
from ..query import Query
from ..streaming import results_writer
from ..timezone import ConfiguredTimezoneResolver
from ..utils.logging import configure_from

CLI_FORMATS = ["csv", "json"]


class QueryRuntime:
    """Wires catalog, drivers and the default pipeline from configuration."""

    def __init__(self, config: Config, sync: bool = False):
        self.config = config
        self.catalog = Catalog.load_from_config(config.metadata)
        self.drivers = DriverRegistry()
        for database in config.databases.values():
            driver = create_driver(database, self.catalog, config.executor.batch_size)
            self.drivers.register(database.id, driver)
        if sync:
            for database_id in self.drivers:
                self.catalog.sync_database(database_id, self.drivers.get(database_id))
        resolver = ConfiguredTimezoneResolver.from_config(config.timezone)
        self.pipeline: QueryPipeline = build_default_pipeline(
            self.drivers, self.catalog, resolver
        )

    def execute(
        self, query: Query, fmt: str, sink: TextIO, close_sink: bool = True
    ) -> ExecutionResult:
        """Run ``query`` and stream it into ``sink`` as ``fmt``."""
        writer = results_writer(fmt, sink, close_sink=close_sink)
        return self.pipeline.run(query, writer)

    def close(self) -> None:
        self.drivers.close_all()


def load_query(query_path: str) -> Query:
    """Read a query document written as JSON or YAML."""
    text = Path(query_path).read_text()
    if query_path.endswith(".json"):
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)
    return Query.from_dict(data)


def _load_config_bundle(config_path: Optional[str]) -> Config:
    if config_path:
        return load_config(config_path)
    return _build_default_config()


def _build_default_config() -> Config:
    config = Config(logging=LoggingConfig(level="WARNING"))
    database = DatabaseConfig(id=1, type="duckdb", config={"path": ":memory:"})
    config.databases[database.id] = database
    return config


def _summary(result: ExecutionResult) -> Dict[str, Any]:
    return {"status": result.status, "row_count": result.row_count}


@click.command()
@click.argument("query_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="YAML configuration file (defaults to an in-memory DuckDB database 1)",
)
@click.option(
    "-f",
    "--format",
    "fmt",
    type=click.Choice(CLI_FORMATS),
    default=None,
    help="Results format (defaults to streaming.default_format)",
)
@click.option("-o", "--output", default="-", help="Output file, '-' for stdout")
@click.option("--sync", is_flag=True, help="Discover tables of every database first")
def cli(
    query_file: str,
    config_path: Optional[str],
    fmt: Optional[str],
    output: str,
    sync: bool,
) -> None:
    """Execute QUERY_FILE and stream the results."""
    runtime = None
    try:
        config = _load_config_bundle(config_path)
        configure_from(config.logging)
        query = load_query(query_file)
        fmt = fmt or config.streaming.default_format
        if fmt not in CLI_FORMATS:
            raise click.BadParameter(f"unknown format {fmt!r}", param_hint="--format")
        runtime = QueryRuntime(config, sync=sync)
        if output == "-":
            result = runtime.execute(query, fmt, sys.stdout, close_sink=False)
        else:
            result = runtime.execute(query, fmt, open(output, "w", newline=""))
        if output != "-":
            click.echo(json.dumps(_summary(result)), err=True)
    except (
        QueryProcessorError,
        ConnectionError,
        FileNotFoundError,
        json.JSONDecodeError,
        yaml.YAMLError,
    ) as exc:
        click.echo(f"error: {exc}", err=True)
        sys.exit(1)
    finally:
        if runtime is not None:
            runtime.close()


def main():
    cli()


if __name__ == "__main__":
    main()
