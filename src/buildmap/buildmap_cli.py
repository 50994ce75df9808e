#!/usr/bin/env python3
"""
CLI entry point for the build map pipeline.

Runs the full pipeline once: sync snapshots for every platform, sync the
milestone feed, then write the JSON export.

Usage:
    buildmap
    buildmap --config config/buildmap.yaml
    buildmap --platform Linux_x64 --platform Mac_Arm --workers 2
    buildmap --db-path /tmp/chromium-data.sqlite --output /tmp/chromium-data.json

Exit codes:
    0  every platform and the milestone feed synced, export written
    1  export written, but a platform or the milestone feed failed
    2  configuration, store or export failure
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import BuildMapConfig
from .connectors import HttpConnector
from .core.build_store import BuildStore
from .core.exceptions import BuildMapError, ConfigError
from .core.logging import setup_logging
from .runner import BuildMapRunner, RunnerConfig
from .sources import MilestoneFeed, SnapshotArchive
from .state import create_build_store


logger = logging.getLogger(__name__)


EXIT_OK = 0
EXIT_PARTIAL = 1
EXIT_FATAL = 2


def build_connector(config: BuildMapConfig) -> HttpConnector:
    """Build the HTTP connector from configuration."""
    http_config = config.get_http_config()
    return HttpConnector(
        name="http",
        rate_limit_delay=http_config.get("rate_limit_delay", 0.0),
        timeout=http_config.get("timeout", 30),
        max_retries=http_config.get("max_retries", 3),
        user_agent=http_config.get("user_agent"),
    )


def build_store(config: BuildMapConfig, db_path: Optional[Path] = None) -> BuildStore:
    """Build the build store from configuration."""
    state_config = config.get_state_config()
    backend = state_config.get("backend", "sqlite")

    if backend == "sqlserver":
        sql_config = state_config.get("sqlserver", {})
        return create_build_store(
            backend="sqlserver",
            host=sql_config.get("host", "localhost"),
            port=int(sql_config.get("port", 1433)),
            database=sql_config.get("database", "BuildMap"),
            username=sql_config.get("user", "sa"),
            password=sql_config.get("password"),
            driver=sql_config.get("driver", "ODBC Driver 18 for SQL Server"),
            schema=sql_config.get("schema", "buildmap"),
        )

    return create_build_store(
        backend="sqlite",
        db_path=db_path or Path(state_config.get("db_path")),
    )


def build_runner_config(config: BuildMapConfig, args: argparse.Namespace) -> RunnerConfig:
    """Combine configuration with command-line overrides."""
    runner_config = config.get_runner_config()
    export_config = config.get_export_config()

    max_workers = args.workers if args.workers is not None else runner_config.get("max_workers", 1)
    if max_workers < 1:
        raise ConfigError(f"--workers must be at least 1, got {max_workers}")

    return RunnerConfig(
        platforms=args.platforms or config.get_platforms(),
        max_workers=max_workers,
        fail_fast=runner_config.get("fail_fast", False),
        export_path=args.output or Path(export_config.get("path")),
        export_indent=export_config.get("indent", 2),
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="buildmap",
        description="Sync the browser snapshot archive and milestone feed, then export the build map.",
    )
    parser.add_argument("--config", type=Path, help="Path to YAML config file")
    parser.add_argument("--db-path", type=Path, help="SQLite database path (overrides config)")
    parser.add_argument("--output", type=Path, help="Export JSON path (overrides config)")
    parser.add_argument("--workers", type=int, help="Concurrent platform syncs (1 = sequential)")
    parser.add_argument(
        "--platform",
        dest="platforms",
        action="append",
        help="Platform to sync (repeatable; overrides config)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-json", action="store_true", help="Emit JSON log lines")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(verbose=args.verbose, structured=args.log_json)

    try:
        config = BuildMapConfig(args.config)
        runner_config = build_runner_config(config, args)
        store = build_store(config, db_path=args.db_path)
    except (BuildMapError, ImportError) as e:
        logger.error(f"Failed to initialize: {e}")
        return EXIT_FATAL

    remote = config.get_remote_config()
    runner = BuildMapRunner(
        store=store,
        connector=build_connector(config),
        config=runner_config,
        archive=SnapshotArchive(
            bucket=remote["bucket"],
            storage_api_url=remote["storage_api_url"],
            download_api_url=remote["download_api_url"],
        ),
        feed=MilestoneFeed(url=remote["milestones_url"]),
    )

    try:
        metrics = runner.run()
    except BuildMapError as e:
        logger.error(f"Run failed: {e}")
        return EXIT_FATAL
    finally:
        runner.close()

    if metrics.status == "interrupted":
        return EXIT_PARTIAL
    return EXIT_OK if metrics.succeeded else EXIT_PARTIAL


if __name__ == "__main__":
    sys.exit(main())
