#!/usr/bin/env python3
"""
Snapshot Migrator
=================

Copies per-language SQLite snapshots into the shared MariaDB warehouse.

Every ``*.sqlite`` file in the snapshot directory is one language; every
table in it becomes ``<lang>_<table>`` in the warehouse. Existing tables are
replaced safely: renamed to ``<table>_old`` while the new copy is loaded and
restored if anything fails.

Usage:
    python3 tools/snapshot_migrator.py --config config.yaml
    python3 tools/snapshot_migrator.py --config config.yaml --source-dir ./packs/sqlite

Exit codes:
    0  all discovered work was attempted (per-table failures are logged)
    1  fatal setup error: configuration, destination connection, discovery
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

# Add parent directory to path to import the migrator packages
sys.path.insert(0, str(Path(__file__).parent.parent.resolve()))

from config.migrator_config import MigratorConfig, load_config
from core.dispatcher import MigrationDispatcher
from core.errors import MigrationError
from core.locator import SourceLocator
from core.naming import NamingConvention
from core.schema import RunReport
from extensions.plugins.mysql_adapter import ConnectionConfig, MySQLAdapter, sanitize_error

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'

logger = logging.getLogger(__name__)


def configure_logging(level: str, log_file: Optional[str] = None):
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT, force=True)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(file_handler)


def connect_destination(config: MigratorConfig) -> MySQLAdapter:
    db = config.database
    return MySQLAdapter(ConnectionConfig(
        host=db.host,
        port=db.port,
        user=db.user,
        password=db.password,
        database=db.name,
        max_connections=db.pool_size,
    ))


def print_report(report: RunReport):
    """Print a run summary"""
    print("\n" + "=" * 70)
    print("SNAPSHOT MIGRATION REPORT")
    print("=" * 70)
    for result in report.files:
        status = "✓" if result.success else "✗"
        print(f"  {status} [{result.source.language_code}] {result.source.path.name}: "
              f"{len(result.tables)} tables, {result.rows:,} rows")
    if report.errors:
        print("\n" + "-" * 70)
        print("ERRORS:")
        print("-" * 70)
        for message in report.errors:
            print(f"  ⚠️  {message}")
    print("\n" + "-" * 70)
    print(f"  Files: {len(report.files)} ({report.files_failed} with errors)")
    print(f"  Tables: {report.tables_migrated}")
    print(f"  Rows: {report.rows_migrated:,}")
    print("=" * 70 + "\n")


def run(args: argparse.Namespace) -> RunReport:
    """Load config, connect, discover and migrate. Fatal problems raise MigrationError."""
    config = load_config(args.config, snapshot_dir=args.source_dir)
    configure_logging(args.log_level or config.log_level, args.log_file)
    logger.info(f"Configuration: {json.dumps(config.get_safe_dict())}")

    locator = SourceLocator(config.snapshot_dir, NamingConvention(), pattern=config.snapshot_pattern)

    destination = connect_destination(config)
    try:
        dispatcher = MigrationDispatcher(
            destination,
            max_workers=config.max_workers,
            batch_size=config.batch_size,
            record_versions=not args.no_versions,
        )
        report = locator.run(dispatcher)
        return report
    finally:
        destination.close()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Migrate language SQLite snapshots into the MariaDB warehouse")
    parser.add_argument("--config", default="config.yaml", help="YAML configuration file")
    parser.add_argument("--source-dir", help="Snapshot directory (overrides snapshotDir)")
    parser.add_argument("--log-level", help="Logging level (overrides logLevel)")
    parser.add_argument("--log-file", help="Also write the log to this file")
    parser.add_argument("--no-versions", action="store_true",
                        help="Do not update the language_data_versions table")
    args = parser.parse_args(argv)

    configure_logging(args.log_level or "INFO")

    try:
        report = run(args)
    except MigrationError as e:
        logger.error(f"Fatal error: {sanitize_error(e)}")
        return 1

    print_report(report)
    return 0


if __name__ == "__main__":
    sys.exit(main())
