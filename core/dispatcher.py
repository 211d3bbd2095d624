"""
Migration Dispatcher
====================

Runs one job per snapshot file on a bounded worker pool. Inside a job the
file's tables are migrated one after another. Table and file failures are
collected and only logged once every job has finished; they never stop
sibling work.
"""

import logging
import time
from typing import Callable, List, Optional, Sequence

from core.errors import MigrationError
from core.schema import FileMigrationResult, MigrationJob, RunReport, SourceFile
from core.table_migration import TableMigration
from core.transfer import BATCH_SIZE, BatchTransfer
from core.worker_pool import DEFAULT_MAX_WORKERS, BoundedWorkerPool
from extensions.plugins.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


class MigrationDispatcher:
    """Migrates many snapshot files into one shared destination."""

    def __init__(
        self,
        destination,
        max_workers: int = DEFAULT_MAX_WORKERS,
        batch_size: int = BATCH_SIZE,
        source_opener: Optional[Callable] = None,
        record_versions: bool = True,
    ):
        self.destination = destination
        self.pool = BoundedWorkerPool(max_workers)
        self.transfer = BatchTransfer(batch_size)
        self.source_opener = source_opener or SQLiteAdapter.open_snapshot
        self.record_versions = record_versions

    def run(self, files: Sequence[SourceFile]) -> RunReport:
        """Migrate every file; returns the report after all jobs have finished."""
        report = RunReport()
        start = time.time()
        logger.info(f"Migrating {len(files)} snapshot files with {self.pool.max_workers} workers")

        record_versions = self.record_versions
        if record_versions:
            try:
                self.destination.ensure_versions_table()
            except Exception as e:
                record_versions = False
                report.errors.append(f"version tracking disabled: {e}")

        outcomes = self.pool.map(lambda f: self.migrate_file(f, record_versions), files)

        for outcome in outcomes:
            if outcome.ok:
                result = outcome.result
                for error in result.errors:
                    report.errors.append(f"[{result.source.language_code}] {result.source.path}: {error}")
            else:
                result = FileMigrationResult(outcome.item, errors=[outcome.error])
                report.errors.append(f"error processing {outcome.item.path}: {outcome.error}")
            report.files.append(result)

        report.files.sort(key=lambda r: str(r.source.path))

        for message in report.errors:
            logger.error(message)

        logger.info(
            f"Run finished in {time.time() - start:.2f}s: {report.tables_migrated} tables, "
            f"{report.rows_migrated} rows, {len(report.errors)} errors"
        )
        return report

    def migrate_file(self, source_file: SourceFile, record_versions: bool = False) -> FileMigrationResult:
        """Migrate all tables of one snapshot sequentially."""
        logger.info(f"Processing file: {source_file.path}")
        result = FileMigrationResult(source_file)

        source = self.source_opener(source_file.path)
        try:
            tables: List[str] = source.get_tables()
            for table in tables:
                job = MigrationJob(source_file.language_code, table)
                try:
                    outcome = TableMigration(source, self.destination, job, self.transfer).run()
                except MigrationError as e:
                    result.errors.append(e)
                    continue
                result.tables.append(job.destination_table)
                result.rows += outcome.rows

            if record_versions and tables and result.success:
                try:
                    self.destination.update_language_version(source_file.language_code)
                except Exception as e:
                    result.errors.append(e)
        finally:
            source.close()

        return result
