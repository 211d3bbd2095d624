"""
Batch Transfer Engine
=====================

Copies every row of one snapshot table into one warehouse table inside a
single destination transaction. Rows are buffered and executed in batches of
BATCH_SIZE; the transaction commits only after the last batch, so other
sessions see the table either empty or complete.

Inserts use "insert, ignore duplicates" so a rerun after a partial write
never fails on duplicate keys.
"""

import logging
import time
from typing import Any, List, Sequence, Tuple

from core.errors import DataTransferError
from core.schema import TableSchema

logger = logging.getLogger(__name__)

BATCH_SIZE = 5000


def coerce_value(value: Any) -> Any:
    """NULL stays NULL, raw bytes become text, everything else passes through."""
    if value is None:
        return None
    if isinstance(value, memoryview):
        value = value.tobytes()
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode('utf-8', errors='replace')
    return value


class TransferRow:
    """One source row as ordered (column name, value) pairs."""

    __slots__ = ('pairs',)

    def __init__(self, column_names: Sequence[str], raw: Sequence[Any]):
        if len(raw) != len(column_names):
            raise ValueError(f"Row has {len(raw)} values for {len(column_names)} columns")
        self.pairs: Tuple[Tuple[str, Any], ...] = tuple(
            (name, coerce_value(value)) for name, value in zip(column_names, raw)
        )

    def values(self) -> tuple:
        return tuple(value for _, value in self.pairs)

    def __repr__(self):
        return f"TransferRow({dict(self.pairs)!r})"


class BatchTransfer:
    """Streams rows from a source adapter into a destination adapter."""

    def __init__(self, batch_size: int = BATCH_SIZE):
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.batch_size = batch_size

    def execute_batch(self, cursor, sql: str, batch: List[tuple]) -> None:
        """Run one batch inside the already-open transaction."""
        cursor.executemany(sql, batch)

    def transfer(self, source, destination, schema: TableSchema, src_table: str, dest_table: str) -> int:
        """
        Copy src_table into dest_table.

        Returns:
            Number of rows read from the source and written

        Raises:
            DataTransferError: any read, insert or commit failure; the
                destination transaction has been rolled back
        """
        columns = list(schema.column_names)
        insert_sql = destination.insert_ignore_sql(dest_table, columns)
        start = time.time()
        count = 0

        try:
            with destination.transaction() as cursor:
                batch: List[tuple] = []
                for raw in source.iter_rows(src_table, columns, arraysize=self.batch_size):
                    batch.append(TransferRow(columns, raw).values())
                    if len(batch) >= self.batch_size:
                        self.execute_batch(cursor, insert_sql, batch)
                        count += len(batch)
                        batch = []
                        logger.info(f"Migrated {count} rows for table {dest_table}")

                if batch:
                    self.execute_batch(cursor, insert_sql, batch)
                    count += len(batch)
        except Exception as e:
            logger.error(f"Transfer into {dest_table} rolled back after {count} rows: {e}")
            raise DataTransferError(dest_table, e) from e

        logger.info(f"Completed migration of {count} rows for table {dest_table} in {time.time() - start:.2f}s")
        return count
