#!/usr/bin/env python3
"""
SQLite Adapter - snapshot reader and local destination store

Provides:
- Snapshot introspection: get_tables(), get_schema(), iter_rows()
- Destination operations: table_exists(), rename_table(), drop_table(),
  create_table(), transaction(), language version tracking

Snapshots are opened read-only. When used as a destination (local runs and
tests) the single connection is shared between worker threads, so every
statement and transaction runs under the adapter lock.
"""

import sqlite3
import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Any, Optional, Sequence, Union

from core.errors import SchemaReadError
from core.schema import TableSchema

logger = logging.getLogger(__name__)

VERSIONS_TABLE = "language_data_versions"


class SQLiteAdapter:
    """SQLite adapter for snapshot sources and local destinations."""

    dialect = 'sqlite'

    def __init__(
        self,
        database: str = ':memory:',
        timeout: float = 30.0,
        read_only: bool = False,
    ):
        """
        Initialize SQLite adapter.

        Args:
            database: Path to SQLite database file or ':memory:' for in-memory
            timeout: Busy timeout in seconds
            read_only: Open the file with mode=ro (snapshots are never written)
        """
        self.database = database
        self.timeout = timeout
        self.read_only = read_only
        self._connection: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()
        self._connect()
        logger.debug(f"SQLite adapter initialized for {database}")

    @classmethod
    def open_snapshot(cls, path: Union[str, Path]) -> 'SQLiteAdapter':
        """Open a snapshot file for reading."""
        return cls(str(path), read_only=True)

    def _connect(self) -> None:
        """Establish database connection."""
        try:
            if self.read_only:
                uri = f"{Path(self.database).resolve().as_uri()}?mode=ro"
                self._connection = sqlite3.connect(
                    uri, uri=True, timeout=self.timeout, check_same_thread=False
                )
            else:
                self._connection = sqlite3.connect(
                    self.database, timeout=self.timeout, check_same_thread=False
                )
            # Transactions are explicit: BEGIN in transaction(), autocommit otherwise
            self._connection.isolation_level = None
            logger.debug(f"Connected to SQLite database: {self.database}")
        except sqlite3.Error as e:
            logger.error(f"Failed to connect to SQLite: {e}")
            raise

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None
                logger.debug(f"SQLite adapter closed: {self.database}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[tuple]:
        """Execute one statement in autocommit mode and return fetched rows."""
        with self._lock:
            cursor = self._connection.cursor()
            try:
                cursor.execute(sql, params or ())
                return cursor.fetchall() if cursor.description else []
            finally:
                cursor.close()

    # Snapshot introspection

    def get_tables(self) -> List[str]:
        """
        Get list of user tables in the snapshot.

        Returns:
            Table names as stored, internal sqlite_* tables excluded
        """
        query = """
            SELECT name
            FROM sqlite_master
            WHERE type = 'table'
            AND name NOT LIKE 'sqlite_%'
        """
        try:
            tables = [row[0] for row in self.execute(query)]
        except sqlite3.Error as e:
            raise SchemaReadError(self.database, f"cannot list tables: {e}", e) from e

        logger.debug(f"Found {len(tables)} tables: {tables}")
        return tables

    def get_schema(self, table_name: str) -> TableSchema:
        """
        Get column names and declared types for a table.

        Columns come back in cid order, which is the order SELECT returns them.

        Raises:
            SchemaReadError: table missing or unreadable
        """
        try:
            rows = self.execute(f"PRAGMA table_info({self.quote_ident(table_name)})")
        except sqlite3.Error as e:
            raise SchemaReadError(table_name, str(e), e) from e

        if not rows:
            raise SchemaReadError(table_name, "table does not exist or has no columns")

        # cid, name, type, notnull, dflt_value, pk
        rows = sorted(rows, key=lambda r: r[0])
        return TableSchema(
            tuple(row[1] for row in rows),
            tuple(row[2] or '' for row in rows),
        )

    def iter_rows(self, table_name: str, columns: Sequence[str], arraysize: int = 5000) -> Iterator[tuple]:
        """Stream raw rows of a table, columns in the given order."""
        column_list = ", ".join(self.quote_ident(c) for c in columns)
        cursor = self._connection.cursor()
        try:
            cursor.execute(f"SELECT {column_list} FROM {self.quote_ident(table_name)}")
            while True:
                chunk = cursor.fetchmany(arraysize)
                if not chunk:
                    break
                yield from chunk
        finally:
            cursor.close()

    def count_rows(self, table_name: str) -> int:
        return self.execute(f"SELECT COUNT(*) FROM {self.quote_ident(table_name)}")[0][0]

    # Destination operations

    @staticmethod
    def quote_ident(identifier: str) -> str:
        return '"' + identifier.replace('"', '""') + '"'

    def table_exists(self, table_name: str) -> bool:
        rows = self.execute(
            "SELECT COUNT(*) FROM sqlite_master WHERE type = 'table' AND name = ?",
            (table_name,),
        )
        return rows[0][0] > 0

    def drop_table(self, table_name: str, if_exists: bool = True) -> None:
        clause = "IF EXISTS " if if_exists else ""
        self.execute(f"DROP TABLE {clause}{self.quote_ident(table_name)}")

    def rename_table(self, old_name: str, new_name: str) -> None:
        self.execute(f"ALTER TABLE {self.quote_ident(old_name)} RENAME TO {self.quote_ident(new_name)}")

    def create_table_sql(self, table_name: str, schema: TableSchema) -> str:
        columns = ",\n    ".join(
            f"{self.quote_ident(name)} {col_type}" for name, col_type in schema.destination_columns()
        )
        return f"CREATE TABLE {self.quote_ident(table_name)} (\n    {columns}\n)"

    def create_table(self, table_name: str, schema: TableSchema) -> None:
        self.execute(self.create_table_sql(table_name, schema))

    def insert_ignore_sql(self, table_name: str, columns: Sequence[str]) -> str:
        column_list = ", ".join(self.quote_ident(c) for c in columns)
        placeholders = ", ".join(["?"] * len(columns))
        return f"INSERT OR IGNORE INTO {self.quote_ident(table_name)} ({column_list}) VALUES ({placeholders})"

    @contextmanager
    def transaction(self):
        """Hold the connection for one transaction; commit on success, roll back on error."""
        with self._lock:
            cursor = self._connection.cursor()
            cursor.execute("BEGIN")
            try:
                yield cursor
            except BaseException:
                self._connection.rollback()
                raise
            else:
                self._connection.commit()
            finally:
                cursor.close()

    def ensure_versions_table(self) -> None:
        self.execute(f"""
            CREATE TABLE IF NOT EXISTS {VERSIONS_TABLE} (
                language_iso TEXT PRIMARY KEY,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    def update_language_version(self, language_code: str) -> None:
        self.execute(f"""
            INSERT INTO {VERSIONS_TABLE} (language_iso, updated_at)
            VALUES (?, CURRENT_TIMESTAMP)
            ON CONFLICT(language_iso) DO UPDATE SET updated_at = CURRENT_TIMESTAMP
        """, (language_code,))

    def get_language_versions(self) -> Dict[str, str]:
        rows = self.execute(f"SELECT language_iso, updated_at FROM {VERSIONS_TABLE}")
        return {row[0]: row[1] for row in rows}
