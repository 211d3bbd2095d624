#!/usr/bin/env python3
"""
MariaDB / MySQL Warehouse Adapter

Destination store for snapshot migrations:
- Thread-safe connection pooling shared by all migration workers
- Explicit per-table transactions
- Table existence checks, RENAME TABLE and DROP TABLE for backup handling
- INSERT IGNORE statement generation
- Language version tracking table

Usage:
    adapter = MySQLAdapter(
        host='localhost',
        database='scribe',
        user='scribe',
        password='secure_password'
    )
    with adapter.transaction() as cursor:
        cursor.executemany(adapter.insert_ignore_sql('en_nouns', ['word']), rows)
"""

import pymysql
import pymysql.cursors
from pymysql import OperationalError, MySQLError
import json
import logging
import time
import threading
import queue
import re
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Any, Optional, Sequence

from core.errors import ConnectionError
from core.schema import TableSchema

logger = logging.getLogger(__name__)

VERSIONS_TABLE = "language_data_versions"

TABLE_OPTIONS = "ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_unicode_ci"

# Server gone away / lost connection during query
RETRYABLE_ERRNOS = frozenset({2006, 2013})

UTC_INIT_COMMAND = "SET time_zone = '+00:00'"


def sanitize_error(e: Exception) -> str:
    """Mask credentials in error messages"""
    msg = str(e)
    return re.sub(r'://([^:]+):([^@]+)@', r'://\1:***@', msg)


class ConnectionState(Enum):
    """Connection states"""
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    ERROR = "error"


@dataclass
class ConnectionConfig:
    """MariaDB connection configuration"""
    host: str = "localhost"
    port: int = 3306
    database: str = "scribe"
    user: str = "scribe"
    password: str = ""

    # Connection pool settings
    min_connections: int = 1
    max_connections: int = 10
    connection_timeout: int = 30

    # Driver timeouts
    connect_timeout: int = 10
    read_timeout: int = 300
    write_timeout: int = 300

    # Retry settings (connection loss only)
    max_retries: int = 3
    retry_delay: float = 1.0

    charset: str = "utf8mb4"
    ensure_database: bool = True

    def to_connection_params(self, with_database: bool = True) -> Dict[str, Any]:
        """Convert to PyMySQL connection parameters"""
        params = {
            'host': self.host,
            'port': self.port,
            'user': self.user,
            'password': self.password,
            'connect_timeout': self.connect_timeout,
            'read_timeout': self.read_timeout,
            'write_timeout': self.write_timeout,
            'charset': self.charset,
            'autocommit': True,
            'cursorclass': pymysql.cursors.Cursor,
            # Re-run by the driver on every reconnect
            'init_command': UTC_INIT_COMMAND,
        }
        if with_database:
            params['database'] = self.database
        return params


class ConnectionPool:
    """Thread-safe MariaDB connection pool"""

    def __init__(self, config: ConnectionConfig):
        self.config = config
        self.pool = queue.Queue(maxsize=config.max_connections)
        self.created_connections = 0
        self._lock = threading.RLock()

        # Pre-populate pool with minimum connections
        for _ in range(config.min_connections):
            self.pool.put(self._create_connection())

    def _create_connection(self):
        """Create a new connection; driver errors propagate"""
        conn = pymysql.connect(**self.config.to_connection_params())
        with self._lock:
            self.created_connections += 1
        logger.debug(f"Created new MariaDB connection ({self.created_connections} total)")
        return conn

    def get_connection(self, timeout: int = 30):
        """Get connection from pool, creating one while under the limit"""
        try:
            conn = self.pool.get_nowait()
        except queue.Empty:
            with self._lock:
                can_create = self.created_connections < self.config.max_connections
            if can_create:
                return self._create_connection()
            try:
                conn = self.pool.get(timeout=timeout)
            except queue.Empty:
                raise RuntimeError("No connections available and max pool size reached")

        try:
            conn.ping(reconnect=True)
        except MySQLError:
            self._discard(conn)
            raise
        return conn

    def _discard(self, conn):
        """Close a broken connection and free its slot"""
        try:
            conn.close()
        except MySQLError as e:
            logger.debug(f"Error closing broken connection: {e}")
        with self._lock:
            self.created_connections -= 1

    def return_connection(self, conn):
        """Return connection to pool"""
        if conn is None:
            return
        if not conn.open:
            with self._lock:
                self.created_connections -= 1
            return
        try:
            self.pool.put_nowait(conn)
        except queue.Full:
            conn.close()
            with self._lock:
                self.created_connections -= 1

    def close_all(self):
        """Close all connections in pool"""
        while True:
            try:
                conn = self.pool.get_nowait()
            except queue.Empty:
                break
            try:
                conn.close()
            except MySQLError as e:
                logger.warning(f"Error closing pooled connection: {e}")
            with self._lock:
                self.created_connections -= 1


class MySQLAdapter:
    """
    Warehouse adapter for MariaDB / MySQL.

    One instance (and one pool) is shared by every migration worker; each
    table migration takes its own connection for its own transaction.
    """

    dialect = 'mysql'

    def __init__(self, config: Optional[ConnectionConfig] = None, **kwargs):
        """Initialize adapter and connection pool"""
        self.config = config or ConnectionConfig(**kwargs)
        self.state = ConnectionState.DISCONNECTED
        self.pool: Optional[ConnectionPool] = None

        self.stats = {
            'queries_executed': 0,
            'failed_queries': 0,
            'retries_attempted': 0,
            'transactions_committed': 0,
            'transactions_rolled_back': 0,
            'start_time': time.time()
        }
        self._stats_lock = threading.Lock()

        try:
            if self.config.ensure_database:
                self._ensure_database()
            self.pool = ConnectionPool(self.config)
            self._health_check()
        except (MySQLError, RuntimeError) as e:
            self.state = ConnectionState.ERROR
            raise ConnectionError(
                f"Failed to connect to {self.config.host}:{self.config.port}/{self.config.database}: "
                f"{sanitize_error(e)}"
            ) from e

        self.state = ConnectionState.CONNECTED
        logger.info(f"MariaDB adapter initialized for {self.config.host}:{self.config.port}/{self.config.database}")

    def _ensure_database(self):
        """Create the warehouse database if it is missing"""
        conn = pymysql.connect(**self.config.to_connection_params(with_database=False))
        try:
            with conn.cursor() as cursor:
                cursor.execute(
                    f"CREATE DATABASE IF NOT EXISTS {self.quote_ident(self.config.database)} "
                    f"CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
                )
        finally:
            conn.close()

    def _health_check(self):
        with self.get_connection() as connection:
            with connection.cursor() as cursor:
                cursor.execute("SELECT 1")
                cursor.fetchone()

    def _count(self, key: str):
        """Stats are shared by every migration worker"""
        with self._stats_lock:
            self.stats[key] += 1

    @contextmanager
    def get_connection(self):
        """Get connection from pool with automatic return"""
        if not self.pool:
            raise RuntimeError("Connection pool not initialized")
        connection = self.pool.get_connection(timeout=self.config.connection_timeout)
        try:
            yield connection
        finally:
            self.pool.return_connection(connection)

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[tuple]:
        """
        Execute one autocommitted statement and return fetched rows.

        Retries only when the server connection was lost; every other driver
        error propagates to the caller.
        """
        attempt = 0
        while True:
            try:
                with self.get_connection() as connection:
                    with connection.cursor() as cursor:
                        cursor.execute(sql, params)
                        rows = list(cursor.fetchall()) if cursor.description else []
                self._count('queries_executed')
                return rows
            except OperationalError as e:
                errno = e.args[0] if e.args else None
                if errno in RETRYABLE_ERRNOS and attempt < self.config.max_retries:
                    attempt += 1
                    self._count('retries_attempted')
                    logger.warning(f"Query failed, retrying ({attempt}/{self.config.max_retries}): {e}")
                    time.sleep(self.config.retry_delay * attempt)
                    continue
                self._count('failed_queries')
                raise
            except MySQLError:
                self._count('failed_queries')
                raise

    @contextmanager
    def transaction(self):
        """
        Run a block inside one transaction on one pooled connection.

        Yields a cursor; commits when the block completes, rolls back when it raises.
        """
        with self.get_connection() as connection:
            connection.begin()
            cursor = connection.cursor()
            try:
                yield cursor
            except BaseException:
                try:
                    connection.rollback()
                    self._count('transactions_rolled_back')
                except MySQLError as e:
                    logger.error(f"Error rolling back transaction: {e}")
                raise
            else:
                connection.commit()
                self._count('transactions_committed')
            finally:
                cursor.close()

    # Dialect helpers

    @staticmethod
    def quote_ident(identifier: str) -> str:
        return '`' + identifier.replace('`', '``') + '`'

    def table_exists(self, table_name: str) -> bool:
        rows = self.execute(
            "SELECT COUNT(*) FROM information_schema.tables "
            "WHERE table_schema = DATABASE() AND table_name = %s",
            (table_name,),
        )
        return rows[0][0] > 0

    def drop_table(self, table_name: str, if_exists: bool = True) -> None:
        clause = "IF EXISTS " if if_exists else ""
        self.execute(f"DROP TABLE {clause}{self.quote_ident(table_name)}")

    def rename_table(self, old_name: str, new_name: str) -> None:
        self.execute(f"RENAME TABLE {self.quote_ident(old_name)} TO {self.quote_ident(new_name)}")

    def create_table_sql(self, table_name: str, schema: TableSchema) -> str:
        columns = ",\n    ".join(
            f"{self.quote_ident(name)} {col_type}" for name, col_type in schema.destination_columns()
        )
        return f"CREATE TABLE {self.quote_ident(table_name)} (\n    {columns}\n) {TABLE_OPTIONS}"

    def create_table(self, table_name: str, schema: TableSchema) -> None:
        self.execute(self.create_table_sql(table_name, schema))

    def insert_ignore_sql(self, table_name: str, columns: Sequence[str]) -> str:
        column_list = ", ".join(self.quote_ident(c) for c in columns)
        placeholders = ", ".join(["%s"] * len(columns))
        return f"INSERT IGNORE INTO {self.quote_ident(table_name)} ({column_list}) VALUES ({placeholders})"

    # Version tracking

    def ensure_versions_table(self) -> None:
        self.execute(f"""
            CREATE TABLE IF NOT EXISTS {VERSIONS_TABLE} (
                language_iso VARCHAR(64) PRIMARY KEY,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            ) {TABLE_OPTIONS}
        """)
        logger.info(f"{VERSIONS_TABLE} table ready")

    def update_language_version(self, language_code: str) -> None:
        self.execute(f"""
            INSERT INTO {VERSIONS_TABLE} (language_iso, updated_at)
            VALUES (%s, NOW())
            ON DUPLICATE KEY UPDATE updated_at = NOW()
        """, (language_code,))

    def get_statistics(self) -> Dict[str, Any]:
        """Get adapter statistics"""
        with self._stats_lock:
            stats = dict(self.stats)
        return {
            'uptime_seconds': time.time() - stats['start_time'],
            'state': self.state.value,
            'pool_size': f"{self.config.min_connections}-{self.config.max_connections}",
            'open_connections': self.pool.created_connections if self.pool else 0,
            'queries_executed': stats['queries_executed'],
            'failed_queries': stats['failed_queries'],
            'retries_attempted': stats['retries_attempted'],
            'transactions_committed': stats['transactions_committed'],
            'transactions_rolled_back': stats['transactions_rolled_back'],
        }

    def close(self):
        """Close all pooled connections and log the final statistics"""
        stats = self.get_statistics()
        if self.pool:
            self.pool.close_all()
            self.pool = None
        self.state = ConnectionState.DISCONNECTED
        logger.info(f"MariaDB adapter closed. Final stats: {json.dumps(stats)}")
