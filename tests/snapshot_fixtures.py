"""Helpers for building language snapshot files in tests."""

import sqlite3
from pathlib import Path
from typing import Dict, Iterable, Tuple

NOUNS_DDL = "CREATE TABLE nouns (word TEXT, count INTEGER)"
VERBS_DDL = "CREATE TABLE verbs (verb TEXT PRIMARY KEY, infinitive TEXT, lastModified TEXT)"


def noun_rows(n: int) -> Iterable[Tuple[str, int]]:
    return ((f"word{i}", i) for i in range(n))


def write_snapshot(path: Path, tables: Dict[str, Tuple[str, Iterable[tuple]]]) -> Path:
    """Create a snapshot file: {table: (create_sql, rows)}"""
    conn = sqlite3.connect(path)
    try:
        for name, (ddl, rows) in tables.items():
            conn.execute(ddl)
            rows = list(rows)
            if rows:
                placeholders = ", ".join(["?"] * len(rows[0]))
                conn.executemany(f"INSERT INTO {name} VALUES ({placeholders})", rows)
        conn.commit()
    finally:
        conn.close()
    return path
