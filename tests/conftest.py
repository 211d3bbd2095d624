#!/usr/bin/env python3
"""
Snapshot Migrator Test Configuration - PyTest Fixtures

Builds language snapshot files in a temporary directory and provides a
SQLite warehouse that stands in for MariaDB.
"""

import os
import sys
from pathlib import Path
from typing import Dict, Iterable, Tuple

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from extensions.plugins.sqlite_adapter import SQLiteAdapter
from snapshot_fixtures import NOUNS_DDL, noun_rows, write_snapshot


@pytest.fixture
def snapshot_dir(tmp_path):
    directory = tmp_path / "packs" / "sqlite"
    directory.mkdir(parents=True)
    return directory


@pytest.fixture
def make_snapshot(snapshot_dir):
    """Factory: make_snapshot('en', {'nouns': (NOUNS_DDL, rows)})"""
    def _make(language_code: str, tables: Dict[str, Tuple[str, Iterable[tuple]]]) -> Path:
        return write_snapshot(snapshot_dir / f"TranslationData.sqlite_{language_code}.sqlite", tables)
    return _make


@pytest.fixture
def warehouse(tmp_path):
    """SQLite warehouse standing in for the MariaDB destination"""
    adapter = SQLiteAdapter(str(tmp_path / "warehouse.db"))
    yield adapter
    adapter.close()


@pytest.fixture
def en_source(make_snapshot):
    """English snapshot with 12,003 nouns"""
    path = make_snapshot('en', {'nouns': (NOUNS_DDL, noun_rows(12003))})
    adapter = SQLiteAdapter.open_snapshot(path)
    yield adapter
    adapter.close()
